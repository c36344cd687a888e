"""HTTP surface: queues, games, predictions, webhooks and health."""

import json

from paddle_rack.services.webhook_emitter import verify_signature


def _join(client, queue_id, player_id, name=None):
    return client.post(
        f"/api/queues/{queue_id}/join",
        json={"display_name": name or player_id.upper()},
        headers={"X-Player-Id": player_id},
    )


class TestQueueEndpoints:
    def test_join_and_status(self, client, seed):
        response = _join(client, seed.queue.id, "a", "Ana")
        assert response.status_code == 201
        data = response.json()
        assert data["position"] == 1
        assert data["estimate"]["confidence"] == "low"
        assert data["estimate"]["minutes"] % 5 == 0

        _join(client, seed.queue.id, "b")
        status = client.get(f"/api/queues/{seed.queue.id}").json()
        assert status["player_count"] == 2
        assert [(e["player_id"], e["position"]) for e in status["entries"]] == [("a", 1), ("b", 2)]
        assert status["entries"][0]["display_name"] == "Ana"

    def test_join_without_body_uses_player_id(self, client, seed):
        response = client.post(f"/api/queues/{seed.queue.id}/join", headers={"X-Player-Id": "p9"})
        assert response.status_code == 201
        status = client.get(f"/api/queues/{seed.queue.id}").json()
        assert status["entries"][0]["display_name"] == "p9"

    def test_missing_player_header(self, client, seed):
        response = client.post(f"/api/queues/{seed.queue.id}/join", json={})
        assert response.status_code == 401

    def test_duplicate_join_conflict(self, client, seed):
        _join(client, seed.queue.id, "a")
        response = _join(client, seed.queue.id, "a")
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "ALREADY_IN_QUEUE"

    def test_unknown_queue(self, client, seed):
        assert _join(client, 999, "a").status_code == 404
        assert client.get("/api/queues/999").status_code == 404
        assert client.get("/api/queues/999/stream").status_code == 404

    def test_leave(self, client, seed):
        for pid in ["a", "b", "c"]:
            _join(client, seed.queue.id, pid)

        response = client.delete(f"/api/queues/{seed.queue.id}/leave", headers={"X-Player-Id": "a"})
        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.json()["previous_position"] == 1

        status = client.get(f"/api/queues/{seed.queue.id}").json()
        assert [(e["player_id"], e["position"]) for e in status["entries"]] == [("b", 1), ("c", 2)]

    def test_leave_when_not_queued(self, client, seed):
        response = client.delete(f"/api/queues/{seed.queue.id}/leave", headers={"X-Player-Id": "zz"})
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "NOT_IN_QUEUE"

    def test_stream_sends_snapshot(self, client, seed):
        _join(client, seed.queue.id, "a")
        response = client.get(f"/api/queues/{seed.queue.id}/stream?max_polls=1")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        lines = response.text.strip().split("\n")
        assert lines[0] == "event: snapshot"
        payload = json.loads(lines[1][len("data: "):])
        assert payload["entries"][0]["player_id"] == "a"


class TestGameEndpoints:
    def _start(self, client, seed, team_a=("a", "b"), team_b=("c", "d")):
        return client.post(
            "/api/games",
            json={
                "court_id": seed.court.id,
                "queue_id": seed.queue.id,
                "team_a": list(team_a),
                "team_b": list(team_b),
            },
        )

    def test_start_takes_players_off_the_queue(self, client, seed):
        for pid in "abcde":
            _join(client, seed.queue.id, pid)

        assert self._start(client, seed).status_code == 201

        status = client.get(f"/api/queues/{seed.queue.id}").json()
        assert status["player_count"] == 1
        assert [(e["player_id"], e["position"], e["notified_tier"]) for e in status["entries"]] == [
            ("e", 1, "NEXT_UP")
        ]

    def test_end_to_end_full_rotation(self, client, seed):
        for pid in "abcdefghi":
            assert _join(client, seed.queue.id, pid).status_code == 201

        started = self._start(client, seed)
        assert started.status_code == 201
        game_id = started.json()["id"]
        assert started.json()["status"] == "in_progress"

        response = client.patch(f"/api/games/{game_id}/end", json={"score_a": 11, "score_b": 5})
        assert response.status_code == 200
        data = response.json()
        assert data["winner"] == "team_a"
        assert data["queue_length"] == 9
        assert data["rotation"]["rotation_type"] == "FULL"
        assert data["rotation"]["reason"] == "high_demand"
        assert sorted(data["rotation"]["players_off"]) == ["a", "b", "c", "d"]
        assert data["rotation"]["next_up"] == ["e", "f", "g", "h"]

        status = client.get(f"/api/queues/{seed.queue.id}").json()
        assert [(e["player_id"], e["position"]) for e in status["entries"]] == [("i", 1)]

        game = client.get(f"/api/games/{game_id}").json()
        assert game["status"] == "completed"
        assert game["score_a"] == 11

    def test_tie_rejected(self, client, seed):
        game_id = self._start(client, seed).json()["id"]

        response = client.patch(f"/api/games/{game_id}/end", json={"score_a": 9, "score_b": 9})

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "TIED_SCORE"
        assert client.get(f"/api/games/{game_id}").json()["status"] == "in_progress"

    def test_ending_twice_conflicts(self, client, seed):
        game_id = self._start(client, seed).json()["id"]
        client.patch(f"/api/games/{game_id}/end", json={"score_a": 11, "score_b": 2})
        response = client.patch(f"/api/games/{game_id}/end", json={"score_a": 11, "score_b": 3})
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "ALREADY_ENDED"

    def test_negative_score_is_invalid(self, client, seed):
        game_id = self._start(client, seed).json()["id"]
        response = client.patch(f"/api/games/{game_id}/end", json={"score_a": -1, "score_b": 11})
        assert response.status_code == 422

    def test_bad_team_size(self, client, seed):
        response = self._start(client, seed, team_a=("a",))
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_TEAM_SIZE"

    def test_court_busy(self, client, seed):
        self._start(client, seed)
        response = self._start(client, seed, team_a=("e", "f"), team_b=("g", "h"))
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "COURT_BUSY"

    def test_unknown_game(self, client, seed):
        assert client.get("/api/games/4040").status_code == 404
        response = client.patch("/api/games/4040/end", json={"score_a": 11, "score_b": 3})
        assert response.status_code == 404


class TestPredictionEndpoints:
    def test_wait_time(self, client, seed):
        response = client.get(f"/api/predictions/wait-time?queue_id={seed.queue.id}&position=5")
        assert response.status_code == 200
        data = response.json()
        assert data["minutes"] == 30
        assert data["source"] == "default"
        assert data["confidence"] == "low"

    def test_wait_time_unknown_queue(self, client, seed):
        assert client.get("/api/predictions/wait-time?queue_id=999&position=1").status_code == 404

    def test_stats(self, client, seed):
        game_id = client.post(
            "/api/games",
            json={"court_id": seed.court.id, "queue_id": seed.queue.id, "team_a": ["a", "b"], "team_b": ["c", "d"]},
        ).json()["id"]
        client.patch(f"/api/games/{game_id}/end", json={"score_a": 11, "score_b": 6})

        stats = client.get(f"/api/predictions/stats/{seed.facility.id}").json()
        assert stats["total_games"] == 1
        assert stats["period_days"] == 30

    def test_facility_analytics(self, client, seed):
        def start(court_id, team_a, team_b):
            return client.post(
                "/api/games",
                json={"court_id": court_id, "queue_id": seed.queue.id, "team_a": team_a, "team_b": team_b},
            ).json()["id"]

        finished = start(seed.court.id, ["a", "b"], ["c", "d"])
        client.patch(f"/api/games/{finished}/end", json={"score_a": 11, "score_b": 6})
        playing = start(seed.court_2.id, ["e", "f"], ["g", "h"])

        response = client.get(f"/api/admin/analytics/{seed.facility.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["games"] == 1
        assert [g["id"] for g in data["recent_games"]] == [finished]
        assert data["recent_games"][0]["winner"] == "team_a"
        assert [g["id"] for g in data["active_games"]] == [playing]
        assert data["stats"]["total_games"] == 1

    def test_facility_analytics_unknown_facility(self, client, seed):
        assert client.get("/api/admin/analytics/999").status_code == 404


class TestWebhookEndpoints:
    def test_register_and_list(self, client, seed, webhook_requests):
        response = client.post(
            "/api/webhooks",
            json={
                "facility_id": seed.facility.id,
                "name": "Display board",
                "url": "https://board.example/hooks",
                "events": ["queue.player_joined"],
            },
        )
        assert response.status_code == 201
        secret = response.json()["secret"]
        assert len(secret) == 64

        listed = client.get(f"/api/webhooks/{seed.facility.id}").json()
        assert len(listed) == 1
        assert "secret" not in listed[0]

        _join(client, seed.queue.id, "a")
        (request,) = webhook_requests
        assert verify_signature(request.content, request.headers["X-Webhook-Signature"], secret)

    def test_rejects_unknown_event(self, client, seed):
        response = client.post(
            "/api/webhooks",
            json={"facility_id": seed.facility.id, "name": "x", "url": "https://a.example", "events": ["nope"]},
        )
        assert response.status_code == 422

    def test_rejects_non_http_url(self, client, seed):
        response = client.post(
            "/api/webhooks",
            json={"facility_id": seed.facility.id, "name": "x", "url": "ftp://a.example", "events": ["game.ended"]},
        )
        assert response.status_code == 422

    def test_unknown_facility(self, client, seed):
        response = client.post(
            "/api/webhooks",
            json={"facility_id": 999, "name": "x", "url": "https://a.example", "events": ["game.ended"]},
        )
        assert response.status_code == 404


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
