"""WebhookEmitter: registration, HMAC signing and delivery records."""

import hashlib
import hmac
import json

import httpx
import pytest
from sqlmodel import select

from paddle_rack.models.webhook import WebhookDelivery
from paddle_rack.services.webhook_emitter import (
    GAME_ENDED,
    PLAYER_JOINED,
    UnknownWebhookEvent,
    WebhookEmitter,
    list_webhooks,
    register_webhook,
    sign_payload,
    verify_signature,
)


class TestSignatures:
    def test_sign_matches_hmac_sha256(self):
        body = b'{"event":"game.ended"}'
        expected = hmac.new(b"topsecret", body, hashlib.sha256).hexdigest()
        assert sign_payload(body, "topsecret") == f"sha256={expected}"

    def test_verify(self):
        body = b'{"a":1}'
        signature = sign_payload(body, "k")
        assert verify_signature(body, signature, "k") is True
        assert verify_signature(body, signature, "other") is False
        assert verify_signature(b'{"a":2}', signature, "k") is False
        assert verify_signature(body, "", "k") is False


class TestRegistration:
    def test_register_generates_secret(self, session, seed):
        webhook = register_webhook(
            session, seed.facility.id, "Front desk", "https://example.com/hook", [PLAYER_JOINED]
        )
        assert len(webhook.secret) == 64
        assert webhook.enabled is True
        assert [w.id for w in list_webhooks(session, seed.facility.id)] == [webhook.id]

    def test_unknown_event_rejected(self, session, seed):
        with pytest.raises(UnknownWebhookEvent):
            register_webhook(session, seed.facility.id, "x", "https://example.com", ["court.exploded"])

    def test_events_required(self, session, seed):
        with pytest.raises(UnknownWebhookEvent):
            register_webhook(session, seed.facility.id, "x", "https://example.com", [])


class TestEmit:
    def test_delivers_signed_envelope(self, session, seed, webhook_emitter, webhook_requests):
        webhook = register_webhook(
            session, seed.facility.id, "Scoreboard", "https://scores.example/hook", [GAME_ENDED]
        )

        deliveries = webhook_emitter.emit(session, GAME_ENDED, {"game_id": 5}, seed.facility.id)

        assert len(deliveries) == 1
        assert deliveries[0].success is True
        assert deliveries[0].status_code == 200

        (request,) = webhook_requests
        assert str(request.url) == "https://scores.example/hook"
        assert request.headers["X-Webhook-Event"] == GAME_ENDED
        assert request.headers["Content-Type"] == "application/json"
        assert verify_signature(request.content, request.headers["X-Webhook-Signature"], webhook.secret)

        envelope = json.loads(request.content)
        assert envelope["event"] == GAME_ENDED
        assert envelope["data"] == {"game_id": 5}
        assert envelope["facility_id"] == seed.facility.id
        assert envelope["timestamp"].endswith("Z")

    def test_only_subscribed_hooks_receive(self, session, seed, webhook_emitter, webhook_requests):
        register_webhook(session, seed.facility.id, "joins", "https://a.example", [PLAYER_JOINED])
        assert webhook_emitter.emit(session, GAME_ENDED, {}, seed.facility.id) == []
        assert webhook_requests == []

    def test_disabled_hooks_are_skipped(self, session, seed, webhook_emitter, webhook_requests):
        webhook = register_webhook(session, seed.facility.id, "off", "https://a.example", [GAME_ENDED])
        webhook.enabled = False
        session.add(webhook)
        session.commit()

        webhook_emitter.emit(session, GAME_ENDED, {}, seed.facility.id)
        assert webhook_requests == []

    def test_other_facility_hooks_are_skipped(self, session, seed, webhook_emitter, webhook_requests):
        register_webhook(session, seed.facility.id, "mine", "https://a.example", [GAME_ENDED])
        webhook_emitter.emit(session, GAME_ENDED, {}, seed.facility.id + 1)
        assert webhook_requests == []

    def test_http_error_is_recorded_not_retried(self, session, seed):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        emitter = WebhookEmitter(httpx.Client(transport=httpx.MockTransport(handler)))
        register_webhook(session, seed.facility.id, "flaky", "https://a.example", [GAME_ENDED])

        (delivery,) = emitter.emit(session, GAME_ENDED, {}, seed.facility.id)

        assert len(calls) == 1
        assert delivery.success is False
        assert delivery.error_message == "HTTP 500"
        assert session.exec(select(WebhookDelivery)).one().status_code == 500

    def test_connection_error_is_recorded(self, session, seed):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        emitter = WebhookEmitter(httpx.Client(transport=httpx.MockTransport(handler)))
        register_webhook(session, seed.facility.id, "down", "https://a.example", [GAME_ENDED])

        (delivery,) = emitter.emit(session, GAME_ENDED, {}, seed.facility.id)

        assert delivery.success is False
        assert delivery.status_code is None
        assert "connection refused" in delivery.error_message

    def test_unknown_event_is_not_sent(self, session, seed, webhook_emitter, webhook_requests):
        assert webhook_emitter.emit(session, "court.exploded", {}, seed.facility.id) == []
