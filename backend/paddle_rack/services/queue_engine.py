"""
Queue Engine: the operations exposed to the API layer.

Each mutating operation is one unit of work run by `run_in_transaction`:
QueueStore / GameLedger / RotationPolicy / NotificationTrigger decide and
write together, then the transaction commits. Only after the commit does the
engine talk to the outside world (Notifier, WebhookEmitter), so a retried
transaction never produces duplicate side effects.

Players leave the queue when they step onto a court: start_game pulls the
four players of the new game, end_game pulls the next-up group. Nobody on a
court is ever counted as queued.

Definition of "waiting" at rotation time: everyone still in the game's queue
plus the four players coming off the finished game, read inside the end-game
transaction before next-up is pulled. With no joins or leaves during the game
this equals the queue length the moment before the game's players were
pulled (nine players queued, four pulled onto court: waiting is nine).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from sqlmodel import Session

from paddle_rack.config import Settings, get_settings
from paddle_rack.models.court import Court
from paddle_rack.services import (
    game_ledger,
    notification_trigger,
    queue_store,
    rotation_policy,
    wait_predictor,
)
from paddle_rack.services.notification_trigger import NotificationEvent
from paddle_rack.services.notifier import Notifier
from paddle_rack.services.queue_store import QueueSnapshot
from paddle_rack.services.rotation_policy import RotationDecision
from paddle_rack.services.wait_predictor import WaitEstimate
from paddle_rack.services.webhook_emitter import (
    GAME_ENDED,
    GAME_STARTED,
    PLAYER_JOINED,
    PLAYER_LEFT,
    PLAYER_NOTIFIED,
    WebhookEmitter,
)
from paddle_rack.utils.transactions import run_in_transaction

logger = logging.getLogger(__name__)


@dataclass
class JoinResult:
    queue_id: int
    player_id: str
    position: int
    queue_length: int
    estimate: WaitEstimate


@dataclass
class LeaveResult:
    queue_id: int
    player_id: str
    previous_position: int
    queue_length: int
    ok: bool = True


@dataclass
class GameSummary:
    id: int
    court_id: int
    queue_id: int
    facility_id: int
    team_a: List[str]
    team_b: List[str]
    status: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    winner: Optional[str] = None

    @classmethod
    def from_game(cls, game) -> "GameSummary":
        return cls(
            id=game.id,
            court_id=game.court_id,
            queue_id=game.queue_id,
            facility_id=game.facility_id,
            team_a=list(game.team_a),
            team_b=list(game.team_b),
            status=game.status,
            started_at=game.started_at,
            ended_at=game.ended_at,
            duration_seconds=game.duration_seconds,
            score_a=game.score_a,
            score_b=game.score_b,
            winner=game.winner,
        )


@dataclass
class EndGameResult:
    game: GameSummary
    winning_team: List[str]
    losing_team: List[str]
    winner_consecutive_wins: int
    queue_length: int  # waiting count the decision was made on
    rotation: RotationDecision
    remaining_queue_length: int
    notifications: List[NotificationEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game.id,
            "duration_seconds": self.game.duration_seconds,
            "winner": self.game.winner,
            "score_a": self.game.score_a,
            "score_b": self.game.score_b,
            "winning_team": list(self.winning_team),
            "losing_team": list(self.losing_team),
            "winner_consecutive_wins": self.winner_consecutive_wins,
            "queue_length": self.queue_length,
            "remaining_queue_length": self.remaining_queue_length,
            "rotation": self.rotation.to_dict(),
        }


class QueueEngine:
    """Constructed once at startup with its collaborators; holds no per-request state."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        notifier: Optional[Notifier] = None,
        webhook_emitter: Optional[WebhookEmitter] = None,
    ):
        self.settings = settings or get_settings()
        self.notifier = notifier
        self.webhook_emitter = webhook_emitter

    def _run(self, session: Session, work: Callable[[Session], Any]) -> Any:
        return run_in_transaction(session, work, attempts=self.settings.transaction_attempts)

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    def join_queue(
        self, session: Session, queue_id: int, player_id: str, display_name: Optional[str] = None
    ) -> JoinResult:
        def work(s: Session):
            mutation = queue_store.join(s, queue_id, player_id, display_name)
            events = notification_trigger.evaluate(queue_id, mutation.remaining, [player_id])
            return mutation, events

        mutation, events = self._run(session, work)

        # Estimate is read after commit, outside the join transaction
        estimate = wait_predictor.predict_wait(
            session, queue_id, mutation.entry.position, settings=self.settings
        )

        self._emit(
            session,
            PLAYER_JOINED,
            {
                "queue_id": queue_id,
                "player_id": player_id,
                "display_name": mutation.entry.display_name,
                "position": mutation.entry.position,
                "queue_length": mutation.queue_length,
            },
            mutation.facility_id,
        )
        self._dispatch(session, mutation.facility_id, events)

        return JoinResult(
            queue_id=queue_id,
            player_id=player_id,
            position=mutation.entry.position,
            queue_length=mutation.queue_length,
            estimate=estimate,
        )

    def leave_queue(self, session: Session, queue_id: int, player_id: str) -> LeaveResult:
        def work(s: Session):
            mutation = queue_store.leave(s, queue_id, player_id)
            moved = [c.player_id for c in mutation.position_changes]
            events = notification_trigger.evaluate(queue_id, mutation.remaining, moved)
            return mutation, events

        mutation, events = self._run(session, work)

        self._emit(
            session,
            PLAYER_LEFT,
            {
                "queue_id": queue_id,
                "player_id": player_id,
                "previous_position": mutation.entry.position,
                "queue_length": mutation.queue_length,
            },
            mutation.facility_id,
        )
        self._dispatch(session, mutation.facility_id, events)

        return LeaveResult(
            queue_id=queue_id,
            player_id=player_id,
            previous_position=mutation.entry.position,
            queue_length=mutation.queue_length,
        )

    def queue_status(self, session: Session, queue_id: int) -> QueueSnapshot:
        return queue_store.status(session, queue_id)

    def subscribe(
        self,
        session_factory: Callable[[], Session],
        queue_id: int,
        poll_interval: float = 1.0,
        max_polls: Optional[int] = None,
    ) -> Iterator[QueueSnapshot]:
        return queue_store.subscribe(session_factory, queue_id, poll_interval, max_polls)

    # ------------------------------------------------------------------
    # Game operations
    # ------------------------------------------------------------------

    def start_game(
        self,
        session: Session,
        court_id: int,
        queue_id: int,
        team_a: Sequence[str],
        team_b: Sequence[str],
        started_at: Optional[datetime] = None,
    ) -> GameSummary:
        """
        Create the game and pull its four players out of the queue.

        Players already off the queue (winners staying on court) are skipped.
        Everyone behind the pulled players moves up and may cross a tier.
        """

        def work(s: Session):
            game = game_ledger.start_game(s, court_id, queue_id, team_a, team_b, started_at)
            mutation = queue_store.rotation_apply(s, queue_id, game.players)
            moved = [c.player_id for c in mutation.position_changes]
            events = notification_trigger.evaluate(queue_id, mutation.remaining, moved)
            return GameSummary.from_game(game), events

        summary, events = self._run(session, work)

        self._emit(
            session,
            GAME_STARTED,
            {
                "game_id": summary.id,
                "court_id": summary.court_id,
                "queue_id": summary.queue_id,
                "team_a": summary.team_a,
                "team_b": summary.team_b,
                "started_at": summary.started_at,
            },
            summary.facility_id,
        )
        self._dispatch(session, summary.facility_id, events)
        return summary

    def end_game(
        self,
        session: Session,
        game_id: int,
        score_a: int,
        score_b: int,
        ended_at: Optional[datetime] = None,
    ) -> EndGameResult:
        """
        Close the game, decide the rotation and update the queue in one transaction.

        The winners' streak is counted with this game already completed, so the
        game that reaches the limit triggers the full rotation.
        """
        settings = self.settings

        def work(s: Session):
            game = game_ledger.end_game(s, game_id, score_a, score_b, ended_at)
            winning_team, losing_team = game.winning_team, game.losing_team

            streak = game_ledger.consecutive_wins(
                s, winning_team, game.court_id, lookback=settings.max_consecutive_wins
            )

            # Demand on this court: everyone still queued plus the four coming off it
            entries = queue_store.load_entries(s, game.queue_id)
            waiting = len(entries) + len(game.players)

            decision = rotation_policy.decide(
                queue_length=waiting,
                winning_team=winning_team,
                losing_team=losing_team,
                winner_consecutive_wins=streak,
                next_candidates=[e.player_id for e in entries],
                rotation_threshold=settings.rotation_threshold,
                max_consecutive_wins=settings.max_consecutive_wins,
            )

            mutation = queue_store.rotation_apply(s, game.queue_id, decision.next_up)
            moved = [c.player_id for c in mutation.position_changes]
            events = notification_trigger.evaluate(game.queue_id, mutation.remaining, moved)

            court = s.get(Court, game.court_id)
            events += notification_trigger.game_starting_events(
                game.queue_id, decision.next_up, court.name if court else f"Court {game.court_id}"
            )

            logger.info(
                f"Game {game_id}: {decision.rotation_type} rotation ({decision.reason}), "
                f"off={decision.players_off} next_up={decision.next_up} "
                f"waiting={waiting} streak={streak}"
            )
            return EndGameResult(
                game=GameSummary.from_game(game),
                winning_team=winning_team,
                losing_team=losing_team,
                winner_consecutive_wins=streak,
                queue_length=waiting,
                rotation=decision,
                remaining_queue_length=mutation.queue_length,
                notifications=events,
            )

        result = self._run(session, work)

        payload = result.to_dict()
        payload.update({"court_id": result.game.court_id, "queue_id": result.game.queue_id})
        self._emit(session, GAME_ENDED, payload, result.game.facility_id)
        self._dispatch(session, result.game.facility_id, result.notifications)
        return result

    def get_game(self, session: Session, game_id: int) -> GameSummary:
        return GameSummary.from_game(game_ledger.get_game(session, game_id))

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict_wait(
        self,
        session: Session,
        queue_id: int,
        position: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> WaitEstimate:
        """Without a position, estimate for someone joining right now (tail + 1)."""
        if position is None:
            position = len(queue_store.load_entries(session, queue_id)) + 1
        return wait_predictor.predict_wait(
            session, queue_id, position, now=now, settings=self.settings
        )

    # ------------------------------------------------------------------
    # Post-commit side effects
    # ------------------------------------------------------------------

    def _dispatch(
        self, session: Session, facility_id: int, events: Sequence[NotificationEvent]
    ) -> None:
        for event in events:
            if self.notifier is not None:
                try:
                    self.notifier.notify(
                        event.player_id,
                        event.notification_type,
                        event.template_data,
                        queue_id=event.queue_id,
                    )
                except Exception:
                    logger.exception(
                        f"Notifier failed for {event.player_id} ({event.notification_type})"
                    )
            self._emit(
                session,
                PLAYER_NOTIFIED,
                {
                    "player_id": event.player_id,
                    "queue_id": event.queue_id,
                    "notification_type": event.notification_type,
                    "position": event.position,
                },
                facility_id,
            )

    def _emit(self, session: Session, event: str, data: Dict[str, Any], facility_id: int) -> None:
        if self.webhook_emitter is None:
            return
        try:
            self.webhook_emitter.emit(session, event, data, facility_id)
        except Exception:
            session.rollback()
            logger.exception(f"Webhook emit failed for {event} (facility {facility_id})")
