"""
QueueStore: durable queue -> ordered entries.

Invariants:
- Positions are exactly 1..n in list order after every operation
- A player appears at most once per queue
- Every mutation bumps Queue.version by compare-and-swap, so two writers
  racing on the same queue cannot both commit a decision made from the
  same read (the loser is retried by run_in_transaction)

None of these functions commit. They are meant to run inside
`run_in_transaction` so the read, the decision and the write share one
transaction boundary.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Iterator, List, Optional

from sqlmodel import Session, select

from paddle_rack.models.queue import Queue, QueueEntry
from paddle_rack.services.errors import AlreadyInQueue, NotInQueue, QueueNotFound
from paddle_rack.utils.clock import utcnow
from paddle_rack.utils.transactions import compare_and_swap_version

logger = logging.getLogger(__name__)


@dataclass
class QueueEntryView:
    """Detached copy of a QueueEntry, safe to use after the transaction ends."""

    player_id: str
    display_name: str
    position: int
    joined_at: datetime
    notified_tier: Optional[str] = None

    @property
    def notified(self) -> bool:
        return self.notified_tier is not None

    @classmethod
    def from_entry(cls, entry: QueueEntry) -> "QueueEntryView":
        return cls(
            player_id=entry.player_id,
            display_name=entry.display_name,
            position=entry.position,
            joined_at=entry.joined_at,
            notified_tier=entry.notified_tier,
        )


@dataclass
class PositionChange:
    player_id: str
    old_position: int
    new_position: int


@dataclass
class QueueSnapshot:
    queue_id: int
    facility_id: int
    name: str
    skill_level: str
    version: int
    entries: List[QueueEntryView] = field(default_factory=list)

    @property
    def player_count(self) -> int:
        return len(self.entries)


@dataclass
class QueueMutation:
    """Result of one join/leave/rotation_apply."""

    queue_id: int
    facility_id: int
    skill_level: str
    version: int
    entry: Optional[QueueEntryView] = None  # the joined or departed player
    removed: List[QueueEntryView] = field(default_factory=list)  # original queue order
    remaining: List[QueueEntry] = field(default_factory=list)  # live rows, in order
    position_changes: List[PositionChange] = field(default_factory=list)

    @property
    def queue_length(self) -> int:
        return len(self.remaining)


# ============================================================================
# Reads
# ============================================================================


def load_queue(session: Session, queue_id: int) -> Queue:
    """Fresh read of the queue row (never a stale identity-map copy)."""
    queue = session.exec(
        select(Queue).where(Queue.id == queue_id).execution_options(populate_existing=True)
    ).first()
    if not queue:
        raise QueueNotFound(f"Queue {queue_id} not found")
    return queue


def load_entries(session: Session, queue_id: int) -> List[QueueEntry]:
    """Entries in list order."""
    return list(
        session.exec(
            select(QueueEntry)
            .where(QueueEntry.queue_id == queue_id)
            .order_by(QueueEntry.position, QueueEntry.id)
            .execution_options(populate_existing=True)
        ).all()
    )


def status(session: Session, queue_id: int) -> QueueSnapshot:
    """Point-in-time view for display. Never use it to make a mutation decision."""
    queue = load_queue(session, queue_id)
    entries = load_entries(session, queue_id)
    return _snapshot(queue, entries)


def _snapshot(queue: Queue, entries: List[QueueEntry]) -> QueueSnapshot:
    return QueueSnapshot(
        queue_id=queue.id,
        facility_id=queue.facility_id,
        name=queue.name,
        skill_level=queue.skill_level,
        version=queue.version,
        entries=[QueueEntryView.from_entry(e) for e in entries],
    )


# ============================================================================
# Mutations
# ============================================================================


def _renumber(entries: List[QueueEntry]) -> List[PositionChange]:
    """Re-project positions 1..n from list order; report who moved."""
    changes: List[PositionChange] = []
    for idx, entry in enumerate(entries):
        new_position = idx + 1
        if entry.position != new_position:
            changes.append(PositionChange(entry.player_id, entry.position, new_position))
            entry.position = new_position
    return changes


def _mutation(queue: Queue, remaining: List[QueueEntry], **kwargs) -> QueueMutation:
    return QueueMutation(
        queue_id=queue.id,
        facility_id=queue.facility_id,
        skill_level=queue.skill_level,
        version=queue.version,
        remaining=remaining,
        **kwargs,
    )


def join(session: Session, queue_id: int, player_id: str, display_name: str) -> QueueMutation:
    """Append a player at the tail. Position = new length."""
    queue = load_queue(session, queue_id)
    entries = load_entries(session, queue_id)

    if any(e.player_id == player_id for e in entries):
        raise AlreadyInQueue(f"Player {player_id} is already in queue {queue_id}")

    entry = QueueEntry(
        queue_id=queue_id,
        player_id=player_id,
        display_name=display_name or player_id,
        joined_at=utcnow(),
        position=len(entries) + 1,
    )
    session.add(entry)
    compare_and_swap_version(session, queue)
    session.flush()

    logger.info(f"Queue {queue_id}: {player_id} joined at position {entry.position}")
    return _mutation(
        queue,
        entries + [entry],
        entry=QueueEntryView.from_entry(entry),
    )


def leave(session: Session, queue_id: int, player_id: str) -> QueueMutation:
    """Remove a player; everyone behind moves up, relative order unchanged."""
    queue = load_queue(session, queue_id)
    entries = load_entries(session, queue_id)

    leaving = next((e for e in entries if e.player_id == player_id), None)
    if leaving is None:
        raise NotInQueue(f"Player {player_id} is not in queue {queue_id}")

    view = QueueEntryView.from_entry(leaving)
    remaining = [e for e in entries if e.player_id != player_id]
    session.delete(leaving)
    changes = _renumber(remaining)
    compare_and_swap_version(session, queue)
    session.flush()

    logger.info(f"Queue {queue_id}: {player_id} left from position {view.position}")
    return _mutation(queue, remaining, entry=view, removed=[view], position_changes=changes)


def rotation_apply(
    session: Session, queue_id: int, departing_player_ids: Iterable[str]
) -> QueueMutation:
    """
    Remove a set of players at once (players pulled onto a court, or leaving it).

    Ids that are not queued are ignored. `removed` lists the removed entries in
    their original queue order; positions are recomputed exactly like `leave`.
    """
    departing = set(departing_player_ids)
    queue = load_queue(session, queue_id)
    entries = load_entries(session, queue_id)

    removed = [e for e in entries if e.player_id in departing]
    remaining = [e for e in entries if e.player_id not in departing]
    removed_views = [QueueEntryView.from_entry(e) for e in removed]

    for entry in removed:
        session.delete(entry)
    changes = _renumber(remaining)
    if removed:
        compare_and_swap_version(session, queue)
    session.flush()

    if removed:
        logger.info(
            f"Queue {queue_id}: rotation removed {[v.player_id for v in removed_views]}, "
            f"{len(remaining)} still waiting"
        )
    return _mutation(queue, remaining, removed=removed_views, position_changes=changes)


# ============================================================================
# Subscription
# ============================================================================


def subscribe(
    session_factory: Callable[[], Session],
    queue_id: int,
    poll_interval: float = 1.0,
    max_polls: Optional[int] = None,
) -> Iterator[QueueSnapshot]:
    """
    Stream of snapshots, one per observed version change.

    The first snapshot is yielded immediately. Each poll uses a short-lived
    session; nothing here participates in a mutation.
    """
    last_version: Optional[int] = None
    polls = 0
    while max_polls is None or polls < max_polls:
        with session_factory() as session:
            queue = load_queue(session, queue_id)
            if queue.version != last_version:
                last_version = queue.version
                yield _snapshot(queue, load_entries(session, queue_id))
        polls += 1
        if max_polls is None or polls < max_polls:
            time.sleep(poll_interval)
