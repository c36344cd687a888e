"""
Decides when a queued player should hear from us. Delivery is the notifier's job.

- Position <= 2 -> NEXT_UP
- Position 3-4  -> APPROACHING
- Each tier fires at most once per queue membership (QueueEntry.notified_tier);
  a re-join creates a fresh entry and therefore resets it
- Players pulled onto a court get GAME_STARTING

evaluate() marks the entries it fires for. It runs inside the mutating
transaction so a retried transaction recomputes the same events instead of
doubling them; the events themselves are delivered after commit.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from paddle_rack.models.queue import TIER_APPROACHING, TIER_NEXT_UP, QueueEntry

NEXT_UP = TIER_NEXT_UP
APPROACHING = TIER_APPROACHING
GAME_STARTING = "GAME_STARTING"

NEXT_UP_MAX_POSITION = 2
APPROACHING_MAX_POSITION = 4


@dataclass
class NotificationEvent:
    player_id: str
    notification_type: str
    queue_id: int
    position: Optional[int] = None
    template_data: Dict[str, str] = field(default_factory=dict)


def tier_for_position(position: int) -> Optional[str]:
    if position <= 0:
        return None
    if position <= NEXT_UP_MAX_POSITION:
        return NEXT_UP
    if position <= APPROACHING_MAX_POSITION:
        return APPROACHING
    return None


def evaluate(
    queue_id: int, entries: Iterable[QueueEntry], moved_player_ids: Iterable[str]
) -> List[NotificationEvent]:
    """Events for players whose position just changed into a new tier."""
    moved = set(moved_player_ids)
    events: List[NotificationEvent] = []

    for entry in entries:
        if entry.player_id not in moved:
            continue
        tier = tier_for_position(entry.position)
        if tier == NEXT_UP and entry.notified_tier != NEXT_UP:
            entry.notified_tier = NEXT_UP
        elif tier == APPROACHING and entry.notified_tier is None:
            entry.notified_tier = APPROACHING
        else:
            continue
        events.append(
            NotificationEvent(
                player_id=entry.player_id,
                notification_type=tier,
                queue_id=queue_id,
                position=entry.position,
                template_data={"position": str(entry.position), "name": entry.display_name},
            )
        )
    return events


def game_starting_events(
    queue_id: int, player_ids: Iterable[str], court_name: str
) -> List[NotificationEvent]:
    return [
        NotificationEvent(
            player_id=player_id,
            notification_type=GAME_STARTING,
            queue_id=queue_id,
            template_data={"court": court_name},
        )
        for player_id in player_ids
    ]
