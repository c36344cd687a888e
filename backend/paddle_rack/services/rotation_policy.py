"""
Rotation Policy - who leaves the court after a game.

Rules, in priority order:
1. Winners reached the consecutive-win limit (default 3) -> FULL rotation
2. Waiting queue at or above the rotation threshold (default 8) -> FULL rotation
3. Otherwise -> PARTIAL rotation: losers off, winners stay

Pure: no session, no I/O. Callers supply the waiting count and candidates.
"""

from dataclasses import dataclass, field
from typing import List, Sequence

ROTATION_FULL = "FULL"
ROTATION_PARTIAL = "PARTIAL"

REASON_HIGH_DEMAND = "high_demand"
REASON_CONSECUTIVE_WIN_LIMIT = "consecutive_win_limit"
REASON_NORMAL_PLAY = "normal_play"

DEFAULT_ROTATION_THRESHOLD = 8
DEFAULT_MAX_CONSECUTIVE_WINS = 3


@dataclass
class RotationDecision:
    rotation_type: str  # FULL | PARTIAL
    players_off: List[str]
    players_stay: List[str]
    reason: str  # high_demand | consecutive_win_limit | normal_play
    next_up: List[str] = field(default_factory=list)

    @property
    def open_slots(self) -> int:
        """Court slots left empty because the queue ran short."""
        return len(self.players_off) - len(self.next_up)

    def to_dict(self):
        return {
            "rotation_type": self.rotation_type,
            "players_off": list(self.players_off),
            "players_stay": list(self.players_stay),
            "reason": self.reason,
            "next_up": list(self.next_up),
        }


def decide(
    queue_length: int,
    winning_team: Sequence[str],
    losing_team: Sequence[str],
    winner_consecutive_wins: int,
    next_candidates: Sequence[str] = (),
    rotation_threshold: int = DEFAULT_ROTATION_THRESHOLD,
    max_consecutive_wins: int = DEFAULT_MAX_CONSECUTIVE_WINS,
) -> RotationDecision:
    """
    Decide the rotation for a finished game.

    Args:
        queue_length: players waiting at decision time
        winning_team / losing_team: the two pairs that just played
        winner_consecutive_wins: straight wins of the winning pair on this court
        next_candidates: waiting player ids, front of the queue first
        rotation_threshold / max_consecutive_wins: policy knobs

    Returns:
        RotationDecision. next_up fills the vacated slots from the front of
        next_candidates; with a short (or empty) queue it is shorter and the
        remaining slots stay open.
    """
    if winner_consecutive_wins >= max_consecutive_wins:
        rotation_type, reason = ROTATION_FULL, REASON_CONSECUTIVE_WIN_LIMIT
    elif queue_length >= rotation_threshold:
        rotation_type, reason = ROTATION_FULL, REASON_HIGH_DEMAND
    else:
        rotation_type, reason = ROTATION_PARTIAL, REASON_NORMAL_PLAY

    if rotation_type == ROTATION_FULL:
        players_off = list(winning_team) + list(losing_team)
        players_stay: List[str] = []
    else:
        players_off = list(losing_team)
        players_stay = list(winning_team)

    return RotationDecision(
        rotation_type=rotation_type,
        players_off=players_off,
        players_stay=players_stay,
        reason=reason,
        next_up=list(next_candidates)[: len(players_off)],
    )


def players_per_rotation(
    queue_length: int,
    rotation_threshold: int = DEFAULT_ROTATION_THRESHOLD,
    players_per_court: int = 4,
) -> int:
    """How many waiting players one finished game admits at this queue length."""
    if queue_length >= rotation_threshold:
        return players_per_court
    return players_per_court // 2
