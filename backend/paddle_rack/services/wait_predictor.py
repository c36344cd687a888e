"""
Wait-time prediction from historical game durations.

Average game duration falls back through tiers of decreasing specificity,
each trusted only with at least MIN_SAMPLES samples:

  1. court_hour - the queue's courts, same hour of day +-1, newest 50
  2. court      - the queue's courts, any time, newest 100
  3. facility   - any court in the facility, newest 200
  4. default    - static per skill level (12/15/18 minutes)

Samples are averaged with exponential decay weights exp(-0.05 * i),
newest first. Confidence comes from the sample count at the chosen tier.

Wait = games_until_turn * average / effective_courts, shown rounded to the
nearest 5 minutes. Predictions never fail for lack of data.
"""

import logging
import math
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete
from sqlmodel import Session, select

from paddle_rack.config import Settings, get_settings
from paddle_rack.models.facility import Facility
from paddle_rack.models.game_metric import GameMetric
from paddle_rack.models.queue import Queue
from paddle_rack.services import registry
from paddle_rack.services.queue_store import load_entries, load_queue
from paddle_rack.services.rotation_policy import players_per_rotation
from paddle_rack.utils.clock import to_local, utcnow

logger = logging.getLogger(__name__)

DECAY_RATE = 0.05
DISPLAY_INCREMENT_MINUTES = 5

DEFAULT_DURATION_MINUTES = {
    "beginner": 12,
    "intermediate": 15,
    "advanced": 18,  # longer rallies
}
FALLBACK_DURATION_MINUTES = 15

SOURCE_COURT_HOUR = "court_hour"
SOURCE_COURT = "court"
SOURCE_FACILITY = "facility"
SOURCE_DEFAULT = "default"

TIER_LIMITS = {
    SOURCE_COURT_HOUR: 50,
    SOURCE_COURT: 100,
    SOURCE_FACILITY: 200,
}

CONFIDENCE_HIGH = "high"
CONFIDENCE_MEDIUM = "medium"
CONFIDENCE_LOW = "low"
HIGH_CONFIDENCE_SAMPLES = 100
MEDIUM_CONFIDENCE_SAMPLES = 30


@dataclass
class DurationEstimate:
    average_seconds: float
    sample_count: int
    source: str

    @property
    def average_minutes(self) -> float:
        return self.average_seconds / 60


@dataclass
class WaitEstimate:
    minutes: int  # display value, nearest 5
    raw_minutes: float
    games_until_turn: int
    players_per_rotation: int
    average_game_minutes: float
    effective_courts: float
    confidence: str  # low | medium | high
    source: str
    sample_count: int

    def to_dict(self) -> Dict:
        return asdict(self)


# ============================================================================
# Pure helpers
# ============================================================================


def weighted_average(values: Sequence[float], decay: float = DECAY_RATE) -> Optional[float]:
    """Recency-weighted mean; values[0] is the most recent. None when empty."""
    if not values:
        return None
    weights = [math.exp(-decay * i) for i in range(len(values))]
    return sum(v * w for v, w in zip(values, weights)) / sum(weights)


def confidence_for(sample_count: int) -> str:
    if sample_count >= HIGH_CONFIDENCE_SAMPLES:
        return CONFIDENCE_HIGH
    if sample_count >= MEDIUM_CONFIDENCE_SAMPLES:
        return CONFIDENCE_MEDIUM
    return CONFIDENCE_LOW


def round_to_increment(minutes: float, increment: int = DISPLAY_INCREMENT_MINUTES) -> int:
    """Half-up rounding to the nearest increment (12.5 -> 15, not banker's 10)."""
    if minutes <= 0:
        return 0
    return int(math.floor(minutes / increment + 0.5)) * increment


def games_until_turn(position: int, per_rotation: int) -> int:
    if position <= 0:
        return 0
    return math.ceil(position / per_rotation)


def effective_courts(active_courts: int, efficiency: float = 0.7) -> float:
    """Parallel courts never turn over in perfect lockstep."""
    return max(1.0, active_courts * efficiency)


def default_duration_minutes(skill_level: str) -> int:
    return DEFAULT_DURATION_MINUTES.get(skill_level, FALLBACK_DURATION_MINUTES)


def _adjacent_hours(hour: int) -> List[int]:
    """hour +-1, wrapping at midnight."""
    return sorted({(hour - 1) % 24, hour, (hour + 1) % 24})


# ============================================================================
# Duration lookup
# ============================================================================


def _durations(session: Session, *conditions, limit: int) -> List[int]:
    rows = session.exec(
        select(GameMetric.duration_seconds)
        .where(*conditions)
        .order_by(GameMetric.created_at.desc(), GameMetric.id.desc())
        .limit(limit)
    ).all()
    return list(rows)


def average_game_duration(
    session: Session,
    queue: Queue,
    now: Optional[datetime] = None,
    min_samples: int = 10,
) -> DurationEstimate:
    """Walk the tiers; the first with enough samples wins."""
    court_ids = registry.court_ids_for_queue(session, queue.id)
    if court_ids:
        group_condition = GameMetric.court_id.in_(court_ids)
    else:
        group_condition = GameMetric.queue_id == queue.id

    facility = session.get(Facility, queue.facility_id)
    local_now = to_local(now or utcnow(), facility.timezone if facility else "UTC")

    tiers = [
        (
            SOURCE_COURT_HOUR,
            (group_condition, GameMetric.hour_of_day.in_(_adjacent_hours(local_now.hour))),
        ),
        (SOURCE_COURT, (group_condition,)),
        (SOURCE_FACILITY, (GameMetric.facility_id == queue.facility_id,)),
    ]
    for source, conditions in tiers:
        samples = _durations(session, *conditions, limit=TIER_LIMITS[source])
        if len(samples) >= min_samples:
            return DurationEstimate(
                average_seconds=weighted_average(samples),
                sample_count=len(samples),
                source=source,
            )

    logger.debug(f"Queue {queue.id}: not enough history, using {queue.skill_level} default")
    return DurationEstimate(
        average_seconds=default_duration_minutes(queue.skill_level) * 60,
        sample_count=0,
        source=SOURCE_DEFAULT,
    )


# ============================================================================
# Prediction
# ============================================================================


def predict_wait(
    session: Session,
    queue_id: int,
    position: int,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> WaitEstimate:
    """
    Estimate the wait for `position` in a queue.

    Rotation size follows the policy at the current queue length: 4 players
    per game at or above the high-demand threshold (full rotations), else 2.
    """
    settings = settings or get_settings()
    queue = load_queue(session, queue_id)
    queue_length = len(load_entries(session, queue_id))

    duration = average_game_duration(session, queue, now=now, min_samples=settings.min_samples)
    per_rotation = players_per_rotation(queue_length, settings.rotation_threshold)
    games = games_until_turn(position, per_rotation)
    courts = effective_courts(
        registry.active_court_count(session, queue_id), settings.court_efficiency
    )

    raw_minutes = games * duration.average_minutes / courts
    return WaitEstimate(
        minutes=round_to_increment(raw_minutes),
        raw_minutes=round(raw_minutes, 2),
        games_until_turn=games,
        players_per_rotation=per_rotation,
        average_game_minutes=round(duration.average_minutes, 1),
        effective_courts=round(courts, 2),
        confidence=confidence_for(duration.sample_count),
        source=duration.source,
        sample_count=duration.sample_count,
    )


# ============================================================================
# Analytics and retention
# ============================================================================


def game_stats(session: Session, facility_id: int, days: int = 30) -> Dict:
    """Average game minutes overall, per local hour and per weekday."""
    cutoff = utcnow() - timedelta(days=days)
    metrics = session.exec(
        select(GameMetric).where(
            GameMetric.facility_id == facility_id,
            GameMetric.created_at >= cutoff,
        )
    ).all()

    if not metrics:
        return {"total_games": 0, "avg_minutes": 0, "by_hour": {}, "by_day": {}, "period_days": days}

    by_hour: Dict[int, List[int]] = defaultdict(list)
    by_day: Dict[int, List[int]] = defaultdict(list)
    for m in metrics:
        by_hour[m.hour_of_day].append(m.duration_seconds)
        by_day[m.day_of_week].append(m.duration_seconds)

    def _avg_minutes(values: List[int]) -> int:
        return round(sum(values) / len(values) / 60)

    return {
        "total_games": len(metrics),
        "avg_minutes": _avg_minutes([m.duration_seconds for m in metrics]),
        "by_hour": {h: _avg_minutes(v) for h, v in sorted(by_hour.items())},
        "by_day": {d: _avg_minutes(v) for d, v in sorted(by_day.items())},
        "period_days": days,
    }


def prune_metrics(session: Session, retention_days: int = 90) -> int:
    """Drop samples older than the retention window. Returns rows deleted."""
    cutoff = utcnow() - timedelta(days=retention_days)
    result = session.execute(delete(GameMetric).where(GameMetric.created_at < cutoff))
    session.commit()
    logger.info(f"Pruned {result.rowcount} game metrics older than {retention_days} days")
    return result.rowcount
