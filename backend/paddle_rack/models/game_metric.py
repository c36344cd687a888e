"""Append-only duration samples feeding the wait predictor."""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from paddle_rack.utils.clock import utcnow


class GameMetric(SQLModel, table=True):
    __tablename__ = "game_metric"

    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="game.id", unique=True)
    facility_id: int = Field(foreign_key="facility.id", index=True)
    court_id: int = Field(foreign_key="court.id", index=True)
    queue_id: int = Field(foreign_key="queue.id")
    skill_level: str
    duration_seconds: int
    hour_of_day: int  # 0-23
    day_of_week: int  # 0=Monday, 6=Sunday
    created_at: datetime = Field(default_factory=utcnow, index=True)
