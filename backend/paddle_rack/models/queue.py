"""Queue and QueueEntry tables.

Positions are a projection of list order: 1..n, dense, recomputed on every removal.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

from paddle_rack.utils.clock import utcnow

SKILL_LEVELS = ("beginner", "intermediate", "advanced")

TIER_APPROACHING = "APPROACHING"
TIER_NEXT_UP = "NEXT_UP"


class Queue(SQLModel, table=True):
    __tablename__ = "queue"

    id: Optional[int] = Field(default=None, primary_key=True)
    facility_id: int = Field(foreign_key="facility.id", index=True)
    name: str
    skill_level: str = Field(default="intermediate")

    # Optimistic-concurrency counter, bumped by every mutation
    version: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class QueueEntry(SQLModel, table=True):
    __tablename__ = "queue_entry"
    __table_args__ = (
        SAUniqueConstraint("queue_id", "player_id", name="uq_queue_entry_player"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    queue_id: int = Field(foreign_key="queue.id", index=True)
    player_id: str
    display_name: str
    joined_at: datetime = Field(default_factory=utcnow)
    position: int
    notified_tier: Optional[str] = Field(default=None)  # None | APPROACHING | NEXT_UP

    @property
    def notified(self) -> bool:
        return self.notified_tier is not None
