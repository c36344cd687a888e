from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from paddle_rack.utils.clock import utcnow


class Court(SQLModel, table=True):
    """Registry row for a physical court. The engine only writes current_game_id/version."""

    __tablename__ = "court"

    id: Optional[int] = Field(default=None, primary_key=True)
    facility_id: int = Field(foreign_key="facility.id", index=True)
    queue_id: Optional[int] = Field(default=None, foreign_key="queue.id", index=True)
    name: str  # "Court 3"
    skill_level: str = Field(default="intermediate")  # beginner | intermediate | advanced
    is_active: bool = Field(default=True)

    # Busy flag: the id of the in_progress game, if any
    current_game_id: Optional[int] = Field(default=None)
    version: int = Field(default=0)
    updated_at: datetime = Field(default_factory=utcnow)
