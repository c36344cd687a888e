from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from paddle_rack.utils.clock import utcnow


class Facility(SQLModel, table=True):
    __tablename__ = "facility"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    timezone: str = Field(default="America/New_York")
    created_at: datetime = Field(default_factory=utcnow)
