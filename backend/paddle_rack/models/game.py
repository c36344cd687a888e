from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

from paddle_rack.utils.clock import utcnow

GAME_IN_PROGRESS = "in_progress"
GAME_COMPLETED = "completed"

TEAM_A = "team_a"
TEAM_B = "team_b"


class Game(SQLModel, table=True):
    __tablename__ = "game"

    id: Optional[int] = Field(default=None, primary_key=True)
    court_id: int = Field(foreign_key="court.id", index=True)
    queue_id: int = Field(foreign_key="queue.id", index=True)
    facility_id: int = Field(foreign_key="facility.id", index=True)

    team_a: List[str] = Field(sa_column=Column(JSON, nullable=False))
    team_b: List[str] = Field(sa_column=Column(JSON, nullable=False))

    status: str = Field(default=GAME_IN_PROGRESS, index=True)  # in_progress | completed
    started_at: datetime = Field(default_factory=utcnow)

    # Set once at completion; immutable afterwards
    ended_at: Optional[datetime] = Field(default=None)
    duration_seconds: Optional[int] = Field(default=None)
    score_a: Optional[int] = Field(default=None)
    score_b: Optional[int] = Field(default=None)
    winner: Optional[str] = Field(default=None)  # team_a | team_b

    def team(self, key: str) -> List[str]:
        return list(self.team_a if key == TEAM_A else self.team_b)

    @property
    def players(self) -> List[str]:
        return list(self.team_a) + list(self.team_b)

    @property
    def winning_team(self) -> List[str]:
        return self.team(self.winner) if self.winner else []

    @property
    def losing_team(self) -> List[str]:
        if not self.winner:
            return []
        return self.team(TEAM_B if self.winner == TEAM_A else TEAM_A)
