from typing import Optional

from sqlmodel import Field, SQLModel


class PlayerContact(SQLModel, table=True):
    """How to reach a player. Identity itself is owned by the upstream auth service."""

    __tablename__ = "player_contact"

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: str = Field(unique=True, index=True)
    display_name: str
    phone: Optional[str] = Field(default=None)  # any format; normalized to E.164 on send
    sms_opt_in: bool = Field(default=False)  # SMS is opt-in, critical alerts only
    push_opt_in: bool = Field(default=True)
