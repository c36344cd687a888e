"""Notification log model for tracking every notify attempt."""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from paddle_rack.utils.clock import utcnow


class NotificationLog(SQLModel, table=True):
    """Log of every notification the engine asked the notifier to deliver."""

    __tablename__ = "notification_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: str = Field(index=True)
    queue_id: Optional[int] = Field(default=None, index=True)
    notification_type: str  # NEXT_UP|APPROACHING|GAME_STARTING
    channel: str  # sms|push
    recipient: Optional[str] = Field(default=None)  # E.164 phone for sms
    message_body: str
    provider_sid: Optional[str] = Field(default=None)  # Twilio message SID
    status: str = Field(default="queued")  # queued|sent|dry_run|skipped|failed
    error_message: Optional[str] = Field(default=None)
    sent_at: datetime = Field(default_factory=utcnow)
