from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

from paddle_rack.utils.clock import utcnow


class Webhook(SQLModel, table=True):
    """Third-party endpoint subscribed to facility events."""

    __tablename__ = "webhook"

    id: Optional[int] = Field(default=None, primary_key=True)
    facility_id: int = Field(foreign_key="facility.id", index=True)
    name: str
    url: str
    events: List[str] = Field(sa_column=Column(JSON, nullable=False))
    secret: str  # HMAC-SHA256 key, only returned at registration
    enabled: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)


class WebhookDelivery(SQLModel, table=True):
    """One row per POST attempt. Deliveries are not retried."""

    __tablename__ = "webhook_delivery"

    id: Optional[int] = Field(default=None, primary_key=True)
    webhook_id: int = Field(foreign_key="webhook.id", index=True)
    event: str
    payload: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    status_code: Optional[int] = Field(default=None)
    success: bool = Field(default=False)
    error_message: Optional[str] = Field(default=None)
    sent_at: datetime = Field(default_factory=utcnow)
