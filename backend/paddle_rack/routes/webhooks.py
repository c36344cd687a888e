"""Webhook subscription management. Secrets are shown once, at registration."""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from paddle_rack.database import get_session
from paddle_rack.models.facility import Facility
from paddle_rack.services.webhook_emitter import (
    WEBHOOK_EVENTS,
    UnknownWebhookEvent,
    list_webhooks,
    register_webhook,
)

router = APIRouter()


class WebhookCreate(BaseModel):
    facility_id: int
    name: str
    url: str
    events: List[str]


class WebhookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    facility_id: int
    name: str
    url: str
    events: List[str]
    enabled: bool
    created_at: datetime


class WebhookCreatedResponse(WebhookResponse):
    secret: str  # HMAC key, not retrievable later


@router.post("/webhooks", response_model=WebhookCreatedResponse, status_code=201)
def create_webhook(body: WebhookCreate, session: Session = Depends(get_session)):
    if not session.get(Facility, body.facility_id):
        raise HTTPException(status_code=404, detail="Facility not found")
    if not body.url.startswith(("http://", "https://")):
        raise HTTPException(status_code=422, detail="Webhook url must be http(s)")
    try:
        webhook = register_webhook(session, body.facility_id, body.name, body.url, body.events)
    except UnknownWebhookEvent as e:
        raise HTTPException(
            status_code=422, detail=f"{e}. Allowed: {', '.join(WEBHOOK_EVENTS)}"
        )
    return WebhookCreatedResponse.model_validate(webhook)


@router.get("/webhooks/{facility_id}", response_model=List[WebhookResponse])
def get_webhooks(facility_id: int, session: Session = Depends(get_session)):
    return [WebhookResponse.model_validate(w) for w in list_webhooks(session, facility_id)]
