"""
Outbound webhooks for facility integrations.

Each delivery is a POST of the JSON envelope {event, timestamp, data, facility_id}
signed with HMAC-SHA256 over the exact body bytes:

    X-Webhook-Signature: sha256=<hex digest>
    X-Webhook-Event: <event>

Every attempt is recorded in webhook_delivery. Failures are logged, never retried
and never raised back into the engine.
"""

import hashlib
import hmac
import json
import logging
import secrets
from typing import Any, Dict, List, Optional, Sequence

import httpx
from sqlmodel import Session, select

from paddle_rack.models.webhook import Webhook, WebhookDelivery
from paddle_rack.utils.clock import utcnow

logger = logging.getLogger(__name__)

PLAYER_JOINED = "queue.player_joined"
PLAYER_LEFT = "queue.player_left"
PLAYER_NOTIFIED = "player.notified"
GAME_STARTED = "game.started"
GAME_ENDED = "game.ended"

WEBHOOK_EVENTS = (
    PLAYER_JOINED,
    PLAYER_LEFT,
    PLAYER_NOTIFIED,
    GAME_STARTED,
    GAME_ENDED,
)

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"
SIGNATURE_PREFIX = "sha256="


class UnknownWebhookEvent(ValueError):
    pass


def sign_payload(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Receiver-side check, constant-time."""
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(body, secret), signature)


def serialize_envelope(event: str, data: Dict[str, Any], facility_id: int) -> bytes:
    envelope = {
        "event": event,
        "timestamp": utcnow().isoformat() + "Z",
        "data": data,
        "facility_id": facility_id,
    }
    return json.dumps(envelope, default=str).encode("utf-8")


def register_webhook(
    session: Session, facility_id: int, name: str, url: str, events: Sequence[str]
) -> Webhook:
    """Create a subscription. The generated secret is only ever returned here."""
    unknown = [e for e in events if e not in WEBHOOK_EVENTS]
    if unknown:
        raise UnknownWebhookEvent(f"Unknown webhook events: {unknown}")
    if not events:
        raise UnknownWebhookEvent("At least one event is required")

    webhook = Webhook(
        facility_id=facility_id,
        name=name,
        url=url,
        events=list(dict.fromkeys(events)),
        secret=secrets.token_hex(32),
    )
    session.add(webhook)
    session.commit()
    session.refresh(webhook)
    logger.info(f"Webhook {webhook.id} registered for facility {facility_id}: {webhook.events}")
    return webhook


def list_webhooks(session: Session, facility_id: int) -> List[Webhook]:
    return list(
        session.exec(
            select(Webhook).where(Webhook.facility_id == facility_id).order_by(Webhook.id)
        ).all()
    )


class WebhookEmitter:
    def __init__(self, http_client: httpx.Client):
        self.http_client = http_client

    def close(self) -> None:
        self.http_client.close()

    def subscribers(self, session: Session, event: str, facility_id: int) -> List[Webhook]:
        hooks = session.exec(
            select(Webhook).where(
                Webhook.facility_id == facility_id,
                Webhook.enabled == True,  # noqa: E712
            )
        ).all()
        return [h for h in hooks if event in (h.events or [])]

    def emit(
        self, session: Session, event: str, data: Dict[str, Any], facility_id: int
    ) -> List[WebhookDelivery]:
        """POST the event to every enabled subscriber. Returns the delivery records."""
        if event not in WEBHOOK_EVENTS:
            logger.error(f"Refusing to emit unknown webhook event {event}")
            return []

        hooks = self.subscribers(session, event, facility_id)
        if not hooks:
            return []

        body = serialize_envelope(event, data, facility_id)
        deliveries = [self._deliver(hook, event, body) for hook in hooks]
        for delivery in deliveries:
            session.add(delivery)
        session.commit()
        return deliveries

    def _deliver(self, hook: Webhook, event: str, body: bytes) -> WebhookDelivery:
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign_payload(body, hook.secret),
            EVENT_HEADER: event,
        }
        delivery = WebhookDelivery(
            webhook_id=hook.id,
            event=event,
            payload=json.loads(body),
        )
        try:
            response = self.http_client.post(hook.url, content=body, headers=headers)
            delivery.status_code = response.status_code
            delivery.success = response.is_success
            if not response.is_success:
                delivery.error_message = f"HTTP {response.status_code}"
                logger.warning(f"Webhook {hook.id} ({event}) got HTTP {response.status_code}")
        except httpx.HTTPError as e:
            delivery.error_message = str(e) or e.__class__.__name__
            logger.error(f"Webhook {hook.id} ({event}) delivery to {hook.url} failed: {e}")
        return delivery


def build_emitter(timeout_seconds: float = 5.0, transport: Optional[httpx.BaseTransport] = None):
    client = httpx.Client(timeout=timeout_seconds, transport=transport)
    return WebhookEmitter(client)
