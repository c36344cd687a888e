"""Player notifications: message templates, Twilio SMS delivery and the notification log.

Fire-and-forget from the engine's point of view: notify() never raises, every
attempt (including skips and failures) is written to notification_log.
SMS is reserved for critical alerts and only sent to players who opted in.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sqlmodel import Session, select
from twilio.rest import Client

from paddle_rack.config import Settings
from paddle_rack.models.notification_log import NotificationLog
from paddle_rack.models.player_contact import PlayerContact
from paddle_rack.services.notification_trigger import APPROACHING, GAME_STARTING, NEXT_UP

logger = logging.getLogger(__name__)

SMS_MAX_LENGTH = 1600
CHANNEL_SMS = "sms"
CHANNEL_PUSH = "push"


@dataclass(frozen=True)
class NotificationTemplate:
    title: str
    body: str
    channels: tuple
    priority: str = "normal"


NOTIFICATION_TEMPLATES: Dict[str, NotificationTemplate] = {
    NEXT_UP: NotificationTemplate(
        title="You're next!",
        body="{name}, you're #{position} in line. Head toward the courts - you're up next.",
        channels=(CHANNEL_PUSH, CHANNEL_SMS),
        priority="high",
    ),
    APPROACHING: NotificationTemplate(
        title="Get ready",
        body="{name}, you're #{position} in line. About 2 games until you're on court.",
        channels=(CHANNEL_PUSH,),
    ),
    GAME_STARTING: NotificationTemplate(
        title="Game time!",
        body="Your game on {court} is starting. Please head to your court now.",
        channels=(CHANNEL_PUSH, CHANNEL_SMS),
        priority="high",
    ),
}


E164_PATTERN = re.compile(r"\+[1-9]\d{6,14}")


def format_e164(phone: str, default_country: str = "1") -> str:
    """
    Normalize a contact phone to E.164.

    Bare national numbers get `default_country` prepended; numbers written
    with a leading '+' or the '00' international prefix keep their own
    country code. The result must itself be valid E.164.
    """
    raw = (phone or "").strip()
    if not raw:
        raise ValueError("Phone number is empty")

    international = raw.startswith(("+", "00"))
    digits = "".join(ch for ch in raw if ch.isdigit())
    if raw.startswith("00"):
        digits = digits[2:]

    if not international:
        if len(digits) == 10:
            digits = default_country + digits
        elif not (len(digits) == 11 and digits.startswith(default_country)):
            digits = ""

    candidate = f"+{digits}"
    if len(digits) < 10 or not validate_e164(candidate):
        raise ValueError(f"Cannot parse phone number: {phone!r}")
    return candidate


def validate_e164(phone: str) -> bool:
    return E164_PATTERN.fullmatch(phone or "") is not None


def render_template(template_body: str, **kwargs) -> str:
    """
    Fill {placeholders}. Unknown placeholders are left as-is rather than raising.
    """
    values = {k: v for k, v in kwargs.items() if v is not None}
    try:
        return template_body.format_map(values)
    except (KeyError, IndexError):
        result = template_body
        for key, value in values.items():
            result = result.replace(f"{{{key}}}", str(value))
        return result


class SmsClient:
    """
    Thin wrapper around the Twilio REST client.

    Without credentials it runs in dry-run mode: messages are logged, not sent.
    """

    def __init__(self, account_sid: str = "", auth_token: str = "", from_number: str = ""):
        self.from_number = from_number
        self.client: Optional[Client] = None
        self.dry_run = True

        if account_sid and auth_token and from_number:
            self.client = Client(account_sid, auth_token)
            self.dry_run = False
            logger.info("Twilio client initialized successfully.")
        else:
            logger.warning(
                "Twilio credentials not configured. SMS runs in dry-run mode. "
                "Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER."
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmsClient":
        return cls(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_from_number,
        )

    @property
    def is_configured(self) -> bool:
        return not self.dry_run

    def send_sms(self, to: str, body: str) -> dict:
        """
        Send one SMS.

        Returns:
            dict with keys: sid, status, error
        """
        if not validate_e164(to):
            return {"sid": None, "status": "failed", "error": f"Invalid phone number format: {to}"}

        if len(body) > SMS_MAX_LENGTH:
            body = body[: SMS_MAX_LENGTH - 3] + "..."

        if self.dry_run:
            logger.info(f"[DRY RUN] SMS to {to}: {body[:80]}")
            return {
                "sid": f"DRY_RUN_{datetime.now(timezone.utc).isoformat()}",
                "status": "dry_run",
                "error": None,
            }

        try:
            message = self.client.messages.create(body=body, from_=self.from_number, to=to)
            logger.info(f"SMS sent to {to}: SID={message.sid}, status={message.status}")
            return {"sid": message.sid, "status": message.status, "error": None}
        except Exception as e:
            logger.error(f"Failed to send SMS to {to}: {e}")
            return {"sid": None, "status": "failed", "error": str(e)}


# (player_id, title, body, data) -> {"sid", "status", "error"}
PushSender = Callable[[str, str, str, Dict[str, str]], dict]


class Notifier:
    """Delivers NotificationTemplate messages to a player over their opted-in channels."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        sms_client: SmsClient,
        push_sender: Optional[PushSender] = None,
    ):
        self.session_factory = session_factory
        self.sms_client = sms_client
        self.push_sender = push_sender

    def notify(
        self,
        player_id: str,
        notification_type: str,
        template_data: Optional[Dict[str, str]] = None,
        queue_id: Optional[int] = None,
    ) -> List[NotificationLog]:
        """Send one notification. Returns the log rows written (one per channel tried)."""
        template = NOTIFICATION_TEMPLATES.get(notification_type)
        if template is None:
            logger.error(f"Unknown notification type: {notification_type}")
            return []

        data = dict(template_data or {})
        with self.session_factory() as session:
            contact = session.exec(
                select(PlayerContact).where(PlayerContact.player_id == player_id)
            ).first()
            data.setdefault("name", contact.display_name if contact else player_id)
            title = render_template(template.title, **data)
            body = render_template(template.body, **data)

            logs: List[NotificationLog] = []
            for channel in template.channels:
                log = self._deliver(channel, player_id, contact, title, body, data)
                if log is None:
                    continue
                log.queue_id = queue_id
                log.notification_type = notification_type
                session.add(log)
                logs.append(log)

            session.commit()
            for log in logs:
                session.refresh(log)
            return logs

    def _deliver(
        self,
        channel: str,
        player_id: str,
        contact: Optional[PlayerContact],
        title: str,
        body: str,
        data: Dict[str, str],
    ) -> Optional[NotificationLog]:
        if channel == CHANNEL_SMS:
            return self._deliver_sms(player_id, contact, title, body)
        if channel == CHANNEL_PUSH:
            if self.push_sender is None or (contact and not contact.push_opt_in):
                return None
            try:
                result = self.push_sender(player_id, title, body, data)
            except Exception as e:
                logger.error(f"Push to {player_id} failed: {e}")
                result = {"sid": None, "status": "failed", "error": str(e)}
            return NotificationLog(
                player_id=player_id,
                notification_type="",
                channel=CHANNEL_PUSH,
                message_body=f"{title}\n{body}",
                provider_sid=result.get("sid"),
                status=result.get("status", "failed"),
                error_message=result.get("error"),
            )
        logger.warning(f"Unknown notification channel: {channel}")
        return None

    def _deliver_sms(
        self, player_id: str, contact: Optional[PlayerContact], title: str, body: str
    ) -> Optional[NotificationLog]:
        if contact is None or not contact.sms_opt_in or not contact.phone:
            return None

        message = f"{title}\n{body}"
        try:
            phone = format_e164(contact.phone)
        except ValueError as e:
            logger.warning(f"Skipping SMS for player {player_id}: {e}")
            return NotificationLog(
                player_id=player_id,
                notification_type="",
                channel=CHANNEL_SMS,
                recipient=contact.phone,
                message_body=message,
                status="skipped",
                error_message=str(e),
            )

        result = self.sms_client.send_sms(phone, message)
        return NotificationLog(
            player_id=player_id,
            notification_type="",
            channel=CHANNEL_SMS,
            recipient=phone,
            message_body=message,
            provider_sid=result.get("sid"),
            status=result.get("status", "failed"),
            error_message=result.get("error"),
        )
