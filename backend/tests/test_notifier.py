"""Notifier: phone formatting, templates, Twilio dry-run and the notification log."""

from types import SimpleNamespace

import pytest
from sqlmodel import select

from paddle_rack.models.notification_log import NotificationLog
from paddle_rack.models.player_contact import PlayerContact
from paddle_rack.services.notification_trigger import APPROACHING, GAME_STARTING, NEXT_UP
from paddle_rack.services.notifier import (
    NOTIFICATION_TEMPLATES,
    Notifier,
    SmsClient,
    format_e164,
    render_template,
    validate_e164,
)

from .conftest import make_test_session


# ---------------------------------------------------------------------------
# Phone number formatting
# ---------------------------------------------------------------------------


class TestFormatE164:
    def test_ten_digit_us(self):
        assert format_e164("5551234567") == "+15551234567"

    def test_eleven_digit_us(self):
        assert format_e164("15551234567") == "+15551234567"

    def test_already_e164(self):
        assert format_e164("+15551234567") == "+15551234567"

    def test_punctuation(self):
        assert format_e164("(555) 123-4567") == "+15551234567"
        assert format_e164("555.123.4567") == "+15551234567"

    def test_international(self):
        assert format_e164("+44 7911 123456") == "+447911123456"

    def test_double_zero_prefix(self):
        assert format_e164("0044 7911 123456") == "+447911123456"

    def test_short_international_rejected(self):
        with pytest.raises(ValueError, match="Cannot parse"):
            format_e164("+44 12")

    def test_invalid_short(self):
        with pytest.raises(ValueError, match="Cannot parse"):
            format_e164("12345")

    def test_invalid_empty(self):
        with pytest.raises(ValueError, match="empty"):
            format_e164("  ")


class TestValidateE164:
    def test_valid(self):
        assert validate_e164("+15551234567") is True
        assert validate_e164("+447911123456") is True

    def test_invalid(self):
        assert validate_e164("15551234567") is False
        assert validate_e164("+1234") is False
        assert validate_e164("+abcdefghij") is False


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class TestTemplates:
    def test_every_notification_type_has_a_template(self):
        assert set(NOTIFICATION_TEMPLATES) == {NEXT_UP, APPROACHING, GAME_STARTING}

    def test_sms_only_for_critical_alerts(self):
        assert "sms" in NOTIFICATION_TEMPLATES[NEXT_UP].channels
        assert "sms" in NOTIFICATION_TEMPLATES[GAME_STARTING].channels
        assert "sms" not in NOTIFICATION_TEMPLATES[APPROACHING].channels

    def test_render_fills_placeholders(self):
        assert render_template("{name} is #{position}", name="Ana", position="2") == "Ana is #2"

    def test_render_leaves_unknown_placeholders(self):
        assert render_template("Go to {court}, {name}", name="Ana") == "Go to {court}, Ana"


# ---------------------------------------------------------------------------
# SMS client
# ---------------------------------------------------------------------------


class TestSmsClient:
    def test_dry_run_without_credentials(self):
        client = SmsClient()
        assert client.is_configured is False
        result = client.send_sms("+15551234567", "hello")
        assert result["status"] == "dry_run"
        assert result["sid"].startswith("DRY_RUN_")

    def test_rejects_bad_number(self):
        result = SmsClient().send_sms("5551234567", "hello")
        assert result["status"] == "failed"
        assert "Invalid phone" in result["error"]

    def test_sends_through_twilio_client(self):
        sent = []

        def create(**kwargs):
            sent.append(kwargs)
            return SimpleNamespace(sid="SM123", status="queued")

        client = SmsClient()
        client.dry_run = False
        client.from_number = "+15550000000"
        client.client = SimpleNamespace(messages=SimpleNamespace(create=create))

        result = client.send_sms("+15551234567", "x" * 2000)

        assert result == {"sid": "SM123", "status": "queued", "error": None}
        assert sent[0]["from_"] == "+15550000000"
        assert len(sent[0]["body"]) == 1600

    def test_provider_errors_become_failed_results(self):
        def create(**kwargs):
            raise RuntimeError("Twilio is down")

        client = SmsClient()
        client.dry_run = False
        client.client = SimpleNamespace(messages=SimpleNamespace(create=create))

        result = client.send_sms("+15551234567", "hello")
        assert result["status"] == "failed"
        assert "Twilio is down" in result["error"]


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------


def _contact(session, player_id="p1", phone="555-123-4567", sms_opt_in=True, push_opt_in=True):
    contact = PlayerContact(
        player_id=player_id,
        display_name="Pat",
        phone=phone,
        sms_opt_in=sms_opt_in,
        push_opt_in=push_opt_in,
    )
    session.add(contact)
    session.commit()
    return contact


class TestNotifier:
    def test_sms_for_opted_in_player(self, session):
        _contact(session)
        notifier = Notifier(make_test_session, SmsClient())

        logs = notifier.notify("p1", NEXT_UP, {"position": "2"}, queue_id=7)

        assert len(logs) == 1
        log = session.exec(select(NotificationLog)).one()
        assert log.channel == "sms"
        assert log.status == "dry_run"
        assert log.recipient == "+15551234567"
        assert log.queue_id == 7
        assert log.notification_type == NEXT_UP
        assert "Pat, you're #2 in line" in log.message_body

    def test_no_sms_without_opt_in(self, session):
        _contact(session, sms_opt_in=False)
        logs = Notifier(make_test_session, SmsClient()).notify("p1", NEXT_UP, {"position": "1"})
        assert logs == []

    def test_unknown_player_is_not_an_error(self, session):
        assert Notifier(make_test_session, SmsClient()).notify("ghost", NEXT_UP, {}) == []

    def test_unparseable_phone_is_logged_as_skipped(self, session):
        _contact(session, phone="12345")
        logs = Notifier(make_test_session, SmsClient()).notify("p1", GAME_STARTING, {"court": "Court 1"})
        assert [log.status for log in logs] == ["skipped"]

    def test_push_sender(self, session):
        _contact(session, sms_opt_in=False)
        pushed = []

        def push(player_id, title, body, data):
            pushed.append((player_id, title, body))
            return {"sid": "push-1", "status": "sent", "error": None}

        logs = Notifier(make_test_session, SmsClient(), push).notify(
            "p1", APPROACHING, {"position": "3"}
        )

        assert pushed == [("p1", "Get ready", "Pat, you're #3 in line. About 2 games until you're on court.")]
        assert [(log.channel, log.status) for log in logs] == [("push", "sent")]

    def test_push_opt_out(self, session):
        _contact(session, sms_opt_in=False, push_opt_in=False)

        def push(player_id, title, body, data):
            raise AssertionError("should not push")

        assert Notifier(make_test_session, SmsClient(), push).notify("p1", APPROACHING, {}) == []

    def test_push_failure_is_recorded_not_raised(self, session):
        _contact(session, sms_opt_in=False)

        def push(player_id, title, body, data):
            raise ConnectionError("gateway unreachable")

        logs = Notifier(make_test_session, SmsClient(), push).notify("p1", APPROACHING, {})
        assert logs[0].status == "failed"
        assert "gateway unreachable" in logs[0].error_message

    def test_unknown_type(self, session):
        _contact(session)
        assert Notifier(make_test_session, SmsClient()).notify("p1", "BOGUS", {}) == []
