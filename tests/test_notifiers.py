"""Tests for the notifier backends and the channel dispatcher."""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs

import aiosmtplib
import httpx
import pytest

from conftest import RecordingNotifier
from otp_gateway.config import Settings
from otp_gateway.core.errors import DeliveryError
from otp_gateway.core.models import Challenge, Channel
from otp_gateway.notifiers.base import MessageTemplate
from otp_gateway.notifiers.console import ConsoleNotifier
from otp_gateway.notifiers.dispatcher import NotifierDispatcher, build_dispatcher
from otp_gateway.notifiers.http_email import HttpEmailNotifier
from otp_gateway.notifiers.smtp import SmtpEmailNotifier
from otp_gateway.notifiers.twilio_sms import TwilioSmsNotifier

TEMPLATE = MessageTemplate(app_name="YesPalm", ttl_minutes=10)


def _challenge(subject: str, channel: Channel, code: str = "123456") -> Challenge:
    return Challenge.create(subject, code, channel, datetime(2026, 1, 1, tzinfo=UTC), timedelta(minutes=10))


# ── SMTP ─────────────────────────────────────────────────

def _smtp_notifier() -> SmtpEmailNotifier:
    return SmtpEmailNotifier(
        hostname="smtp.example.com",
        port=587,
        sender="noreply@yespalm.com",
        username="mailer",
        password="secret",
        template=TEMPLATE,
    )


@pytest.mark.asyncio
async def test_smtp_sends_plain_text_code():
    notifier = _smtp_notifier()
    with patch("otp_gateway.notifiers.smtp.aiosmtplib.send", new_callable=AsyncMock) as send:
        await notifier.send("a@b.com", "123456")

    send.assert_awaited_once()
    msg = send.call_args.args[0]
    assert msg["To"] == "a@b.com"
    assert msg["From"] == "noreply@yespalm.com"
    assert msg["Subject"] == "YesPalm - Your OTP Verification Code"
    assert "123456" in msg.get_content()
    assert "10 minutes" in msg.get_content()
    assert send.call_args.kwargs["hostname"] == "smtp.example.com"
    assert send.call_args.kwargs["username"] == "mailer"


@pytest.mark.asyncio
async def test_smtp_failure_is_delivery_error():
    notifier = _smtp_notifier()
    failure = aiosmtplib.SMTPConnectError("connection refused")
    with patch("otp_gateway.notifiers.smtp.aiosmtplib.send", new_callable=AsyncMock, side_effect=failure):
        with pytest.raises(DeliveryError):
            await notifier.send("a@b.com", "123456")


# ── HTTP email API ───────────────────────────────────────

@pytest.mark.asyncio
async def test_http_email_posts_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(202)

    notifier = HttpEmailNotifier(
        api_url="https://email.example.com/v3/mail/send",
        api_key="key-123",
        sender="noreply@yespalm.com",
        template=TEMPLATE,
        transport=httpx.MockTransport(handler),
    )
    await notifier.send("a@b.com", "654321")

    assert seen["auth"] == "Bearer key-123"
    assert seen["body"]["personalizations"][0]["to"][0]["email"] == "a@b.com"
    assert "654321" in seen["body"]["content"][0]["value"]


@pytest.mark.asyncio
async def test_http_email_rejection_is_delivery_error():
    notifier = HttpEmailNotifier(
        api_url="https://email.example.com/v3/mail/send",
        api_key="bad",
        sender="noreply@yespalm.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(401, text="unauthorized")),
    )
    with pytest.raises(DeliveryError):
        await notifier.send("a@b.com", "654321")


# ── Twilio SMS ───────────────────────────────────────────

@pytest.mark.asyncio
async def test_twilio_posts_form_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(201, json={"sid": "SM123"})

    notifier = TwilioSmsNotifier(
        account_sid="AC1",
        auth_token="token",
        from_number="+15550000000",
        template=TEMPLATE,
        transport=httpx.MockTransport(handler),
    )
    await notifier.send("+15551234567", "123456")

    assert seen["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC1/Messages.json"
    assert seen["auth"].startswith("Basic ")
    assert seen["form"]["To"] == ["+15551234567"]
    assert seen["form"]["From"] == ["+15550000000"]
    assert seen["form"]["Body"] == ["Your YesPalm OTP is: 123456. Do not share this with anyone."]


@pytest.mark.asyncio
async def test_twilio_network_error_is_delivery_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    notifier = TwilioSmsNotifier(
        account_sid="AC1",
        auth_token="token",
        from_number="+15550000000",
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(DeliveryError):
        await notifier.send("+15551234567", "123456")


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["queued", '"queued"', ""])
async def test_twilio_accepted_without_json_body_is_success(body):
    notifier = TwilioSmsNotifier(
        account_sid="AC1",
        auth_token="token",
        from_number="+15550000000",
        transport=httpx.MockTransport(lambda request: httpx.Response(201, text=body)),
    )
    await notifier.send("+15551234567", "123456")


# ── Console ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_console_logs_code(caplog):
    caplog.set_level("INFO", logger="otp_gateway.notifiers.console")
    await ConsoleNotifier("sms").send("+15551234567", "424242")
    assert "424242" in caplog.text


# ── Dispatcher ───────────────────────────────────────────

@pytest.mark.asyncio
async def test_dispatcher_routes_by_channel():
    email, sms = RecordingNotifier(), RecordingNotifier()
    dispatcher = NotifierDispatcher({Channel.EMAIL: email, Channel.SMS: sms})

    await dispatcher.send(_challenge("a@b.com", Channel.EMAIL, "111111"))
    await dispatcher.send(_challenge("+15551234567", Channel.SMS, "222222"))

    assert email.sent == [("a@b.com", "111111")]
    assert sms.sent == [("+15551234567", "222222")]


@pytest.mark.asyncio
async def test_dispatcher_missing_channel():
    dispatcher = NotifierDispatcher({Channel.EMAIL: RecordingNotifier()})
    with pytest.raises(DeliveryError):
        await dispatcher.send(_challenge("+15551234567", Channel.SMS))


@pytest.mark.asyncio
async def test_dispatcher_times_out_slow_notifier():
    class SlowNotifier(RecordingNotifier):
        async def send(self, subject: str, code: str) -> None:
            await asyncio.sleep(5)

    dispatcher = NotifierDispatcher({Channel.EMAIL: SlowNotifier()}, timeout=0.05)
    with pytest.raises(DeliveryError):
        await dispatcher.send(_challenge("a@b.com", Channel.EMAIL))


@pytest.mark.asyncio
async def test_dispatcher_wraps_unexpected_notifier_errors():
    class BrokenNotifier(RecordingNotifier):
        async def send(self, subject: str, code: str) -> None:
            raise KeyError("sid")

    dispatcher = NotifierDispatcher({Channel.SMS: BrokenNotifier()})
    with pytest.raises(DeliveryError) as excinfo:
        await dispatcher.send(_challenge("+15551234567", Channel.SMS))
    assert isinstance(excinfo.value.__cause__, KeyError)


@pytest.mark.asyncio
async def test_dispatcher_passes_delivery_errors_through():
    dispatcher = NotifierDispatcher({Channel.EMAIL: RecordingNotifier(fail=True)})
    with pytest.raises(DeliveryError, match="provider rejected"):
        await dispatcher.send(_challenge("a@b.com", Channel.EMAIL))


def test_build_dispatcher_from_settings():
    settings = Settings(_env_file=None, email_provider="smtp", sms_provider="twilio")
    dispatcher = build_dispatcher(settings)
    assert isinstance(dispatcher.notifier_for(Channel.EMAIL), SmtpEmailNotifier)
    assert isinstance(dispatcher.notifier_for(Channel.SMS), TwilioSmsNotifier)

    settings = Settings(_env_file=None, email_provider="http", sms_provider="console")
    dispatcher = build_dispatcher(settings)
    assert isinstance(dispatcher.notifier_for(Channel.EMAIL), HttpEmailNotifier)
    assert isinstance(dispatcher.notifier_for(Channel.SMS), ConsoleNotifier)


def test_build_dispatcher_rejects_unknown_provider():
    with pytest.raises(ValueError):
        build_dispatcher(Settings(_env_file=None, sms_provider="pigeon"))
