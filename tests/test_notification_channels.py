"""Tests for the email, SMS and voice notification channels (httpx mocked)."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from coldchain.config import settings
from coldchain.services.notifications.email_channel import send_alert_email
from coldchain.services.notifications.phone_channel import initiate_phone_call
from coldchain.services.notifications.sms_channel import (
    normalize_phone_number,
    send_sms,
)


def _make_response(json_data: dict | None = None, status_code: int = 200) -> MagicMock:
    """Create a mock httpx.Response with a synchronous .json()."""
    resp = MagicMock()
    resp.json.return_value = json_data or {}
    resp.status_code = status_code
    resp.text = "error body" if status_code >= 400 else ""
    return resp


def _mock_client(mock_client_cls, response=None, error=None) -> AsyncMock:
    mock_client = AsyncMock()
    if error is not None:
        mock_client.post.side_effect = error
    else:
        mock_client.post.return_value = response
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


@pytest.fixture
def resend(monkeypatch):
    monkeypatch.setattr(settings, "resend_api_key", "re_test_key")


@pytest.fixture
def twilio(monkeypatch):
    monkeypatch.setattr(settings, "twilio_account_sid", "AC123")
    monkeypatch.setattr(settings, "twilio_auth_token", "secret")
    monkeypatch.setattr(settings, "twilio_phone_number", "+3220000000")
    monkeypatch.setattr(settings, "default_country_code", "+32")


class TestNormalizePhoneNumber:
    def test_national_number_gets_country_code(self, twilio):
        assert normalize_phone_number("0470 12 34 56") == "+32470123456"

    def test_international_number_is_kept(self):
        assert normalize_phone_number("+31 6 1234 5678") == "+31612345678"

    def test_number_without_leading_zero(self, twilio):
        assert normalize_phone_number("470123456") == "+32470123456"


class TestSendAlertEmail:
    @pytest.mark.asyncio
    async def test_unconfigured_is_logged_and_treated_as_sent(self, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "")

        with patch(
            "coldchain.services.notifications.email_channel.httpx.AsyncClient"
        ) as mock_client_cls:
            result = await send_alert_email("a@example.com", "Subject", "<p>x</p>")

        assert result is True
        mock_client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_posts_to_resend(self, resend):
        with patch(
            "coldchain.services.notifications.email_channel.httpx.AsyncClient"
        ) as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, _make_response({"id": "e1"}))

            result = await send_alert_email("a@example.com", "Alarm", "<p>x</p>")

        assert result is True
        mock_client_cls.assert_called_once_with(
            timeout=settings.channel_timeout_seconds
        )
        kwargs = mock_client.post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer re_test_key"
        assert kwargs["json"]["to"] == ["a@example.com"]
        assert kwargs["json"]["subject"] == "Alarm"

    @pytest.mark.asyncio
    async def test_api_error_returns_false(self, resend):
        with patch(
            "coldchain.services.notifications.email_channel.httpx.AsyncClient"
        ) as mock_client_cls:
            _mock_client(mock_client_cls, _make_response(status_code=422))

            result = await send_alert_email("a@example.com", "Alarm", "<p>x</p>")

        assert result is False

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self, resend):
        with patch(
            "coldchain.services.notifications.email_channel.httpx.AsyncClient"
        ) as mock_client_cls:
            _mock_client(mock_client_cls, error=httpx.ReadTimeout("timed out"))

            result = await send_alert_email("a@example.com", "Alarm", "<p>x</p>")

        assert result is False


class TestSendSms:
    @pytest.mark.asyncio
    async def test_unconfigured_is_logged_and_treated_as_sent(self, monkeypatch):
        monkeypatch.setattr(settings, "twilio_account_sid", "")

        assert await send_sms("0470123456", "hello") is True

    @pytest.mark.asyncio
    async def test_posts_normalized_number(self, twilio):
        with patch(
            "coldchain.services.notifications.sms_channel.httpx.AsyncClient"
        ) as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, _make_response({"sid": "SM1"}))

            result = await send_sms("0470 12 34 56", "Alarm Freezer A")

        assert result is True
        args, kwargs = mock_client.post.call_args
        assert args[0] == (
            f"{settings.twilio_api_base}/Accounts/AC123/Messages.json"
        )
        assert kwargs["data"] == {
            "To": "+32470123456",
            "From": "+3220000000",
            "Body": "Alarm Freezer A",
        }

    @pytest.mark.asyncio
    async def test_connection_error_returns_false(self, twilio):
        with patch(
            "coldchain.services.notifications.sms_channel.httpx.AsyncClient"
        ) as mock_client_cls:
            _mock_client(mock_client_cls, error=httpx.ConnectError("refused"))

            assert await send_sms("+32470123456", "hello") is False


class TestInitiatePhoneCall:
    @pytest.mark.asyncio
    async def test_unconfigured_returns_none(self, monkeypatch):
        monkeypatch.setattr(settings, "twilio_account_sid", "")

        assert await initiate_phone_call("+32470123456", "http://x/voice") is None

    @pytest.mark.asyncio
    async def test_returns_call_sid(self, twilio):
        with patch(
            "coldchain.services.notifications.phone_channel.httpx.AsyncClient"
        ) as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, _make_response({"sid": "CA42"}))

            sid = await initiate_phone_call("0470123456", "http://api/voice/1")

        assert sid == "CA42"
        data = mock_client.post.call_args.kwargs["data"]
        assert data["Url"] == "http://api/voice/1"
        assert data["To"] == "+32470123456"
        assert data["Timeout"] == str(settings.twilio_call_timeout_seconds)

    @pytest.mark.asyncio
    async def test_api_error_returns_none(self, twilio):
        with patch(
            "coldchain.services.notifications.phone_channel.httpx.AsyncClient"
        ) as mock_client_cls:
            _mock_client(mock_client_cls, _make_response(status_code=401))

            assert await initiate_phone_call("+32470123456", "http://x") is None
