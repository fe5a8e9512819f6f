"""Tests for WhatsApp message sender using the Twilio Messages API via httpx."""

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.core.config import settings
from src.interface.whatsapp_sender import RateLimiter, format_phone_for_twilio, send_text_message


@pytest.fixture(autouse=True)
def mock_asyncio_sleep() -> Generator[AsyncMock, None, None]:
    """Mock asyncio.sleep to avoid actual delays in retry tests."""
    with patch("src.interface.whatsapp_sender.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.fixture
def twilio_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "twilio_account_sid", "AC123")
    monkeypatch.setattr(settings, "twilio_auth_token", "token")
    monkeypatch.setattr(settings, "twilio_whatsapp_number", "+14155238886")
    monkeypatch.setattr(settings, "twilio_api_base_url", "https://api.twilio.com")


def _response(status_code: int, *, json_body: dict | None = None, text: str = "") -> MagicMock:
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.json.return_value = json_body or {}
    response.text = text
    response.request = MagicMock()
    return response


class TestRateLimiter:
    """Test rate limiting functionality."""

    def test_can_send_when_under_limit(self) -> None:
        limiter = RateLimiter()
        for _ in range(5):
            limiter.record_request("+15550001111")

        assert limiter.can_send("+15550001111") is True

    def test_cannot_send_when_at_limit(self) -> None:
        limiter = RateLimiter()
        for _ in range(60):
            limiter.record_request("+15550001111")

        assert limiter.can_send("+15550001111") is False

    def test_rate_limit_per_phone(self) -> None:
        limiter = RateLimiter()
        for _ in range(60):
            limiter.record_request("+15550001111")

        assert limiter.can_send("+15550002222") is True


class TestFormatPhoneForTwilio:
    """Test phone number formatting for Twilio WhatsApp addresses."""

    def test_format_with_plus(self) -> None:
        assert format_phone_for_twilio("+15550001111") == "whatsapp:+15550001111"

    def test_format_bare_digits(self) -> None:
        assert format_phone_for_twilio("15550001111") == "whatsapp:+15550001111"

    def test_format_already_prefixed(self) -> None:
        assert format_phone_for_twilio("whatsapp:+15550001111") == "whatsapp:+15550001111"


class TestSendTextMessage:
    """Test sending text messages via Twilio."""

    async def test_send_text_message_success(self, twilio_credentials) -> None:
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(201, json_body={"sid": "SM123"})

            result = await send_text_message(to_phone="+15550001111", text="Hello")

        assert result.success is True
        assert result.message_id == "SM123"
        assert result.error is None

        mock_post.assert_called_once()
        url = mock_post.call_args.args[0]
        call_kwargs = mock_post.call_args.kwargs
        assert url == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
        assert call_kwargs["auth"] == ("AC123", "token")
        assert call_kwargs["data"] == {
            "From": "whatsapp:+14155238886",
            "To": "whatsapp:+15550001111",
            "Body": "Hello",
        }

    async def test_accepted_send_without_json_body_is_success(self, twilio_credentials) -> None:
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            response = _response(201, text="<html>accepted</html>")
            response.json.side_effect = ValueError("Expecting value")
            mock_post.return_value = response

            result = await send_text_message(to_phone="+15550001111", text="Hello", max_retries=3)

        assert result.success is True
        assert result.message_id is None
        assert mock_post.call_count == 1

    async def test_send_text_message_client_error(self, twilio_credentials) -> None:
        """Test handling of 4xx client errors (no retry)."""
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(400, text="Invalid 'To' Phone Number")

            result = await send_text_message(to_phone="+15550001111", text="Test", max_retries=3)

        assert result.success is False
        assert "Client error" in result.error
        assert mock_post.call_count == 1

    async def test_send_text_message_server_error_with_retry(self, twilio_credentials) -> None:
        """Test retry logic on 5xx server errors."""
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(503)

            result = await send_text_message(to_phone="+15550001111", text="Test", max_retries=3)

        assert result.success is False
        assert result.error == "Server error: 503"
        assert mock_post.call_count == 3

    async def test_network_error_is_reported(self, twilio_credentials) -> None:
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = httpx.ConnectError("connection refused")

            result = await send_text_message(to_phone="+15550001111", text="Test")

        assert result.success is False
        assert "Failed after retries" in result.error
        assert mock_post.call_count == 1

    async def test_missing_credentials(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "twilio_account_sid", None)

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            result = await send_text_message(to_phone="+15550001111", text="Test")

        assert result.success is False
        assert "TWILIO_ACCOUNT_SID" in result.error
        mock_post.assert_not_called()

    @patch("src.interface.whatsapp_sender.rate_limiter")
    async def test_send_text_message_rate_limited(self, mock_rate_limiter: MagicMock, twilio_credentials) -> None:
        mock_rate_limiter.can_send.return_value = False

        result = await send_text_message(to_phone="+15550001111", text="Test")

        assert result.success is False
        assert "Rate limit exceeded" in result.error
