"""WhatsApp message sender using the Twilio Messages API."""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta

import httpx
from pydantic import BaseModel, Field

from src.core.config import constants, settings
from src.domain.user import normalize_phone


logger = logging.getLogger(__name__)


# HTTP status code constants for error handling
HTTP_CLIENT_ERROR_START = 400
HTTP_CLIENT_ERROR_END = 500


class SendMessageResult(BaseModel):
    """Result of sending a WhatsApp message."""

    success: bool = Field(..., description="Whether the message was sent successfully")
    message_id: str | None = Field(None, description="Twilio message SID if successful")
    error: str | None = Field(None, description="Error message if failed")


class RateLimiter:
    """In-memory rate limiter for outbound messages.

    Tracks requests per phone number per minute to prevent exceeding rate limits.
    """

    def __init__(self) -> None:
        """Initialize rate limiter."""
        self._requests: dict[str, list[datetime]] = defaultdict(list)

    def can_send(self, phone: str) -> bool:
        """Check if a message can be sent to the given phone number.

        Args:
            phone: Phone number to check

        Returns:
            True if sending is allowed, False if rate limited
        """
        now = datetime.now()
        cutoff = now - timedelta(minutes=1)

        # Clean up old requests
        self._requests[phone] = [ts for ts in self._requests[phone] if ts > cutoff]

        return len(self._requests[phone]) < constants.MAX_REQUESTS_PER_MINUTE

    def record_request(self, phone: str) -> None:
        """Record a request for rate limiting.

        Args:
            phone: Phone number to record
        """
        self._requests[phone].append(datetime.now())


# Global rate limiter instance
rate_limiter = RateLimiter()


def format_phone_for_twilio(phone: str) -> str:
    """Format a phone number as a Twilio WhatsApp address (e.g., 'whatsapp:+15550001111')."""
    return f"whatsapp:{normalize_phone(phone)}"


def _messages_url(account_sid: str) -> str:
    return f"{settings.twilio_api_base_url.rstrip('/')}/2010-04-01/Accounts/{account_sid}/Messages.json"


def _message_sid(response: httpx.Response) -> str | None:
    """Read the message SID from an accepted send; the message is delivered either way."""
    try:
        body = response.json()
    except ValueError:
        logger.warning("Twilio accepted the message without a JSON body", extra={"status": response.status_code})
        return None
    return body.get("sid") if isinstance(body, dict) else None


async def _send_twilio_message(
    *,
    to_address: str,
    text: str,
    max_retries: int,
    retry_delay: float,
) -> SendMessageResult:
    """Core message sending logic with retry on server errors."""
    try:
        account_sid = settings.require_credential("twilio_account_sid", "Twilio account SID")
        auth_token = settings.require_credential("twilio_auth_token", "Twilio auth token")
        from_number = settings.require_credential("twilio_whatsapp_number", "Twilio WhatsApp number")
    except ValueError as e:
        return SendMessageResult(success=False, error=str(e))

    payload = {"From": format_phone_for_twilio(from_number), "To": to_address, "Body": text}

    for attempt in range(max_retries):
        try:
            async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                response = await client.post(_messages_url(account_sid), data=payload, auth=(account_sid, auth_token))

                if response.is_success:
                    return SendMessageResult(success=True, message_id=_message_sid(response))

                if HTTP_CLIENT_ERROR_START <= response.status_code < HTTP_CLIENT_ERROR_END:
                    return SendMessageResult(success=False, error=f"Client error: {response.text}")

                raise httpx.HTTPStatusError(
                    f"Server error: {response.status_code}", request=response.request, response=response
                )
        except httpx.HTTPStatusError as e:
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
            else:
                return SendMessageResult(success=False, error=str(e))
        except (httpx.HTTPError, ValueError) as e:
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
            else:
                return SendMessageResult(success=False, error=f"Failed after retries: {e!s}")

    return SendMessageResult(success=False, error="Max retries exceeded")


async def send_text_message(
    *,
    to_phone: str,
    text: str,
    max_retries: int = 1,
    retry_delay: float = 1.0,
) -> SendMessageResult:
    """Send a WhatsApp text message through Twilio.

    Never raises; every failure is reported in the result and logged.

    Args:
        to_phone: Recipient phone number, with or without the "whatsapp:" prefix
        text: Message body
        max_retries: Attempts made on network or server errors
        retry_delay: Base delay for exponential backoff between attempts

    Returns:
        SendMessageResult with the Twilio message SID on success
    """
    phone = normalize_phone(to_phone)
    if not rate_limiter.can_send(phone):
        return SendMessageResult(success=False, error="Rate limit exceeded. Please try again later.")

    rate_limiter.record_request(phone)
    result = await _send_twilio_message(
        to_address=format_phone_for_twilio(phone),
        text=text,
        max_retries=max_retries,
        retry_delay=retry_delay,
    )
    if result.success:
        logger.info("Sent WhatsApp message", extra={"to": phone, "message_id": result.message_id})
    else:
        logger.warning("Failed to send WhatsApp message", extra={"to": phone, "error": result.error})
    return result
