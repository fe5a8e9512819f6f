"""Inbound webhook authentication using Twilio request signatures."""

import base64
import hashlib
import hmac
import logging
from collections.abc import Mapping
from typing import NamedTuple

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


class WebhookSecurityResult(NamedTuple):
    """Result of webhook security validation."""

    is_valid: bool
    error_message: str | None
    http_status_code: int | None


def compute_twilio_signature(*, auth_token: str, url: str, params: Mapping[str, str]) -> str:
    """Compute the X-Twilio-Signature for a form POST.

    The signed string is the full request URL followed by every form field
    name and value, sorted by name, with no separators.
    """
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode(), payload.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


def validate_twilio_signature(
    *,
    url: str,
    params: Mapping[str, str],
    received_signature: str | None,
) -> WebhookSecurityResult:
    """Check the request signature when signature validation is enabled.

    Args:
        url: Full URL Twilio posted to
        params: Form fields of the request
        received_signature: Value of the X-Twilio-Signature header

    Returns:
        WebhookSecurityResult indicating if the request is authentic
    """
    if not settings.twilio_validate_signature:
        return WebhookSecurityResult(is_valid=True, error_message=None, http_status_code=None)

    if not settings.twilio_auth_token:
        logger.error("Signature validation enabled without TWILIO_AUTH_TOKEN")
        return WebhookSecurityResult(
            is_valid=False,
            error_message="Webhook signature cannot be verified",
            http_status_code=constants.HTTP_FORBIDDEN,
        )

    if not received_signature:
        logger.warning("Missing webhook signature")
        return WebhookSecurityResult(
            is_valid=False,
            error_message="Missing webhook signature",
            http_status_code=constants.HTTP_FORBIDDEN,
        )

    expected = compute_twilio_signature(auth_token=settings.twilio_auth_token, url=url, params=params)
    if not hmac.compare_digest(expected, received_signature):
        logger.warning("Invalid webhook signature", extra={"url": url})
        return WebhookSecurityResult(
            is_valid=False,
            error_message="Invalid webhook signature",
            http_status_code=constants.HTTP_FORBIDDEN,
        )

    return WebhookSecurityResult(is_valid=True, error_message=None, http_status_code=None)
