"""Twilio WhatsApp webhook form parser."""

from collections.abc import Mapping

from pydantic import BaseModel, Field

from src.domain.user import normalize_phone


class ParsedMessage(BaseModel):
    """Parsed inbound WhatsApp message."""

    from_phone: str = Field(..., description="Sender phone number without the 'whatsapp:' prefix")
    text: str = Field(..., description="Message body")
    profile_name: str | None = Field(None, description="Sender's WhatsApp profile name")
    message_sid: str | None = Field(None, description="Twilio message SID")


def _field(form: Mapping[str, object], name: str) -> str:
    value = form.get(name)
    return value.strip() if isinstance(value, str) else ""


def parse_twilio_webhook(form: Mapping[str, object]) -> ParsedMessage | None:
    """Parse the form fields Twilio posts for an inbound WhatsApp message.

    Twilio sends ``application/x-www-form-urlencoded`` bodies such as
    ``From=whatsapp:+15550001111&Body=We need milk&ProfileName=Sam``.

    Args:
        form: Form fields of the request

    Returns:
        ParsedMessage, or None when From or Body is missing or blank
    """
    sender = _field(form, "From")
    body = _field(form, "Body")
    if not sender or not body:
        return None

    return ParsedMessage(
        from_phone=normalize_phone(sender),
        text=body,
        profile_name=_field(form, "ProfileName") or None,
        message_sid=_field(form, "MessageSid") or None,
    )
