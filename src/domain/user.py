"""User domain models and enums."""

import re
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


class CollaborationStatus(StrEnum):
    """Collaboration lifecycle status."""

    ACTIVE = "active"
    REVOKED = "revoked"


def normalize_phone(raw: str) -> str:
    """Strip the ``whatsapp:`` channel prefix and spaces from an address.

    Args:
        raw: Address as received (e.g., "whatsapp:+1 555 000 1111")

    Returns:
        Bare number (e.g., "+15550001111")
    """
    phone = raw.strip()
    if phone.lower().startswith("whatsapp:"):
        phone = phone[len("whatsapp:") :]
    phone = re.sub(r"[\s()-]", "", phone)
    if phone and phone[0].isdigit():
        phone = f"+{phone}"
    return phone


class User(BaseModel):
    """User data transfer object."""

    id: str = Field(..., description="Unique user ID")
    phone_number: str = Field(..., description="Phone number in E.164 format (e.g., +14155552671)")
    display_name: str = Field(..., description="Display name of the user")
    email: str | None = Field(default=None, description="Email of a linked web account")
    linked_account_id: str | None = Field(default=None, description="Web account this record is linked to")

    @property
    def is_linked(self) -> bool:
        return bool(self.linked_account_id)

    @field_validator("phone_number")
    @classmethod
    def validate_phone_e164(cls, v: str) -> str:
        """Validate phone number is in E.164 format."""
        if not E164_PATTERN.match(v):
            msg = "Phone number must be in E.164 format (e.g., +14155552671)"
            raise ValueError(msg)
        return v


class Collaboration(BaseModel):
    """Invitation giving another person access to an inviter's household."""

    id: str = Field(..., description="Unique collaboration ID")
    inviter_id: str = Field(..., description="User ID of the household owner")
    invitee_phone: str | None = Field(default=None, description="Collaborator phone number")
    invitee_email: str | None = Field(default=None, description="Collaborator email")
    invitee_name: str | None = Field(default=None, description="Collaborator display label")
    status: CollaborationStatus = Field(default=CollaborationStatus.ACTIVE, description="Collaboration status")


class UserContext(BaseModel):
    """Resolved identity of the person sending a message.

    ``acting_id`` is the household scope every tool writes under; for a
    collaborator it is the inviter's user ID while ``display_name`` stays the
    collaborator's own label.
    """

    acting_id: str = Field(..., description="User ID whose household scope tools act on")
    display_name: str = Field(..., description="Name used in replies and notifications")
    phone: str = Field(..., description="The sender's own phone number")
    is_collaborator: bool = Field(default=False, description="True when resolved through a collaboration")
    is_linked: bool = Field(default=False, description="True when the identity is a linked web account")
