"""Pydantic models for service layer return types."""

from pydantic import BaseModel


class NotificationResult(BaseModel):
    """Outcome of notifying one household member."""

    phone: str
    success: bool
    error: str | None = None
