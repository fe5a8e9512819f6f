"""Message buffer domain models."""

from pydantic import BaseModel, Field


class BufferRecord(BaseModel):
    """Pending messages for one sender."""

    id: str
    sender_id: str = Field(..., description="Normalized sender phone number")
    messages: list[str] = Field(default_factory=list, description="Texts in arrival order")
    last_timestamp: float = Field(..., description="Arrival time of the newest message (epoch milliseconds)")
    profile_name: str | None = Field(default=None, description="Latest WhatsApp profile name seen")


class SettledBurst(BaseModel):
    """Messages claimed by the winning settle check, ready for dispatch."""

    sender_id: str
    text: str = Field(..., description="Pending messages joined with newlines")
    message_count: int
    profile_name: str | None = None
