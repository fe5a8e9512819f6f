"""Family schedule domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class EventType(StrEnum):
    """Whether an event happens once or repeats."""

    ONE_TIME = "one-time"
    RECURRING = "recurring"


class ScheduleEvent(BaseModel):
    """Entry in the shared family schedule."""

    id: str = Field(..., description="Unique event ID")
    title: str = Field(..., description="Event title")
    date: str = Field(..., description="Event start as a UTC ISO-8601 timestamp")
    type: EventType = Field(default=EventType.ONE_TIME, description="One-time or recurring")
    recurrence_rule: str | None = Field(default=None, description="Free-form recurrence description")
    created_by: str = Field(..., description="Household scope (acting user ID) that created the event")

    @property
    def day(self) -> str:
        """Calendar date portion (YYYY-MM-DD)."""
        return self.date[:10]
