"""Family schedule tools for the hearth agent."""

import logging

import logfire
from pydantic import BaseModel, Field

from src.domain.action import ToolResult
from src.domain.schedule import EventType
from src.domain.user import UserContext
from src.services import schedule_service


logger = logging.getLogger(__name__)


class AddScheduleEvent(BaseModel):
    """Parameters for adding an event to the family schedule."""

    title: str = Field(description="Short event title (e.g., 'Dentist - Sam')", min_length=1)
    date: str = Field(description="Event start in ISO-8601 format (e.g., '2026-03-14T15:30:00Z' or '2026-03-14')")
    type: EventType = Field(default=EventType.ONE_TIME, description="'one-time' or 'recurring'")
    recurrence_rule: str | None = Field(
        default=None, description="How a recurring event repeats (e.g., 'every Tuesday')"
    )


class GetSchedule(BaseModel):
    """Parameters for reading the family schedule."""

    start: str = Field(description="Start of the range in ISO-8601 format")
    end: str = Field(description="End of the range in ISO-8601 format (a bare date includes the whole day)")


async def tool_schedule_event(params: AddScheduleEvent, user: UserContext) -> ToolResult:
    """
    Add an event to the shared family schedule.

    Use when a user says things like:
    - "Dentist on Friday at 3pm"
    - "Soccer practice every Tuesday at 5"

    Args:
        params: Event parameters
        user: Resolved sender; the event is created under their acting ID

    Returns:
        ToolResult with the stored event
    """
    try:
        with logfire.span("tool_schedule_event", title=params.title):
            event = await schedule_service.add_event(
                title=params.title,
                date=params.date,
                created_by=user.acting_id,
                event_type=params.type,
                recurrence_rule=params.recurrence_rule,
            )
            return ToolResult.ok(
                f"Added '{event.title}' on {event.day}.",
                event_id=event.id,
                title=event.title,
                date=event.date,
                type=str(event.type),
            )
    except (RuntimeError, KeyError, ValueError, ConnectionError) as e:
        logger.error("Failed to schedule event", extra={"error": str(e), "title": params.title})
        return ToolResult.fail(f"Unable to add event. {e!s}")


async def tool_get_schedule(params: GetSchedule, _user: UserContext) -> ToolResult:
    """
    List family schedule events in a date range.

    Use when a user asks "What's on this week?" or "Anything tomorrow?".
    """
    try:
        with logfire.span("tool_get_schedule", start=params.start, end=params.end):
            events = await schedule_service.get_events(start=params.start, end=params.end)
            if not events:
                return ToolResult.ok("No events in that range.", events=[])

            return ToolResult.ok(
                f"Found {len(events)} event(s).",
                events=[
                    {"title": e.title, "date": e.date, "type": str(e.type), "recurrence_rule": e.recurrence_rule}
                    for e in events
                ],
            )
    except (RuntimeError, KeyError, ValueError, ConnectionError) as e:
        logger.error("Failed to read schedule", extra={"error": str(e)})
        return ToolResult.fail(f"Unable to read the schedule. {e!s}")
