"""Family schedule service."""

import logging
from datetime import UTC, datetime

from dateutil import parser as date_parser

from src.core import db_client
from src.core.config import constants
from src.core.logging import span
from src.domain.schedule import EventType, ScheduleEvent


logger = logging.getLogger(__name__)


def parse_event_date(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime into an aware UTC datetime.

    Naive values are taken to be UTC.

    Raises:
        ValueError: If the value is not ISO-8601
    """
    try:
        parsed = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        msg = f"Invalid ISO-8601 date: {value!r}"
        raise ValueError(msg) from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


async def add_event(
    *,
    title: str,
    date: str,
    created_by: str,
    event_type: EventType = EventType.ONE_TIME,
    recurrence_rule: str | None = None,
) -> ScheduleEvent:
    """Append an event to the family schedule.

    No conflict detection and no expansion of recurring events.

    Args:
        title: Event title
        date: ISO-8601 start date or datetime
        created_by: Household scope (acting user ID)
        event_type: One-time or recurring
        recurrence_rule: Description of the recurrence, kept only for recurring events

    Returns:
        The stored event
    """
    with span("schedule_service.add_event", title=title):
        title = title.strip()
        if not title:
            msg = "Event title cannot be empty"
            raise ValueError(msg)

        starts_at = parse_event_date(date)
        record = await db_client.create_record(
            collection="family_schedule",
            data={
                "title": title,
                "date": starts_at.isoformat(),
                "type": event_type,
                "recurrence_rule": recurrence_rule if event_type == EventType.RECURRING else None,
                "created_by": created_by,
            },
        )

        logger.info("Scheduled event", extra={"title": title, "date": record["date"], "created_by": created_by})
        return ScheduleEvent(**record)


async def get_events(*, start: str, end: str) -> list[ScheduleEvent]:
    """List events whose start falls within [start, end], ordered by date.

    Args:
        start: ISO-8601 lower bound (inclusive)
        end: ISO-8601 upper bound (inclusive); a bare date covers the whole day

    Returns:
        Matching events
    """
    with span("schedule_service.get_events"):
        lower = parse_event_date(start)
        upper = parse_event_date(end)
        if len(end.strip()) == len("YYYY-MM-DD"):
            upper = upper.replace(hour=23, minute=59, second=59, microsecond=999999)
        if upper < lower:
            msg = "End of range is before its start"
            raise ValueError(msg)

        records = await db_client.list_records(
            collection="family_schedule",
            filter_query=f'date >= "{lower.isoformat()}" && date <= "{upper.isoformat()}"',
            sort="date ASC",
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
        )
        return [ScheduleEvent(**record) for record in records]
