"""Per-sender message buffer with debounce/settle semantics.

Each inbound message is appended to its sender's buffer record and schedules
a settle check after the debounce window. A settle check wins only if no newer
message arrived in the meantime; the winner claims and clears the pending
messages in the same transaction, so at most one check ever dispatches a
given burst.
"""

import json
import logging
import time
from typing import Any

from src.core import db_client
from src.core.config import constants, settings
from src.core.db_client import sanitize_param
from src.core.logging import span
from src.domain.buffer import BufferRecord, SettledBurst
from src.domain.user import normalize_phone


logger = logging.getLogger(__name__)

COLLECTION = "message_buffers"


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


def _to_buffer(record: dict[str, Any]) -> BufferRecord:
    messages = record.get("messages") or "[]"
    if isinstance(messages, str):
        messages = json.loads(messages)
    return BufferRecord(
        id=record["id"],
        sender_id=record["sender_id"],
        messages=messages,
        last_timestamp=record["last_timestamp"],
        profile_name=record.get("profile_name"),
    )


async def get_buffer(*, sender_id: str) -> BufferRecord | None:
    """Return the buffer record for a sender, or None if they never wrote."""
    record = await db_client.get_first_record(
        collection=COLLECTION,
        filter_query=f'sender_id = "{sanitize_param(normalize_phone(sender_id))}"',
    )
    return _to_buffer(record) if record else None


async def append_message(
    *,
    sender_id: str,
    text: str,
    profile_name: str | None = None,
    now: float | None = None,
) -> BufferRecord:
    """Append a message to the sender's buffer and stamp its arrival time.

    The caller is responsible for scheduling ``settle`` after the debounce
    window (see ``message_pipeline.wait_and_settle``).

    Args:
        sender_id: Sender phone number (normalized here)
        text: Message body
        profile_name: WhatsApp profile name, kept for ghost user naming
        now: Arrival time in epoch milliseconds (defaults to the wall clock)

    Returns:
        The updated buffer record
    """
    with span("buffer_service.append_message"):
        sender_id = normalize_phone(sender_id)
        arrived_at = now_ms() if now is None else now

        async with db_client.atomic():
            existing = await get_buffer(sender_id=sender_id)
            if existing is None:
                record = await db_client.create_record(
                    collection=COLLECTION,
                    data={
                        "sender_id": sender_id,
                        "messages": [text],
                        "last_timestamp": arrived_at,
                        "profile_name": profile_name,
                    },
                )
            else:
                data: dict[str, Any] = {
                    "messages": [*existing.messages, text],
                    "last_timestamp": arrived_at,
                }
                if profile_name:
                    data["profile_name"] = profile_name
                record = await db_client.update_record(collection=COLLECTION, record_id=existing.id, data=data)

        buffer = _to_buffer(record)
        logger.info(
            "Buffered message",
            extra={"sender_id": sender_id, "pending": len(buffer.messages)},
        )
        return buffer


async def settle(*, sender_id: str, now: float | None = None) -> SettledBurst | None:
    """Claim the sender's pending messages if the debounce window has passed.

    Aborts without side effects when the record is missing, a newer message
    arrived less than ``window - jitter`` ago, or another check already
    claimed the messages. Otherwise clears the pending messages (the record
    itself is kept) and returns them joined with newlines in arrival order.

    Args:
        sender_id: Sender phone number
        now: Check time in epoch milliseconds (defaults to the wall clock)

    Returns:
        The claimed burst, or None if this check does not win
    """
    with span("buffer_service.settle"):
        sender_id = normalize_phone(sender_id)
        checked_at = now_ms() if now is None else now
        threshold = settings.debounce_window_ms - settings.debounce_jitter_ms

        async with db_client.atomic():
            buffer = await get_buffer(sender_id=sender_id)
            if buffer is None:
                logger.debug("Settle aborted: no buffer", extra={"sender_id": sender_id})
                return None

            elapsed = checked_at - buffer.last_timestamp
            if elapsed < threshold:
                logger.debug(
                    "Settle aborted: superseded by newer message",
                    extra={"sender_id": sender_id, "elapsed_ms": elapsed},
                )
                return None

            if not buffer.messages:
                logger.debug("Settle aborted: already claimed", extra={"sender_id": sender_id})
                return None

            await db_client.update_record(collection=COLLECTION, record_id=buffer.id, data={"messages": []})

        logger.info(
            "Burst settled",
            extra={"sender_id": sender_id, "message_count": len(buffer.messages), "elapsed_ms": elapsed},
        )
        return SettledBurst(
            sender_id=sender_id,
            text="\n".join(buffer.messages),
            message_count=len(buffer.messages),
            profile_name=buffer.profile_name,
        )


async def list_stale_senders(*, now: float | None = None) -> list[str]:
    """Return senders whose non-empty buffers outlived every in-process timer.

    A buffer is stale once its newest message is older than the debounce
    window plus ``BUFFER_SWEEP_GRACE_MS``.
    """
    checked_at = now_ms() if now is None else now
    cutoff = max(checked_at - settings.debounce_window_ms - settings.buffer_sweep_grace_ms, 0)

    records = await db_client.list_records(
        collection=COLLECTION,
        filter_query=f'messages != "[]" && last_timestamp < {cutoff:.0f}',
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [record["sender_id"] for record in records]
