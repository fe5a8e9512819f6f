"""Inbound message pipeline: buffer, settle, dispatch, reply, notify."""

import asyncio
import logging

from src.agents import hearth_agent
from src.core.config import constants, settings
from src.core.logging import log_with_context, span
from src.domain.action import DispatchResult
from src.domain.buffer import SettledBurst
from src.interface import whatsapp_sender
from src.services import buffer_service, notification_service


logger = logging.getLogger(__name__)


async def receive_message(*, sender_phone: str, text: str, profile_name: str | None = None) -> None:
    """Buffer an inbound message; the caller schedules ``wait_and_settle``."""
    await buffer_service.append_message(sender_id=sender_phone, text=text, profile_name=profile_name)


async def wait_and_settle(*, sender_id: str) -> DispatchResult | None:
    """Wait out the debounce window, then run the settle check for the sender.

    Runs once per inbound message. Every check but the one scheduled by the
    last message of a burst finds a newer arrival and returns without effect.
    """
    await asyncio.sleep(settings.debounce_window_ms / 1000)
    return await settle_and_dispatch(sender_id=sender_id)


async def settle_and_dispatch(*, sender_id: str, now: float | None = None) -> DispatchResult | None:
    """Claim the sender's burst if this check wins, then process it.

    Args:
        sender_id: Sender phone number
        now: Check time in epoch milliseconds (defaults to the wall clock)

    Returns:
        The dispatch result, or None when the check did not win
    """
    burst = await buffer_service.settle(sender_id=sender_id, now=now)
    if burst is None:
        return None
    return await process_burst(burst)


async def _notify_household(result: DispatchResult, *, timeout: float) -> None:
    """Broadcast the turn's actions; failures stay out of the sender's conversation."""
    try:
        await asyncio.wait_for(
            notification_service.broadcast_all(user=result.user, actions=result.actions), timeout=timeout
        )
    except TimeoutError:
        logger.error("Household notification timed out", extra={"sender_id": result.user.phone})
    except Exception:
        logger.exception("Household notification failed", extra={"sender_id": result.user.phone})


async def process_burst(burst: SettledBurst) -> DispatchResult | None:
    """Dispatch a claimed burst, reply to the sender, and notify the household.

    The whole step runs under ``PROCESSING_TIMEOUT_SECONDS``. The buffer was
    cleared before this point, so a dispatch that times out or crashes loses
    the burst and the sender gets the fallback reply instead. Once the reply
    has gone out, notification problems are only logged.

    Args:
        burst: Messages claimed by ``buffer_service.settle``

    Returns:
        The dispatch result, or None if dispatch did not finish
    """
    with span("message_pipeline.process_burst", sender_id=burst.sender_id):
        log_with_context(
            logger, "info", "Processing burst", sender_id=burst.sender_id, message_count=burst.message_count
        )
        loop = asyncio.get_running_loop()
        deadline = loop.time() + settings.processing_timeout_seconds
        try:
            result = await asyncio.wait_for(
                hearth_agent.process_message(
                    text=burst.text,
                    sender_phone=burst.sender_id,
                    profile_name=burst.profile_name,
                ),
                timeout=settings.processing_timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                "Burst processing timed out",
                extra={"sender_id": burst.sender_id, "timeout_seconds": settings.processing_timeout_seconds},
            )
            await whatsapp_sender.send_text_message(to_phone=burst.sender_id, text=constants.FALLBACK_REPLY)
            return None
        except Exception:
            logger.exception("Burst processing failed", extra={"sender_id": burst.sender_id})
            await whatsapp_sender.send_text_message(to_phone=burst.sender_id, text=constants.FALLBACK_REPLY)
            return None

        await whatsapp_sender.send_text_message(to_phone=burst.sender_id, text=result.reply_text)

        if result.user and result.actions:
            await _notify_household(result, timeout=max(deadline - loop.time(), 0))

        return result


async def sweep_stale_buffers(*, now: float | None = None) -> int:
    """Settle and process buffers whose in-process settle timers were lost.

    Args:
        now: Sweep time in epoch milliseconds (defaults to the wall clock)

    Returns:
        Number of bursts dispatched
    """
    with span("message_pipeline.sweep_stale_buffers"):
        senders = await buffer_service.list_stale_senders(now=now)
        dispatched = 0
        for sender_id in senders:
            burst = await buffer_service.settle(sender_id=sender_id, now=now)
            if burst is None:
                continue
            logger.warning("Recovered orphaned burst", extra={"sender_id": sender_id})
            await process_burst(burst)
            dispatched += 1
        return dispatched
