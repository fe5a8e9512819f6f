"""Notification fan-out: tell the rest of the household what changed."""

import asyncio
import logging

from src.core.config import settings
from src.core.logging import span
from src.domain.action import Action, ToolKind
from src.domain.pantry import PantryStatus
from src.domain.user import UserContext
from src.interface import whatsapp_sender
from src.models.service_models import NotificationResult
from src.services import user_service


logger = logging.getLogger(__name__)


def format_action_message(*, action: Action, actor_name: str) -> str | None:
    """Render the broadcast text for an action, or None if it is not broadcast.

    Only new schedule events, items newly added to a shopping list, and
    pantry items marked finished are announced.
    """
    details = {**action.arguments, **action.result.data}

    if action.kind == ToolKind.SCHEDULE_EVENT:
        day = str(details.get("date", ""))[:10]
        return f'📅 *Schedule Update*: {actor_name} added event "{details.get("title", "")}" on {day}.'

    if action.kind == ToolKind.ADD_SHOPPING_ITEM:
        if details.get("duplicate"):
            return None
        list_name = details.get("list_name") or settings.default_list_name
        return f'🛒 *Shopping List*: {actor_name} added "{details.get("item", "")}" to {list_name}.'

    if action.kind == ToolKind.UPDATE_PANTRY_STATUS and details.get("status") == PantryStatus.FINISHED:
        return f'⚠️ *Pantry Alert*: {actor_name} marked "{details.get("item", "")}" as finished.'

    return None


async def _notify_one(*, phone: str, text: str, semaphore: asyncio.Semaphore) -> NotificationResult:
    """Send to one recipient; any failure is captured in the result."""
    async with semaphore:
        try:
            send_result = await whatsapp_sender.send_text_message(to_phone=phone, text=text, max_retries=1)
        except Exception as e:
            logger.error("Notification send raised", extra={"phone": phone, "error": str(e)})
            return NotificationResult(phone=phone, success=False, error=str(e))

    if not send_result.success:
        logger.error("Failed to notify household member", extra={"phone": phone, "error": send_result.error})
    return NotificationResult(phone=phone, success=send_result.success, error=send_result.error)


async def broadcast(*, user: UserContext, action: Action) -> list[NotificationResult]:
    """Notify every household contact except the sender about an action.

    Recipients are independent: one failed send does not affect the others,
    and failures are logged rather than raised or retried.

    Args:
        user: The sender whose action is announced
        action: Action produced by the dispatcher

    Returns:
        One NotificationResult per recipient (empty if nothing was sent)
    """
    with span("notification_service.broadcast", kind=action.kind.value):
        text = format_action_message(action=action, actor_name=user.display_name)
        if text is None:
            logger.debug("Action not broadcast", extra={"kind": action.kind.value})
            return []

        recipients = [phone for phone in await user_service.get_contact_phones() if phone != user.phone]
        if not recipients:
            logger.info("No other household members to notify")
            return []

        semaphore = asyncio.Semaphore(settings.notification_concurrency)
        results = await asyncio.gather(
            *(_notify_one(phone=phone, text=text, semaphore=semaphore) for phone in recipients)
        )

        logger.info(
            "Sent %d notifications (%d successful, %d failed)",
            len(results),
            sum(1 for r in results if r.success),
            sum(1 for r in results if not r.success),
        )
        return list(results)


async def broadcast_all(*, user: UserContext, actions: list[Action]) -> list[NotificationResult]:
    """Broadcast each action of a turn in the order it happened."""
    results: list[NotificationResult] = []
    for action in actions:
        results.extend(await broadcast(user=user, action=action))
    return results
