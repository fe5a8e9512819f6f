"""Pantry management tools for the hearth agent."""

import logging

import logfire
from pydantic import BaseModel, Field, field_validator

from src.domain.action import ToolResult
from src.domain.pantry import PantryStatus
from src.domain.user import UserContext
from src.services import pantry_service


logger = logging.getLogger(__name__)


class UpdatePantryStatus(BaseModel):
    """Parameters for setting a pantry item's stock status."""

    item: str = Field(description="Name of the item (e.g., 'milk', 'eggs')", min_length=1)
    status: PantryStatus = Field(description="'in-stock', 'low', or 'finished'")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: object) -> object:
        if isinstance(v, str):
            return PantryStatus.parse(v)
        return v


class GetPantry(BaseModel):
    """Parameters for reading the pantry."""

    status: PantryStatus | None = Field(default=None, description="Only list items with this status")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: object) -> object:
        if isinstance(v, str) and v.strip():
            return PantryStatus.parse(v)
        return None if v == "" else v


async def tool_update_pantry_status(params: UpdatePantryStatus, user: UserContext) -> ToolResult:
    """
    Record whether a pantry item is in stock, running low, or finished.

    Use when a user says things like:
    - "We're out of milk"
    - "Running low on eggs"
    - "Bought more coffee"

    Finished items are also put on the shopping list.

    Args:
        params: Item and new status
        user: Resolved sender; the pantry is scoped to their acting ID

    Returns:
        ToolResult describing the update
    """
    try:
        with logfire.span("tool_update_pantry_status", item=params.item, status=str(params.status)):
            update = await pantry_service.set_status(
                owner_id=user.acting_id,
                item_name=params.item,
                status=params.status,
            )
    except (RuntimeError, KeyError, ValueError, ConnectionError) as e:
        logger.error("Failed to update pantry", extra={"error": str(e), "item": params.item})
        return ToolResult.fail(f"Unable to update the pantry. {e!s}")

    data = {"item": update.item.item, "status": str(update.item.status)}
    message = f"Updated '{update.item.item}' to {update.item.status}."

    # The status write is already committed; a failed restock does not undo it
    try:
        restock = await pantry_service.restock_if_finished(update=update)
    except (RuntimeError, KeyError, ValueError, ConnectionError) as e:
        logger.error("Failed to restock finished item", extra={"error": str(e), "item": update.item.item})
        return ToolResult.ok(message, **data)

    if restock and not restock.duplicate:
        data["added_to_list"] = restock.shopping_list.name
        message += f" Added it to the {restock.shopping_list.name} list."

    return ToolResult.ok(message, **data)


async def tool_get_pantry(params: GetPantry, user: UserContext) -> ToolResult:
    """
    List pantry items and their status.

    Use when a user asks "What are we low on?" or "Do we have eggs?".
    """
    try:
        with logfire.span("tool_get_pantry"):
            items = await pantry_service.get_pantry(owner_id=user.acting_id, status=params.status)
            if not items:
                return ToolResult.ok("The pantry has no matching items.", items=[])

            return ToolResult.ok(
                f"Found {len(items)} pantry item(s).",
                items=[{"item": i.item, "status": str(i.status)} for i in items],
            )
    except (RuntimeError, KeyError, ValueError, ConnectionError) as e:
        logger.error("Failed to read pantry", extra={"error": str(e)})
        return ToolResult.fail(f"Unable to read the pantry. {e!s}")
