"""Shopping list tools for the hearth agent."""

import logging

import logfire
from pydantic import BaseModel, Field

from src.domain.action import ToolResult
from src.domain.user import UserContext
from src.services import shopping_service


logger = logging.getLogger(__name__)


class AddShoppingItem(BaseModel):
    """Parameters for adding an item to a shopping list."""

    item: str = Field(description="Name of the item to add (e.g., 'milk', 'AA batteries')", min_length=1)
    list_name: str | None = Field(
        default=None,
        description="List to use, only when the user names one. Otherwise the item's usual list is picked.",
    )
    quantity: int | None = Field(default=None, ge=1, description="Optional quantity to buy")


class GetShoppingList(BaseModel):
    """Parameters for reading shopping lists."""

    list_name: str | None = Field(default=None, description="Only show this list")


async def tool_add_shopping_item(params: AddShoppingItem, user: UserContext) -> ToolResult:
    """
    Add an item to a shopping list.

    Items go on the list they were filed under before, or the default list if
    they are new. Items already waiting on that list are not added twice.

    Args:
        params: Item, optional list name and quantity
        user: Resolved sender; lists are scoped to their acting ID

    Returns:
        ToolResult naming the list used
    """
    try:
        with logfire.span("tool_add_shopping_item", item=params.item):
            result = await shopping_service.add_item(
                owner_id=user.acting_id,
                item_name=params.item,
                list_name=params.list_name,
                quantity=params.quantity,
            )
            list_name = result.shopping_list.name
            data = {"item": result.item.name, "list_name": list_name, "duplicate": result.duplicate}

            if result.duplicate:
                return ToolResult.ok(f"'{result.item.name}' is already on the {list_name} list.", **data)
            return ToolResult.ok(f"Added '{result.item.name}' to the {list_name} list.", **data)
    except (RuntimeError, KeyError, ValueError, ConnectionError) as e:
        logger.error("Failed to add to shopping list", extra={"error": str(e), "item": params.item})
        return ToolResult.fail(f"Unable to add item to shopping list. {e!s}")


async def tool_get_shopping_list(params: GetShoppingList, user: UserContext) -> ToolResult:
    """
    Show unbought items, grouped by list.

    Use when a user says "What's on the list?" or "I'm at the store".
    """
    try:
        with logfire.span("tool_get_shopping_list"):
            grouped = await shopping_service.get_unbought_items(owner_id=user.acting_id, list_name=params.list_name)
            if not grouped:
                return ToolResult.ok("The shopping list is empty.", lists={})

            return ToolResult.ok(
                f"{sum(len(items) for items in grouped.values())} item(s) to buy.",
                lists={name: [item.name for item in items] for name, items in grouped.items()},
            )
    except (RuntimeError, KeyError, ValueError, ConnectionError) as e:
        logger.error("Failed to read shopping list", extra={"error": str(e)})
        return ToolResult.fail(f"Unable to read the shopping list. {e!s}")
