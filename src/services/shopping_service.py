"""Shopping list service with smart list classification."""

import logging
from datetime import UTC, datetime
from typing import Any

from src.core import db_client
from src.core.config import constants, settings
from src.core.db_client import sanitize_param
from src.core.logging import span
from src.domain.shopping import (
    ItemClassification,
    ListItem,
    ShoppingAddResult,
    ShoppingList,
    normalize_item_name,
)


logger = logging.getLogger(__name__)


async def find_list(*, owner_id: str, name: str) -> ShoppingList | None:
    """Find one of the owner's lists by name.

    An exact match wins; otherwise the first case-insensitive match is used.
    """
    exact = await db_client.get_first_record(
        collection="lists",
        filter_query=f'owner_id = "{sanitize_param(owner_id)}" && name = "{sanitize_param(name)}"',
    )
    if exact:
        return ShoppingList(**exact)

    wanted = normalize_item_name(name)
    for record in await get_lists(owner_id=owner_id):
        if normalize_item_name(record.name) == wanted:
            return record
    return None


async def get_lists(*, owner_id: str) -> list[ShoppingList]:
    """Return all of the owner's lists, oldest first."""
    records = await db_client.list_records(
        collection="lists",
        filter_query=f'owner_id = "{sanitize_param(owner_id)}"',
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [ShoppingList(**record) for record in records]


async def get_or_create_list(*, owner_id: str, name: str) -> ShoppingList:
    """Return the owner's list with this name, creating it if needed."""
    existing = await find_list(owner_id=owner_id, name=name)
    if existing:
        return existing

    record = await db_client.create_record(
        collection="lists",
        data={"name": name.strip(), "owner_id": owner_id},
    )
    logger.info("Created shopping list", extra={"owner_id": owner_id, "list_name": name})
    return ShoppingList(**record)


async def _get_classification(*, owner_id: str, normalized_name: str) -> ItemClassification | None:
    record = await db_client.get_first_record(
        collection="item_classifications",
        filter_query=(
            f'user_id = "{sanitize_param(owner_id)}" && normalized_name = "{sanitize_param(normalized_name)}"'
        ),
    )
    return ItemClassification(**record) if record else None


async def _remember_classification(
    *,
    owner_id: str,
    normalized_name: str,
    target: ShoppingList,
    existing: ItemClassification | None,
) -> None:
    """Upsert the learned list for an item name."""
    data = {"list_id": target.id, "list_name": target.name}
    if existing is None:
        await db_client.create_record(
            collection="item_classifications",
            data={"user_id": owner_id, "normalized_name": normalized_name, **data},
        )
    elif existing.list_id != target.id or existing.list_name != target.name:
        await db_client.update_record(collection="item_classifications", record_id=existing.id, data=data)


async def _resolve_target_list(
    *,
    owner_id: str,
    normalized_name: str,
    list_name: str | None,
) -> tuple[ShoppingList, bool]:
    """Pick the list an item goes on and keep the classification log current.

    Returns:
        Tuple of (target list, whether the learned list was reused)
    """
    classification = await _get_classification(owner_id=owner_id, normalized_name=normalized_name)

    if list_name and list_name.strip():
        target = await get_or_create_list(owner_id=owner_id, name=list_name)
        await _remember_classification(
            owner_id=owner_id, normalized_name=normalized_name, target=target, existing=classification
        )
        return target, False

    if classification:
        try:
            record = await db_client.get_record(collection="lists", record_id=classification.list_id)
        except KeyError:
            record = None
        if record and record["owner_id"] == owner_id:
            return ShoppingList(**record), True

        # Learned list was deleted; fall back without forgetting the old entry
        logger.info(
            "Learned list no longer exists, using default list",
            extra={"owner_id": owner_id, "item": normalized_name, "stale_list_id": classification.list_id},
        )
        target = await get_or_create_list(owner_id=owner_id, name=settings.default_list_name)
        return target, False

    target = await get_or_create_list(owner_id=owner_id, name=settings.default_list_name)
    await _remember_classification(owner_id=owner_id, normalized_name=normalized_name, target=target, existing=None)
    return target, False


async def add_item(
    *,
    owner_id: str,
    item_name: str,
    added_by: str | None = None,
    list_name: str | None = None,
    quantity: int | None = None,
    auto_added: bool = False,
) -> ShoppingAddResult:
    """Add an item to a shopping list, learning which list it belongs on.

    Without an explicit list, an item goes on the list it was last filed
    under for this household; items never seen before go on the default
    list ("General"). An unbought item with the same name already on the
    target list is left alone and reported as a duplicate.

    Args:
        owner_id: Household scope (acting user ID)
        item_name: Item name as the user wrote it
        added_by: User ID recorded on the item (defaults to owner_id)
        list_name: Explicit list to use, created if it does not exist
        quantity: Optional quantity to buy
        auto_added: True when the pantry triggered the add

    Returns:
        ShoppingAddResult describing where the item went

    Raises:
        ValueError: If the item name is blank
    """
    with span("shopping_service.add_item", item=item_name):
        name = " ".join(item_name.split())
        if not name:
            msg = "Item name cannot be empty"
            raise ValueError(msg)
        normalized = normalize_item_name(name)

        async with db_client.atomic():
            target, from_history = await _resolve_target_list(
                owner_id=owner_id, normalized_name=normalized, list_name=list_name
            )

            existing = await db_client.get_first_record(
                collection="items",
                filter_query=(
                    f'list_id = "{sanitize_param(target.id)}" && name = "{sanitize_param(name)}" && is_bought = false'
                ),
            )
            if existing:
                logger.info("Item already on list", extra={"item": name, "list_id": target.id})
                return ShoppingAddResult(
                    item=ListItem(**existing),
                    shopping_list=target,
                    duplicate=True,
                    classified_from_history=from_history,
                )

            data: dict[str, Any] = {
                "list_id": target.id,
                "name": name,
                "is_bought": False,
                "added_by": added_by or owner_id,
                "added_at": datetime.now(UTC).isoformat(),
                "auto_added": auto_added,
            }
            if quantity is not None:
                data["quantity"] = quantity
            record = await db_client.create_record(collection="items", data=data)

        logger.info(
            "Added item to shopping list",
            extra={"item": name, "list_id": target.id, "owner_id": owner_id, "auto_added": auto_added},
        )
        return ShoppingAddResult(item=ListItem(**record), shopping_list=target, classified_from_history=from_history)


async def get_unbought_items(*, owner_id: str, list_name: str | None = None) -> dict[str, list[ListItem]]:
    """Return unbought items grouped by list name.

    Args:
        owner_id: Household scope (acting user ID)
        list_name: Restrict to one list (exact, then case-insensitive match)

    Returns:
        Mapping of list name to its unbought items; empty if the named list does not exist
    """
    with span("shopping_service.get_unbought_items"):
        if list_name:
            found = await find_list(owner_id=owner_id, name=list_name)
            lists = [found] if found else []
        else:
            lists = await get_lists(owner_id=owner_id)

        grouped: dict[str, list[ListItem]] = {}
        for shopping_list in lists:
            records = await db_client.list_records(
                collection="items",
                filter_query=f'list_id = "{sanitize_param(shopping_list.id)}" && is_bought = false',
                per_page=constants.DEFAULT_PER_PAGE_LIMIT,
            )
            if records:
                grouped[shopping_list.name] = [ListItem(**record) for record in records]

        return grouped
