"""Pantry service for household inventory status."""

import logging
from datetime import UTC, datetime

from src.core import db_client
from src.core.config import constants, settings
from src.core.db_client import sanitize_param
from src.core.logging import span
from src.domain.pantry import PantryItem, PantryStatus, PantryUpdate
from src.domain.shopping import ShoppingAddResult
from src.services import shopping_service


logger = logging.getLogger(__name__)


async def set_status(
    *,
    owner_id: str,
    item_name: str,
    status: PantryStatus,
    updated_by: str | None = None,
) -> PantryUpdate:
    """Create or overwrite the stock status of a pantry item.

    Items are matched by exact (case-sensitive) name within the household;
    the first match is updated, otherwise a new record is created.

    Args:
        owner_id: Household scope (acting user ID)
        item_name: Item name
        status: New stock status
        updated_by: User ID recorded as the last editor (defaults to owner_id)

    Returns:
        PantryUpdate with the stored item and its previous status
    """
    with span("pantry_service.set_status", item=item_name, status=str(status)):
        name = item_name.strip()
        if not name:
            msg = "Item name cannot be empty"
            raise ValueError(msg)

        data = {
            "status": status,
            "updated_by": updated_by or owner_id,
            "updated_at": datetime.now(UTC).isoformat(),
        }

        async with db_client.atomic():
            existing = await db_client.get_first_record(
                collection="pantry",
                filter_query=f'owner_id = "{sanitize_param(owner_id)}" && item = "{sanitize_param(name)}"',
            )
            if existing:
                previous = PantryStatus(existing["status"])
                record = await db_client.update_record(collection="pantry", record_id=existing["id"], data=data)
            else:
                previous = None
                record = await db_client.create_record(
                    collection="pantry",
                    data={"item": name, "owner_id": owner_id, **data},
                )

        logger.info(
            "Pantry status updated",
            extra={"item": name, "status": str(status), "previous_status": previous, "owner_id": owner_id},
        )
        return PantryUpdate(item=PantryItem(**record), previous_status=previous, created=existing is None)


async def restock_if_finished(*, update: PantryUpdate, added_by: str | None = None) -> ShoppingAddResult | None:
    """Put an item on the shopping list when it has just run out.

    Only a transition into ``finished`` triggers the add, so marking an
    already-finished item again does nothing.

    Args:
        update: Result of ``set_status``
        added_by: User ID recorded on the shopping item

    Returns:
        The shopping add result, or None when nothing was added
    """
    if not settings.pantry_auto_restock or not update.became_finished:
        return None

    with span("pantry_service.restock_if_finished", item=update.item.item):
        result = await shopping_service.add_item(
            owner_id=update.item.owner_id,
            item_name=update.item.item,
            added_by=added_by,
            auto_added=True,
        )
        logger.info(
            "Finished pantry item queued for shopping",
            extra={"item": update.item.item, "list": result.shopping_list.name, "duplicate": result.duplicate},
        )
        return result


async def get_pantry(*, owner_id: str, status: PantryStatus | None = None) -> list[PantryItem]:
    """List the household's pantry items, optionally filtered by status."""
    with span("pantry_service.get_pantry"):
        filter_query = f'owner_id = "{sanitize_param(owner_id)}"'
        if status:
            filter_query += f' && status = "{status}"'

        records = await db_client.list_records(
            collection="pantry",
            filter_query=filter_query,
            sort="item ASC",
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
        )
        return [PantryItem(**record) for record in records]
