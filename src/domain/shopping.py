"""Shopping list domain models."""

from pydantic import BaseModel, Field


def normalize_item_name(name: str) -> str:
    """Key used to remember which list an item belongs to ("  Oat  Milk " -> "oat milk")."""
    return " ".join(name.split()).casefold()


class ShoppingList(BaseModel):
    """Named shopping list within a household."""

    id: str = Field(..., description="Unique list ID")
    name: str = Field(..., description="List name (e.g., 'General', 'Costco')")
    owner_id: str = Field(..., description="Household scope (acting user ID)")


class ListItem(BaseModel):
    """Item on a shopping list."""

    id: str = Field(..., description="Unique item ID")
    list_id: str = Field(..., description="List the item belongs to")
    name: str = Field(..., description="Item name as the user wrote it")
    is_bought: bool = Field(default=False, description="Whether the item has been purchased")
    quantity: int | None = Field(default=None, description="Quantity to buy")
    added_by: str | None = Field(default=None, description="User ID that added the item")
    added_at: str | None = Field(default=None, description="When the item was added (ISO format)")
    auto_added: bool = Field(default=False, description="True when added because the pantry ran out")


class ItemClassification(BaseModel):
    """Learned mapping from an item name to the list it usually goes on."""

    id: str
    user_id: str
    normalized_name: str
    list_id: str
    list_name: str


class ShoppingAddResult(BaseModel):
    """Outcome of adding an item to a shopping list."""

    item: ListItem
    shopping_list: ShoppingList
    duplicate: bool = Field(default=False, description="True when an unbought item with this name already existed")
    classified_from_history: bool = Field(default=False, description="True when a learned list was reused")
