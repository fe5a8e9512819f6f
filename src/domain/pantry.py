"""Pantry domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class PantryStatus(StrEnum):
    """Pantry item stock status."""

    IN_STOCK = "in-stock"
    LOW = "low"
    FINISHED = "finished"

    @classmethod
    def parse(cls, raw: str) -> "PantryStatus":
        """Parse a loosely spelled status ("In Stock", "FINISHED", "out").

        Raises:
            ValueError: If the value does not name a known status
        """
        key = raw.strip().lower().replace("_", "-").replace(" ", "-")
        aliases = {
            "in-stock": cls.IN_STOCK,
            "instock": cls.IN_STOCK,
            "stocked": cls.IN_STOCK,
            "have": cls.IN_STOCK,
            "low": cls.LOW,
            "running-low": cls.LOW,
            "finished": cls.FINISHED,
            "out": cls.FINISHED,
            "out-of-stock": cls.FINISHED,
            "empty": cls.FINISHED,
        }
        if key not in aliases:
            msg = f"Unknown pantry status '{raw}'. Use one of: in-stock, low, finished"
            raise ValueError(msg)
        return aliases[key]


class PantryItem(BaseModel):
    """Pantry item data transfer object."""

    id: str = Field(..., description="Unique item ID")
    item: str = Field(..., description="Item name (e.g., 'Milk', 'Eggs')")
    status: PantryStatus = Field(default=PantryStatus.IN_STOCK, description="Stock status")
    owner_id: str = Field(..., description="Household scope (acting user ID)")
    updated_by: str | None = Field(default=None, description="User ID that last changed the status")
    updated_at: str | None = Field(default=None, description="When the status last changed (ISO format)")


class PantryUpdate(BaseModel):
    """Outcome of a pantry status write."""

    item: PantryItem
    previous_status: PantryStatus | None = Field(default=None, description="Status before the write, if any")
    created: bool = Field(default=False, description="True when the pantry record did not exist")

    @property
    def became_finished(self) -> bool:
        return self.item.status == PantryStatus.FINISHED and self.previous_status != PantryStatus.FINISHED
