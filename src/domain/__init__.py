"""Domain models and DTOs."""

from src.domain.action import Action, DispatchResult, DispatchState, ToolKind, ToolResult
from src.domain.buffer import BufferRecord, SettledBurst
from src.domain.pantry import PantryItem, PantryStatus, PantryUpdate
from src.domain.schedule import EventType, ScheduleEvent
from src.domain.shopping import ItemClassification, ListItem, ShoppingAddResult, ShoppingList
from src.domain.user import Collaboration, CollaborationStatus, User, UserContext


__all__ = [
    "Action",
    "BufferRecord",
    "Collaboration",
    "CollaborationStatus",
    "DispatchResult",
    "DispatchState",
    "EventType",
    "ItemClassification",
    "ListItem",
    "PantryItem",
    "PantryStatus",
    "PantryUpdate",
    "ScheduleEvent",
    "SettledBurst",
    "ShoppingAddResult",
    "ShoppingList",
    "ToolKind",
    "ToolResult",
    "User",
    "UserContext",
]
