"""Tool dispatch domain models and enums."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from src.domain.user import UserContext


class ToolKind(StrEnum):
    """Closed set of tools the model may call."""

    SCHEDULE_EVENT = "schedule_event"
    UPDATE_PANTRY_STATUS = "update_pantry_status"
    ADD_SHOPPING_ITEM = "add_shopping_item"
    GET_SCHEDULE = "get_schedule"
    GET_PANTRY = "get_pantry"
    GET_SHOPPING_LIST = "get_shopping_list"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str) -> "ToolKind":
        """Map a model-supplied tool name to a kind, never raising."""
        try:
            kind = cls(name)
        except ValueError:
            return cls.UNKNOWN
        return kind


class ToolResult(BaseModel):
    """Uniform outcome of a tool invocation."""

    success: bool
    message: str | None = Field(default=None, description="Human-readable summary for the model")
    error: str | None = Field(default=None, description="Error description when success is False")
    data: dict[str, Any] = Field(default_factory=dict, description="Structured details (ids, resolved names)")

    @classmethod
    def ok(cls, message: str, **data: Any) -> "ToolResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def to_model_content(self) -> dict[str, Any]:
        """Payload returned to the model as the function response."""
        if not self.success:
            return {"success": False, "error": self.error}
        content: dict[str, Any] = {"success": True, "message": self.message}
        if self.data:
            content["data"] = self.data
        return content


class Action(BaseModel):
    """Successful state change made during a turn, consumed by notification fan-out."""

    kind: ToolKind
    arguments: dict[str, Any] = Field(default_factory=dict, description="Validated tool arguments")
    result: ToolResult


class DispatchState(StrEnum):
    """Conversation dispatcher lifecycle."""

    IDLE = "idle"
    AWAITING_MODEL_RESPONSE = "awaiting_model_response"
    EXECUTING_TOOL = "executing_tool"
    AWAITING_FINAL_REPLY = "awaiting_final_reply"
    DONE = "done"
    FAILED = "failed"


class DispatchResult(BaseModel):
    """Reply text plus every action performed while producing it."""

    reply_text: str
    actions: list[Action] = Field(default_factory=list)
    state: DispatchState = DispatchState.DONE
    user: UserContext | None = Field(default=None, description="Resolved sender, when resolution succeeded")

    @property
    def action(self) -> Action | None:
        """Most recent action of the turn, if any."""
        return self.actions[-1] if self.actions else None
