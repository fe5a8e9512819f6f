"""Registry of the tools the model may call.

Every tool takes a pydantic parameter model plus the resolved sender and
returns a ToolResult; tools never raise. Names outside the registry resolve
to ``ToolKind.UNKNOWN`` and produce an error result the model can recover
from.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError
from pydantic_ai.tools import ToolDefinition

from src.agents.tools import pantry_tools, schedule_tools, shopping_tools
from src.domain.action import Action, ToolKind, ToolResult
from src.domain.user import UserContext


logger = logging.getLogger(__name__)

FUNCTION_NOT_FOUND = "Function not found"

ToolHandler = Callable[[Any, UserContext], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolSpec:
    """Schema, handler, and side-effect flag for one tool."""

    kind: ToolKind
    params_model: type[BaseModel]
    description: str
    handler: ToolHandler
    mutating: bool


TOOLS: dict[ToolKind, ToolSpec] = {
    ToolKind.SCHEDULE_EVENT: ToolSpec(
        kind=ToolKind.SCHEDULE_EVENT,
        params_model=schedule_tools.AddScheduleEvent,
        description="Add an event to the shared family schedule.",
        handler=schedule_tools.tool_schedule_event,
        mutating=True,
    ),
    ToolKind.UPDATE_PANTRY_STATUS: ToolSpec(
        kind=ToolKind.UPDATE_PANTRY_STATUS,
        params_model=pantry_tools.UpdatePantryStatus,
        description="Set a pantry item's status to in-stock, low, or finished.",
        handler=pantry_tools.tool_update_pantry_status,
        mutating=True,
    ),
    ToolKind.ADD_SHOPPING_ITEM: ToolSpec(
        kind=ToolKind.ADD_SHOPPING_ITEM,
        params_model=shopping_tools.AddShoppingItem,
        description="Add an item to a shopping list. Only pass list_name when the user names a list.",
        handler=shopping_tools.tool_add_shopping_item,
        mutating=True,
    ),
    ToolKind.GET_SCHEDULE: ToolSpec(
        kind=ToolKind.GET_SCHEDULE,
        params_model=schedule_tools.GetSchedule,
        description="List family schedule events between two ISO-8601 dates.",
        handler=schedule_tools.tool_get_schedule,
        mutating=False,
    ),
    ToolKind.GET_PANTRY: ToolSpec(
        kind=ToolKind.GET_PANTRY,
        params_model=pantry_tools.GetPantry,
        description="List pantry items and their status, optionally only one status.",
        handler=pantry_tools.tool_get_pantry,
        mutating=False,
    ),
    ToolKind.GET_SHOPPING_LIST: ToolSpec(
        kind=ToolKind.GET_SHOPPING_LIST,
        params_model=shopping_tools.GetShoppingList,
        description="Show unbought shopping items grouped by list.",
        handler=shopping_tools.tool_get_shopping_list,
        mutating=False,
    ),
}


def get_tool_definitions() -> list[ToolDefinition]:
    """Function schemas advertised to the model."""
    return [
        ToolDefinition(
            name=spec.kind.value,
            description=spec.description,
            parameters_json_schema=spec.params_model.model_json_schema(),
        )
        for spec in TOOLS.values()
    ]


def _parse_args(raw_args: str | dict[str, Any] | None) -> dict[str, Any]:
    if raw_args is None or raw_args == "":
        return {}
    if isinstance(raw_args, dict):
        return raw_args
    parsed = json.loads(raw_args)
    if not isinstance(parsed, dict):
        msg = "Tool arguments must be a JSON object"
        raise ValueError(msg)
    return parsed


async def execute_tool(
    *,
    name: str,
    raw_args: str | dict[str, Any] | None,
    user: UserContext,
) -> tuple[ToolResult, Action | None]:
    """Validate and run one tool call on behalf of the sender.

    The acting identity always comes from ``user``; the model cannot
    override it through arguments.

    Args:
        name: Tool name chosen by the model
        raw_args: Arguments as a JSON string or dict
        user: Resolved sender

    Returns:
        Tuple of (result for the model, action to broadcast or None)
    """
    kind = ToolKind.from_name(name)
    spec = TOOLS.get(kind)
    if spec is None:
        logger.warning("Model called unknown tool", extra={"tool": name})
        return ToolResult.fail(FUNCTION_NOT_FOUND), None

    try:
        params = spec.params_model.model_validate(_parse_args(raw_args))
    except (ValidationError, ValueError) as e:
        logger.warning("Invalid tool arguments", extra={"tool": name, "error": str(e)})
        return ToolResult.fail(f"Invalid arguments for {name}: {e}"), None

    logger.info("Executing tool", extra={"tool": name, "acting_id": user.acting_id})
    result = await spec.handler(params, user)

    if not (spec.mutating and result.success):
        return result, None

    action = Action(kind=kind, arguments=params.model_dump(mode="json"), result=result)
    return result, action
