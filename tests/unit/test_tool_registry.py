"""Unit tests for the tool registry and tool handlers."""

import json
from unittest.mock import AsyncMock

import pytest

from src.agents.tools import registry
from src.agents.tools.registry import FUNCTION_NOT_FOUND, execute_tool, get_tool_definitions
from src.domain.action import ToolKind
from src.domain.pantry import PantryStatus
from src.services import shopping_service


@pytest.mark.unit
class TestToolDefinitions:
    """Tests for the schemas advertised to the model."""

    def test_every_tool_is_advertised(self):
        names = {definition.name for definition in get_tool_definitions()}

        assert names == {kind.value for kind in ToolKind if kind != ToolKind.UNKNOWN}

    def test_schedule_event_schema(self):
        definition = next(d for d in get_tool_definitions() if d.name == "schedule_event")
        schema = definition.parameters_json_schema

        assert set(schema["required"]) == {"title", "date"}
        assert "recurrence_rule" in schema["properties"]

    def test_acting_identity_is_not_a_parameter(self):
        for definition in get_tool_definitions():
            properties = definition.parameters_json_schema.get("properties", {})
            assert not {"owner_id", "user_id", "created_by", "acting_id"} & set(properties)


@pytest.mark.unit
class TestExecuteTool:
    """Tests for execute_tool."""

    async def test_unknown_tool(self, alice):
        result, action = await execute_tool(name="delete_everything", raw_args="{}", user=alice)

        assert result.success is False
        assert result.error == FUNCTION_NOT_FOUND
        assert action is None

    async def test_invalid_json_arguments(self, alice):
        result, action = await execute_tool(name="add_shopping_item", raw_args="{not json", user=alice)

        assert result.success is False
        assert "Invalid arguments" in result.error
        assert action is None

    async def test_missing_required_argument(self, alice):
        result, action = await execute_tool(name="update_pantry_status", raw_args={"item": "Milk"}, user=alice)

        assert result.success is False
        assert "Invalid arguments" in result.error
        assert action is None

    async def test_unknown_pantry_status(self, alice):
        result, _ = await execute_tool(
            name="update_pantry_status", raw_args={"item": "Milk", "status": "plenty"}, user=alice
        )

        assert result.success is False

    async def test_schedule_event_records_action(self, sqlite_db, alice):
        result, action = await execute_tool(
            name="schedule_event",
            raw_args=json.dumps({"title": "Dentist", "date": "2026-03-14T15:30:00Z"}),
            user=alice,
        )

        assert result.success is True
        assert result.data["title"] == "Dentist"
        assert result.data["date"] == "2026-03-14T15:30:00+00:00"
        assert action is not None
        assert action.kind == ToolKind.SCHEDULE_EVENT
        assert action.arguments["title"] == "Dentist"

    async def test_event_is_created_under_acting_id(self, sqlite_db, alice):
        await execute_tool(
            name="schedule_event",
            raw_args={"title": "Dentist", "date": "2026-03-14", "created_by": "999"},
            user=alice,
        )

        result, _ = await execute_tool(
            name="get_schedule", raw_args={"start": "2026-03-14", "end": "2026-03-14"}, user=alice
        )

        assert [e["title"] for e in result.data["events"]] == ["Dentist"]

    async def test_pantry_finished_adds_to_shopping_list(self, sqlite_db, alice):
        result, action = await execute_tool(
            name="update_pantry_status", raw_args={"item": "Milk", "status": "Out"}, user=alice
        )
        shopping = await shopping_service.get_unbought_items(owner_id=alice.acting_id)

        assert result.success is True
        assert result.data["status"] == PantryStatus.FINISHED
        assert result.data["added_to_list"] == "General"
        assert action is not None
        assert [i.name for i in shopping["General"]] == ["Milk"]

    async def test_failed_restock_keeps_pantry_update(self, sqlite_db, alice, monkeypatch):
        monkeypatch.setattr(
            "src.services.shopping_service.add_item", AsyncMock(side_effect=RuntimeError("database is locked"))
        )

        result, action = await execute_tool(
            name="update_pantry_status", raw_args={"item": "olive oil", "status": "finished"}, user=alice
        )
        pantry, _ = await execute_tool(name="get_pantry", raw_args=None, user=alice)

        assert result.success is True
        assert result.data == {"item": "olive oil", "status": "finished"}
        assert action is not None
        assert action.kind == ToolKind.UPDATE_PANTRY_STATUS
        assert pantry.data["items"] == [{"item": "olive oil", "status": "finished"}]

    async def test_add_shopping_item(self, sqlite_db, alice):
        result, action = await execute_tool(
            name="add_shopping_item", raw_args={"item": "Batteries", "list_name": "Costco"}, user=alice
        )

        assert result.success is True
        assert result.data == {"item": "Batteries", "list_name": "Costco", "duplicate": False}
        assert action is not None
        assert action.kind == ToolKind.ADD_SHOPPING_ITEM

    async def test_duplicate_shopping_item_is_reported(self, sqlite_db, alice):
        await execute_tool(name="add_shopping_item", raw_args={"item": "Milk"}, user=alice)

        result, action = await execute_tool(name="add_shopping_item", raw_args={"item": "Milk"}, user=alice)

        assert result.success is True
        assert result.data["duplicate"] is True
        assert "already" in result.message
        assert action is not None

    async def test_read_tools_produce_no_action(self, sqlite_db, alice):
        await execute_tool(name="add_shopping_item", raw_args={"item": "Milk"}, user=alice)

        result, action = await execute_tool(name="get_shopping_list", raw_args=None, user=alice)

        assert result.success is True
        assert result.data["lists"] == {"General": ["Milk"]}
        assert action is None

    async def test_get_pantry_with_status_filter(self, sqlite_db, alice):
        await execute_tool(name="update_pantry_status", raw_args={"item": "Eggs", "status": "low"}, user=alice)
        await execute_tool(name="update_pantry_status", raw_args={"item": "Rice", "status": "in-stock"}, user=alice)

        result, _ = await execute_tool(name="get_pantry", raw_args={"status": "low"}, user=alice)

        assert result.data["items"] == [{"item": "Eggs", "status": "low"}]

    async def test_service_failure_becomes_error_result(self, alice, monkeypatch):
        monkeypatch.setattr(
            "src.services.schedule_service.add_event", AsyncMock(side_effect=RuntimeError("database is locked"))
        )

        result, action = await execute_tool(
            name="schedule_event", raw_args={"title": "Dentist", "date": "2026-03-14"}, user=alice
        )

        assert result.success is False
        assert "database is locked" in result.error
        assert action is None
        assert result.to_model_content() == {"success": False, "error": result.error}

    def test_registry_covers_every_kind(self):
        assert set(registry.TOOLS) == {kind for kind in ToolKind if kind != ToolKind.UNKNOWN}
