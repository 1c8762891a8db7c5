"""Tests for the ToolDispatcher and the schedule tools."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from src.services.invoker import ExhaustedRetriesError, TransientNetworkError
from src.tools.dispatcher import ToolDispatcher, ToolSpec
from src.tools.schedule import BookSlotArgs, build_dispatcher


@pytest.fixture
def dispatcher(store) -> ToolDispatcher:
    return build_dispatcher(store)


# ── Tests: registry and schemas ──────────────────────────────────────


class TestRegistry:
    def test_registers_schedule_tools(self, dispatcher):
        assert dispatcher.names == ["get_schedule", "book_slot"]

    def test_schemas_declare_required_parameters(self, dispatcher):
        schemas = {s["name"]: s for s in dispatcher.schemas()}
        assert schemas["get_schedule"]["parameters"]["required"] == ["date"]
        book = schemas["book_slot"]["parameters"]
        assert set(book["required"]) == {"slotId", "clientName"}
        assert book["properties"]["slotId"]["type"] == "string"
        assert "description" in schemas["book_slot"]

    def test_duplicate_registration_rejected(self, dispatcher):
        spec = ToolSpec("get_schedule", "dup", BookSlotArgs, lambda args: {})
        with pytest.raises(ValueError):
            dispatcher.register(spec)


# ── Tests: dispatch ──────────────────────────────────────────────────


class TestDispatch:
    def test_unknown_tool_returns_structured_error(self, dispatcher):
        assert dispatcher.dispatch("delete_everything", {"all": True}) == {"error": "Unknown tool"}

    def test_get_schedule_returns_slots(self, dispatcher):
        result = dispatcher.dispatch("get_schedule", {"date": "2026-10-20"})
        assert result["date"] == "2026-10-20"
        assert [s["id"] for s in result["slots"]] == [
            "2026-10-20-0900", "2026-10-20-1100", "2026-10-20-1400",
        ]
        assert result["slots"][2]["status"] == "FULL"
        assert "2 of 3" in result["message"]

    def test_get_schedule_empty_day(self, dispatcher):
        result = dispatcher.dispatch("get_schedule", {"date": "2030-01-01"})
        assert result["slots"] == []
        assert "No classes" in result["message"]

    def test_book_slot_success(self, dispatcher, store):
        result = dispatcher.dispatch(
            "book_slot", {"slotId": "2026-10-20-0900", "clientName": "Ada"},
        )
        assert result["success"] is True
        assert result["slot"]["bookedCount"] == 4
        assert store.get("2026-10-20-0900").booked_count == 4

    def test_book_slot_at_capacity_is_data(self, dispatcher, store):
        result = dispatcher.dispatch(
            "book_slot", {"slotId": "2026-10-20-1400", "clientName": "Ada"},
        )
        assert result == {
            "success": False,
            "error": "Slot is fully booked",
            "slotId": "2026-10-20-1400",
        }
        assert store.get("2026-10-20-1400").booked_count == 5

    def test_book_slot_not_found_is_data(self, dispatcher):
        result = dispatcher.dispatch("book_slot", {"slotId": "nope", "clientName": "Ada"})
        assert result["success"] is False
        assert result["error"] == "Slot not found"


class TestArgumentValidation:
    def test_missing_required_argument(self, dispatcher):
        result = dispatcher.dispatch("book_slot", {"slotId": "2026-10-20-0900"})
        assert result["error"] == "Invalid arguments"
        assert result["tool"] == "book_slot"
        assert [d["field"] for d in result["details"]] == ["clientName"]

    def test_wrong_type_rejected(self, dispatcher, store):
        result = dispatcher.dispatch("book_slot", {"slotId": 1100, "clientName": "Ada"})
        assert result["error"] == "Invalid arguments"
        assert store.get("2026-10-20-1100").booked_count == 0

    def test_blank_name_rejected(self, dispatcher):
        result = dispatcher.dispatch("book_slot", {"slotId": "2026-10-20-0900", "clientName": "  "})
        assert result["error"] == "Invalid arguments"

    def test_bad_date_format_rejected(self, dispatcher):
        result = dispatcher.dispatch("get_schedule", {"date": "tomorrow"})
        assert result["error"] == "Invalid arguments"
        assert result["details"][0]["field"] == "date"

    def test_none_args_treated_as_empty(self, dispatcher):
        result = dispatcher.dispatch("get_schedule", None)
        assert result["error"] == "Invalid arguments"


class TestExecutionFailures:
    class _Args(BaseModel):
        x: str

    def test_handler_called_exactly_once(self):
        handler = MagicMock(return_value={"ok": True})
        dispatcher = ToolDispatcher([ToolSpec("t", "test", self._Args, handler)])
        assert dispatcher.dispatch("t", {"x": "1"}) == {"ok": True}
        handler.assert_called_once()

    def test_remote_failure_becomes_payload(self):
        err = ExhaustedRetriesError(3, TransientNetworkError("Server error 503", status_code=503))
        handler = MagicMock(side_effect=err)
        dispatcher = ToolDispatcher([ToolSpec("t", "test", self._Args, handler)])

        result = dispatcher.dispatch("t", {"x": "1"})
        assert result["success"] is False
        assert result["statusCode"] == 503
        handler.assert_called_once()

    def test_unexpected_exception_becomes_payload(self):
        handler = MagicMock(side_effect=RuntimeError("boom"))
        dispatcher = ToolDispatcher([ToolSpec("t", "test", self._Args, handler)])
        assert dispatcher.dispatch("t", {"x": "1"}) == {
            "success": False,
            "error": "Tool execution failed",
        }
