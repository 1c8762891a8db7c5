"""Tool registry and dispatch.

``dispatch`` never raises for tool-level problems: unknown names, invalid
arguments and failed executions all come back as JSON-ready payloads, so
the orchestrator can hand them to the model as tool output.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from src.services.invoker import FitnessAPIError
from src.services.slot_store import DomainError

logger = logging.getLogger(__name__)

ToolResult = dict[str, Any]

UNKNOWN_TOOL: ToolResult = {"error": "Unknown tool"}


@dataclass(frozen=True)
class ToolSpec:
    """A declared tool: its validated argument model and implementation."""

    name: str
    description: str
    args_model: type[BaseModel]
    handler: Callable[[Any], ToolResult]

    def schema(self) -> dict[str, Any]:
        """Tool declaration in the ``name/description/parameters`` format."""
        params = self.args_model.model_json_schema(by_alias=True)
        params.pop("title", None)
        for prop in params.get("properties", {}).values():
            prop.pop("title", None)
        return {"name": self.name, "description": self.description, "parameters": params}


class ToolDispatcher:
    def __init__(self, tools: list[ToolSpec] | None = None) -> None:
        self._registry: dict[str, ToolSpec] = {}
        for spec in tools or []:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._registry:
            raise ValueError(f"Tool {spec.name!r} is already registered")
        self._registry[spec.name] = spec

    @property
    def names(self) -> list[str]:
        return list(self._registry)

    def schemas(self) -> list[dict[str, Any]]:
        return [spec.schema() for spec in self._registry.values()]

    def dispatch(self, tool_name: str, raw_args: dict[str, Any] | None) -> ToolResult:
        """Validate *raw_args* and run *tool_name* exactly once."""
        spec = self._registry.get(tool_name)
        if spec is None:
            logger.warning("Model requested unknown tool %r", tool_name)
            return dict(UNKNOWN_TOOL)

        try:
            args = spec.args_model.model_validate(raw_args or {})
        except ValidationError as exc:
            details = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in exc.errors()
            ]
            logger.info("Invalid arguments for %s: %s", tool_name, details)
            return {"error": "Invalid arguments", "tool": tool_name, "details": details}

        logger.info("Dispatching tool %s(%s)", tool_name, args)
        try:
            return spec.handler(args)
        except DomainError as exc:
            return {"success": False, "error": str(exc), "slotId": exc.slot_id}
        except FitnessAPIError as exc:
            logger.error("Tool %s failed against the booking service: %s", tool_name, exc)
            return {
                "success": False,
                "error": "Booking service unavailable",
                "detail": str(exc),
                "statusCode": exc.status_code,
            }
        except Exception:
            logger.exception("Tool %s raised unexpectedly", tool_name)
            return {"success": False, "error": "Tool execution failed"}
