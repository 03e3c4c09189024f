"""
Tool registry for the agent-facing directory operations.

Tools are `(definition, fn)` pairs; `fn` takes the model's JSON arguments and
returns a JSON-serializable dict carrying `ok`.
"""

from __future__ import annotations

from typing import Any, Callable

from ..observability.logging import get_logger

log = get_logger("tool_registry")

ToolFn = Callable[[dict[str, Any]], dict[str, Any]]


def tool_def(name: str, description: str, parameters: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "description": description,
        "parameters": parameters,
    }


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, tuple[dict[str, Any], ToolFn]] = {}

    def get_tool(self, tool_name: str) -> tuple[dict[str, Any], ToolFn] | None:
        return self._tools.get(tool_name)

    def list_tools(self) -> dict[str, tuple[dict[str, Any], ToolFn]]:
        return dict(self._tools)

    def register_tool(self, name: str, definition: dict[str, Any], fn: ToolFn) -> None:
        if name in self._tools:
            log.warning("tool_already_registered", tool_name=name, overwriting=True)
        self._tools[name] = (definition, fn)
        log.debug("tool_registered", tool_name=name)

    def register_tools(self, tools: dict[str, tuple[dict[str, Any], ToolFn]]) -> None:
        for name, (definition, fn) in tools.items():
            self.register_tool(name, definition, fn)

    def call(self, tool_name: str, args: dict[str, Any] | None = None) -> dict[str, Any]:
        entry = self._tools.get(str(tool_name or "").strip())
        if entry is None:
            return {"ok": False, "error": "unknown_tool"}
        _, fn = entry
        return fn(dict(args or {}))
