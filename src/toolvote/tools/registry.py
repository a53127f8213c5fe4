"""In-process tool inventory."""

from __future__ import annotations

from typing import Iterable

from toolvote.tools.base import Tool


class ToolRegistry:
    """Tools keyed by name, listed in prompt order.

    Prompt order is by ``tier``; tools sharing a tier keep their registration
    order. Registering a name twice replaces the earlier tool in place.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, tool: Tool) -> None:
        if not getattr(tool, "name", ""):
            raise ValueError(f"{type(tool).__name__} has no name")
        self._tools[tool.name] = tool

    def register_all(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list(self) -> list[Tool]:
        return sorted(self._tools.values(), key=lambda tool: tool.tier)

    def names(self) -> list[str]:
        return [tool.name for tool in self.list()]
