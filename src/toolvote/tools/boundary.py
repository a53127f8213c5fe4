"""Tool invocation boundary.

The turn loop only talks to tools through :class:`ToolBoundary`. The
registry-backed implementation runs each tool in a worker thread so the
timeout can be enforced from the event loop. Progress messages are forwarded
but do not extend the timeout.

A thread cannot be interrupted: on a timeout or shutdown the turn moves on
while the tool keeps running in the background until it returns, and its
result is discarded. Tools with side effects should stay short.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from toolvote.errors import ToolTimeoutError, UnknownToolError
from toolvote.tools.base import ProgressCallback, Tool, ToolResult
from toolvote.tools.registry import ToolRegistry
from toolvote.util.logging import get_logger

logger = get_logger(__name__)


class ToolCallResult(BaseModel):
    is_error: bool = False
    structured: dict[str, Any] | None = None
    text_segments: list[str] = Field(default_factory=list)


class ToolBoundary(ABC):
    """Abstract surface the agent acts on."""

    @abstractmethod
    def tools(self) -> list[Tool]:
        """Return the tool inventory in prompt order."""
        raise NotImplementedError

    @abstractmethod
    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any],
        timeout: float,
        on_progress: ProgressCallback | None = None,
    ) -> ToolCallResult:
        """Invoke a tool; raises on transport failure or timeout."""
        raise NotImplementedError

    def find(self, name: str) -> Tool | None:
        for tool in self.tools():
            if tool.name == name:
                return tool
        return None


class RegistryToolBoundary(ToolBoundary):
    """Boundary over in-process tools held by a :class:`ToolRegistry`."""

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    def tools(self) -> list[Tool]:
        return self.registry.list()

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any],
        timeout: float,
        on_progress: ProgressCallback | None = None,
    ) -> ToolCallResult:
        tool = self.registry.get(name)
        if tool is None:
            raise UnknownToolError(f"Tool {name!r} is not registered")
        loop = asyncio.get_running_loop()

        def progress(message: str) -> None:
            if on_progress is not None:
                loop.call_soon_threadsafe(on_progress, message)

        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(_run_tool, tool, arguments, progress), timeout
            )
        except asyncio.TimeoutError as exc:
            raise ToolTimeoutError(f"Tool {name} timed out after {timeout}s") from exc
        return to_call_result(result)


def _run_tool(tool: Tool, arguments: dict[str, Any], progress: ProgressCallback) -> ToolResult:
    try:
        data = tool.input_schema.model_validate(arguments)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return ToolResult(text=f"Invalid arguments for {tool.name}: {errors}", is_error=True)
    try:
        return tool.run(data, progress)
    except (ValueError, ArithmeticError, KeyError, TypeError) as exc:
        logger.info("Tool %s raised %s: %s", tool.name, type(exc).__name__, exc)
        return ToolResult(text=f"{type(exc).__name__}: {exc}", is_error=True)


def to_call_result(result: ToolResult) -> ToolCallResult:
    structured = result.output if isinstance(result.output, dict) else None
    segments: list[str] = []
    if result.text:
        segments.append(result.text)
    elif result.output is not None and structured is None:
        segments.append(json.dumps(result.output, ensure_ascii=False))
    return ToolCallResult(is_error=result.is_error, structured=structured, text_segments=segments)
