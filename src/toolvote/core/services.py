"""Wrappers around the generator and the tool boundary used by every step.

Each generation call is bounded by a timeout and raced against the session's
shutdown event. A timeout or transport failure is an absent sample; a
shutdown raises :class:`GenerationCancelled`.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, TypeVar

from toolvote.config import Settings
from toolvote.core.retry import OnRetry, RetryOutcome, retry_with_varying_params
from toolvote.core.sampling import SamplingParams, params_for
from toolvote.core.types import ToolEvent
from toolvote.errors import GenerationCancelled, NonRetryableError
from toolvote.history import TurnHistory
from toolvote.models.base import BaseChatModel, ModelResponse
from toolvote.status import StatusSource, fetch_status_info
from toolvote.tools.base import ProgressCallback, Tool
from toolvote.tools.boundary import ToolBoundary
from toolvote.tools.results import did_tool_succeed, format_tool_result
from toolvote.trace import TraceRecorder
from toolvote.util.logging import clip, get_logger, redact

logger = get_logger(__name__)

T = TypeVar("T")


async def wait_or_cancel(
    awaitable: Awaitable[T], timeout: float | None, shutdown: asyncio.Event | None
) -> T:
    """Await ``awaitable`` unless the timeout expires or ``shutdown`` is set.

    Raises ``asyncio.TimeoutError`` on timeout and ``GenerationCancelled``
    when the shutdown event fires first.
    """
    if shutdown is not None and shutdown.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise GenerationCancelled("Shutdown requested")
    task = asyncio.ensure_future(awaitable)
    if shutdown is None:
        return await asyncio.wait_for(task, timeout)
    waiter = asyncio.ensure_future(shutdown.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
    if task in done:
        return task.result()
    if shutdown.is_set():
        raise GenerationCancelled("Shutdown requested")
    raise asyncio.TimeoutError()


def response_is_empty(response: ModelResponse | None) -> bool:
    return response is None or response.is_empty()


class LLMService:
    """Generator access with timeout, cancellation and escalating retries."""

    def __init__(
        self,
        model: BaseChatModel,
        *,
        timeout_seconds: float = 30.0,
        max_attempts: int = 2,
        shutdown: asyncio.Event | None = None,
    ) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.shutdown = shutdown

    async def sample(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        sampling: SamplingParams | None = None,
    ) -> ModelResponse | None:
        """Issue one generation call; ``None`` when it timed out or failed."""
        try:
            return await wait_or_cancel(
                self.model.generate(messages, tools=tools, sampling=sampling),
                self.timeout_seconds,
                self.shutdown,
            )
        except NonRetryableError:
            raise
        except asyncio.TimeoutError:
            logger.warning("[llm] Generation timed out after %ss", self.timeout_seconds)
            return None
        except Exception as exc:
            logger.warning("[llm] Generation failed: %s", redact(str(exc)))
            return None

    async def call(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        *,
        should_retry: Callable[[ModelResponse | None], bool] = response_is_empty,
        max_attempts: int | None = None,
        stop: list[str] | None = None,
        on_retry: OnRetry | None = None,
    ) -> RetryOutcome[ModelResponse | None]:
        """Generate with escalating sampling until ``should_retry`` is satisfied."""

        async def attempt(params: SamplingParams) -> ModelResponse | None:
            return await self.sample(messages, tools=tools, sampling=params)

        return await retry_with_varying_params(
            attempt,
            should_retry,
            max_attempts=max_attempts or self.max_attempts,
            on_retry=on_retry,
            stop=stop,
        )

    async def complete_text(
        self,
        messages: list[dict[str, Any]],
        *,
        stop: list[str] | None = None,
    ) -> str:
        outcome = await self.call(messages, stop=stop)
        return outcome.result.text.strip() if outcome.result is not None else ""

    async def complete_text_at(self, messages: list[dict[str, Any]], temperature: float) -> str:
        """Single low-variance call at a fixed temperature."""
        params = replace(params_for(0), temperature=temperature)
        response = await self.sample(messages, sampling=params)
        return response.text.strip() if response is not None else ""


@dataclass
class MachineDeps:
    """Everything the turn handlers need besides the working state."""

    llm: LLMService
    boundary: ToolBoundary
    settings: Settings = field(default_factory=Settings)
    status: StatusSource | None = None
    history: TurnHistory = field(default_factory=TurnHistory)
    trace: TraceRecorder | None = None
    shutdown: asyncio.Event | None = None
    on_progress: ProgressCallback | None = None

    @property
    def role(self) -> str:
        return self.settings.agent_role

    @property
    def tools(self) -> list[Tool]:
        return self.boundary.tools()

    @property
    def tool_names(self) -> list[str]:
        return [tool.name for tool in self.boundary.tools()]

    async def status_info(self, prefix: str = "") -> str:
        return await fetch_status_info(self.status, prefix)


async def invoke_tool(
    deps: MachineDeps,
    tool_name: str,
    arguments: dict[str, Any],
    group_id: str,
) -> ToolEvent:
    """Call a tool through the boundary and build its event.

    Transport failures and timeouts propagate to the caller.
    """
    logger.info(
        "[tool] -> %s %s",
        tool_name,
        redact(json.dumps(arguments, default=str)) if arguments else "(no args)",
    )
    if deps.trace is not None:
        deps.trace.record_tool_call(tool_name, arguments)

    def progress(message: str) -> None:
        logger.info("[tool] %s progress: %s", tool_name, clip(message))
        if deps.trace is not None:
            deps.trace.record_progress(tool_name, message)
        if deps.on_progress is not None:
            deps.on_progress(message)

    result = await wait_or_cancel(
        deps.boundary.call_tool(
            tool_name,
            arguments,
            deps.settings.tool_timeout_seconds,
            on_progress=progress,
        ),
        None,
        deps.shutdown,
    )
    text = format_tool_result(result)
    success = did_tool_succeed(result)
    if success:
        logger.info("[tool] <- %s %s", tool_name, clip(text.split("\n", 1)[0]))
    else:
        for line in (line for line in text.split("\n") if line.strip()):
            logger.info("[tool] <- %s %s", tool_name, line)
    if deps.trace is not None:
        deps.trace.record_tool_result(tool_name, success, text)
    return ToolEvent(
        tool_name=tool_name,
        args=dict(arguments),
        result=text,
        success=success,
        group_id=group_id,
    )
