"""Extract arguments for the selected tool and run it."""

from __future__ import annotations

from typing import Any

from toolvote.core.services import MachineDeps, invoke_tool
from toolvote.core.types import ToolEvent, TurnWorkingState
from toolvote.errors import NonRetryableError
from toolvote.models.base import ModelResponse, ToolCall
from toolvote.tools.base import Tool
from toolvote.tools.results import format_parameter_hints, normalize_arguments
from toolvote.util.logging import clip, get_logger, redact
from toolvote.util.strings import first_line

logger = get_logger(__name__)


def build_execute_messages(
    state: TurnWorkingState, tool: Tool, role: str
) -> list[dict[str, Any]]:
    hints = format_parameter_hints(tool)
    previous = state.last_event
    previous_context = ""
    if previous is not None:
        previous_context = f"\nPrevious: {previous.tool_name} → {first_line(previous.result)}"
        if not previous.success:
            previous_context += f"\n\nPREVIOUS ERROR:\n{previous.result}"
    parameters = f"\n\nPARAMETERS:\n{hints}" if hints else ""
    system = f"""{role}

PIPELINE: Step {state.iteration} of up to {state.max_iterations}. Other steps handle the rest of the request.{previous_context}

TOOL: {tool.name}
{tool.description}{parameters}

YOUR ONLY JOB: Call "{tool.name}" with arguments from the query below. Do NOT output text.

RULES:
1. Call {tool.name} and extract its arguments from the query.
2. Other tools handle future steps.
3. If the previous call failed, fix the arguments that caused the error."""
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": state.remaining_query},
    ]


def _call_for(response: ModelResponse | None, tool_name: str) -> ToolCall | None:
    if response is None:
        return None
    for call in response.tool_calls:
        if call.name == tool_name:
            return call
    return None


def _failed(state: TurnWorkingState, tool_name: str, message: str, args: dict | None = None) -> ToolEvent:
    return ToolEvent(
        tool_name=tool_name,
        args=args or {},
        result=message,
        success=False,
        group_id=state.group_id,
    )


async def execute_tool(state: TurnWorkingState, deps: MachineDeps) -> ToolEvent:
    """Run ``state.current_tool`` once; always returns an event.

    Only cancellation escapes. Every other failure becomes a failed event
    carrying the error text.
    """
    tool_name = state.current_tool
    if not tool_name:
        logger.error("[execute] No tool selected")
        return _failed(state, "(none)", "No tool was selected for execution")
    tool = deps.boundary.find(tool_name)
    if tool is None:
        logger.warning("[execute] Tool %r is not available", tool_name)
        return _failed(state, tool_name, f"Tool {tool_name!r} not found")

    logger.info("[execute] Running %s (iteration %s)", tool_name, state.iteration)
    messages = build_execute_messages(state, tool, deps.role)

    def on_retry(attempt: int, reason: str) -> None:
        logger.warning("[execute] Model did not call %s, retrying (%s)", tool_name, attempt)

    texts: list[str] = []

    def needs_retry(response: ModelResponse | None) -> bool:
        if response is not None and response.text.strip():
            texts.append(response.text.strip())
        return _call_for(response, tool_name) is None

    outcome = await deps.llm.call(
        messages,
        tools=[tool.openai_schema()],
        should_retry=needs_retry,
        max_attempts=deps.settings.execute_max_attempts,
        on_retry=on_retry,
    )
    response = outcome.result
    call = _call_for(response, tool_name)
    if call is None:
        # last non-empty reply across attempts
        text = texts[-1] if texts else ""
        logger.error(
            "[execute] No call to %s after %s attempts: %s",
            tool_name,
            outcome.attempts,
            clip(text or "(no text)", 200),
        )
        return _failed(state, tool_name, text or f"Model did not call {tool_name}.")
    if response is not None and response.text.strip():
        logger.debug("[execute] Ignored text during tool call: %s", clip(response.text))

    args = normalize_arguments(tool, call.arguments)
    try:
        return await invoke_tool(deps, tool_name, args, state.group_id)
    except NonRetryableError:
        raise
    except Exception as exc:
        message = str(exc) or type(exc).__name__
        logger.error("[execute] Tool %s raised: %s", tool_name, redact(message))
        return _failed(state, tool_name, message, args)
