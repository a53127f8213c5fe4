"""Select the single next tool by majority vote over several samples."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from toolvote.core.consensus import run_with_consensus
from toolvote.core.sampling import SamplingParams
from toolvote.core.services import MachineDeps
from toolvote.core.types import ToolEvent, TurnWorkingState
from toolvote.steps.parsing import (
    DoneChoice,
    QuestionChoice,
    SelectionChoice,
    ToolChoice,
    parse_selection,
    selections_equivalent,
)
from toolvote.tools.results import format_tools_by_tier
from toolvote.util.logging import clip, get_logger

logger = get_logger(__name__)

FAILED_RESULT_LIMIT = 200


@dataclass(frozen=True)
class SelectionResult:
    tool: str | None = None
    is_done: bool = False
    question: str | None = None
    match_count: int = 0
    queries_run: int = 0


def format_previous_results(events: list[ToolEvent]) -> str:
    if not events:
        return ""
    entries = []
    for index, event in enumerate(events, start=1):
        icon = "✓" if event.success else "✗"
        result = event.result
        if not event.success and len(result) > FAILED_RESULT_LIMIT:
            result = f"{result[:FAILED_RESULT_LIMIT]}..."
        entries.append(f"{index}. {event.tool_name} {icon}:\n{result}")
    return "\nPREVIOUS RESULTS (this request):\n" + "\n\n".join(entries)


def build_select_messages(
    state: TurnWorkingState, deps: MachineDeps, status_info: str
) -> list[dict[str, Any]]:
    history_summary = deps.history.summarize(deps.settings.history_max_prompts)
    avoid = ""
    if state.failed_tools:
        avoid = f"\nFAILED THIS REQUEST (avoid unless the cause is fixed): {', '.join(state.failed_tools)}"
    system = f"""{deps.role}

TOOLS:
{format_tools_by_tier(deps.tools)}

STATUS:
{status_info or "No status available."}

HISTORY (previous requests):
{history_summary or "This is the first request."}
{format_previous_results(state.group_tool_results)}{avoid}

ITERATION: {state.iteration}/{state.max_iterations}

TASK: Select the NEXT tool to work toward completing the user request.

RULES:
1. Select ONE tool that advances toward the goal
2. Consider what has already been done in PREVIOUS RESULTS
3. If the request is already satisfied or no tool applies, return null
4. If you cannot tell what the user wants, reply with a short question
5. Do not repeat tools that already succeeded for the same purpose

OUTPUT: Return ONLY the tool name, or null if done."""
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": state.remaining_query},
    ]


async def select_tool(state: TurnWorkingState, deps: MachineDeps) -> SelectionResult:
    logger.info("[select] Iteration %s/%s", state.iteration, state.max_iterations)
    if not state.remaining_query.strip():
        logger.info("[select] Empty remaining query")
        return SelectionResult()

    if state.cached_status is None:
        state.cached_status = await deps.status_info("selecting ")
    messages = build_select_messages(state, deps, state.cached_status)
    logger.debug("[select] Prompt:\n%s", messages[0]["content"])
    tool_names = deps.tool_names

    async def query(params: SamplingParams) -> SelectionChoice | None:
        response = await deps.llm.sample(messages, sampling=params)
        text = response.text.strip() if response is not None else ""
        if not text:
            logger.info("[select] Query (temp=%s) returned empty", params.temperature)
            return None
        logger.info("[select] Query (temp=%s): %r", params.temperature, clip(text, 50))
        return parse_selection(text, tool_names)

    consensus = await run_with_consensus(
        query,
        selections_equivalent,
        max_queries=deps.settings.select_max_queries,
        min_matches=deps.settings.select_min_matches,
        match_mode="some",
        stop=["\n"],
        concurrency=deps.settings.consensus_concurrency,
    )
    logger.info(
        "[select] Consensus: %s matches from %s queries",
        consensus.match_count,
        consensus.queries_run,
    )
    if deps.trace is not None:
        deps.trace.record_consensus(
            "select", consensus.result, consensus.match_count, consensus.queries_run
        )

    stats = {"match_count": consensus.match_count, "queries_run": consensus.queries_run}
    match consensus.result:
        case ToolChoice(name=name):
            return SelectionResult(tool=name, **stats)
        case DoneChoice():
            return SelectionResult(is_done=True, **stats)
        case QuestionChoice(text=text):
            return SelectionResult(question=text, **stats)
        case _:
            return SelectionResult(**stats)
