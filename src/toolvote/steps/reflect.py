"""Decide whether the request is satisfied, then produce the follow-up."""

from __future__ import annotations

from typing import Any

from toolvote.core.consensus import run_with_consensus
from toolvote.core.sampling import SamplingParams
from toolvote.core.services import MachineDeps
from toolvote.core.types import (
    AskDecision,
    ContinueDecision,
    DoneDecision,
    ReflectionDecision,
    ToolEvent,
    TurnWorkingState,
)
from toolvote.history import EVENT_TEXT_LIMIT
from toolvote.steps.parsing import Decision, is_nothing_remains, parse_decision
from toolvote.tools.results import format_tools_by_tier
from toolvote.util.logging import clip, get_logger
from toolvote.util.strings import first_line, truncate_middle

logger = get_logger(__name__)

NOTHING_COMPLETED = "I was not able to complete your request. Please try rephrasing."
GENERIC_QUESTION = "How would you like to proceed?"


def format_completed_work(events: list[ToolEvent]) -> str:
    if not events:
        return "(none yet)"
    return "\n".join(
        f"{index}. {event.tool_name} {'✓' if event.success else '✗'}: "
        f"{truncate_middle(first_line(event.result), EVENT_TEXT_LIMIT)}"
        for index, event in enumerate(events, start=1)
    )


def default_summary(state: TurnWorkingState) -> str:
    successful = state.successful_events()
    if not successful:
        return NOTHING_COMPLETED
    actions = ", ".join(event.tool_name for event in successful)
    return f"Completed: {actions}. What would you like to do next?"


def last_failure(state: TurnWorkingState) -> ToolEvent | None:
    for event in reversed(state.group_tool_results):
        if not event.success:
            return event
    return None


def build_context(state: TurnWorkingState, deps: MachineDeps, status_info: str) -> str:
    context = f"""{deps.role}

ORIGINAL REQUEST:
{state.original_query}

COMPLETED WORK:
{format_completed_work(state.group_tool_results)}

AVAILABLE TOOLS:
{format_tools_by_tier(deps.tools)}

STATUS:
{status_info or "No status available."}

ITERATION: {state.iteration}/{state.max_iterations}"""
    selection = state.last_selection
    if (
        selection is not None
        and selection.selected_tool is None
        and selection.consensus_count >= deps.settings.select_min_matches
    ):
        context += (
            f"\n\nNOTE: Tool selection agreed ({selection.consensus_count}/"
            f"{selection.queries_run}) that no further tool applies."
        )
    return context


def _system(prompt: str) -> list[dict[str, Any]]:
    return [{"role": "system", "content": prompt}]


async def get_decision(context: str, deps: MachineDeps) -> Decision:
    prompt = f"""{context}

TASK: Is the ORIGINAL REQUEST **fully** satisfied?

Evaluate the ENTIRE original request, not just the last step.

Reply with exactly ONE word:
- CONTINUE - More work remains
- DONE - The ENTIRE request is fully satisfied
- ASK - Cannot proceed without user clarification"""
    messages = _system(prompt)

    async def query(params: SamplingParams) -> Decision | None:
        response = await deps.llm.sample(messages, sampling=params)
        raw = response.text.strip() if response is not None else ""
        logger.info("[reflect] Raw decision (temp=%s): %r", params.temperature, clip(raw, 40))
        return parse_decision(raw)

    consensus = await run_with_consensus(
        query,
        max_queries=deps.settings.reflect_max_queries,
        min_matches=deps.settings.reflect_min_matches,
        match_mode="exact",
        stop=["\n"],
        concurrency=deps.settings.consensus_concurrency,
    )
    if deps.trace is not None:
        deps.trace.record_consensus(
            "reflect", consensus.result, consensus.match_count, consensus.queries_run
        )
    if consensus.result is None:
        logger.info("[reflect] No usable decision samples, continuing")
        return Decision.CONTINUE
    return consensus.result


async def get_remaining_query(context: str, state: TurnWorkingState, deps: MachineDeps) -> str:
    prompt = f"""{context}

TASK: What remains to be done?

The original request was: "{state.original_query}"
Some work has been completed (see COMPLETED WORK above).

Reply with ONLY the remaining task, or NONE if nothing remains."""
    return await deps.llm.complete_text(_system(prompt))


async def get_summary(context: str, state: TurnWorkingState, deps: MachineDeps) -> str:
    prompt = f"""{context}

TASK: Summarize what was accomplished.

Reply with 1-2 sentences for the user describing what was done."""
    summary = await deps.llm.complete_text(_system(prompt))
    return summary or default_summary(state)


async def get_question(context: str, state: TurnWorkingState, deps: MachineDeps) -> str:
    failure = last_failure(state)
    lead = ""
    if failure is not None:
        lead = f"LAST ERROR ({failure.tool_name}):\n{failure.result}\n\n"
    prompt = f"""{lead}{context}

TASK: What question should we ask the user?

Reply with the question only."""
    question = await deps.llm.complete_text(_system(prompt))
    if question:
        return question
    if failure is not None:
        return (
            f"{failure.tool_name} failed: {first_line(failure.result)}. "
            "How would you like to proceed?"
        )
    return GENERIC_QUESTION


async def reflect(state: TurnWorkingState, deps: MachineDeps) -> ReflectionDecision:
    logger.info(
        "[reflect] Iteration %s, %s tool(s) run",
        state.iteration,
        len(state.group_tool_results),
    )
    if state.cached_status is None:
        state.cached_status = await deps.status_info("reflecting ")
    context = build_context(state, deps, state.cached_status)

    decision = await get_decision(context, deps)
    logger.info("[reflect] Decision: %s", decision.value)

    if decision is Decision.CONTINUE:
        remaining = await get_remaining_query(context, state, deps)
        if is_nothing_remains(remaining):
            logger.info("[reflect] Nothing remains, finishing")
            return DoneDecision(await get_summary(context, state, deps))
        logger.info("[reflect] Remaining: %s", clip(remaining))
        return ContinueDecision(remaining)
    if decision is Decision.ASK:
        return AskDecision(await get_question(context, state, deps))
    return DoneDecision(await get_summary(context, state, deps))
