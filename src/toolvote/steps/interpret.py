"""Interpret the raw utterance before any tool is selected.

Three stages: rewrite the request to fix misheard words, fold in earlier
interpreted requests, then route to tools, a direct reply, or a question.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from toolvote.core.consensus import run_with_consensus
from toolvote.core.sampling import SamplingParams
from toolvote.core.services import MachineDeps
from toolvote.core.types import TurnInput, TurnWorkingState
from toolvote.steps.parsing import (
    AskRoute,
    RespondRoute,
    Route,
    ToolsRoute,
    exact_tool_name,
    parse_route,
    routes_equivalent,
)
from toolvote.tools.results import format_tool_names
from toolvote.util.logging import clip, get_logger

logger = get_logger(__name__)

REWRITE_TEMPERATURE = 0.3


@dataclass(frozen=True)
class Proceed:
    query: str


@dataclass(frozen=True)
class ExecuteDirectly:
    tool: str
    query: str


@dataclass(frozen=True)
class Respond:
    response: str


@dataclass(frozen=True)
class Ask:
    question: str


InterpretResult = Union[Proceed, ExecuteDirectly, Respond, Ask]


def build_rewrite_messages(
    turn: TurnInput, deps: MachineDeps, status_info: str
) -> list[dict[str, Any]]:
    previous = ""
    if turn.previous_response.strip():
        previous = f"\nPREVIOUS RESPONSE TO THE USER:\n{turn.previous_response.strip()}\n"
    system = f"""{deps.role}

TOOLS: {format_tool_names(deps.tools)}

STATUS:
{status_info or "No status available."}
{previous}
TASK: Rewrite the user's request exactly as intended, fixing misheard or misspelled words.

RULES:
1. Replace similar-sounding words with TOOL names or STATUS elements that make sense in context
2. Keep the sentence structure intact and only fix misheard words
3. If nothing needs fixing, return the request unchanged

Return ONLY the corrected request, no explanation."""
    return [{"role": "system", "content": system}, {"role": "user", "content": turn.user_input}]


def build_combine_messages(query: str, earlier: tuple[str, ...]) -> list[dict[str, Any]]:
    listed = "\n".join(f"{index}. {item}" for index, item in enumerate(earlier, start=1))
    system = """TASK: Combine the latest user request with previous context into one complete request.

Write a complete new request that represents the full user intent.
Return ONLY the combined request, no explanation."""
    user = f"PREVIOUS INTERPRETED REQUESTS:\n{listed}\n\nLATEST REQUEST:\n{query}"
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


def build_route_messages(query: str, deps: MachineDeps, status_info: str) -> list[dict[str, Any]]:
    system = f"""{deps.role}

TOOLS: {format_tool_names(deps.tools)}

STATUS:
{status_info or "No status available."}

TASK: Can this request be satisfied by calling one or more TOOLS?

Reply with exactly ONE of these formats:
- TOOLS - The request requires tool calls
- RESPOND: [your response] - Answer the user directly without tools
- ASK: [your question] - Clarification is needed to proceed"""
    return [{"role": "system", "content": system}, {"role": "user", "content": query}]


async def _rewrite(turn: TurnInput, deps: MachineDeps, status_info: str) -> str:
    messages = build_rewrite_messages(turn, deps, status_info)
    rewritten = await deps.llm.complete_text_at(messages, REWRITE_TEMPERATURE)
    if not rewritten:
        logger.info("[interpret] Rewrite returned empty, using original")
        return turn.user_input
    logger.info("[interpret] Rewritten: %r", clip(rewritten, 100))
    return rewritten


async def _combine(query: str, earlier: tuple[str, ...], deps: MachineDeps) -> str:
    combined = await deps.llm.complete_text_at(
        build_combine_messages(query, earlier), REWRITE_TEMPERATURE
    )
    if not combined:
        logger.info("[interpret] Combine returned empty, keeping rewrite")
        return query
    logger.info("[interpret] Combined: %r", clip(combined, 100))
    return combined


async def _route(query: str, deps: MachineDeps, status_info: str) -> Route:
    messages = build_route_messages(query, deps, status_info)

    async def sample(params: SamplingParams) -> Route:
        response = await deps.llm.sample(messages, sampling=params)
        raw = response.text.strip() if response is not None else ""
        logger.info("[interpret] Route (temp=%s): %r", params.temperature, clip(raw, 80))
        return parse_route(raw)

    consensus = await run_with_consensus(
        sample,
        routes_equivalent,
        max_queries=deps.settings.route_max_queries,
        min_matches=deps.settings.route_min_matches,
        concurrency=deps.settings.consensus_concurrency,
    )
    if deps.trace is not None:
        deps.trace.record_consensus(
            "route", consensus.result, consensus.match_count, consensus.queries_run
        )
    return consensus.result or ToolsRoute()


async def interpret(
    state: TurnWorkingState, turn: TurnInput, deps: MachineDeps
) -> InterpretResult:
    logger.info("[interpret] Processing: %r", clip(turn.user_input, 50))
    status_info = await deps.status_info("interpreting ")
    state.cached_status = status_info

    query = await _rewrite(turn, deps, status_info)
    tool = exact_tool_name(query, deps.tool_names)
    if tool is not None:
        logger.info("[interpret] Exact tool match %s, skipping selection", tool)
        return ExecuteDirectly(tool=tool, query=tool)

    if state.interpret_history:
        query = await _combine(query, state.interpret_history, deps)

    match await _route(query, deps, status_info):
        case RespondRoute(text=text):
            return Respond(text)
        case AskRoute(question=question):
            return Ask(question)
        case _:
            return Proceed(query)
