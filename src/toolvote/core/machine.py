"""Turn state machine.

States: INTERPRET -> SELECT_TOOL -> EXECUTE -> REFLECT_SUMMARIZE, looping back
to SELECT_TOOL while reflection says work remains. Each handler returns the
next state or the final :class:`TurnOutput`; all step logic lives in
``toolvote.steps``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Awaitable, Callable, Union

from toolvote.core.services import MachineDeps
from toolvote.core.types import (
    AskDecision,
    ContinueDecision,
    DoneDecision,
    MachineState,
    SelectionStats,
    TurnBranch,
    TurnInput,
    TurnOutput,
    TurnWorkingState,
    build_state_summary,
)
from toolvote.errors import GenerationCancelled
from toolvote.steps.execute_tool import execute_tool
from toolvote.steps.interpret import Ask, ExecuteDirectly, Respond, interpret
from toolvote.steps.reflect import reflect
from toolvote.steps.select_tool import select_tool
from toolvote.trace import TraceRecorder
from toolvote.util.logging import clip, get_logger

logger = get_logger(__name__)

Transition = Union[MachineState, TurnOutput]

CANCELLED_RESPONSE = "Request cancelled."


class TurnMachine:
    def __init__(self, turn: TurnInput, state: TurnWorkingState, deps: MachineDeps) -> None:
        self.turn = turn
        self.state = state
        self.deps = deps
        self.interpreted_query: str | None = None
        self._handlers: dict[MachineState, Callable[[], Awaitable[Transition]]] = {
            MachineState.INTERPRET: self.on_interpret,
            MachineState.SELECT_TOOL: self.on_select_tool,
            MachineState.EXECUTE: self.on_execute,
            MachineState.REFLECT_SUMMARIZE: self.on_reflect,
        }

    def output(self, response: str, branch: TurnBranch, with_summary: bool = True) -> TurnOutput:
        return TurnOutput(
            response=response,
            state_summary=build_state_summary(self.state) if with_summary else "",
            branch=branch,
            interpreted_query=self.interpreted_query,
            tool_outcomes=tuple(
                (event.tool_name, event.success) for event in self.state.group_tool_results
            ),
        )

    async def run(self) -> TurnOutput:
        if self.deps.settings.interpret_enabled:
            current = MachineState.INTERPRET
        else:
            self.interpreted_query = self.turn.user_input
            current = MachineState.SELECT_TOOL
        while True:
            logger.info("[machine] State: %s, iteration: %s", current.value, self.state.iteration)
            transition = await self._handlers[current]()
            if isinstance(transition, TurnOutput):
                logger.info("[machine] Finished with branch %s", transition.branch.value)
                return transition
            if self.deps.trace is not None:
                self.deps.trace.record_transition(current.value, transition.value)
            current = transition

    async def on_interpret(self) -> Transition:
        result = await interpret(self.state, self.turn, self.deps)
        match result:
            case Respond(response=response):
                return self.output(response, TurnBranch.SATISFIED, with_summary=False)
            case Ask(question=question):
                return self.output(question, TurnBranch.ASK, with_summary=False)
            case ExecuteDirectly(tool=tool, query=query):
                self.interpreted_query = query
                self.state.remaining_query = query
                self.state.current_tool = tool
                self.state.iteration += 1
                return MachineState.EXECUTE
            case _:
                self.interpreted_query = result.query
                self.state.remaining_query = result.query
                return MachineState.SELECT_TOOL

    async def on_select_tool(self) -> Transition:
        state = self.state
        state.iteration += 1
        if state.iteration > state.max_iterations:
            logger.info("[machine] Max iterations reached")
            summary = build_state_summary(state)
            return self.output(f"Maximum iterations reached. {summary}", TurnBranch.MAX_ITERATIONS)

        selection = await select_tool(state, self.deps)
        state.current_tool = selection.tool
        state.last_selection = SelectionStats(
            selected_tool=selection.tool,
            consensus_count=selection.match_count,
            queries_run=selection.queries_run,
        )
        if selection.tool:
            logger.info("[machine] Selected: %s", selection.tool)
            return MachineState.EXECUTE
        if selection.question:
            logger.info("[machine] Selection asked: %s", clip(selection.question, 60))
            return self.output(selection.question, TurnBranch.ASK)
        logger.info(
            "[machine] No tool selected (done=%s, %s/%s), reflecting",
            selection.is_done,
            selection.match_count,
            selection.queries_run,
        )
        return MachineState.REFLECT_SUMMARIZE

    async def on_execute(self) -> Transition:
        event = await execute_tool(self.state, self.deps)
        self.state.record_event(event)
        self.state.current_tool = None
        return MachineState.REFLECT_SUMMARIZE

    async def on_reflect(self) -> Transition:
        decision = await reflect(self.state, self.deps)
        match decision:
            case ContinueDecision(remaining_query=remaining):
                self.state.remaining_query = remaining
                return MachineState.SELECT_TOOL
            case AskDecision(question=question):
                return self.output(question, TurnBranch.ASK)
            case DoneDecision(summary=summary):
                return self.output(summary, TurnBranch.SATISFIED)


async def run_turn(turn: TurnInput, deps: MachineDeps) -> TurnOutput:
    """Run one user turn to completion; never raises except on task cancellation."""
    state = TurnWorkingState.start(
        turn.user_input,
        deps.settings.max_iterations,
        interpret_history=tuple(deps.history.interpreted),
    )
    trace = TraceRecorder(state.turn_id, deps.settings.trace_dir)
    machine = TurnMachine(turn, state, replace(deps, trace=trace))
    try:
        output = await machine.run()
    except GenerationCancelled:
        logger.warning("[machine] Turn cancelled")
        output = machine.output(CANCELLED_RESPONSE, TurnBranch.ERROR)
    except Exception as exc:
        logger.exception("[machine] Turn failed")
        output = machine.output(f"Something went wrong: {exc}", TurnBranch.ERROR)

    try:
        trace.finalize(
            {
                "branch": output.branch.value,
                "iterations": state.iteration,
                "tool_calls": len(state.group_tool_results),
            }
        )
    except OSError as exc:
        logger.warning("[machine] Could not write trace: %s", exc)
    return output
