"""Typed state for the turn state machine.

A turn processes one user utterance. All tool calls made while resolving it
share one iteration group id; the working state lives only for the turn and
only the ``TurnOutput`` plus a history entry survive it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Union
from uuid import uuid4

from toolvote.util.strings import first_line


class InputSource(str, Enum):
    KEYBOARD = "keyboard"
    VOICE = "voice"


class MachineState(str, Enum):
    INTERPRET = "INTERPRET"
    SELECT_TOOL = "SELECT_TOOL"
    EXECUTE = "EXECUTE"
    REFLECT_SUMMARIZE = "REFLECT_SUMMARIZE"


class TurnBranch(str, Enum):
    SATISFIED = "satisfied"
    MAX_ITERATIONS = "max_iterations"
    ASK = "ask"
    ERROR = "error"


@dataclass(frozen=True)
class TurnInput:
    user_input: str
    previous_response: str = ""
    source: InputSource = InputSource.KEYBOARD


@dataclass(frozen=True)
class ToolEvent:
    tool_name: str
    args: Mapping[str, Any]
    result: str
    success: bool
    group_id: str
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class SelectionStats:
    selected_tool: str | None
    consensus_count: int
    queries_run: int


@dataclass
class TurnWorkingState:
    turn_id: str
    group_id: str
    original_query: str
    remaining_query: str
    max_iterations: int
    iteration: int = 0
    current_tool: str | None = None
    group_tool_results: list[ToolEvent] = field(default_factory=list)
    failed_tools: list[str] = field(default_factory=list)
    cached_status: str | None = None
    last_selection: SelectionStats | None = None
    interpret_history: tuple[str, ...] = ()

    @classmethod
    def start(
        cls, query: str, max_iterations: int, interpret_history: tuple[str, ...] = ()
    ) -> "TurnWorkingState":
        return cls(
            turn_id=uuid4().hex,
            group_id=uuid4().hex,
            original_query=query,
            remaining_query=query,
            max_iterations=max_iterations,
            interpret_history=interpret_history,
        )

    @property
    def last_event(self) -> ToolEvent | None:
        return self.group_tool_results[-1] if self.group_tool_results else None

    def record_event(self, event: ToolEvent) -> None:
        self.group_tool_results.append(event)
        if not event.success and event.tool_name not in self.failed_tools:
            self.failed_tools.append(event.tool_name)
        self.cached_status = None

    def successful_events(self) -> list[ToolEvent]:
        return [event for event in self.group_tool_results if event.success]


@dataclass(frozen=True)
class ContinueDecision:
    remaining_query: str


@dataclass(frozen=True)
class DoneDecision:
    summary: str


@dataclass(frozen=True)
class AskDecision:
    question: str


ReflectionDecision = Union[ContinueDecision, DoneDecision, AskDecision]


@dataclass(frozen=True)
class TurnOutput:
    response: str
    state_summary: str
    branch: TurnBranch
    interpreted_query: str | None = None
    tool_outcomes: tuple[tuple[str, bool], ...] = ()


def build_state_summary(state: TurnWorkingState) -> str:
    """Summarize successful events of the current iteration group."""
    successful = state.successful_events()
    if not successful:
        return "No actions completed."
    return "; ".join(f"{event.tool_name}: {first_line(event.result)}" for event in successful)
