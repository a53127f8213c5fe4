"""Parsers that turn free generator text into closed outcome types.

All fuzzy matching of model output against tool names happens here; the
steps and the state machine only ever see the dataclasses below.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

from toolvote.util.strings import levenshtein_distance

COMPLETION_MARKERS = frozenset(
    {
        "done",
        "none",
        "null",
        "complete",
        "completed",
        "finished",
        "nothing",
        "n/a",
        "no tool",
        "false",
    }
)
NOTHING_REMAINS_MARKERS = frozenset({"none", "nothing", "n/a", "na", "done", "nothing remains"})

_EDGE_PUNCTUATION = "\"'`.,;:!?()[]{}<> \t\n"
_SEPARATORS = re.compile(r"[\s\-.]+")
_DONE_WORDS = re.compile(r"\b(done|satisfied|complete)\b")
_ASK_WORDS = re.compile(r"\bask\b|clarif")
_CONTINUE_WORDS = re.compile(r"\b(continue|more)\b")


@dataclass(frozen=True)
class ToolChoice:
    name: str


@dataclass(frozen=True)
class DoneChoice:
    pass


@dataclass(frozen=True)
class QuestionChoice:
    text: str


SelectionChoice = Union[ToolChoice, DoneChoice, QuestionChoice]


class Decision(str, Enum):
    CONTINUE = "continue"
    DONE = "done"
    ASK = "ask"


@dataclass(frozen=True)
class ToolsRoute:
    pass


@dataclass(frozen=True)
class RespondRoute:
    text: str


@dataclass(frozen=True)
class AskRoute:
    question: str


Route = Union[ToolsRoute, RespondRoute, AskRoute]


def _bare(text: str) -> str:
    return text.strip().strip(_EDGE_PUNCTUATION).lower()


def _normalize_name(text: str) -> str:
    return _SEPARATORS.sub("_", _bare(text))


def find_tool_match(token: str, tool_names: Iterable[str]) -> str | None:
    """Fuzzy-match a single token against the known tool names.

    Tries, in order: exact match after separator normalisation, a prefix
    match either way, a match on one ``_``-separated fragment, and finally
    an edit distance of one.
    """
    normalized = _normalize_name(token)
    if not normalized:
        return None
    lookup = {name.lower(): name for name in tool_names}
    if normalized in lookup:
        return lookup[normalized]
    if len(normalized) >= 3:
        for key, name in lookup.items():
            if key.startswith(normalized) or normalized.startswith(key):
                return name
    for key, name in lookup.items():
        if normalized in key.split("_"):
            return name
    for key, name in lookup.items():
        if levenshtein_distance(normalized, key) == 1:
            return name
    return None


def _tools_mentioned(text: str, tool_names: Iterable[str]) -> set[str]:
    lower = text.lower()
    found = [name for name in tool_names if name.lower() in lower]
    # "lights" inside "lights_on" is one mention, not two.
    return {
        name
        for name in found
        if not any(other != name and name.lower() in other.lower() for other in found)
    }


def parse_selection(text: str | None, tool_names: Iterable[str]) -> SelectionChoice | None:
    """Parse one tool-selection sample; ``None`` means the sample is unusable."""
    if not text or not text.strip():
        return None
    names = list(tool_names)
    stripped = text.strip()
    if _bare(stripped) in COMPLETION_MARKERS:
        return DoneChoice()
    mentioned = _tools_mentioned(stripped, names)
    if len(mentioned) == 1:
        return ToolChoice(mentioned.pop())
    if len(mentioned) > 1:
        return None
    token = _bare(stripped)
    if token and not any(char.isspace() for char in token):
        match = find_tool_match(token, names)
        if match is not None:
            return ToolChoice(match)
    return QuestionChoice(stripped)


def selections_equivalent(a: SelectionChoice, b: SelectionChoice) -> bool:
    if isinstance(a, ToolChoice) and isinstance(b, ToolChoice):
        return a.name == b.name
    return type(a) is type(b)


def parse_decision(text: str | None) -> Decision | None:
    if not text or not text.strip():
        return None
    lower = text.strip().lower()
    if _DONE_WORDS.search(lower):
        return Decision.DONE
    if _ASK_WORDS.search(lower):
        return Decision.ASK
    if _CONTINUE_WORDS.search(lower):
        return Decision.CONTINUE
    return None


def is_nothing_remains(text: str | None) -> bool:
    if not text or not text.strip():
        return True
    return _bare(text) in NOTHING_REMAINS_MARKERS


def parse_route(text: str | None) -> Route:
    """Parse a routing reply; anything unrecognised routes to tools."""
    stripped = (text or "").strip()
    upper = stripped.upper()
    if upper.startswith("RESPOND:"):
        content = stripped[len("RESPOND:") :].strip()
        return RespondRoute(content or "I understand.")
    if upper.startswith("ASK:"):
        content = stripped[len("ASK:") :].strip()
        return AskRoute(content or "Could you clarify your request?")
    return ToolsRoute()


def routes_equivalent(a: Route, b: Route) -> bool:
    return type(a) is type(b)


def exact_tool_name(text: str, tool_names: Iterable[str]) -> str | None:
    """Return the canonical tool name when ``text`` is exactly one (ignoring case)."""
    lower = text.strip().lower()
    for name in tool_names:
        if name.lower() == lower:
            return name
    return None
