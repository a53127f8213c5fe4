"""Text helpers shared by prompts, history and tool results."""

from __future__ import annotations

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def truncate_middle(text: str | None, limit: int) -> str:
    """Keep the head and tail of ``text`` so it fits in ``limit`` characters."""
    if not text or len(text) <= limit:
        return text or ""
    start_length = int(limit * 0.6)
    end_length = max(0, limit - start_length - 5)
    tail = text[-end_length:] if end_length else ""
    return f"{text[:start_length]} ... {tail}"


def first_line(text: str | None) -> str:
    if not text:
        return ""
    return text.split("\n", 1)[0]


def flatten_whitespace(text: str | None) -> str:
    return " ".join(text.split()) if text else ""


def sanitize_tool_text(text: str | None) -> str:
    """Strip control characters and collapse blank runs in tool output."""
    if not text:
        return "(no output)"
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = re.sub(r"\r\n?", "\n", cleaned)
    cleaned = re.sub(r"[ \t]+\n", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned).strip()
    return cleaned or "(no output)"


def levenshtein_distance(a: str, b: str) -> int:
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j - 1] + cost, previous[j] + 1, current[j - 1] + 1))
        previous = current
    return previous[-1]
