"""Cross-turn history shown to the model as a compact summary."""

from __future__ import annotations

from dataclasses import dataclass, field

from toolvote.util.strings import truncate_middle

PROMPT_TEXT_LIMIT = 140
RESULT_TEXT_LIMIT = 160
EVENT_TEXT_LIMIT = 110


@dataclass(frozen=True)
class HistoryToolEvent:
    name: str
    success: bool


@dataclass(frozen=True)
class HistoryEntry:
    prompt: str
    tool_events: tuple[HistoryToolEvent, ...] = ()
    final_summary: str = ""


@dataclass
class TurnHistory:
    """Append-only record of completed turns."""

    entries: list[HistoryEntry] = field(default_factory=list)
    interpreted: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def append(
        self,
        prompt: str,
        tool_outcomes: tuple[tuple[str, bool], ...] = (),
        final_summary: str = "",
    ) -> HistoryEntry:
        entry = HistoryEntry(
            prompt=truncate_middle(prompt, PROMPT_TEXT_LIMIT),
            tool_events=tuple(HistoryToolEvent(name, success) for name, success in tool_outcomes),
            final_summary=truncate_middle(final_summary, RESULT_TEXT_LIMIT),
        )
        self.entries.append(entry)
        return entry

    def record_interpreted(self, query: str) -> None:
        if query.strip():
            self.interpreted.append(query.strip())

    def summarize(self, limit: int) -> str:
        if not self.entries:
            return ""
        shown = self.entries[-limit:] if limit > 0 else []
        hidden = len(self.entries) - len(shown)
        if hidden > 0:
            header = f"History: last {len(shown)}/{len(self.entries)} (older {hidden} hidden)"
        else:
            header = f"History: last {len(shown)}"
        lines = [header]
        for offset, entry in enumerate(shown, start=hidden + 1):
            lines.append(f"{offset}. {truncate_middle(entry.prompt, PROMPT_TEXT_LIMIT)}")
            if entry.tool_events:
                tools = "; ".join(
                    f"{event.name}{'✅' if event.success else '❌'}" for event in entry.tool_events
                )
            else:
                tools = "none"
            lines.append(f"   tools: {tools}")
            summary = truncate_middle(entry.final_summary, RESULT_TEXT_LIMIT)
            if summary:
                lines.append(f"   result: {summary}")
        return "\n".join(lines)
