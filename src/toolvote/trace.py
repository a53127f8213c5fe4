"""Per-turn trace recorder."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from toolvote.util.logging import redact


@dataclass
class TraceRecorder:
    turn_id: str
    trace_dir: str | None = None
    started_at: float = field(default_factory=time.time)
    events: list[dict[str, Any]] = field(default_factory=list)

    def record(self, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append(
            {
                "type": event_type,
                "timestamp": time.time(),
                "payload": payload,
            }
        )

    def record_transition(self, source: str, target: str) -> None:
        self.record("transition", {"from": source, "to": target})

    def record_consensus(
        self, step: str, result: Any, match_count: int, queries_run: int
    ) -> None:
        self.record(
            "consensus",
            {
                "step": step,
                "result": repr(result),
                "match_count": match_count,
                "queries_run": queries_run,
            },
        )

    def record_tool_call(self, tool_name: str, arguments: dict[str, Any]) -> None:
        self.record(
            "tool_call",
            {"tool_name": tool_name, "arguments": redact(json.dumps(arguments, default=str))},
        )

    def record_tool_result(self, tool_name: str, success: bool, summary: str) -> None:
        self.record(
            "tool_result",
            {"tool_name": tool_name, "success": success, "summary": redact(summary)},
        )

    def record_progress(self, tool_name: str, message: str) -> None:
        self.record("tool_progress", {"tool_name": tool_name, "message": redact(message)})

    def finalize(self, stats: dict[str, Any]) -> str | None:
        """Write the trace to ``<trace_dir>/<turn_id>.json`` when a directory is set."""
        if not self.trace_dir:
            return None
        trace_dir = Path(self.trace_dir)
        trace_dir.mkdir(parents=True, exist_ok=True)
        trace_path = trace_dir / f"{self.turn_id}.json"
        payload = {
            "turn_id": self.turn_id,
            "started_at": self.started_at,
            "ended_at": time.time(),
            "stats": stats,
            "events": self.events,
        }
        trace_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        return str(trace_path)
