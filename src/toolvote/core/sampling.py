"""Deterministic sampling schedule for repeated generator queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

# Attempt 0 is the most conservative sample.
TEMPERATURES: tuple[float, ...] = (0.1, 0.4, 0.7, 0.25, 0.55, 0.85, 1.0)
TOP_P_VALUES: tuple[float, ...] = (0.9, 0.95, 1.0)
TOP_K_VALUES: tuple[int, ...] = (20, 40, 80, 60)


@dataclass(frozen=True)
class SamplingParams:
    temperature: float
    top_p: float
    top_k: int
    stop: tuple[str, ...] | None = None

    def as_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "top_k": self.top_k,
        }
        if self.stop:
            options["stop"] = list(self.stop)
        return options


def params_for(attempt: int, stop: Sequence[str] | None = None) -> SamplingParams:
    """Return the sampling parameters for a zero-based attempt index."""
    index = abs(int(attempt))
    return SamplingParams(
        temperature=TEMPERATURES[index % len(TEMPERATURES)],
        top_p=TOP_P_VALUES[index % len(TOP_P_VALUES)],
        top_k=TOP_K_VALUES[index % len(TOP_K_VALUES)],
        stop=tuple(stop) if stop else None,
    )
