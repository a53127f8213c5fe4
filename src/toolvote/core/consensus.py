"""Majority voting over repeated, independently sampled generator queries."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Literal, Sequence, TypeVar

from toolvote.core.sampling import SamplingParams, params_for

T = TypeVar("T")

MatchMode = Literal["exact", "some"]


@dataclass
class ConsensusResult(Generic[T]):
    result: T | None
    match_count: int
    queries_run: int
    all_results: list[T] = field(default_factory=list)

    @property
    def reached(self) -> bool:
        return self.result is not None and self.match_count > 0


def _exact(a: object, b: object) -> bool:
    return a == b


def count_matches(candidate: T, results: Sequence[T], equivalent: Callable[[T, T], bool]) -> int:
    return sum(1 for item in results if equivalent(candidate, item))


def find_best_candidate(
    results: Sequence[T], equivalent: Callable[[T, T], bool]
) -> tuple[T | None, int]:
    """Return the first sample with the most equivalent peers and that count."""
    best: T | None = None
    best_count = 0
    for candidate in results:
        count = count_matches(candidate, results, equivalent)
        if count > best_count:
            best, best_count = candidate, count
    return best, best_count


async def run_with_consensus(
    query_fn: Callable[[SamplingParams], Awaitable[T | None]],
    equivalent: Callable[[T, T], bool] | None = None,
    *,
    max_queries: int = 3,
    min_matches: int = 2,
    match_mode: MatchMode = "some",
    stop: Sequence[str] | None = None,
    concurrency: int = 1,
) -> ConsensusResult[T]:
    """Query up to ``max_queries`` times and stop once ``min_matches`` samples agree.

    ``match_mode="exact"`` compares samples with ``==`` and ignores
    ``equivalent``. ``None`` samples are dropped. With ``concurrency > 1``
    queries are issued in batches; samples are still tallied in query order.
    """
    if match_mode == "exact" or equivalent is None:
        compare: Callable[[T, T], bool] = _exact
    else:
        compare = equivalent
    batch_size = max(1, concurrency)
    results: list[T] = []
    queries_run = 0

    index = 0
    while index < max_queries:
        batch = range(index, min(index + batch_size, max_queries))
        index = batch.stop
        if len(batch) == 1:
            samples = [await query_fn(params_for(batch.start, stop))]
        else:
            samples = await asyncio.gather(*(query_fn(params_for(i, stop)) for i in batch))
        queries_run += len(batch)
        for sample in samples:
            if sample is None:
                continue
            results.append(sample)
            best, count = find_best_candidate(results, compare)
            if count >= min_matches:
                return ConsensusResult(
                    result=best,
                    match_count=count,
                    queries_run=queries_run,
                    all_results=results,
                )

    best, count = find_best_candidate(results, compare)
    return ConsensusResult(
        result=best,
        match_count=count,
        queries_run=queries_run,
        all_results=results,
    )

