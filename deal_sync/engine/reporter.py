"""Aggregate per-request dispatch outcomes into a run summary."""

from __future__ import annotations

from typing import Iterable

from .records import DispatchOutcome, Failure, Summary


def summarize(outcomes: Iterable[DispatchOutcome]) -> Summary:
    summary = Summary()
    for outcome in outcomes:
        summary.total += 1
        if outcome.ok:
            summary.succeeded += 1
            continue
        summary.failed += 1
        summary.failures.append(Failure(title=outcome.title, reason=outcome.reason or "unknown"))
    summary.failures.sort(key=lambda failure: failure.title)
    return summary


def status_breakdown(outcomes: Iterable[DispatchOutcome]) -> dict[int, int]:
    """Count outcomes per HTTP status; transport failures are counted under 0."""

    counts: dict[int, int] = {}
    for outcome in outcomes:
        counts[outcome.http_status] = counts.get(outcome.http_status, 0) + 1
    return dict(sorted(counts.items()))


__all__ = ["status_breakdown", "summarize"]
