"""Merge the bulk and live snapshots into one authoritative set of deals."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable

from .records import Record


def index_by_title(records: Iterable[Record]) -> dict[str, Record]:
    """Key records by title; a later duplicate overwrites an earlier one."""

    index: dict[str, Record] = {}
    for record in records:
        index[record.title] = record
    return index


def duplicate_titles(records: Iterable[Record]) -> list[str]:
    seen: set[str] = set()
    duplicates: set[str] = set()
    for record in records:
        if record.title in seen:
            duplicates.add(record.title)
        seen.add(record.title)
    return sorted(duplicates)


def merge_record(bulk: Record, live: Record) -> Record:
    """Bulk value wins; other fields come from live, falling back to bulk when unset."""

    merged = live
    if live.value != bulk.value:
        merged = replace(merged, value=bulk.value)
    if merged.currency is None and bulk.currency is not None:
        merged = replace(merged, currency=bulk.currency)
    if merged.status is None and bulk.status is not None:
        merged = replace(merged, status=bulk.status)
    return merged


def reconcile(bulk: Iterable[Record], live: Iterable[Record]) -> dict[str, Record]:
    """Return the reconciled set keyed by title, ordered by title.

    Live-only titles are kept untouched, bulk-only titles are added and titles
    present on both sides are merged with :func:`merge_record`. Nothing is
    ever removed.
    """

    bulk_index = index_by_title(bulk)
    result = index_by_title(live)
    for title, bulk_record in bulk_index.items():
        live_record = result.get(title)
        if live_record is None:
            result[title] = bulk_record
        else:
            result[title] = merge_record(bulk_record, live_record)
    return {title: result[title] for title in sorted(result)}


@dataclass(slots=True)
class ReconcilePlan:
    """Reconciled set plus a per-title classification against the live snapshot."""

    records: dict[str, Record]
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records)


def build_plan(bulk: Iterable[Record], live: Iterable[Record]) -> ReconcilePlan:
    bulk = list(bulk)
    live = list(live)
    live_index = index_by_title(live)
    plan = ReconcilePlan(records=reconcile(bulk, live))
    for title, record in plan.records.items():
        previous = live_index.get(title)
        if previous is None:
            plan.added.append(title)
        elif previous != record:
            plan.updated.append(title)
        else:
            plan.unchanged.append(title)
    return plan


__all__ = [
    "ReconcilePlan",
    "build_plan",
    "duplicate_titles",
    "index_by_title",
    "merge_record",
    "reconcile",
]
