"""
transforms/dedupe.py — Identity keys and last-write-wins deduplication.

Two record families are deduplicated:

  releases  — key "{indicator_id}|{release_at}|{period}" with release_at in
              canonical UTC ISO form
  events    — key "{COUNTRY}:{normalized event name}:{date}", used to collapse
              the same release reported by several calendar APIs

When the same event arrives from more than one provider, merge_by_priority
keeps the copy from the highest-ranked provider (fmp, then finnhub, then
trading_economics).

Usage:
    from econcal_pipeline.transforms.dedupe import deduplicate, merge_by_priority

    result = deduplicate(observations, key_fn=lambda o: o.date)
    result.unique, result.duplicate_count

    merged = merge_by_priority(events, event_priority, event_dedupe_key)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import structlog

from econcal_shared.constants import SOURCE_PRIORITY
from econcal_shared.models import CalendarEvent, release_key
from econcal_pipeline.transforms.normalize import normalize_event_name

log = structlog.get_logger(__name__)

T = TypeVar("T")

__all__ = [
    "DedupResult",
    "deduplicate",
    "event_dedupe_key",
    "event_priority",
    "merge_by_priority",
    "release_key",
]


@dataclass
class DedupResult(Generic[T]):
    unique: list[T] = field(default_factory=list)
    duplicate_count: int = 0


def deduplicate(records: Iterable[T], key_fn: Callable[[T], str]) -> DedupResult[T]:
    """
    Collapse records sharing a key; the last one seen wins.

    Output keeps the position of each key's first appearance. Every
    collision counts, so three records on one key report two duplicates.
    """
    kept: dict[str, T] = {}
    duplicates = 0
    for record in records:
        key = key_fn(record)
        if key in kept:
            duplicates += 1
        kept[key] = record

    if duplicates:
        log.debug("deduplicated", dropped=duplicates, kept=len(kept))
    return DedupResult(unique=list(kept.values()), duplicate_count=duplicates)


def merge_by_priority(
    records: Iterable[T],
    priority_fn: Callable[[T], int],
    key_fn: Callable[[T], str],
) -> DedupResult[T]:
    """
    Deduplicate so the most important source wins each key.

    priority_fn returns a rank where 0 is most important. Records are
    stable-sorted by descending rank so the winner is seen last by the
    last-write-wins fold.
    """
    ordered = sorted(records, key=priority_fn, reverse=True)
    return deduplicate(ordered, key_fn)


def event_dedupe_key(event: CalendarEvent) -> str:
    return f"{event.country.upper()}:{normalize_event_name(event.event_name)}:{event.date}"


def event_priority(event: CalendarEvent) -> int:
    """Rank of the event's provider; unranked providers lose every tie."""
    return SOURCE_PRIORITY.get(event.source, len(SOURCE_PRIORITY))
