"""
loaders/reconciler.py — Diff canonical records against the record store.

Historical imports hand the reconciler fully keyed releases; existing keys
are updated (actual, unit, notes) and new keys are inserted in batches.

Calendar imports hand it (indicator, event) pairs. An event matches a stored
release of the same indicator on the same local day. If the stored time
differs the release is moved and a time_changed ScheduleChange is emitted.

Write order is indicator → release; there is no transaction, so a failed
batch leaves earlier writes in place and the next run converges.

Usage:
    reconciler = Reconciler(SupabaseRecordStore())
    indicator_id, created = await reconciler.resolve_indicator(indicator)
    result = await reconciler.reconcile_releases(releases)
    result.inserted, result.updated, result.errors
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from econcal_shared.models import CalendarEvent, Indicator, Release, ScheduleChange
from econcal_shared.time_utils import day_bounds
from econcal_pipeline.loaders.record_store import RecordStore, RecordStoreError
from econcal_pipeline.transforms.dedupe import deduplicate
from econcal_pipeline.transforms.normalize import event_period, release_timestamp

log = structlog.get_logger(__name__)

CHUNK_SIZE = 50

RELEASE_MUTABLE_FIELDS = ("actual", "unit", "notes")
EVENT_VALUE_FIELDS = ("forecast", "previous", "actual")


@dataclass
class ReconcileResult:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    duplicates_removed: int = 0
    errors: list[str] = field(default_factory=list)
    schedule_changes: list[ScheduleChange] = field(default_factory=list)


def _chunks(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def _changed_fields(
    existing: Release, incoming: Release, names: Sequence[str]
) -> dict[str, Any]:
    """Fields where incoming carries a value that differs from the stored one."""
    changes: dict[str, Any] = {}
    for name in names:
        value = getattr(incoming, name)
        if value is not None and value != getattr(existing, name):
            changes[name] = value
    return changes


class Reconciler:
    """Find-or-create indicators and insert-or-update releases."""

    def __init__(self, store: RecordStore, *, chunk_size: int = CHUNK_SIZE) -> None:
        self._store = store
        self._chunk_size = chunk_size
        self._indicators: dict[str, Indicator] = {}

    # ------------------------------------------------------------------
    # Indicators
    # ------------------------------------------------------------------

    async def resolve_indicator(self, indicator: Indicator) -> tuple[str, bool]:
        """
        Return (indicator_id, created). Lookups are cached per run by
        "country:name".
        """
        cached = self._indicators.get(indicator.cache_key)
        if cached is not None and cached.id:
            return cached.id, False

        found = await self._store.find_indicator(indicator.name, indicator.country_code)
        created = found is None
        if found is None:
            found = await self._store.insert_indicator(indicator)
            log.info(
                "indicator_created",
                indicator_id=found.id,
                name=indicator.name,
                country=indicator.country_code,
            )
        if not found.id:
            raise RecordStoreError(
                f"Indicator {indicator.cache_key} came back from the store without an id"
            )
        self._indicators[indicator.cache_key] = found
        return found.id, created

    # ------------------------------------------------------------------
    # Releases (historical imports)
    # ------------------------------------------------------------------

    async def reconcile_releases(self, releases: Sequence[Release]) -> ReconcileResult:
        result = ReconcileResult()
        deduped = deduplicate(releases, key_fn=lambda r: r.key)
        result.duplicates_removed = deduped.duplicate_count
        candidates = deduped.unique
        if not candidates:
            return result

        existing: dict[str, Release] = {}
        lookup_failed: set[str] = set()
        for chunk in _chunks(candidates, self._chunk_size):
            try:
                rows = await self._store.find_releases(
                    [(r.indicator_id, r.release_at, r.period) for r in chunk]
                )
            except Exception as exc:
                log.error("release_lookup_failed", records=len(chunk), error=str(exc))
                result.errors.append(f"Lookup of {len(chunk)} releases failed: {exc}")
                lookup_failed.update(r.key for r in chunk)
                continue
            existing.update((row.key, row) for row in rows)

        to_update: list[tuple[Release, dict[str, Any]]] = []
        to_insert: list[Release] = []
        for release in candidates:
            if release.key in lookup_failed:
                continue
            stored = existing.get(release.key)
            if stored is None:
                to_insert.append(release)
                continue
            changes = _changed_fields(stored, release, RELEASE_MUTABLE_FIELDS)
            if changes:
                to_update.append((stored, changes))
            else:
                result.skipped += 1

        await self._apply_updates(to_update, result)
        await self._insert(to_insert, result)
        return result

    async def _apply_updates(
        self,
        updates: Sequence[tuple[Release, dict[str, Any]]],
        result: ReconcileResult,
    ) -> list[bool]:
        """Issue updates concurrently; returns per-update success flags."""
        if not updates:
            return []
        outcomes = await asyncio.gather(
            *(self._store.update_release(stored.id or "", changes) for stored, changes in updates),
            return_exceptions=True,
        )
        flags: list[bool] = []
        for (stored, _), outcome in zip(updates, outcomes):
            if isinstance(outcome, BaseException):
                log.error("release_update_failed", release_id=stored.id, error=str(outcome))
                result.errors.append(f"Update {stored.period}: {outcome}")
                flags.append(False)
            else:
                result.updated += 1
                flags.append(True)
        return flags

    async def _insert(self, releases: Sequence[Release], result: ReconcileResult) -> None:
        batches = _chunks(releases, self._chunk_size)
        for index, batch in enumerate(batches, start=1):
            try:
                await self._store.insert_releases(batch)
                result.inserted += len(batch)
                log.debug("batch_loaded", batch=index, n_batches=len(batches), batch_size=len(batch))
            except Exception as exc:
                log.error("batch_failed", batch=index, error=str(exc))
                result.errors.append(f"Insert batch {index}/{len(batches)}: {exc}")

    # ------------------------------------------------------------------
    # Calendar events
    # ------------------------------------------------------------------

    async def reconcile_events(
        self,
        pairs: Sequence[tuple[Indicator, CalendarEvent]],
        *,
        source_name: str,
    ) -> ReconcileResult:
        """
        Upsert scheduled releases from calendar events.

        An event is matched to the stored release with its exact key, or
        failing that to an unclaimed stored release on the same local day.
        A same-day match at another time moves that release and yields a
        time_changed ScheduleChange. Otherwise the stored release is updated
        only when forecast, previous or actual changed. An event whose date
        or time cannot be read is recorded as an error and skipped.
        """
        result = ReconcileResult()

        staged: list[tuple[Indicator, CalendarEvent, Release]] = []
        for indicator, event in pairs:
            label = f"{indicator.country_code}: {indicator.name}"
            try:
                indicator_id, _ = await self.resolve_indicator(indicator)
            except Exception as exc:
                log.error("indicator_resolve_failed", name=indicator.name, error=str(exc))
                result.errors.append(f"{label}: {exc}")
                continue
            try:
                release = Release(
                    indicator_id=indicator_id,
                    release_at=release_timestamp(event),
                    period=event_period(event.date),
                    actual=event.actual,
                    forecast=event.forecast,
                    previous=event.previous,
                    unit=event.unit,
                    notes=f"Impact: {event.impact}. Source: {source_name}.",
                )
            except Exception as exc:
                log.error("event_rejected", name=indicator.name, date=event.date, time=event.time, error=str(exc))
                result.errors.append(f"{label}: {exc}")
                continue
            staged.append((indicator, event, release))

        deduped = deduplicate(staged, key_fn=lambda item: item[2].key)
        result.duplicates_removed = deduped.duplicate_count
        staged = deduped.unique

        windows = {
            item[2].key: (item[2].indicator_id, *day_bounds(item[1].date, item[1].timezone))
            for item in staged
        }
        stored_by_indicator: dict[str, list[Release]] = {}
        lookup_failed: set[str] = set()
        for chunk in _chunks(staged, self._chunk_size):
            chunk_windows = [windows[item[2].key] for item in chunk]
            try:
                rows = await self._store.find_releases_in_windows(chunk_windows)
            except Exception as exc:
                log.error("release_lookup_failed", records=len(chunk), error=str(exc))
                result.errors.append(f"Lookup of {len(chunk)} releases failed: {exc}")
                lookup_failed.update(item[2].key for item in chunk)
                continue
            for row in rows:
                bucket = stored_by_indicator.setdefault(row.indicator_id, [])
                if all(r.id != row.id for r in bucket):
                    bucket.append(row)

        # Exact key first, then any unclaimed row on the same local day
        matches: dict[str, Release] = {}
        claimed: set[str] = set()
        for _indicator, _event, release in staged:
            if release.key in lookup_failed:
                continue
            for row in stored_by_indicator.get(release.indicator_id, []):
                if row.id not in claimed and row.key == release.key:
                    matches[release.key] = row
                    claimed.add(row.id)
                    break
        for _indicator, _event, release in staged:
            if release.key in lookup_failed or release.key in matches:
                continue
            _, start, end = windows[release.key]
            for row in stored_by_indicator.get(release.indicator_id, []):
                if row.id not in claimed and start <= row.release_at <= end:
                    matches[release.key] = row
                    claimed.add(row.id)
                    break

        to_insert: list[Release] = []
        updates: list[tuple[Release, dict[str, Any]]] = []
        pending_changes: list[ScheduleChange | None] = []
        for indicator, _event, release in staged:
            if release.key in lookup_failed:
                continue
            stored = matches.get(release.key)
            if stored is None:
                to_insert.append(release)
                continue

            if stored.release_at != release.release_at:
                changes = {"release_at": release.release_at}
                changes.update(_changed_fields(stored, release, EVENT_VALUE_FIELDS))
                updates.append((stored, changes))
                pending_changes.append(
                    ScheduleChange(
                        indicator_id=release.indicator_id,
                        indicator_name=indicator.name,
                        country=indicator.country_code,
                        change_type="time_changed",
                        old_value=stored.release_at,
                        new_value=release.release_at,
                        release_id=stored.id,
                    )
                )
                continue

            changes = _changed_fields(stored, release, EVENT_VALUE_FIELDS)
            if changes:
                updates.append((stored, changes))
                pending_changes.append(None)
            else:
                result.skipped += 1

        await self._insert(to_insert, result)
        flags = await self._apply_updates(updates, result)
        for ok, change in zip(flags, pending_changes):
            if ok and change is not None:
                log.info(
                    "schedule_change_detected",
                    indicator=change.indicator_name,
                    country=change.country,
                    old=change.old_value,
                    new=change.new_value,
                )
                result.schedule_changes.append(change)
        return result
