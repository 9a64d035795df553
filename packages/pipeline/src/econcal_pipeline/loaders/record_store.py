"""
loaders/record_store.py — Record store protocol and its Supabase implementation.

The reconciler only talks to the RecordStore protocol:

  find_indicator(name, country_code)      → Indicator | None
  insert_indicator(indicator)             → Indicator (with id)
  find_releases(keys)                     → releases matching any (indicator_id, release_at, period)
  find_releases_in_windows(windows)       → releases of an indicator inside [start, end]
  insert_releases(releases)               → inserted rows (with ids)
  update_release(release_id, fields)      → None

Multi-key lookups are sent as one PostgREST OR filter per call; callers
chunk the keys. The supabase client is synchronous, so every call runs in a
worker thread.

Usage:
    from econcal_pipeline.loaders.record_store import SupabaseRecordStore

    store = SupabaseRecordStore()
    indicator = await store.find_indicator("Unemployment Rate", "US")
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, TypeVar

import structlog
from supabase import Client, PostgrestAPIError

from econcal_shared.db import get_supabase_client
from econcal_shared.models import Indicator, Release

log = structlog.get_logger(__name__)

T = TypeVar("T")

NOT_FOUND_CODE = "PGRST116"

INDICATORS_TABLE = "indicators"
RELEASES_TABLE = "releases"

ReleaseKey = tuple[str, str, str]          # (indicator_id, release_at, period)
ReleaseWindow = tuple[str, str, str]       # (indicator_id, start, end), inclusive


class RecordStoreError(Exception):
    """A record store call failed. `code` is the PostgREST error code when known."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def not_found(self) -> bool:
        return self.code == NOT_FOUND_CODE


class RecordStore(Protocol):
    async def find_indicator(self, name: str, country_code: str) -> Indicator | None: ...

    async def insert_indicator(self, indicator: Indicator) -> Indicator: ...

    async def find_releases(self, keys: Sequence[ReleaseKey]) -> list[Release]: ...

    async def find_releases_in_windows(
        self, windows: Sequence[ReleaseWindow]
    ) -> list[Release]: ...

    async def insert_releases(self, releases: Sequence[Release]) -> list[Release]: ...

    async def update_release(self, release_id: str, fields: Mapping[str, Any]) -> None: ...


def _quote(value: str) -> str:
    """Double-quote a PostgREST filter value so commas and parens survive."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def release_keys_filter(keys: Sequence[ReleaseKey]) -> str:
    return ",".join(
        f"and(indicator_id.eq.{indicator_id},release_at.eq.{_quote(release_at)},"
        f"period.eq.{_quote(period)})"
        for indicator_id, release_at, period in keys
    )


def release_windows_filter(windows: Sequence[ReleaseWindow]) -> str:
    return ",".join(
        f"and(indicator_id.eq.{indicator_id},release_at.gte.{_quote(start)},"
        f"release_at.lte.{_quote(end)})"
        for indicator_id, start, end in windows
    )


class SupabaseRecordStore:
    """RecordStore backed by the indicators and releases tables in Supabase."""

    def __init__(self, client: Client | None = None) -> None:
        self._client = client or get_supabase_client()

    async def _call(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except PostgrestAPIError as exc:
            if exc.code != NOT_FOUND_CODE:
                log.error("record_store_error", operation=operation, code=exc.code, error=exc.message)
            raise RecordStoreError(exc.message or str(exc), code=exc.code) from exc

    # ------------------------------------------------------------------
    # Indicators
    # ------------------------------------------------------------------

    async def find_indicator(self, name: str, country_code: str) -> Indicator | None:
        def query() -> Any:
            return (
                self._client.table(INDICATORS_TABLE)
                .select("*")
                .eq("name", name)
                .eq("country_code", country_code)
                .single()
                .execute()
            )

        try:
            response = await self._call("find_indicator", query)
        except RecordStoreError as exc:
            if exc.not_found:
                return None
            raise
        return Indicator.from_db_row(response.data) if response.data else None

    async def insert_indicator(self, indicator: Indicator) -> Indicator:
        response = await self._call(
            "insert_indicator",
            lambda: self._client.table(INDICATORS_TABLE)
            .insert(indicator.to_insert_dict())
            .execute(),
        )
        if not response.data:
            raise RecordStoreError(f"Insert returned no row for indicator {indicator.name}")
        return Indicator.from_db_row(response.data[0])

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    async def find_releases(self, keys: Sequence[ReleaseKey]) -> list[Release]:
        if not keys:
            return []
        response = await self._call(
            "find_releases",
            lambda: self._client.table(RELEASES_TABLE)
            .select("*")
            .or_(release_keys_filter(keys))
            .execute(),
        )
        return [Release.from_db_row(row) for row in response.data or []]

    async def find_releases_in_windows(self, windows: Sequence[ReleaseWindow]) -> list[Release]:
        if not windows:
            return []
        response = await self._call(
            "find_releases_in_windows",
            lambda: self._client.table(RELEASES_TABLE)
            .select("*")
            .or_(release_windows_filter(windows))
            .execute(),
        )
        return [Release.from_db_row(row) for row in response.data or []]

    async def insert_releases(self, releases: Sequence[Release]) -> list[Release]:
        if not releases:
            return []
        rows = [r.to_insert_dict() for r in releases]
        response = await self._call(
            "insert_releases",
            lambda: self._client.table(RELEASES_TABLE).insert(rows).execute(),
        )
        return [Release.from_db_row(row) for row in response.data or []]

    async def update_release(self, release_id: str, fields: Mapping[str, Any]) -> None:
        payload = dict(fields)
        await self._call(
            "update_release",
            lambda: self._client.table(RELEASES_TABLE)
            .update(payload)
            .eq("id", release_id)
            .execute(),
        )
