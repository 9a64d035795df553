"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  fixture_path()          — resolves paths to tests/fixtures/
  mock_supabase_client()  — MagicMock of the Supabase client (prevents real DB calls)
  restore_logging()       — undoes configure_logging() after a test
  memory_store()          — InMemoryRecordStore standing in for the record store
  mock_http               — configured respx router for faking HTTP responses
  make_observation / make_event — record builders
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import respx
import structlog

from econcal_shared.models import CalendarEvent, Indicator, Observation, Release
from econcal_pipeline.loaders.record_store import RecordStoreError
from econcal_pipeline.utils.logging import NOISY_LOGGERS

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def restore_logging():
    """Undo configure_logging(): root level, root handlers and structlog config."""
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    noisy = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    yield
    root.setLevel(level)
    root.handlers[:] = handlers
    for name, noisy_level in noisy.items():
        logging.getLogger(name).setLevel(noisy_level)
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# Supabase client mock
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_client() -> MagicMock:
    """
    A MagicMock that simulates the supabase.Client interface.

    Every query chain returns empty data by default.
    Override in individual tests: mock_supabase_client.table.return_value...
    """
    client = MagicMock()

    default_result = MagicMock()
    default_result.data = []
    default_result.count = 0

    table = client.table.return_value
    table.select.return_value.or_.return_value.execute.return_value = default_result
    table.select.return_value.eq.return_value.eq.return_value.single.return_value.execute.return_value = default_result
    table.insert.return_value.execute.return_value = default_result
    table.update.return_value.eq.return_value.execute.return_value = default_result

    return client


# ---------------------------------------------------------------------------
# In-memory record store
# ---------------------------------------------------------------------------

class InMemoryRecordStore:
    """
    RecordStore over two dicts. `fail` maps a method name to the exception
    it should raise, for exercising partial-failure paths.
    """

    def __init__(self) -> None:
        self.indicators: dict[str, Indicator] = {}
        self.releases: dict[str, Release] = {}
        self.fail: dict[str, Exception] = {}
        self.calls: list[str] = []
        self._ids = itertools.count(1)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail:
            raise self.fail[operation]

    async def find_indicator(self, name: str, country_code: str) -> Indicator | None:
        self._enter("find_indicator")
        return next(
            (
                i
                for i in self.indicators.values()
                if i.name == name and i.country_code == country_code
            ),
            None,
        )

    async def insert_indicator(self, indicator: Indicator) -> Indicator:
        self._enter("insert_indicator")
        stored = indicator.model_copy(update={"id": f"ind-{next(self._ids)}"})
        self.indicators[stored.id] = stored
        return stored

    async def find_releases(self, keys: Sequence[tuple[str, str, str]]) -> list[Release]:
        self._enter("find_releases")
        wanted = set(keys)
        return [
            r
            for r in self.releases.values()
            if (r.indicator_id, r.release_at, r.period) in wanted
        ]

    async def find_releases_in_windows(
        self, windows: Sequence[tuple[str, str, str]]
    ) -> list[Release]:
        self._enter("find_releases_in_windows")
        return [
            r
            for r in self.releases.values()
            if any(
                r.indicator_id == indicator_id and start <= r.release_at <= end
                for indicator_id, start, end in windows
            )
        ]

    async def insert_releases(self, releases: Sequence[Release]) -> list[Release]:
        self._enter("insert_releases")
        stored = [r.model_copy(update={"id": f"rel-{next(self._ids)}"}) for r in releases]
        for r in stored:
            self.releases[r.id] = r
        return stored

    async def update_release(self, release_id: str, fields: Mapping[str, Any]) -> None:
        self._enter("update_release")
        if release_id not in self.releases:
            raise RecordStoreError(f"No release {release_id}")
        current = self.releases[release_id].model_dump()
        current.update(fields)
        self.releases[release_id] = Release(**current)

    # Test helpers
    def seed_indicator(self, indicator: Indicator) -> Indicator:
        stored = indicator.model_copy(update={"id": f"ind-{next(self._ids)}"})
        self.indicators[stored.id] = stored
        return stored

    def seed_release(self, release: Release) -> Release:
        stored = release.model_copy(update={"id": f"rel-{next(self._ids)}"})
        self.releases[stored.id] = stored
        return stored


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

def make_observation(
    value: str,
    day: str = "2024-01-01",
    period: str | None = None,
    series: str = "TEST",
    country_code: str | None = None,
) -> Observation:
    return Observation(
        date=day,
        value=value,
        period=period or day,
        source_indicator_id=series,
        country_code=country_code,
    )


def make_event(
    name: str = "CPI (YoY)",
    *,
    country: str = "US",
    day: str = "2024-03-12",
    time: str = "08:30",
    source: str = "cme",
    timezone: str = "America/New_York",
    **extra: Any,
) -> CalendarEvent:
    return CalendarEvent(
        country=country,
        event_name=name,
        date=day,
        time=time,
        source=source,
        timezone=timezone,
        **extra,
    )


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, json={...}))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
