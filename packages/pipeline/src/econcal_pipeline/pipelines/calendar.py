"""
pipelines/calendar.py — Scheduled-release imports from calendar providers.

import_cme_events
  Scrapes the CME calendar month by month (one unit per month). When every
  month fails the TradingEconomics page is tried as one more unit. Stored
  releases that moved within the same day produce time_changed schedule
  changes.

import_upcoming_events
  Pulls the next N days from every calendar API with a configured key
  (one unit per provider), collapses the same event reported by several
  providers (fmp > finnhub > trading_economics) and reconciles the rest.

Usage:
    from econcal_pipeline.pipelines.calendar import import_cme_events

    result = await import_cme_events(months=2)
    for change in result.display_schedule_changes:
        print(change.indicator_name, change.old_value, "→", change.new_value)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from typing import Any

from econcal_shared.config import settings
from econcal_shared.models import CalendarEvent, Indicator
from econcal_shared.time_utils import month_starts
from econcal_pipeline.loaders.reconciler import Reconciler
from econcal_pipeline.loaders.record_store import RecordStore, SupabaseRecordStore
from econcal_pipeline.pipelines.runner import ImportResult, ImportRun, RunState
from econcal_pipeline.sources.base import BaseSource, ConfigurationError
from econcal_pipeline.sources.cme import CmeCalendarSource
from econcal_pipeline.sources.finnhub import FinnhubCalendarSource
from econcal_pipeline.sources.fmp import FmpCalendarSource
from econcal_pipeline.sources.tradingeconomics import TradingEconomicsCalendarSource
from econcal_pipeline.transforms.dedupe import (
    event_dedupe_key,
    event_priority,
    merge_by_priority,
)
from econcal_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="calendar")

# provider → (indicator source_name, source_url)
CALENDAR_SOURCES: dict[str, tuple[str, str]] = {
    "cme": ("CME Group", "https://www.cmegroup.com"),
    "tradingeconomics": ("TradingEconomics", "https://tradingeconomics.com/calendar"),
    "fmp": ("Financial Modeling Prep", "https://financialmodelingprep.com"),
    "finnhub": ("Finnhub", "https://finnhub.io"),
    "trading_economics": ("Trading Economics", "https://tradingeconomics.com"),
}

def event_indicator(event: CalendarEvent) -> Indicator:
    """Indicator row for a calendar event; one per (event name, country)."""
    source_name, site_url = CALENDAR_SOURCES.get(event.source, (event.source, ""))
    return Indicator(
        name=event.event_name,
        country_code=event.country,
        category=event.category,
        source_name=source_name,
        source_url=event.source_link or site_url or None,
    )


async def _reconcile_events(
    run: ImportRun,
    reconciler: Reconciler,
    events: Sequence[CalendarEvent],
    provider: str,
) -> None:
    source_name = CALENDAR_SOURCES.get(provider, (provider, ""))[0]
    result = await reconciler.reconcile_events(
        [(event_indicator(e), e) for e in events],
        source_name=source_name,
    )
    run.add_reconcile(provider, result)


# ---------------------------------------------------------------------------
# CME
# ---------------------------------------------------------------------------


async def import_cme_events(
    months: int | None = None,
    *,
    source: CmeCalendarSource | None = None,
    store: RecordStore | None = None,
    today: date | None = None,
) -> ImportResult:
    months = settings.cme_import_months if months is None else months
    today = today or date.today()
    run = ImportRun("cme_import")
    source = source or CmeCalendarSource()
    reconciler = Reconciler(store or SupabaseRecordStore())

    log.info("cme_import_start", months=months)
    run.advance(RunState.FETCHING)
    fetched = await source.fetch_calendar(months, today=today)

    failed_units = {e.unit: e for e in fetched.errors}
    for start in month_starts(today, months):
        unit = f"{start.year}-{start.month:02d}"
        if unit in failed_units:
            run.unit_failed(unit, failed_units.pop(unit).detail)
        else:
            run.unit_succeeded(unit)
    # Whatever is left belongs to the fallback page
    for unit, error in failed_units.items():
        run.unit_failed(unit, error.detail)
    if fetched.used_fallback:
        run.unit_succeeded("TradingEconomics")

    run.data_source = fetched.source
    run.records_seen += len(fetched.events)

    if run.successful:
        run.advance(RunState.NORMALIZING)
        run.advance(RunState.RECONCILING)
        try:
            await _reconcile_events(run, reconciler, fetched.events, fetched.source)
        except Exception as exc:
            run.record_error(fetched.source, exc)

    return run.finish()


# ---------------------------------------------------------------------------
# Upcoming events (calendar APIs)
# ---------------------------------------------------------------------------


def configured_upcoming_sources() -> dict[str, BaseSource[CalendarEvent]]:
    """
    Calendar API clients for every provider with a key.

    Raises:
        ConfigurationError: no provider key is configured.
    """
    sources: dict[str, BaseSource[CalendarEvent]] = {}
    if settings.fmp_api_key:
        sources["fmp"] = FmpCalendarSource()
    if settings.finnhub_api_key:
        sources["finnhub"] = FinnhubCalendarSource()
    if settings.trading_economics_api_key:
        sources["trading_economics"] = TradingEconomicsCalendarSource()
    if not sources:
        raise ConfigurationError(
            "No API keys configured. Set at least one of: "
            "FMP_API_KEY, FINNHUB_API_KEY, TRADING_ECONOMICS_API_KEY"
        )
    return sources


async def import_upcoming_events(
    days: int | None = None,
    *,
    sources: Mapping[str, Any] | None = None,
    store: RecordStore | None = None,
    today: date | None = None,
) -> ImportResult:
    """
    Import the next `days` days of scheduled releases.

    `sources` maps provider ("fmp", "finnhub", "trading_economics") to a
    client exposing fetch_upcoming_events(start, end).
    """
    days = settings.upcoming_import_days if days is None else days
    today = today or date.today()
    end = today + timedelta(days=days)
    sources = dict(sources) if sources is not None else configured_upcoming_sources()
    run = ImportRun("upcoming_import")
    reconciler = Reconciler(store or SupabaseRecordStore())

    log.info("upcoming_import_start", providers=sorted(sources), days=days)
    collected: list[CalendarEvent] = []
    succeeded: list[str] = []
    for provider, client in sources.items():
        run.advance(RunState.FETCHING)
        try:
            events = await client.fetch_upcoming_events(today, end)
        except Exception as exc:
            run.unit_failed(provider, exc)
            continue
        log.info("provider_events_fetched", provider=provider, events=len(events))
        collected.extend(events)
        succeeded.append(provider)
        run.unit_succeeded(provider)

    run.data_source = ",".join(succeeded) or None
    run.records_seen += len(collected)

    if succeeded:
        run.advance(RunState.NORMALIZING)
        merged = merge_by_priority(collected, event_priority, event_dedupe_key)
        run.duplicates_removed += merged.duplicate_count

        run.advance(RunState.RECONCILING)
        for provider in succeeded:
            events = [e for e in merged.unique if e.source == provider]
            if not events:
                continue
            try:
                await _reconcile_events(run, reconciler, events, provider)
            except Exception as exc:
                run.record_error(provider, exc)

    return run.finish()
