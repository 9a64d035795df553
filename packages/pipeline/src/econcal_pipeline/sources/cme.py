"""
sources/cme.py — CME Group economic releases calendar scraper, with the
TradingEconomics calendar page as fallback.

CME endpoint (one HTML fragment per month, month index is zero-based):
  GET /content/cmegroup/en/education/events/economic-releases-calendar/
      jcr:content/full-par/cmelayoutfull/full-par/cmeeconomycalendar.ajax.{m-1}.{yyyy}.html

Fragment shape:
  <div class="DateLabel">15</div>
  <div id="Event_1">
    <span class="Time">8:30 AM</span>
    <a href="/education/events/cpi">US: CPI (YoY)</a>
    <img src="report.png"/>           <!-- present when a report ships -->
  </div>

Parsing is a single fold over every <div> in document order with a
(current_day, rows) accumulator: DateLabel divs move the day cursor and
Event_ divs emit a row on that day. Times are US Eastern.

Fallback page (tradingeconomics.com/calendar):
  <table id="calendar">
    <tr data-url="/us/gdp" data-country="united states" data-event="GDP">
      <td class="2026-02-01"><span class="event-3">8:30 AM</span></td>
      <td><span class="calendar-iso">US</span></td>
      <td><a class="calendar-event">GDP Growth Rate</a></td>
    </tr>
  </table>

The fallback is consulted only when every CME month failed.

Usage:
    source = CmeCalendarSource()
    result = await source.fetch_calendar(months=2)
    result.events, result.errors, result.source   # "cme" | "tradingeconomics"
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from functools import reduce
from typing import Any

import httpx
import polars as pl
import structlog
from bs4 import BeautifulSoup, Tag

from econcal_shared.config import settings
from econcal_shared.constants import EASTERN_TZ
from econcal_shared.models import CalendarEvent
from econcal_shared.time_utils import month_starts
from econcal_pipeline.sources.base import (
    BaseSource,
    FixedIntervalThrottle,
    SourceError,
    Throttle,
)
from econcal_pipeline.transforms.normalize import (
    categorize_event,
    cme_country,
    country_name_to_iso,
    estimate_impact,
    normalize_impact,
    parse_time,
)

log = structlog.get_logger(__name__)

RAW_COLUMNS = ["date", "time_text", "country", "event_name", "link", "has_report", "impact"]

CALENDAR_PATH = (
    "/content/cmegroup/en/education/events/economic-releases-calendar/jcr:content/"
    "full-par/cmelayoutfull/full-par/cmeeconomycalendar.ajax.{month_index}.{year}.html"
)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

TE_SITE_URL = "https://tradingeconomics.com"

_ISO_DATE_RE = re.compile(r"(\d{4}-\d{2}-\d{2})")

FoldState = tuple[str | None, tuple[dict[str, Any], ...]]


# ---------------------------------------------------------------------------
# Fetch results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CalendarFetchError:
    """One failed calendar unit: a CME month ("YYYY-MM") or the fallback page."""

    unit: str
    message: str
    status_code: int | None = None

    @property
    def detail(self) -> str:
        suffix = f" (HTTP {self.status_code})" if self.status_code else ""
        return f"{self.message}{suffix}"

    def __str__(self) -> str:
        return f"{self.unit}: {self.detail}"


@dataclass
class CalendarFetchResult:
    events: list[CalendarEvent] = field(default_factory=list)
    errors: list[CalendarFetchError] = field(default_factory=list)
    months_requested: int = 0
    months_failed: int = 0
    all_months_failed: bool = False
    used_fallback: bool = False
    source: str = "cme"


def _classes(node: Tag) -> str:
    value = node.get("class") or []
    return " ".join(value) if isinstance(value, list) else str(value)


def _text(node: Tag | None) -> str:
    return node.get_text(strip=True) if node is not None else ""


def _to_events(raw: pl.DataFrame, source: str) -> list[CalendarEvent]:
    events: list[CalendarEvent] = []
    for row in raw.iter_rows(named=True):
        name = row["event_name"] or ""
        has_report = row["has_report"] == "true"
        events.append(
            CalendarEvent(
                country=row["country"],
                event_name=name,
                date=row["date"],
                time=parse_time(row["time_text"]),
                impact=(
                    normalize_impact(row["impact"])
                    if row["impact"]
                    else estimate_impact(name, has_report)
                ),
                category=categorize_event(name),
                source_link=row["link"] or "",
                source=source,
                timezone=EASTERN_TZ,
            )
        )
    return events


# ---------------------------------------------------------------------------
# CME month fragments
# ---------------------------------------------------------------------------


def _cme_event_row(node: Tag, day_iso: str) -> dict[str, Any] | None:
    link = node.select_one("a[href]")
    if link is None:
        return None

    href = str(link.get("href") or "")
    text = _text(link)
    country, sep, rest = text.partition(":")
    if sep:
        country_code, name = country.strip() or "US", rest.strip() or text
    else:
        country_code, name = "US", text

    return {
        "date": day_iso,
        "time_text": _text(node.select_one(".Time")),
        "country": cme_country(country_code),
        "event_name": name,
        "link": href if href.startswith("http") else f"{settings.cme_base_url}{href}",
        "has_report": node.find("img") is not None,
        "impact": None,
    }


def parse_cme_month(html: str, year: int, month: int) -> list[dict[str, Any]]:
    """Fold the month fragment's divs into raw event rows."""
    prefix = f"{year}-{month:02d}"

    def step(state: FoldState, node: Tag) -> FoldState:
        day, rows = state
        if "DateLabel" in _classes(node):
            label = _text(node)
            if label:
                day = label.zfill(2)
        if "Event_" in str(node.get("id") or ""):
            row = _cme_event_row(node, f"{prefix}-{day}")
            if row is not None:
                rows = (*rows, row)
        return day, rows

    soup = BeautifulSoup(html, "lxml")
    _, rows = reduce(step, soup.find_all("div"), ("01", ()))
    return list(rows)


class CmeCalendarSource(BaseSource[CalendarEvent]):
    """Scrapes the CME economic releases calendar month by month."""

    name = "CME Group"

    def __init__(
        self,
        *,
        throttle: Throttle | None = None,
        timeout: float | None = None,
        fallback: TradingEconomicsPageSource | None = None,
    ) -> None:
        super().__init__(throttle or FixedIntervalThrottle(min_interval=0.5), timeout)
        self._base_url = settings.cme_base_url
        self._fallback = fallback or TradingEconomicsPageSource(timeout=timeout)

    async def extract(self, *, year: int, month: int, **kwargs: Any) -> pl.DataFrame:
        """
        Download and fold one month fragment.

        Returns:
            Raw DataFrame with columns date, time_text, country, event_name,
            link, has_report, impact (always null for CME).
        """
        unit = f"{year}-{month:02d}"
        url = self._base_url + CALENDAR_PATH.format(month_index=month - 1, year=year)
        self._log.info("cme_fetch", month=unit)
        response = await self._request("GET", url, headers=BROWSER_HEADERS, unit=unit)
        return self._frame(parse_cme_month(response.text, year, month), RAW_COLUMNS)

    def transform(self, raw: pl.DataFrame) -> list[CalendarEvent]:
        return _to_events(raw, "cme")

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "CME Group economic releases calendar (US Eastern times)",
            "fallback": self._fallback.name,
        }

    async def fetch_month(self, year: int, month: int) -> list[CalendarEvent]:
        return await self.run(year=year, month=month)

    async def fetch_calendar(
        self,
        months: int | None = None,
        *,
        today: date | None = None,
    ) -> CalendarFetchResult:
        """
        Fetch the current month and the following ones, falling back to the
        TradingEconomics page when every month fails.

        Month failures are collected, never raised. Only events dated today
        or later are returned.
        """
        months = settings.cme_import_months if months is None else months
        today = today or date.today()
        result = CalendarFetchResult(months_requested=months)
        events: list[CalendarEvent] = []

        for start in month_starts(today, months):
            unit = f"{start.year}-{start.month:02d}"
            try:
                events.extend(await self.fetch_month(start.year, start.month))
            except (SourceError, httpx.HTTPError) as exc:
                error = CalendarFetchError(
                    unit=unit,
                    message=getattr(exc, "message", None) or str(exc),
                    status_code=getattr(exc, "status_code", None),
                )
                self._log.warning("cme_month_failed", month=unit, error=str(error))
                result.errors.append(error)

        result.months_failed = len(result.errors)
        result.all_months_failed = months > 0 and result.months_failed == months

        if result.all_months_failed:
            self._log.warning("cme_unavailable_trying_fallback", months=months)
            try:
                fallback_events = await self._fallback.fetch_events()
            except (SourceError, httpx.HTTPError) as exc:
                message = getattr(exc, "message", None) or str(exc)
                result.errors.append(
                    CalendarFetchError(
                        unit=self._fallback.name,
                        message=f"TradingEconomics fallback failed: {message}",
                        status_code=getattr(exc, "status_code", None),
                    )
                )
            else:
                if fallback_events:
                    events = fallback_events
                    result.all_months_failed = False
                    result.used_fallback = True
                    result.source = "tradingeconomics"

        cutoff = today.isoformat()
        result.events = [e for e in events if e.date >= cutoff]
        return result


# ---------------------------------------------------------------------------
# TradingEconomics calendar page (fallback)
# ---------------------------------------------------------------------------


def _te_page_impact(span_class: str) -> str:
    if "event-3" in span_class:
        return "High"
    if "event-2" in span_class:
        return "Medium"
    return "Low"


def parse_te_calendar(html: str) -> list[dict[str, Any]]:
    """Fold the calendar table rows into raw event rows; the date carries forward."""

    def step(state: FoldState, row: Tag) -> FoldState:
        current, rows = state
        first_cell = row.find("td")
        span = first_cell.find("span") if isinstance(first_cell, Tag) else None

        if isinstance(first_cell, Tag):
            m = _ISO_DATE_RE.search(_classes(first_cell))
            if m:
                current = m.group(1)

        name = _text(row.select_one(".calendar-event")) or str(row.get("data-event") or "")
        if not current or not name:
            return current, rows

        iso = _text(row.select_one(".calendar-iso")).upper()
        country_attr = str(row.get("data-country") or "")
        return current, (
            *rows,
            {
                "date": current,
                "time_text": _text(span if isinstance(span, Tag) else None),
                "country": iso or country_name_to_iso(country_attr.title()),
                "event_name": name,
                "link": f"{TE_SITE_URL}{row.get('data-url') or ''}",
                "has_report": False,
                "impact": _te_page_impact(_classes(span) if isinstance(span, Tag) else ""),
            },
        )

    soup = BeautifulSoup(html, "lxml")
    table = soup.select_one("#calendar")
    if table is None:
        log.warning("te_calendar_table_missing")
        return []
    _, rows = reduce(step, table.select("tr[data-url]"), (None, ()))
    return list(rows)


class TradingEconomicsPageSource(BaseSource[CalendarEvent]):
    """Scrapes the public TradingEconomics calendar page."""

    name = "TradingEconomics"

    def __init__(
        self,
        *,
        throttle: Throttle | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(throttle or FixedIntervalThrottle(min_interval=0.5), timeout)
        self._url = settings.te_calendar_url

    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        self._log.info("te_calendar_fetch", url=self._url)
        response = await self._request(
            "GET", self._url, headers=BROWSER_HEADERS, unit=self.name
        )
        return self._frame(parse_te_calendar(response.text), RAW_COLUMNS)

    def transform(self, raw: pl.DataFrame) -> list[CalendarEvent]:
        return _to_events(raw, "tradingeconomics")

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "url": self._url,
            "description": "TradingEconomics public calendar page (US Eastern times)",
        }

    async def fetch_events(self) -> list[CalendarEvent]:
        return await self.run()
