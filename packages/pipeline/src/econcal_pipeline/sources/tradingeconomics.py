"""
sources/tradingeconomics.py — Trading Economics calendar API adapter.

Endpoint:
  GET /calendar/country/{united%20states,germany,...}?c={key}

Response shape:
  [{"Date": "2024-03-12T12:30:00", "Country": "United States",
    "Event": "Inflation Rate YoY", "Actual": "", "Previous": "3.1%",
    "Forecast": "3.1%", "Importance": 3, "Currency": "USD"}, ...]

Countries are requested five per call. Values carry K/M/B/% suffixes, which
are stripped. Importance 1..3 maps to Low/Medium/High. Only events later
than now are kept. Times are UTC. A JSON object carrying "message" is an
error.

Usage:
    source = TradingEconomicsCalendarSource()
    events = await source.fetch_upcoming_events(date(2024, 3, 1), date(2024, 3, 31))
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Final

import polars as pl
import structlog
from dateutil import parser as date_parser

from econcal_shared.config import settings
from econcal_shared.models import CalendarEvent
from econcal_pipeline.sources.base import (
    BaseSource,
    ConfigurationError,
    FixedIntervalThrottle,
    SourceError,
    Throttle,
)
from econcal_pipeline.transforms.normalize import (
    categorize_event,
    country_name_to_iso,
    display_value,
    importance_to_impact,
    split_datetime,
)

log = structlog.get_logger(__name__)

RAW_COLUMNS = ["Date", "Country", "Event", "Actual", "Previous", "Forecast", "Importance", "Currency"]

BATCH_SIZE = 5

# Path segments, already URL-encoded
TE_G20_COUNTRIES: Final[tuple[str, ...]] = (
    "united%20states",
    "united%20kingdom",
    "germany",
    "france",
    "italy",
    "japan",
    "china",
    "canada",
    "australia",
    "brazil",
    "india",
    "russia",
    "south%20korea",
    "mexico",
    "indonesia",
    "turkey",
    "saudi%20arabia",
    "argentina",
    "south%20africa",
    "euro%20area",
    "spain",
    "netherlands",
    "switzerland",
    "sweden",
)


class TradingEconomicsCalendarSource(BaseSource[CalendarEvent]):
    """Upcoming releases from the Trading Economics calendar API."""

    name = "Trading Economics"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        countries: tuple[str, ...] = TE_G20_COUNTRIES,
        throttle: Throttle | None = None,
        timeout: float | None = None,
    ) -> None:
        key = settings.trading_economics_api_key if api_key is None else api_key
        if not key:
            raise ConfigurationError(
                "TRADING_ECONOMICS_API_KEY is required. Register at "
                "https://tradingeconomics.com/api",
                source=self.name,
            )
        super().__init__(throttle or FixedIntervalThrottle(min_interval=0.2), timeout)
        self._api_key = key
        self._base_url = settings.trading_economics_base_url
        self._countries = countries

    async def _fetch_batch(self, batch: tuple[str, ...]) -> list[dict[str, Any]]:
        unit = ",".join(batch)
        payload = await self._get_json(
            f"{self._base_url}/calendar/country/{unit}",
            params={"c": self._api_key},
            unit=unit,
        )
        if isinstance(payload, dict) and "message" in payload:
            raise SourceError(str(payload["message"]), unit=unit, source=self.name)
        return payload if isinstance(payload, list) else []

    async def extract(self, *, now: datetime | None = None, **kwargs: Any) -> pl.DataFrame:
        """
        Download every country batch and keep events later than now.

        A failed batch is logged and skipped; when every batch fails the
        last error is raised.
        """
        now = now or datetime.now(timezone.utc)
        batches = [
            self._countries[i : i + BATCH_SIZE]
            for i in range(0, len(self._countries), BATCH_SIZE)
        ]

        rows: list[dict[str, Any]] = []
        failures: list[SourceError] = []
        for batch in batches:
            self._log.info("te_fetch", countries=",".join(batch))
            try:
                rows.extend(await self._fetch_batch(batch))
            except SourceError as exc:
                self._log.warning("te_batch_failed", countries=",".join(batch), error=exc.message)
                failures.append(exc)

        if batches and len(failures) == len(batches):
            raise failures[-1]

        upcoming = [row for row in rows if self._is_after(row.get("Date"), now)]
        return self._frame(upcoming, RAW_COLUMNS)

    @staticmethod
    def _is_after(stamp: Any, now: datetime) -> bool:
        if not stamp:
            return False
        when = date_parser.isoparse(str(stamp))
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return when > now

    def transform(self, raw: pl.DataFrame) -> list[CalendarEvent]:
        events: list[CalendarEvent] = []
        for row in raw.iter_rows(named=True):
            if not row["Event"] or not row["Country"]:
                continue
            day, clock = split_datetime(row["Date"])
            events.append(
                CalendarEvent(
                    country=country_name_to_iso(row["Country"]),
                    event_name=row["Event"],
                    date=day,
                    time=clock,
                    impact=importance_to_impact(row["Importance"]),
                    category=categorize_event(row["Event"]),
                    source="trading_economics",
                    timezone="UTC",
                    actual=display_value(row["Actual"]),
                    forecast=display_value(row["Forecast"]),
                    previous=display_value(row["Previous"]),
                    unit=row["Currency"] or None,
                )
            )
        return events

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "Trading Economics calendar API (UTC times)",
            "countries": len(self._countries),
        }

    async def fetch_upcoming_events(
        self,
        start: date | None = None,
        end: date | None = None,
    ) -> list[CalendarEvent]:
        """
        The country endpoint has no date filter; start/end only trim the
        result so the signature matches the other calendar APIs.
        """
        events = await self.run()
        return [
            e
            for e in events
            if (start is None or e.date >= start.isoformat())
            and (end is None or e.date <= end.isoformat())
        ]
