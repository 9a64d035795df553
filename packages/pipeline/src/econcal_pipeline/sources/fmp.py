"""
sources/fmp.py — Financial Modeling Prep economic calendar adapter.

Endpoint:
  GET /stable/economic-calendar?from=YYYY-MM-DD&to=YYYY-MM-DD&apikey=...

Response shape:
  [{"date": "2024-03-12 12:30:00", "country": "US", "event": "CPI (YoY)",
    "currency": "USD", "previous": 3.1, "estimate": 3.1, "actual": null,
    "impact": "High"}, ...]

Times are UTC. A JSON object carrying "Error Message" instead of a list is
an error. Only G20+ countries are kept.

Usage:
    source = FmpCalendarSource()
    events = await source.fetch_upcoming_events(date(2024, 3, 1), date(2024, 3, 31))
"""

from __future__ import annotations

from datetime import date
from typing import Any

import polars as pl
import structlog

from econcal_shared.config import settings
from econcal_shared.constants import G20_PLUS_COUNTRIES
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
    display_value,
    normalize_impact,
    split_datetime,
)

log = structlog.get_logger(__name__)

RAW_COLUMNS = ["date", "country", "event", "currency", "previous", "estimate", "actual", "impact"]


class FmpCalendarSource(BaseSource[CalendarEvent]):
    """Upcoming releases from the FMP economic calendar."""

    name = "Financial Modeling Prep"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        throttle: Throttle | None = None,
        timeout: float | None = None,
    ) -> None:
        key = settings.fmp_api_key if api_key is None else api_key
        if not key:
            raise ConfigurationError(
                "FMP_API_KEY is required. Get a free API key at "
                "https://financialmodelingprep.com/register",
                source=self.name,
            )
        super().__init__(throttle or FixedIntervalThrottle(min_interval=0.2), timeout)
        self._api_key = key
        self._base_url = settings.fmp_base_url

    async def extract(self, *, start: date, end: date, **kwargs: Any) -> pl.DataFrame:
        unit = f"{start.isoformat()}..{end.isoformat()}"
        self._log.info("fmp_fetch", start=start.isoformat(), end=end.isoformat())
        payload = await self._get_json(
            f"{self._base_url}/economic-calendar",
            params={"from": start.isoformat(), "to": end.isoformat(), "apikey": self._api_key},
            unit=unit,
        )
        if isinstance(payload, dict) and "Error Message" in payload:
            raise SourceError(str(payload["Error Message"]), unit=unit, source=self.name)
        if not isinstance(payload, list):
            raise SourceError(
                "FMP economic calendar response is not a list", unit=unit, source=self.name
            )
        return self._frame(payload, RAW_COLUMNS)

    def transform(self, raw: pl.DataFrame) -> list[CalendarEvent]:
        events: list[CalendarEvent] = []
        for row in raw.iter_rows(named=True):
            country = (row["country"] or "").upper()
            if country not in G20_PLUS_COUNTRIES or not row["event"] or not row["date"]:
                continue
            day, clock = split_datetime(row["date"])
            events.append(
                CalendarEvent(
                    country=country,
                    event_name=row["event"],
                    date=day,
                    time=clock,
                    impact=normalize_impact(row["impact"]),
                    category=categorize_event(row["event"]),
                    source="fmp",
                    timezone="UTC",
                    actual=display_value(row["actual"]),
                    forecast=display_value(row["estimate"]),
                    previous=display_value(row["previous"]),
                    unit=row["currency"] or None,
                )
            )
        return events

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "Financial Modeling Prep economic calendar (UTC times)",
        }

    async def fetch_upcoming_events(self, start: date, end: date) -> list[CalendarEvent]:
        return await self.run(start=start, end=end)
