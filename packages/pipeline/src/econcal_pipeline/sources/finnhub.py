"""
sources/finnhub.py — Finnhub economic calendar adapter.

Endpoint:
  GET /api/v1/calendar/economic?from=YYYY-MM-DD&to=YYYY-MM-DD&token=...

Response shape:
  {"economicCalendar": [{"country": "US", "event": "CPI MoM",
                         "time": "2024-03-12 12:30:00", "impact": "high",
                         "actual": null, "estimate": 0.3, "prev": 0.4,
                         "unit": "%"}, ...]}

Country is either an ISO code or a full name ("Euro Area"). Impact is
lowercase. Times are UTC. A JSON object with "error" is an error.

Usage:
    source = FinnhubCalendarSource()
    events = await source.fetch_upcoming_events(date(2024, 3, 1), date(2024, 3, 31))
"""

from __future__ import annotations

from datetime import date
from typing import Any

import polars as pl
import structlog

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
    normalize_impact,
    parse_time,
    split_datetime,
)

log = structlog.get_logger(__name__)

RAW_COLUMNS = ["country", "event", "date", "time", "impact", "actual", "estimate", "prev", "unit"]


class FinnhubCalendarSource(BaseSource[CalendarEvent]):
    """Upcoming releases from the Finnhub economic calendar."""

    name = "Finnhub"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        throttle: Throttle | None = None,
        timeout: float | None = None,
    ) -> None:
        key = settings.finnhub_api_key if api_key is None else api_key
        if not key:
            raise ConfigurationError(
                "FINNHUB_API_KEY is required. Get a free API key at https://finnhub.io/register",
                source=self.name,
            )
        super().__init__(throttle or FixedIntervalThrottle(min_interval=0.2), timeout)
        self._api_key = key
        self._base_url = settings.finnhub_base_url

    async def extract(self, *, start: date, end: date, **kwargs: Any) -> pl.DataFrame:
        unit = f"{start.isoformat()}..{end.isoformat()}"
        self._log.info("finnhub_fetch", start=start.isoformat(), end=end.isoformat())
        payload = await self._get_json(
            f"{self._base_url}/calendar/economic",
            params={"from": start.isoformat(), "to": end.isoformat(), "token": self._api_key},
            unit=unit,
        )
        if not isinstance(payload, dict):
            raise SourceError(
                "Finnhub economic calendar response is not an object",
                unit=unit,
                source=self.name,
            )
        if "error" in payload:
            raise SourceError(str(payload["error"]), unit=unit, source=self.name)
        return self._frame(payload.get("economicCalendar") or [], RAW_COLUMNS)

    def transform(self, raw: pl.DataFrame) -> list[CalendarEvent]:
        events: list[CalendarEvent] = []
        for row in raw.iter_rows(named=True):
            if not row["event"] or not row["country"]:
                continue
            # Either a separate date + clock, or one "YYYY-MM-DD HH:mm:ss" in time
            if row["date"]:
                day, clock = row["date"][:10], parse_time(row["time"])
            else:
                day, clock = split_datetime(row["time"])
                clock = parse_time(clock)
            if not day:
                continue
            events.append(
                CalendarEvent(
                    country=country_name_to_iso(row["country"], truncate_unknown=False),
                    event_name=row["event"],
                    date=day,
                    time=clock,
                    impact=normalize_impact(row["impact"]),
                    category=categorize_event(row["event"]),
                    source="finnhub",
                    timezone="UTC",
                    actual=display_value(row["actual"]),
                    forecast=display_value(row["estimate"]),
                    previous=display_value(row["prev"]),
                    unit=row["unit"] or None,
                )
            )
        return events

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "Finnhub economic calendar (UTC times)",
        }

    async def fetch_upcoming_events(self, start: date, end: date) -> list[CalendarEvent]:
        return await self.run(start=start, end=end)
