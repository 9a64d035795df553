"""
sources/worldbank.py — World Bank Open Data (WDI) source adapter.

Endpoint:
  GET /v2/country/{US;GB;DE}/indicator/{id}?format=json&per_page=1000
      &date=2014:2024&page=N

Response shape:
  [ {"page": 1, "pages": 3, "per_page": 1000, "total": 2400},
    [ {"indicator": {"id": "NY.GDP.MKTP.CD"}, "country": {"id": "US", "value": "United States"},
       "date": "2023", "value": 27360935000000}, ... ] ]

Error bodies carry a "message" list instead of the [meta, data] pair; they
end the fetch without raising (WDI answers that way when a country has no
data). All countries for one indicator are requested together and paginated
over meta.pages.

Usage:
    source = WorldBankSource()
    observations = await source.run(indicator="SP.POP.TOTL", country_codes=["US", "DE"])
"""

from __future__ import annotations

from datetime import date
from typing import Any

import polars as pl
import structlog

from econcal_shared.config import settings
from econcal_shared.models import Observation
from econcal_shared.time_utils import year_to_date
from econcal_pipeline.sources.base import (
    BaseSource,
    FixedIntervalThrottle,
    SourceError,
    Throttle,
    is_missing,
)
from econcal_pipeline.sources.catalog import WORLD_BANK_COUNTRIES

log = structlog.get_logger(__name__)

RAW_COLUMNS = ["indicator", "country_code", "country_name", "date", "value"]

PER_PAGE = 1000


def _is_error_body(payload: Any) -> bool:
    if isinstance(payload, dict):
        return "message" in payload
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        return "message" in payload[0]
    return False


class WorldBankSource(BaseSource[Observation]):
    """Pulls annual WDI indicators for a set of countries."""

    name = "World Bank"

    def __init__(
        self,
        *,
        throttle: Throttle | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(throttle or FixedIntervalThrottle(min_interval=0.5), timeout)
        self._base_url = settings.world_bank_base_url

    async def extract(
        self,
        *,
        indicator: str,
        country_codes: list[str],
        start_year: int | str | None = None,
        end_year: int | str | None = None,
        **kwargs: Any,
    ) -> pl.DataFrame:
        """
        Download one indicator for all requested countries, page by page.

        Returns:
            Raw DataFrame with columns indicator, country_code, country_name,
            date, value.
        """
        start = str(start_year or settings.world_bank_import_start_year)
        end = str(end_year or date.today().year)
        url = f"{self._base_url}/country/{';'.join(country_codes)}/indicator/{indicator}"

        rows: list[dict[str, Any]] = []
        page, pages = 1, 1
        while page <= pages:
            self._log.info("world_bank_fetch", indicator=indicator, page=page)
            payload = await self._get_json(
                url,
                params={
                    "format": "json",
                    "per_page": str(PER_PAGE),
                    "date": f"{start}:{end}",
                    "page": str(page),
                },
                headers={"Accept": "application/json"},
                unit=indicator,
            )
            if _is_error_body(payload):
                self._log.warning("world_bank_message", indicator=indicator, page=page)
                break
            if not isinstance(payload, list) or len(payload) < 2:
                raise SourceError(
                    "World Bank response is not a [meta, data] pair",
                    unit=indicator,
                    source=self.name,
                )

            meta, data = payload[0] or {}, payload[1]
            pages = int(meta.get("pages") or 1)
            if not data:
                break

            for point in data:
                country = point.get("country") or {}
                rows.append(
                    {
                        "indicator": indicator,
                        "country_code": country.get("id"),
                        "country_name": country.get("value"),
                        "date": point.get("date"),
                        "value": point.get("value"),
                    }
                )
            page += 1

        return self._frame(rows, RAW_COLUMNS)

    def transform(self, raw: pl.DataFrame) -> list[Observation]:
        observations = [
            Observation(
                date=year_to_date(row["date"]),
                value=row["value"],
                period=row["date"],
                source_indicator_id=row["indicator"],
                country_code=row["country_code"],
                country_name=WORLD_BANK_COUNTRIES.get(
                    row["country_code"], row["country_name"] or row["country_code"]
                ),
            )
            for row in raw.iter_rows(named=True)
            if row["date"] and row["country_code"] and not is_missing(row["value"])
        ]
        return sorted(observations, key=lambda o: (o.date, o.country_code or ""))

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "World Bank World Development Indicators — annual series",
            "countries": len(WORLD_BANK_COUNTRIES),
        }

    async def fetch_observations(
        self,
        series_id: str,
        start: str | int,
        end: str | int | None = None,
        *,
        country_codes: list[str] | None = None,
    ) -> list[Observation]:
        return await self.run(
            indicator=series_id,
            country_codes=country_codes or list(WORLD_BANK_COUNTRIES),
            start_year=start,
            end_year=end,
        )
