"""
sources/fred.py — FRED (Federal Reserve Economic Data) source adapter.

Endpoints:
  GET /series?series_id={id}&api_key=...&file_type=json               (metadata)
  GET /series/observations?series_id={id}&observation_start=YYYY-MM-DD (data)

Observation response shape:
  {"observations": [{"date": "2024-01-01", "value": "3.7"}, ...]}

FRED marks missing readings with ".", which are dropped. The series
frequency from the metadata call drives the period label.

Rate limit: 120 requests per rolling minute; the throttle waits when full.

Usage:
    source = FredSource()
    observations = await source.fetch_observations("UNRATE", "2014-01-01")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import polars as pl
import structlog

from econcal_shared.config import settings
from econcal_shared.models import Observation
from econcal_shared.time_utils import period_label
from econcal_pipeline.sources.base import (
    BaseSource,
    ConfigurationError,
    SlidingWindowThrottle,
    SourceError,
    Throttle,
    is_missing,
)

log = structlog.get_logger(__name__)

RAW_COLUMNS = ["series_id", "date", "value", "frequency"]


@dataclass(frozen=True)
class FredSeriesInfo:
    id: str
    title: str
    frequency: str               # "Monthly", "Quarterly", "Weekly, Ending Saturday"
    units: str
    notes: str | None = None


class FredSource(BaseSource[Observation]):
    """Pulls US macro series observations from the FRED API."""

    name = "FRED"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        throttle: Throttle | None = None,
        timeout: float | None = None,
    ) -> None:
        key = settings.fred_api_key if api_key is None else api_key
        if not key:
            raise ConfigurationError(
                "FRED_API_KEY is required. Get a free API key at "
                "https://fred.stlouisfed.org/docs/api/api_key.html",
                source=self.name,
            )
        super().__init__(throttle or SlidingWindowThrottle(max_requests=120, window=60.0), timeout)
        self._api_key = key
        self._base_url = settings.fred_base_url
        self._info_cache: dict[str, FredSeriesInfo] = {}

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _call(self, endpoint: str, params: dict[str, str], unit: str) -> dict[str, Any]:
        query = {"api_key": self._api_key, "file_type": "json", **params}
        self._log.info("fred_fetch", endpoint=endpoint, series_id=unit)
        return await self._get_json(f"{self._base_url}/{endpoint}", params=query, unit=unit)

    async def get_series_info(self, series_id: str) -> FredSeriesInfo:
        """Series metadata (title, frequency, units). Cached per instance."""
        if series_id in self._info_cache:
            return self._info_cache[series_id]

        payload = await self._call("series", {"series_id": series_id}, series_id)
        seriess = payload.get("seriess") or []
        if not seriess:
            raise SourceError(
                f"Series not found: {series_id}",
                status_code=404,
                unit=series_id,
                source=self.name,
            )
        s = seriess[0]
        info = FredSeriesInfo(
            id=s.get("id", series_id),
            title=s.get("title", series_id),
            frequency=s.get("frequency", "Monthly"),
            units=s.get("units", ""),
            notes=s.get("notes"),
        )
        self._info_cache[series_id] = info
        return info

    # ------------------------------------------------------------------
    # BaseSource interface
    # ------------------------------------------------------------------

    async def extract(
        self,
        *,
        series_id: str,
        start: str | None = None,
        end: str | None = None,
        **kwargs: Any,
    ) -> pl.DataFrame:
        """
        Download observations for one series.

        Returns:
            Raw DataFrame with columns series_id, date, value, frequency.
        """
        info = await self.get_series_info(series_id)

        params = {"series_id": series_id}
        if start:
            params["observation_start"] = start
        if end:
            params["observation_end"] = end
        payload = await self._call("series/observations", params, series_id)

        observations = payload.get("observations")
        if not isinstance(observations, list):
            raise SourceError(
                "FRED response has no observations list",
                unit=series_id,
                source=self.name,
            )

        return self._frame(
            (
                {
                    "series_id": series_id,
                    "date": obs.get("date"),
                    "value": obs.get("value"),
                    "frequency": info.frequency,
                }
                for obs in observations
            ),
            RAW_COLUMNS,
        )

    def transform(self, raw: pl.DataFrame) -> list[Observation]:
        """
        Drop "." readings and label each date by the series frequency.

        FRED frequencies carry qualifiers ("Weekly, Ending Saturday"); only
        the leading word selects the label format.
        """
        observations: list[Observation] = []
        for row in raw.iter_rows(named=True):
            if is_missing(row["value"]) or not row["date"]:
                continue
            frequency = (row["frequency"] or "Monthly").split(",")[0]
            observations.append(
                Observation(
                    date=row["date"],
                    value=row["value"],
                    period=period_label(row["date"], frequency),
                    source_indicator_id=row["series_id"],
                )
            )
        return observations

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "FRED API — US macroeconomic series",
            "series_info_cached": sorted(self._info_cache),
        }

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    async def fetch_observations(
        self,
        series_id: str,
        start: str,
        end: str | None = None,
    ) -> list[Observation]:
        return await self.run(series_id=series_id, start=start, end=end)
