"""
sources/imf.py — IMF World Economic Outlook (WEO) source adapter.

Endpoint:
  GET /REST/SDMX_JSON.svc/CompactData/WEO/A.{country}.{indicator}
      ?startPeriod=2014&endPeriod=2029

CompactData shape:
  {"CompactData": {"DataSet": {"Series": {
      "@FREQ": "A", "@REF_AREA": "US", "@INDICATOR": "NGDP_RPCH",
      "Obs": [{"@TIME_PERIOD": "2023", "@OBS_VALUE": "2.5"}, ...]}}}}

`Series` and `Obs` are each either a single object or a list. WEO data is
annual only, so every observation is dated Jan 1 and labelled by its year.
One request is made per country.

Usage:
    source = ImfSource()
    observations = await source.fetch_observations("NGDP_RPCH", "2014", country_code="US")
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
    Throttle,
    is_missing,
)
from econcal_pipeline.sources.catalog import IMF_COUNTRIES

log = structlog.get_logger(__name__)

RAW_COLUMNS = ["indicator", "country_code", "time_period", "value"]


def _as_list(node: Any) -> list[dict[str, Any]]:
    if node is None:
        return []
    return node if isinstance(node, list) else [node]


class ImfSource(BaseSource[Observation]):
    """Pulls annual WEO indicators for one country at a time."""

    name = "IMF"

    def __init__(
        self,
        *,
        throttle: Throttle | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(throttle or FixedIntervalThrottle(min_interval=1.0), timeout)
        self._base_url = settings.imf_base_url

    async def extract(
        self,
        *,
        indicator: str,
        country_code: str,
        start_year: int | str | None = None,
        end_year: int | str | None = None,
        **kwargs: Any,
    ) -> pl.DataFrame:
        """
        Download one indicator for one country.

        Returns:
            Raw DataFrame with columns indicator, country_code, time_period, value.
        """
        start = str(start_year or settings.imf_import_start_year)
        end = str(end_year or date.today().year)
        unit = f"{indicator} ({country_code})"

        self._log.info("imf_fetch", indicator=indicator, country=country_code)
        payload = await self._get_json(
            f"{self._base_url}/CompactData/WEO/A.{country_code}.{indicator}",
            params={"startPeriod": start, "endPeriod": end},
            headers={"Accept": "application/json"},
            unit=unit,
        )

        data_set = ((payload or {}).get("CompactData") or {}).get("DataSet") or {}
        rows = [
            {
                "indicator": indicator,
                "country_code": country_code,
                "time_period": obs.get("@TIME_PERIOD"),
                "value": obs.get("@OBS_VALUE"),
            }
            for series in _as_list(data_set.get("Series"))
            for obs in _as_list(series.get("Obs"))
        ]
        return self._frame(rows, RAW_COLUMNS)

    def transform(self, raw: pl.DataFrame) -> list[Observation]:
        observations = [
            Observation(
                date=year_to_date(row["time_period"]),
                value=row["value"].strip(),
                period=row["time_period"],
                source_indicator_id=row["indicator"],
                country_code=row["country_code"],
                country_name=IMF_COUNTRIES.get(row["country_code"], row["country_code"]),
            )
            for row in raw.iter_rows(named=True)
            if row["time_period"] and not is_missing(row["value"])
        ]
        return sorted(observations, key=lambda o: (o.date, o.country_code or ""))

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "IMF World Economic Outlook — annual macro indicators",
            "countries": len(IMF_COUNTRIES),
        }

    async def fetch_observations(
        self,
        series_id: str,
        start: str | int,
        end: str | int | None = None,
        *,
        country_code: str = "US",
    ) -> list[Observation]:
        return await self.run(
            indicator=series_id,
            country_code=country_code,
            start_year=start,
            end_year=end,
        )
