"""
sources/ecb.py — ECB Statistical Data Warehouse (SDW) source adapter.

Endpoint:
  GET /service/data/{dataflow}/{series key}?format=jsondata&detail=dataonly
      &startPeriod=2014-01&endPeriod=2024-12

SDMX-JSON shape (trimmed):
  {
    "dataSets": [{"series": {"0:0:0": {"observations": {"0": [4.5], "1": [null]}}}}],
    "structure": {
      "name": "...",
      "dimensions": {
        "series": [{"id": "FREQ", "values": [{"id": "M"}]}, ...],
        "observation": [{"id": "TIME_PERIOD", "values": [{"id": "2024-01"}, ...]}]
      }
    }
  }

Observation keys are indexes into the TIME_PERIOD values. A 404 means the
series has no data in the requested window. Null readings are skipped.

Usage:
    source = EcbSource()
    observations = await source.fetch_observations("ICP.M.U2.N.000000.4.ANR", "2014-01")
"""

from __future__ import annotations

from typing import Any

import polars as pl
import structlog

from econcal_shared.config import settings
from econcal_shared.models import Observation
from econcal_shared.time_utils import sdmx_period_label, sdmx_period_to_date
from econcal_pipeline.sources.base import (
    BaseSource,
    FixedIntervalThrottle,
    Throttle,
    is_missing,
)

log = structlog.get_logger(__name__)

RAW_COLUMNS = ["series_key", "time_period", "value", "frequency", "title"]


def split_series_key(series_key: str) -> tuple[str, str]:
    """'ICP.M.U2.N.000000.4.ANR' → ('ICP', 'M.U2.N.000000.4.ANR')"""
    dataflow, _, key = series_key.partition(".")
    return dataflow, key


def parse_sdmx_json(series_key: str, payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten an SDMX-JSON data message into one row per observation."""
    structure = payload.get("structure") or {}
    dimensions = structure.get("dimensions") or {}

    time_values: list[dict[str, Any]] = []
    for dim in dimensions.get("observation") or []:
        if dim.get("id") == "TIME_PERIOD":
            time_values = dim.get("values") or []

    frequency = "M"
    for dim in dimensions.get("series") or []:
        if dim.get("id") == "FREQ" and dim.get("values"):
            frequency = dim["values"][0].get("id", "M")

    dataflow, key = split_series_key(series_key)
    title = structure.get("name") or f"{dataflow} - {key}"

    rows: list[dict[str, Any]] = []
    for data_set in payload.get("dataSets") or []:
        for series in (data_set.get("series") or {}).values():
            for index, obs in (series.get("observations") or {}).items():
                position = int(index)
                if position >= len(time_values):
                    continue
                rows.append(
                    {
                        "series_key": series_key,
                        "time_period": time_values[position].get("id"),
                        "value": obs[0] if obs else None,
                        "frequency": frequency,
                        "title": title,
                    }
                )
    return rows


class EcbSource(BaseSource[Observation]):
    """Pulls euro-area rates, HICP, GDP and money supply from the ECB SDW."""

    name = "ECB"

    def __init__(
        self,
        *,
        throttle: Throttle | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(throttle or FixedIntervalThrottle(min_interval=0.5), timeout)
        self._base_url = settings.ecb_base_url

    async def extract(
        self,
        *,
        series_key: str,
        start_period: str | None = None,
        end_period: str | None = None,
        **kwargs: Any,
    ) -> pl.DataFrame:
        """
        Download one SDW series.

        Returns:
            Raw DataFrame with columns series_key, time_period, value,
            frequency, title. Empty when the ECB answers 404.
        """
        dataflow, key = split_series_key(series_key)
        params = {"format": "jsondata", "detail": "dataonly"}
        if start_period:
            params["startPeriod"] = start_period
        if end_period:
            params["endPeriod"] = end_period

        self._log.info("ecb_fetch", dataflow=dataflow, key=key, start_period=start_period)
        response = await self._request(
            "GET",
            f"{self._base_url}/{dataflow}/{key}",
            params=params,
            headers={"Accept": "application/json"},
            unit=series_key,
            ok_statuses=(404,),
        )
        if response.status_code == 404:
            self._log.warning("ecb_no_data", series_key=series_key)
            return self._frame([], RAW_COLUMNS)

        payload = self._decode(response, series_key)
        return self._frame(parse_sdmx_json(series_key, payload), RAW_COLUMNS)

    def transform(self, raw: pl.DataFrame) -> list[Observation]:
        observations = [
            Observation(
                date=sdmx_period_to_date(row["time_period"]),
                value=row["value"],
                period=sdmx_period_label(row["time_period"]),
                source_indicator_id=row["series_key"],
            )
            for row in raw.iter_rows(named=True)
            if row["time_period"] and not is_missing(row["value"])
        ]
        return sorted(observations, key=lambda o: o.date)

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "ECB Statistical Data Warehouse — SDMX-JSON series",
        }

    async def fetch_observations(
        self,
        series_id: str,
        start: str,
        end: str | None = None,
    ) -> list[Observation]:
        return await self.run(series_key=series_id, start_period=start, end_period=end)
