"""
sources/bls.py — Bureau of Labor Statistics Public Data API v2 adapter.

Endpoint:
  POST /publicAPI/v2/timeseries/data/
  body: {"seriesid": [...], "startyear": "2014", "endyear": "2023",
         "catalog": true, "calculations": false, "annualaverage": false,
         "registrationkey": "..."}

Response shape:
  {"status": "REQUEST_SUCCEEDED", "message": [],
   "Results": {"series": [{"seriesID": "LNS14000000",
                           "catalog": {"series_title": "..."},
                           "data": [{"year": "2024", "period": "M01",
                                     "periodName": "January", "value": "3.7"}]}]}}

Request limits depend on registration:

  with key     500 requests/day, 50 series, 20 years per request
  without key   25 requests/day, 25 series, 10 years per request

Requests that exceed the series or year limits are split into chunks. The
daily budget cannot be waited out, so the throttle raises RateLimitError.
Data arrives newest first and is reversed to chronological order.

Usage:
    source = BlsSource()
    observations = await source.fetch_observations("LNS14000000", "2014")
"""

from __future__ import annotations

from datetime import date
from typing import Any

import polars as pl
import structlog

from econcal_shared.config import settings
from econcal_shared.constants import MONTH_ABBREVIATIONS
from econcal_shared.models import Observation
from econcal_pipeline.sources.base import (
    BaseSource,
    SlidingWindowThrottle,
    SourceError,
    Throttle,
    is_missing,
)

log = structlog.get_logger(__name__)

RAW_COLUMNS = ["series_id", "title", "year", "period", "period_name", "value"]

DAY_SECONDS = 86_400.0


# ---------------------------------------------------------------------------
# Period codes
# ---------------------------------------------------------------------------


def bls_period_to_date(year: str, period: str) -> str:
    """
    First day of a BLS period.

    M01..M12 → month, Q01..Q04 → first month of the quarter,
    S01/S02 → Jan/Jul, A01 (or anything else) → Jan 1.
    """
    code, num = period[:1], period[1:]
    match code:
        case "M":
            return f"{year}-{int(num):02d}-01"
        case "Q":
            return f"{year}-{(int(num) - 1) * 3 + 1:02d}-01"
        case "S":
            return f"{year}-{'01' if int(num) == 1 else '07'}-01"
        case _:
            return f"{year}-01-01"


def bls_period_label(year: str, period: str, period_name: str = "") -> str:
    code = period[:1]
    if code == "M":
        month = int(period[1:])
        abbr = period_name[:3] if period_name else MONTH_ABBREVIATIONS[month - 1]
        return f"{abbr} {year}"
    if code == "Q":
        return f"Q{int(period[1:])} {year}"
    if code == "A":
        return year
    if period_name:
        return f"{period_name} {year}"
    return year


def _chunks(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class BlsSource(BaseSource[Observation]):
    """Pulls CPS, CPI, PPI and CES series from the BLS API."""

    name = "BLS"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        throttle: Throttle | None = None,
        timeout: float | None = None,
    ) -> None:
        key = settings.bls_api_key if api_key is None else api_key
        self._api_key = key or None
        if self._api_key:
            self.max_requests_per_day, self.max_years, self.max_series = 500, 20, 50
        else:
            self.max_requests_per_day, self.max_years, self.max_series = 25, 10, 25

        super().__init__(
            throttle
            or SlidingWindowThrottle(
                max_requests=self.max_requests_per_day,
                window=DAY_SECONDS,
                wait_when_full=False,
                gap=0.5,
                limit_message=(
                    "Daily request limit reached ({max_requests}). "
                    "Try again tomorrow or register for an API key."
                ),
            ),
            timeout,
        )
        self._url = f"{settings.bls_base_url}/"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _post(
        self,
        series_ids: list[str],
        start_year: int,
        end_year: int,
        *,
        catalog: bool,
    ) -> list[dict[str, Any]]:
        unit = ",".join(series_ids)
        if len(series_ids) > self.max_series:
            raise SourceError(
                f"Too many series requested ({len(series_ids)}). "
                f"Maximum is {self.max_series} per request.",
                unit=unit,
                source=self.name,
            )
        span = end_year - start_year + 1
        if span > self.max_years:
            raise SourceError(
                f"Year range too large ({span} years). "
                f"Maximum is {self.max_years} years per request.",
                unit=unit,
                source=self.name,
            )

        body: dict[str, Any] = {
            "seriesid": series_ids,
            "startyear": str(start_year),
            "endyear": str(end_year),
            "catalog": catalog,
            "calculations": False,
            "annualaverage": False,
        }
        if self._api_key:
            body["registrationkey"] = self._api_key

        self._log.info(
            "bls_fetch",
            series=len(series_ids),
            start_year=start_year,
            end_year=end_year,
        )
        response = await self._request(
            "POST",
            self._url,
            json=body,
            headers={"Content-Type": "application/json"},
            unit=unit,
        )
        payload = self._decode(response, unit)

        if payload.get("status") == "REQUEST_FAILED":
            messages = payload.get("message") or []
            raise SourceError(
                f"BLS API request failed: {'; '.join(messages)}",
                unit=unit,
                source=self.name,
            )
        return (payload.get("Results") or {}).get("series") or []

    # ------------------------------------------------------------------
    # BaseSource interface
    # ------------------------------------------------------------------

    async def extract(
        self,
        *,
        series_ids: list[str],
        start_year: int | str,
        end_year: int | str | None = None,
        **kwargs: Any,
    ) -> pl.DataFrame:
        """
        Download every requested series, chunked by series count and year span.

        Titles come from the catalog block, requested on the first year chunk.

        Returns:
            Raw DataFrame with columns series_id, title, year, period,
            period_name, value in chronological order per series.
        """
        first = int(start_year)
        last = int(end_year) if end_year is not None else date.today().year
        titles: dict[str, str] = {}
        rows: list[dict[str, Any]] = []

        for batch in _chunks(list(series_ids), self.max_series):
            for chunk_start in range(first, last + 1, self.max_years):
                chunk_end = min(chunk_start + self.max_years - 1, last)
                series_list = await self._post(
                    batch, chunk_start, chunk_end, catalog=chunk_start == first
                )
                for series in series_list:
                    sid = series.get("seriesID", "")
                    title = (series.get("catalog") or {}).get("series_title")
                    if title:
                        titles[sid] = title
                    for obs in reversed(series.get("data") or []):
                        rows.append(
                            {
                                "series_id": sid,
                                "year": obs.get("year"),
                                "period": obs.get("period"),
                                "period_name": obs.get("periodName"),
                                "value": obs.get("value"),
                            }
                        )

        # Later chunks omit the catalog
        for row in rows:
            row["title"] = titles.get(row["series_id"], row["series_id"])
        return self._frame(rows, RAW_COLUMNS)

    def transform(self, raw: pl.DataFrame) -> list[Observation]:
        observations: list[Observation] = []
        for row in raw.iter_rows(named=True):
            if is_missing(row["value"]) or not row["year"] or not row["period"]:
                continue
            observations.append(
                Observation(
                    date=bls_period_to_date(row["year"], row["period"]),
                    value=row["value"].strip(),
                    period=bls_period_label(row["year"], row["period"], row["period_name"] or ""),
                    source_indicator_id=row["series_id"],
                )
            )
        return observations

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "url": self._url,
            "description": "BLS Public Data API v2 — labor force, prices, payrolls",
            "registered": self._api_key is not None,
            "max_series_per_request": self.max_series,
            "max_years_per_request": self.max_years,
        }

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    async def fetch_observations(
        self,
        series_id: str,
        start: str | int,
        end: str | int | None = None,
    ) -> list[Observation]:
        return await self.run(series_ids=[series_id], start_year=start, end_year=end)

    async def fetch_many(
        self,
        series_ids: list[str],
        start_year: int | str,
        end_year: int | str | None = None,
    ) -> dict[str, list[Observation]]:
        """
        Fetch several series in as few requests as the limits allow, grouped
        by series id. Every requested id has an entry, empty when BLS
        returned nothing for it.
        """
        raw = await self.extract(series_ids=series_ids, start_year=start_year, end_year=end_year)
        grouped: dict[str, list[Observation]] = {sid: [] for sid in series_ids}
        for obs in self.transform(raw):
            grouped.setdefault(obs.source_indicator_id, []).append(obs)
        return grouped
