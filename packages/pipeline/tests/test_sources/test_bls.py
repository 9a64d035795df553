"""
tests/test_sources/test_bls.py — Unit tests for BlsSource and BLS period codes.
"""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
import respx

from econcal_pipeline.sources.base import FixedIntervalThrottle, RateLimitError, SlidingWindowThrottle, SourceError
from econcal_pipeline.sources.bls import BlsSource, bls_period_label, bls_period_to_date

FIXTURES = Path(__file__).parent.parent / "fixtures"

BLS_URL = r".*api\.bls\.gov/publicAPI/v2/timeseries/data/"


@pytest.fixture
def bls_payload() -> dict:
    return json.loads((FIXTURES / "bls_timeseries.json").read_text())


def _source(api_key: str = "") -> BlsSource:
    return BlsSource(api_key=api_key, throttle=FixedIntervalThrottle(0))


# ---------------------------------------------------------------------------
# Period codes
# ---------------------------------------------------------------------------

class TestBlsPeriods:
    @pytest.mark.parametrize(
        "period, expected",
        [
            ("M01", "2024-01-01"),
            ("M12", "2024-12-01"),
            ("Q02", "2024-04-01"),
            ("S02", "2024-07-01"),
            ("A01", "2024-01-01"),
        ],
    )
    def test_period_to_date(self, period, expected):
        assert bls_period_to_date("2024", period) == expected

    def test_month_label_uses_period_name(self):
        assert bls_period_label("2024", "M03", "March") == "Mar 2024"

    def test_month_label_without_name_uses_abbreviation(self):
        assert bls_period_label("2024", "M11") == "Nov 2024"

    def test_quarter_and_annual_labels(self):
        assert bls_period_label("2024", "Q03") == "Q3 2024"
        assert bls_period_label("2024", "A01") == "2024"


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

class TestBlsFetch:
    @pytest.mark.asyncio
    async def test_fetch_many_groups_and_orders_chronologically(self, bls_payload):
        with respx.mock() as router:
            router.post(url__regex=BLS_URL).mock(return_value=httpx.Response(200, json=bls_payload))
            grouped = await _source().fetch_many(
                ["LNS14000000", "CUUR0000SA0"], 2023, 2024
            )

        unemployment = grouped["LNS14000000"]
        # "-" in Dec 2023 is a missing reading
        assert [o.period for o in unemployment] == ["Jan 2024", "Feb 2024"]
        assert [o.value for o in unemployment] == ["3.7", "3.9"]
        assert grouped["CUUR0000SA0"][0].value == "308.417"

    @pytest.mark.asyncio
    async def test_extract_carries_catalog_titles(self, bls_payload):
        with respx.mock() as router:
            router.post(url__regex=BLS_URL).mock(return_value=httpx.Response(200, json=bls_payload))
            raw = await _source().extract(
                series_ids=["LNS14000000", "CUUR0000SA0"], start_year=2023, end_year=2024
            )

        titles = dict(raw.select("series_id", "title").unique().iter_rows())
        assert titles["LNS14000000"] == "(Seas) Unemployment Rate"

    @pytest.mark.asyncio
    async def test_unregistered_request_omits_key(self, bls_payload):
        with respx.mock() as router:
            route = router.post(url__regex=BLS_URL).mock(
                return_value=httpx.Response(200, json=bls_payload)
            )
            await _source().fetch_observations("LNS14000000", 2023, 2024)

        body = json.loads(route.calls[0].request.content)
        assert "registrationkey" not in body
        assert body["seriesid"] == ["LNS14000000"]
        assert body["startyear"] == "2023"
        assert body["catalog"] is True

    @pytest.mark.asyncio
    async def test_year_span_is_chunked_by_limit(self, bls_payload):
        # Unregistered: 10 years per request, so 2005..2024 takes two calls
        with respx.mock() as router:
            route = router.post(url__regex=BLS_URL).mock(
                return_value=httpx.Response(200, json=bls_payload)
            )
            await _source().fetch_observations("LNS14000000", 2005, 2024)

        bodies = [json.loads(call.request.content) for call in route.calls]
        assert [(b["startyear"], b["endyear"]) for b in bodies] == [("2005", "2014"), ("2015", "2024")]
        assert [b["catalog"] for b in bodies] == [True, False]

    @pytest.mark.asyncio
    async def test_registered_key_raises_limits(self, bls_payload):
        source = _source(api_key="bls-key")
        assert source.max_series == 50
        assert source.max_years == 20
        with respx.mock() as router:
            route = router.post(url__regex=BLS_URL).mock(
                return_value=httpx.Response(200, json=bls_payload)
            )
            await source.fetch_observations("LNS14000000", 2005, 2024)

        assert route.call_count == 1
        assert json.loads(route.calls[0].request.content)["registrationkey"] == "bls-key"

    @pytest.mark.asyncio
    async def test_request_failed_status_raises(self):
        failed = {"status": "REQUEST_FAILED", "message": ["Invalid Series ID"], "Results": {}}
        with respx.mock() as router:
            router.post(url__regex=BLS_URL).mock(return_value=httpx.Response(200, json=failed))
            with pytest.raises(SourceError, match="BLS API request failed: Invalid Series ID"):
                await _source().fetch_observations("BAD", 2023, 2024)

    @pytest.mark.asyncio
    async def test_daily_budget_exhaustion_raises_rate_limit(self, bls_payload):
        throttle = SlidingWindowThrottle(max_requests=1, window=86_400.0, wait_when_full=False)
        source = BlsSource(api_key="", throttle=throttle)
        with respx.mock() as router:
            router.post(url__regex=BLS_URL).mock(return_value=httpx.Response(200, json=bls_payload))
            await source.fetch_observations("LNS14000000", 2023, 2024)
            with pytest.raises(RateLimitError):
                await source.fetch_observations("LNS14000000", 2023, 2024)
