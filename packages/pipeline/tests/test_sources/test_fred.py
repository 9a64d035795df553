"""
tests/test_sources/test_fred.py — Unit tests for FredSource.

HTTP is mocked with respx; fixture JSON mirrors the FRED series and
observations endpoints.
"""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
import respx

from econcal_pipeline.sources.base import ConfigurationError, FixedIntervalThrottle, SourceError
from econcal_pipeline.sources.fred import FredSource

FIXTURES = Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def series_payload() -> dict:
    return json.loads((FIXTURES / "fred_series.json").read_text())


@pytest.fixture
def observations_payload() -> dict:
    return json.loads((FIXTURES / "fred_observations.json").read_text())


def _source() -> FredSource:
    return FredSource(api_key="test-key", throttle=FixedIntervalThrottle(0))


def _mock_fred(router: respx.MockRouter, series: dict, observations: dict) -> respx.Route:
    router.get(url__regex=r".*/fred/series\?.*").mock(
        return_value=httpx.Response(200, json=series)
    )
    return router.get(url__regex=r".*/fred/series/observations.*").mock(
        return_value=httpx.Response(200, json=observations)
    )


class TestFredConfiguration:
    def test_missing_key_raises_configuration_error(self):
        with pytest.raises(ConfigurationError, match="FRED_API_KEY is required"):
            FredSource(api_key="")


class TestFredObservations:
    @pytest.mark.asyncio
    async def test_missing_readings_are_dropped(self, series_payload, observations_payload):
        with respx.mock() as router:
            _mock_fred(router, series_payload, observations_payload)
            observations = await _source().fetch_observations("UNRATE", "2023-10-01")

        assert [o.date for o in observations] == ["2023-10-01", "2023-11-01", "2024-01-01"]
        assert all(o.value != "." for o in observations)

    @pytest.mark.asyncio
    async def test_monthly_series_labelled_by_month(self, series_payload, observations_payload):
        with respx.mock() as router:
            _mock_fred(router, series_payload, observations_payload)
            observations = await _source().fetch_observations("UNRATE", "2023-10-01")

        assert observations[0].period == "Oct 2023"
        assert observations[0].value == "3.8"
        assert observations[0].source_indicator_id == "UNRATE"

    @pytest.mark.asyncio
    async def test_quarterly_frequency_drives_label(self, observations_payload):
        quarterly = {"seriess": [{"id": "GDP", "title": "GDP", "frequency": "Quarterly", "units": "Bil. $"}]}
        with respx.mock() as router:
            _mock_fred(router, quarterly, observations_payload)
            observations = await _source().fetch_observations("GDP", "2023-10-01")

        assert observations[0].period == "Q4 2023"
        assert observations[-1].period == "Q1 2024"

    @pytest.mark.asyncio
    async def test_weekly_frequency_with_qualifier_uses_date(self, observations_payload):
        weekly = {
            "seriess": [
                {"id": "ICSA", "title": "Claims", "frequency": "Weekly, Ending Saturday", "units": "Number"}
            ]
        }
        with respx.mock() as router:
            _mock_fred(router, weekly, observations_payload)
            observations = await _source().fetch_observations("ICSA", "2023-10-01")

        assert observations[0].period == "2023-10-01"

    @pytest.mark.asyncio
    async def test_request_carries_key_and_window(self, series_payload, observations_payload):
        with respx.mock() as router:
            route = _mock_fred(router, series_payload, observations_payload)
            await _source().fetch_observations("UNRATE", "2023-10-01", "2024-01-31")

        params = route.calls[0].request.url.params
        assert params["api_key"] == "test-key"
        assert params["file_type"] == "json"
        assert params["observation_start"] == "2023-10-01"
        assert params["observation_end"] == "2024-01-31"

    @pytest.mark.asyncio
    async def test_http_error_raises_source_error_with_status(self, series_payload):
        with respx.mock() as router:
            router.get(url__regex=r".*/fred/series\?.*").mock(
                return_value=httpx.Response(200, json=series_payload)
            )
            router.get(url__regex=r".*/fred/series/observations.*").mock(
                return_value=httpx.Response(400, text="Bad Request. The series does not exist.")
            )
            with pytest.raises(SourceError) as excinfo:
                await _source().fetch_observations("NOPE", "2023-10-01")

        assert excinfo.value.status_code == 400
        assert excinfo.value.unit == "NOPE"


class TestFredSeriesInfo:
    @pytest.mark.asyncio
    async def test_series_info_is_cached(self, series_payload):
        source = _source()
        with respx.mock() as router:
            route = router.get(url__regex=r".*/fred/series\?.*").mock(
                return_value=httpx.Response(200, json=series_payload)
            )
            first = await source.get_series_info("UNRATE")
            second = await source.get_series_info("UNRATE")

        assert route.call_count == 1
        assert first is second
        assert first.units == "Percent"
        assert first.frequency == "Monthly"

    @pytest.mark.asyncio
    async def test_unknown_series_raises(self):
        with respx.mock() as router:
            router.get(url__regex=r".*/fred/series\?.*").mock(
                return_value=httpx.Response(200, json={"seriess": []})
            )
            with pytest.raises(SourceError, match="Series not found: XYZ"):
                await _source().get_series_info("XYZ")
