"""
tests/test_pipelines/test_record_store.py — SupabaseRecordStore against a mocked client.

The supabase client is a MagicMock, so no network or database is touched.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from supabase import PostgrestAPIError

from econcal_shared.models import Indicator, Release
from econcal_pipeline.loaders.record_store import (
    RecordStoreError,
    SupabaseRecordStore,
    release_keys_filter,
    release_windows_filter,
)


def _single_chain(client: MagicMock) -> MagicMock:
    return client.table.return_value.select.return_value.eq.return_value.eq.return_value.single.return_value


class TestFilters:
    def test_release_keys_filter_quotes_values(self):
        text = release_keys_filter([("ind-1", "2024-01-01T00:00:00+00:00", "Jan 2024")])
        assert text == (
            'and(indicator_id.eq.ind-1,release_at.eq."2024-01-01T00:00:00+00:00",'
            'period.eq."Jan 2024")'
        )

    def test_release_windows_filter_joins_with_commas(self):
        text = release_windows_filter(
            [
                ("ind-1", "2024-03-12T04:00:00+00:00", "2024-03-13T03:59:59+00:00"),
                ("ind-2", "2024-03-12T00:00:00+00:00", "2024-03-12T23:59:59+00:00"),
            ]
        )
        assert text.count("and(") == 2
        assert 'release_at.gte."2024-03-12T04:00:00+00:00"' in text
        assert 'release_at.lte."2024-03-12T23:59:59+00:00"' in text


class TestIndicators:
    @pytest.mark.asyncio
    async def test_find_indicator_returns_model(self, mock_supabase_client):
        _single_chain(mock_supabase_client).execute.return_value = MagicMock(
            data={
                "id": "ind-1",
                "name": "Unemployment Rate",
                "country_code": "US",
                "category": "Employment",
                "source_name": "Federal Reserve Economic Data",
                "created_at": "2024-01-01T00:00:00Z",
            }
        )
        store = SupabaseRecordStore(mock_supabase_client)

        indicator = await store.find_indicator("Unemployment Rate", "US")

        assert indicator is not None
        assert indicator.id == "ind-1"
        mock_supabase_client.table.assert_called_with("indicators")

    @pytest.mark.asyncio
    async def test_not_found_code_means_none(self, mock_supabase_client):
        _single_chain(mock_supabase_client).execute.side_effect = PostgrestAPIError(
            {"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"}
        )
        store = SupabaseRecordStore(mock_supabase_client)

        assert await store.find_indicator("Nope", "US") is None

    @pytest.mark.asyncio
    async def test_other_errors_raise(self, mock_supabase_client):
        _single_chain(mock_supabase_client).execute.side_effect = PostgrestAPIError(
            {"code": "42501", "message": "permission denied for table indicators"}
        )
        store = SupabaseRecordStore(mock_supabase_client)

        with pytest.raises(RecordStoreError) as excinfo:
            await store.find_indicator("Unemployment Rate", "US")

        assert excinfo.value.code == "42501"
        assert not excinfo.value.not_found

    @pytest.mark.asyncio
    async def test_insert_indicator_returns_stored_row(self, mock_supabase_client):
        mock_supabase_client.table.return_value.insert.return_value.execute.return_value = MagicMock(
            data=[
                {
                    "id": "ind-9",
                    "name": "CPI (YoY)",
                    "country_code": "US",
                    "category": "Inflation",
                    "source_name": "CME Group",
                }
            ]
        )
        store = SupabaseRecordStore(mock_supabase_client)
        indicator = Indicator(
            name="CPI (YoY)", country_code="US", category="Inflation", source_name="CME Group"
        )

        stored = await store.insert_indicator(indicator)

        assert stored.id == "ind-9"
        payload = mock_supabase_client.table.return_value.insert.call_args.args[0]
        assert "id" not in payload
        assert "source_url" not in payload

    @pytest.mark.asyncio
    async def test_insert_without_row_raises(self, mock_supabase_client):
        store = SupabaseRecordStore(mock_supabase_client)
        indicator = Indicator(name="X", country_code="US", category="Other", source_name="CME Group")
        with pytest.raises(RecordStoreError, match="Insert returned no row"):
            await store.insert_indicator(indicator)


class TestReleases:
    @pytest.mark.asyncio
    async def test_find_releases_sends_or_filter(self, mock_supabase_client):
        chain = mock_supabase_client.table.return_value.select.return_value.or_
        chain.return_value.execute.return_value = MagicMock(
            data=[
                {
                    "id": "rel-1",
                    "indicator_id": "ind-1",
                    "release_at": "2024-01-01T00:00:00Z",
                    "period": "Jan 2024",
                    "actual": "3.7",
                }
            ]
        )
        store = SupabaseRecordStore(mock_supabase_client)

        rows = await store.find_releases([("ind-1", "2024-01-01T00:00:00+00:00", "Jan 2024")])

        assert rows[0].release_at == "2024-01-01T00:00:00+00:00"
        assert "indicator_id.eq.ind-1" in chain.call_args.args[0]

    @pytest.mark.asyncio
    async def test_empty_lookups_skip_the_call(self, mock_supabase_client):
        store = SupabaseRecordStore(mock_supabase_client)
        assert await store.find_releases([]) == []
        assert await store.find_releases_in_windows([]) == []
        assert await store.insert_releases([]) == []
        mock_supabase_client.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_release_targets_id(self, mock_supabase_client):
        store = SupabaseRecordStore(mock_supabase_client)

        await store.update_release("rel-1", {"actual": "3.8"})

        table = mock_supabase_client.table.return_value
        table.update.assert_called_once_with({"actual": "3.8"})
        table.update.return_value.eq.assert_called_once_with("id", "rel-1")

    @pytest.mark.asyncio
    async def test_insert_releases_sends_rows(self, mock_supabase_client):
        release = Release(indicator_id="ind-1", release_at="2024-01-01", period="Jan 2024", actual="3.7")
        store = SupabaseRecordStore(mock_supabase_client)

        await store.insert_releases([release])

        rows = mock_supabase_client.table.return_value.insert.call_args.args[0]
        assert rows == [
            {
                "indicator_id": "ind-1",
                "release_at": "2024-01-01T00:00:00+00:00",
                "period": "Jan 2024",
                "actual": "3.7",
            }
        ]


class TestSupabaseClient:
    def test_missing_service_key_raises(self, monkeypatch: pytest.MonkeyPatch):
        from econcal_shared.config import settings
        from econcal_shared.db import get_supabase_client, reset_supabase_clients

        reset_supabase_clients()
        monkeypatch.setattr(settings, "supabase_service_key", "")

        with pytest.raises(RuntimeError, match="SUPABASE_SERVICE_KEY is not set"):
            SupabaseRecordStore()
        with pytest.raises(RuntimeError, match="SUPABASE_SERVICE_KEY is not set"):
            get_supabase_client()

    def test_client_is_created_once(self, monkeypatch: pytest.MonkeyPatch):
        from econcal_shared.config import settings
        from econcal_shared.db import get_supabase_client, reset_supabase_clients

        reset_supabase_clients()
        monkeypatch.setattr(settings, "supabase_service_key", "service-key")
        with patch("econcal_shared.db.create_client", return_value=MagicMock()) as create:
            first = get_supabase_client()
            second = get_supabase_client()
        reset_supabase_clients()

        assert first is second
        create.assert_called_once_with(settings.supabase_url, "service-key")
