"""
tests/test_pipelines/test_reconciler.py — Reconciler against the in-memory record store.
"""

from __future__ import annotations

import pytest

from econcal_shared.models import Indicator, Release
from econcal_pipeline.loaders.reconciler import Reconciler
from econcal_pipeline.loaders.record_store import RecordStoreError
from conftest import InMemoryRecordStore, make_event


def _indicator(name: str = "Unemployment Rate", country: str = "US") -> Indicator:
    return Indicator(name=name, country_code=country, category="Employment", source_name="FRED")


def _release(indicator_id: str, day: str, actual: str, period: str | None = None) -> Release:
    return Release(
        indicator_id=indicator_id,
        release_at=f"{day}T00:00:00Z",
        period=period or day[:7],
        actual=actual,
        unit="Percent",
        notes="Imported from FRED",
    )


# ---------------------------------------------------------------------------
# Indicators
# ---------------------------------------------------------------------------

class TestResolveIndicator:
    @pytest.mark.asyncio
    async def test_creates_once_then_caches(self, memory_store: InMemoryRecordStore):
        reconciler = Reconciler(memory_store)

        first_id, created = await reconciler.resolve_indicator(_indicator())
        second_id, created_again = await reconciler.resolve_indicator(_indicator())

        assert created is True
        assert created_again is False
        assert first_id == second_id
        assert memory_store.calls.count("find_indicator") == 1
        assert len(memory_store.indicators) == 1

    @pytest.mark.asyncio
    async def test_existing_indicator_is_found(self, memory_store: InMemoryRecordStore):
        existing = memory_store.seed_indicator(_indicator())
        indicator_id, created = await Reconciler(memory_store).resolve_indicator(_indicator())
        assert (indicator_id, created) == (existing.id, False)

    @pytest.mark.asyncio
    async def test_same_name_other_country_is_distinct(self, memory_store: InMemoryRecordStore):
        reconciler = Reconciler(memory_store)
        us_id, _ = await reconciler.resolve_indicator(_indicator(country="US"))
        de_id, _ = await reconciler.resolve_indicator(_indicator(country="DE"))
        assert us_id != de_id

    @pytest.mark.asyncio
    async def test_insert_without_id_raises(self, memory_store: InMemoryRecordStore):
        async def insert_indicator(indicator: Indicator) -> Indicator:
            return indicator

        memory_store.insert_indicator = insert_indicator  # type: ignore[method-assign]

        with pytest.raises(RecordStoreError, match="US:Unemployment Rate came back from the store without an id"):
            await Reconciler(memory_store).resolve_indicator(_indicator())


# ---------------------------------------------------------------------------
# Historical releases
# ---------------------------------------------------------------------------

class TestReconcileReleases:
    @pytest.mark.asyncio
    async def test_new_releases_are_inserted(self, memory_store: InMemoryRecordStore):
        releases = [_release("ind-1", "2024-01-01", "3.7"), _release("ind-1", "2024-02-01", "3.9")]
        result = await Reconciler(memory_store).reconcile_releases(releases)

        assert (result.inserted, result.updated, result.skipped) == (2, 0, 0)
        assert len(memory_store.releases) == 2

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, memory_store: InMemoryRecordStore):
        releases = [_release("ind-1", "2024-01-01", "3.7"), _release("ind-1", "2024-02-01", "3.9")]
        await Reconciler(memory_store).reconcile_releases(releases)

        result = await Reconciler(memory_store).reconcile_releases(releases)

        assert (result.inserted, result.updated, result.skipped) == (0, 0, 2)
        assert len(memory_store.releases) == 2

    @pytest.mark.asyncio
    async def test_revised_value_is_updated(self, memory_store: InMemoryRecordStore):
        stored = memory_store.seed_release(_release("ind-1", "2024-01-01", "3.7"))

        result = await Reconciler(memory_store).reconcile_releases(
            [_release("ind-1", "2024-01-01", "3.8")]
        )

        assert result.updated == 1
        assert memory_store.releases[stored.id].actual == "3.8"

    @pytest.mark.asyncio
    async def test_duplicates_in_batch_are_counted(self, memory_store: InMemoryRecordStore):
        releases = [_release("ind-1", "2024-01-01", "3.7"), _release("ind-1", "2024-01-01", "3.8")]
        result = await Reconciler(memory_store).reconcile_releases(releases)

        assert result.duplicates_removed == 1
        assert result.inserted == 1
        assert next(iter(memory_store.releases.values())).actual == "3.8"

    @pytest.mark.asyncio
    async def test_lookups_and_inserts_are_chunked(self, memory_store: InMemoryRecordStore):
        releases = [_release("ind-1", f"2024-{m:02d}-01", str(m)) for m in range(1, 8)]
        result = await Reconciler(memory_store, chunk_size=3).reconcile_releases(releases)

        assert result.inserted == 7
        assert memory_store.calls.count("find_releases") == 3
        assert memory_store.calls.count("insert_releases") == 3

    @pytest.mark.asyncio
    async def test_failed_insert_batch_is_recorded(self, memory_store: InMemoryRecordStore):
        memory_store.fail["insert_releases"] = RecordStoreError("duplicate key value violates unique constraint")
        result = await Reconciler(memory_store).reconcile_releases([_release("ind-1", "2024-01-01", "3.7")])

        assert result.inserted == 0
        assert result.errors == ["Insert batch 1/1: duplicate key value violates unique constraint"]

    @pytest.mark.asyncio
    async def test_failed_lookup_skips_chunk(self, memory_store: InMemoryRecordStore):
        memory_store.fail["find_releases"] = RecordStoreError("timeout")
        result = await Reconciler(memory_store).reconcile_releases([_release("ind-1", "2024-01-01", "3.7")])

        assert result.inserted == 0
        assert result.errors == ["Lookup of 1 releases failed: timeout"]
        assert memory_store.releases == {}

    @pytest.mark.asyncio
    async def test_failed_update_is_recorded(self, memory_store: InMemoryRecordStore):
        memory_store.seed_release(_release("ind-1", "2024-01-01", "3.7", period="Jan 2024"))
        memory_store.fail["update_release"] = RecordStoreError("row is locked")

        result = await Reconciler(memory_store).reconcile_releases(
            [_release("ind-1", "2024-01-01", "3.8", period="Jan 2024")]
        )

        assert result.updated == 0
        assert result.errors == ["Update Jan 2024: row is locked"]

    @pytest.mark.asyncio
    async def test_empty_input(self, memory_store: InMemoryRecordStore):
        result = await Reconciler(memory_store).reconcile_releases([])
        assert (result.inserted, result.updated, result.skipped) == (0, 0, 0)
        assert memory_store.calls == []


# ---------------------------------------------------------------------------
# Calendar events
# ---------------------------------------------------------------------------

def _cpi_indicator() -> Indicator:
    return Indicator(name="CPI (YoY)", country_code="US", category="Inflation", source_name="CME Group")


class TestReconcileEvents:
    @pytest.mark.asyncio
    async def test_new_event_is_inserted_as_release(self, memory_store: InMemoryRecordStore):
        event = make_event(time="08:30")
        result = await Reconciler(memory_store).reconcile_events(
            [(_cpi_indicator(), event)], source_name="CME Group"
        )

        assert result.inserted == 1
        stored = next(iter(memory_store.releases.values()))
        # 08:30 New York is 12:30Z once DST has started
        assert stored.release_at == "2024-03-12T12:30:00+00:00"
        assert stored.period == "Mar 2024"
        assert stored.notes == "Impact: Low. Source: CME Group."

    @pytest.mark.asyncio
    async def test_unchanged_event_is_skipped(self, memory_store: InMemoryRecordStore):
        pairs = [(_cpi_indicator(), make_event(time="08:30"))]
        await Reconciler(memory_store).reconcile_events(pairs, source_name="CME Group")

        result = await Reconciler(memory_store).reconcile_events(pairs, source_name="CME Group")

        assert (result.inserted, result.updated, result.skipped) == (0, 0, 1)
        assert result.schedule_changes == []

    @pytest.mark.asyncio
    async def test_moved_time_emits_schedule_change(self, memory_store: InMemoryRecordStore):
        await Reconciler(memory_store).reconcile_events(
            [(_cpi_indicator(), make_event(time="08:30"))], source_name="CME Group"
        )

        result = await Reconciler(memory_store).reconcile_events(
            [(_cpi_indicator(), make_event(time="09:00"))], source_name="CME Group"
        )

        assert result.updated == 1
        assert result.inserted == 0
        [change] = result.schedule_changes
        assert change.change_type == "time_changed"
        assert change.old_value == "2024-03-12T12:30:00+00:00"
        assert change.new_value == "2024-03-12T13:00:00+00:00"
        assert change.indicator_name == "CPI (YoY)"
        assert change.country == "US"

        [stored] = memory_store.releases.values()
        assert stored.release_at == "2024-03-12T13:00:00+00:00"
        assert change.release_id == stored.id

    @pytest.mark.asyncio
    async def test_other_day_is_a_new_release(self, memory_store: InMemoryRecordStore):
        await Reconciler(memory_store).reconcile_events(
            [(_cpi_indicator(), make_event(day="2024-03-12"))], source_name="CME Group"
        )
        result = await Reconciler(memory_store).reconcile_events(
            [(_cpi_indicator(), make_event(day="2024-04-10"))], source_name="CME Group"
        )

        assert result.inserted == 1
        assert result.schedule_changes == []
        assert len(memory_store.releases) == 2

    @pytest.mark.asyncio
    async def test_new_forecast_updates_without_schedule_change(self, memory_store: InMemoryRecordStore):
        indicator = _cpi_indicator()
        await Reconciler(memory_store).reconcile_events(
            [(indicator, make_event(forecast="3.1"))], source_name="FMP"
        )

        result = await Reconciler(memory_store).reconcile_events(
            [(indicator, make_event(forecast="3.2", actual="3.2"))], source_name="FMP"
        )

        assert result.updated == 1
        assert result.schedule_changes == []
        [stored] = memory_store.releases.values()
        assert (stored.forecast, stored.actual) == ("3.2", "3.2")

    @pytest.mark.asyncio
    async def test_failed_move_emits_no_schedule_change(self, memory_store: InMemoryRecordStore):
        await Reconciler(memory_store).reconcile_events(
            [(_cpi_indicator(), make_event(time="08:30"))], source_name="CME Group"
        )
        memory_store.fail["update_release"] = RecordStoreError("row is locked")

        result = await Reconciler(memory_store).reconcile_events(
            [(_cpi_indicator(), make_event(time="09:00"))], source_name="CME Group"
        )

        assert result.schedule_changes == []
        assert result.errors == ["Update Mar 2024: row is locked"]

    @pytest.mark.asyncio
    async def test_indicator_failure_skips_event(self, memory_store: InMemoryRecordStore):
        memory_store.fail["find_indicator"] = RecordStoreError("connection reset")
        result = await Reconciler(memory_store).reconcile_events(
            [(_cpi_indicator(), make_event())], source_name="CME Group"
        )

        assert result.inserted == 0
        assert result.errors == ["US: CPI (YoY): connection reset"]

    @pytest.mark.asyncio
    async def test_same_release_twice_in_batch(self, memory_store: InMemoryRecordStore):
        pairs = [(_cpi_indicator(), make_event()), (_cpi_indicator(), make_event())]
        result = await Reconciler(memory_store).reconcile_events(pairs, source_name="CME Group")

        assert result.duplicates_removed == 1
        assert result.inserted == 1

    @pytest.mark.asyncio
    async def test_two_releases_on_one_day_keep_their_own_rows(self, memory_store: InMemoryRecordStore):
        indicator = _cpi_indicator()
        # Stored afternoon first, so a first-row-of-the-day match would pick it for 10:00
        await Reconciler(memory_store).reconcile_events(
            [(indicator, make_event(time="14:00")), (indicator, make_event(time="10:00"))],
            source_name="CME Group",
        )

        result = await Reconciler(memory_store).reconcile_events(
            [(indicator, make_event(time="10:00")), (indicator, make_event(time="14:00"))],
            source_name="CME Group",
        )

        assert (result.inserted, result.updated, result.skipped) == (0, 0, 2)
        assert result.schedule_changes == []
        assert sorted(r.release_at for r in memory_store.releases.values()) == [
            "2024-03-12T14:00:00+00:00",
            "2024-03-12T18:00:00+00:00",
        ]

    @pytest.mark.asyncio
    async def test_moved_release_does_not_take_an_exact_match(self, memory_store: InMemoryRecordStore):
        indicator = _cpi_indicator()
        await Reconciler(memory_store).reconcile_events(
            [(indicator, make_event(time="10:00")), (indicator, make_event(time="14:00"))],
            source_name="CME Group",
        )

        # The 14:00 release moves to 15:00; 10:00 is unchanged
        result = await Reconciler(memory_store).reconcile_events(
            [(indicator, make_event(time="15:00")), (indicator, make_event(time="10:00"))],
            source_name="CME Group",
        )

        assert (result.inserted, result.updated, result.skipped) == (0, 1, 1)
        [change] = result.schedule_changes
        assert change.old_value == "2024-03-12T18:00:00+00:00"
        assert change.new_value == "2024-03-12T19:00:00+00:00"
        assert sorted(r.release_at for r in memory_store.releases.values()) == [
            "2024-03-12T14:00:00+00:00",
            "2024-03-12T19:00:00+00:00",
        ]

    @pytest.mark.asyncio
    async def test_unparseable_time_rejects_only_that_event(self, memory_store: InMemoryRecordStore):
        claims = Indicator(
            name="Initial Jobless Claims", country_code="US", category="Employment", source_name="Finnhub"
        )
        pairs = [
            (claims, make_event("Initial Jobless Claims", day="2024-03-14", time="8:3x")),
            (_cpi_indicator(), make_event(time="08:30")),
        ]

        result = await Reconciler(memory_store).reconcile_events(pairs, source_name="Finnhub")

        assert result.inserted == 1
        [error] = result.errors
        assert error.startswith("US: Initial Jobless Claims: ")
        [stored] = memory_store.releases.values()
        assert stored.release_at == "2024-03-12T12:30:00+00:00"
