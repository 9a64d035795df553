"""
pipelines/historical.py — Bulk history imports from FRED, BLS, ECB, IMF and World Bank.

Each pipeline walks its catalog one unit at a time:

  FRED, ECB      one unit per series
  BLS            one unit per series; all series share chunked requests
  IMF            one unit per indicator × country
  World Bank     one unit per indicator × country, fetched per indicator

For every unit: fetch → normalize → validate → resolve indicator →
reconcile releases. Observations are stored as releases at midnight UTC of
the observation date, labelled with the observation's period. A failing unit
is recorded and the next one starts.

Usage:
    from econcal_pipeline.pipelines.historical import import_fred

    result = await import_fred(["UNRATE", "CPIAUCSL"], start="2020-01-01")
    print(result.status, result.inserted, result.updated)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import TypeVar

from econcal_shared.config import settings
from econcal_shared.models import Indicator, Observation, Release
from econcal_shared.time_utils import to_utc_iso
from econcal_pipeline.loaders.reconciler import Reconciler
from econcal_pipeline.loaders.record_store import RecordStore, SupabaseRecordStore
from econcal_pipeline.pipelines.runner import ImportResult, ImportRun, RunState
from econcal_pipeline.sources.bls import BlsSource
from econcal_pipeline.sources.catalog import (
    BLS_SERIES,
    ECB_SERIES,
    FRED_SERIES,
    IMF_COUNTRIES,
    IMF_INDICATORS,
    WORLD_BANK_COUNTRIES,
    WORLD_BANK_INDICATORS,
    indicator_for,
)
from econcal_pipeline.sources.ecb import EcbSource
from econcal_pipeline.sources.fred import FredSource
from econcal_pipeline.sources.imf import ImfSource
from econcal_pipeline.sources.worldbank import WorldBankSource
from econcal_pipeline.transforms.validation import ValidationOptions, process_observations
from econcal_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="historical")

EntryT = TypeVar("EntryT")


def select_entries(
    catalog: Mapping[str, EntryT],
    ids: Iterable[str] | None,
    label: str,
) -> list[EntryT]:
    """Catalog entries for an allow-list, in allow-list order (all when None)."""
    if ids is None:
        return list(catalog.values())
    wanted = list(dict.fromkeys(ids))
    unknown = [i for i in wanted if i not in catalog]
    if unknown:
        raise ValueError(f"Unknown {label}: {', '.join(unknown)}")
    return [catalog[i] for i in wanted]


def select_countries(
    countries: Mapping[str, str],
    codes: Iterable[str] | None,
) -> dict[str, str]:
    if codes is None:
        return dict(countries)
    wanted = [c.upper() for c in codes]
    unknown = [c for c in wanted if c not in countries]
    if unknown:
        raise ValueError(f"Unknown country codes: {', '.join(unknown)}")
    return {c: countries[c] for c in wanted}


def _observation_key(obs: Observation) -> str:
    return f"{obs.country_code or ''}|{obs.date}|{obs.period}"


async def _load_unit(
    run: ImportRun,
    reconciler: Reconciler,
    unit: str,
    indicator: Indicator,
    observations: Sequence[Observation],
    options: ValidationOptions,
    *,
    unit_label: str | None,
    notes: str,
) -> None:
    """Validate one unit's observations and reconcile them as releases."""
    run.advance(RunState.VALIDATING)
    survivors, stats = process_observations(observations, options, key_fn=_observation_key)
    run.add_validation(stats)

    run.advance(RunState.RECONCILING)
    indicator_id, created = await reconciler.resolve_indicator(indicator)
    if created:
        run.indicators_created += 1

    releases = [
        Release(
            indicator_id=indicator_id,
            release_at=to_utc_iso(obs.date),
            period=obs.period,
            actual=obs.value,
            unit=unit_label,
            notes=notes,
        )
        for obs in survivors
    ]
    result = await reconciler.reconcile_releases(releases)
    run.add_reconcile(unit, result)
    log.info(
        "unit_reconciled",
        unit=unit,
        indicator=indicator.name,
        inserted=result.inserted,
        updated=result.updated,
        skipped=result.skipped,
    )


# ---------------------------------------------------------------------------
# FRED
# ---------------------------------------------------------------------------


async def import_fred(
    series_ids: Iterable[str] | None = None,
    *,
    start: str | None = None,
    end: str | None = None,
    options: ValidationOptions | None = None,
    source: FredSource | None = None,
    store: RecordStore | None = None,
) -> ImportResult:
    """
    Import FRED series observations.

    Raises:
        ConfigurationError: FRED_API_KEY is not set.
        RuntimeError:       the Supabase service key is not set.
    """
    entries = select_entries(FRED_SERIES, series_ids, "FRED series")
    run = ImportRun("fred_import", data_source="fred")
    source = source or FredSource()
    reconciler = Reconciler(store or SupabaseRecordStore())
    options = options or ValidationOptions.from_settings()
    start = start or settings.fred_import_start_date

    log.info("fred_import_start", series=len(entries), start=start)
    for entry in entries:
        unit = entry.series_id
        run.advance(RunState.FETCHING)
        try:
            info = await source.get_series_info(unit)
            observations = await source.fetch_observations(unit, start, end)
            run.advance(RunState.NORMALIZING)
            await _load_unit(
                run,
                reconciler,
                unit,
                indicator_for(entry),
                observations,
                options,
                unit_label=info.units or None,
                notes="Imported from FRED",
            )
            run.unit_succeeded(unit)
        except Exception as exc:
            run.unit_failed(unit, exc)

    return run.finish()


# ---------------------------------------------------------------------------
# BLS
# ---------------------------------------------------------------------------


async def import_bls(
    series_ids: Iterable[str] | None = None,
    *,
    start_year: int | None = None,
    end_year: int | None = None,
    options: ValidationOptions | None = None,
    source: BlsSource | None = None,
    store: RecordStore | None = None,
) -> ImportResult:
    """
    Import BLS series. All selected series are fetched together so the
    daily request budget is spent on as few requests as possible; if that
    fetch fails every series is recorded as failed.
    """
    entries = select_entries(BLS_SERIES, series_ids, "BLS series")
    run = ImportRun("bls_import", data_source="bls")
    source = source or BlsSource()
    reconciler = Reconciler(store or SupabaseRecordStore())
    options = options or ValidationOptions.from_settings()
    first = start_year or settings.bls_import_start_year
    last = end_year or date.today().year

    log.info("bls_import_start", series=len(entries), start_year=first, end_year=last)
    if not entries:
        return run.finish()

    run.advance(RunState.FETCHING)
    try:
        grouped = await source.fetch_many(
            [e.series_id for e in entries], first, last
        )
    except Exception as exc:
        for entry in entries:
            run.unit_failed(entry.series_id, exc)
        return run.finish()

    for entry in entries:
        unit = entry.series_id
        run.advance(RunState.NORMALIZING)
        try:
            await _load_unit(
                run,
                reconciler,
                unit,
                indicator_for(entry),
                grouped.get(unit, []),
                options,
                unit_label=entry.frequency,
                notes="Imported from BLS",
            )
            run.unit_succeeded(unit)
        except Exception as exc:
            run.unit_failed(unit, exc)
        run.advance(RunState.FETCHING)

    return run.finish()


# ---------------------------------------------------------------------------
# ECB
# ---------------------------------------------------------------------------


async def import_ecb(
    series_keys: Iterable[str] | None = None,
    *,
    start_period: str | None = None,
    end_period: str | None = None,
    options: ValidationOptions | None = None,
    source: EcbSource | None = None,
    store: RecordStore | None = None,
) -> ImportResult:
    entries = select_entries(ECB_SERIES, series_keys, "ECB series")
    run = ImportRun("ecb_import", data_source="ecb")
    source = source or EcbSource()
    reconciler = Reconciler(store or SupabaseRecordStore())
    options = options or ValidationOptions.from_settings()
    start_period = start_period or settings.ecb_import_start_period

    log.info("ecb_import_start", series=len(entries), start_period=start_period)
    for entry in entries:
        unit = entry.series_key
        run.advance(RunState.FETCHING)
        try:
            observations = await source.fetch_observations(unit, start_period, end_period)
            run.advance(RunState.NORMALIZING)
            await _load_unit(
                run,
                reconciler,
                unit,
                indicator_for(entry),
                observations,
                options,
                unit_label=entry.frequency,
                notes="Imported from ECB SDW",
            )
            run.unit_succeeded(unit)
        except Exception as exc:
            run.unit_failed(unit, exc)

    return run.finish()


# ---------------------------------------------------------------------------
# IMF
# ---------------------------------------------------------------------------


async def import_imf(
    indicator_codes: Iterable[str] | None = None,
    country_codes: Iterable[str] | None = None,
    *,
    start_year: int | None = None,
    end_year: int | None = None,
    options: ValidationOptions | None = None,
    source: ImfSource | None = None,
    store: RecordStore | None = None,
) -> ImportResult:
    """Import WEO indicators, one request and one unit per indicator × country."""
    entries = select_entries(IMF_INDICATORS, indicator_codes, "IMF indicators")
    countries = select_countries(IMF_COUNTRIES, country_codes)
    run = ImportRun("imf_import", data_source="imf")
    source = source or ImfSource()
    reconciler = Reconciler(store or SupabaseRecordStore())
    options = options or ValidationOptions.from_settings()
    first = start_year or settings.imf_import_start_year
    last = end_year or date.today().year

    log.info(
        "imf_import_start",
        indicators=len(entries),
        countries=len(countries),
        start_year=first,
    )
    for entry in entries:
        for country_code, country_name in countries.items():
            unit = f"{entry.code} ({country_code})"
            run.advance(RunState.FETCHING)
            try:
                observations = await source.fetch_observations(
                    entry.code, first, last, country_code=country_code
                )
                run.advance(RunState.NORMALIZING)
                await _load_unit(
                    run,
                    reconciler,
                    unit,
                    indicator_for(entry, country_code, country_name),
                    observations,
                    options,
                    unit_label=entry.frequency,
                    notes="Imported from IMF WEO",
                )
                run.unit_succeeded(unit)
            except Exception as exc:
                run.unit_failed(unit, exc)

    return run.finish()


# ---------------------------------------------------------------------------
# World Bank
# ---------------------------------------------------------------------------


async def import_world_bank(
    indicator_codes: Iterable[str] | None = None,
    country_codes: Iterable[str] | None = None,
    *,
    start_year: int | None = None,
    end_year: int | None = None,
    options: ValidationOptions | None = None,
    source: WorldBankSource | None = None,
    store: RecordStore | None = None,
) -> ImportResult:
    """
    Import WDI indicators. Each indicator is fetched once for all countries
    and then reconciled country by country.
    """
    entries = select_entries(WORLD_BANK_INDICATORS, indicator_codes, "World Bank indicators")
    countries = select_countries(WORLD_BANK_COUNTRIES, country_codes)
    run = ImportRun("world_bank_import", data_source="world_bank")
    source = source or WorldBankSource()
    reconciler = Reconciler(store or SupabaseRecordStore())
    options = options or ValidationOptions.from_settings()
    first = start_year or settings.world_bank_import_start_year
    last = end_year or date.today().year

    log.info(
        "world_bank_import_start",
        indicators=len(entries),
        countries=len(countries),
        start_year=first,
    )
    for entry in entries:
        run.advance(RunState.FETCHING)
        try:
            observations = await source.fetch_observations(
                entry.code, first, last, country_codes=list(countries)
            )
        except Exception as exc:
            for country_code in countries:
                run.unit_failed(f"{entry.code} ({country_code})", exc)
            continue

        by_country: dict[str, list[Observation]] = {code: [] for code in countries}
        for obs in observations:
            if obs.country_code in by_country:
                by_country[obs.country_code].append(obs)

        for country_code, country_name in countries.items():
            unit = f"{entry.code} ({country_code})"
            run.advance(RunState.NORMALIZING)
            try:
                await _load_unit(
                    run,
                    reconciler,
                    unit,
                    indicator_for(entry, country_code, country_name),
                    by_country[country_code],
                    options,
                    unit_label=entry.frequency,
                    notes="Imported from World Bank",
                )
                run.unit_succeeded(unit)
            except Exception as exc:
                run.unit_failed(unit, exc)
            run.advance(RunState.FETCHING)

    return run.finish()
