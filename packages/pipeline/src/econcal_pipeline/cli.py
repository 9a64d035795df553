"""
cli.py — Click CLI entrypoint for the import pipelines.

Usage:
    econcal import fred --series UNRATE --series CPIAUCSL --start 2020-01-01
    econcal import bls --start-year 2020
    econcal import imf --indicator NGDP_RPCH --country DE --country FR
    econcal import cme --months 2
    econcal import upcoming --days 14
    econcal catalog world-bank

Every import exits 0 on success or partial failure and 1 on failure or a
configuration error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import click
import structlog

from econcal_shared.config import settings
from econcal_pipeline.pipelines.runner import ImportResult
from econcal_pipeline.sources.base import ConfigurationError
from econcal_pipeline.transforms.validation import ValidationOptions
from econcal_pipeline.utils.logging import configure_logging, import_context

log = structlog.get_logger(__name__)

STATUS_MARKS = {"success": "✓", "partial_failure": "⚠", "failure": "✗"}


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _validation_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the validation override flags to an import command."""
    options = [
        click.option("--allow-missing", is_flag=True, help="Keep empty or '.' values."),
        click.option("--min-value", type=float, default=None, help="Reject values below this."),
        click.option("--max-value", type=float, default=None, help="Reject values above this."),
        click.option(
            "--outlier-std-devs",
            type=float,
            default=None,
            help="Drop values further than N standard deviations from the mean.",
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _build_options(
    allow_missing: bool,
    min_value: float | None,
    max_value: float | None,
    outlier_std_devs: float | None,
) -> ValidationOptions:
    return ValidationOptions.from_settings(
        allow_missing=allow_missing or None,
        min_value=min_value,
        max_value=max_value,
        outlier_std_devs=outlier_std_devs,
    )


def echo_result(result: ImportResult) -> None:
    mark = STATUS_MARKS.get(result.status, "?")
    click.echo(f"{mark} {result.pipeline}: {result.status}")
    click.echo(
        f"  units      {result.successful}/{result.total_units} succeeded"
        + (f" (source: {result.data_source})" if result.data_source else "")
    )
    click.echo(
        f"  records    {result.records_seen} seen, {result.inserted} inserted, "
        f"{result.updated} updated, {result.skipped} skipped"
    )
    if result.duplicates_removed or result.outliers_removed:
        click.echo(
            f"  removed    {result.duplicates_removed} duplicates, "
            f"{result.outliers_removed} outliers"
        )
    if result.indicators_created:
        click.echo(f"  indicators {result.indicators_created} created")
    for reason, count in sorted(result.skipped_reasons.items()):
        click.echo(f"    {count:>6}  {reason}")

    if result.schedule_changes:
        click.echo(f"  schedule changes: {len(result.schedule_changes)}")
        for change in result.display_schedule_changes:
            click.echo(
                f"    {change.country} {change.indicator_name}: "
                f"{change.old_value} → {change.new_value}"
            )
        hidden = len(result.schedule_changes) - len(result.display_schedule_changes)
        if hidden:
            click.echo(f"    ... and {hidden} more")

    if result.errors:
        click.echo(f"  errors: {len(result.errors)}", err=True)
        for error in result.display_errors:
            click.echo(f"    {error}", err=True)
        hidden = len(result.errors) - len(result.display_errors)
        if hidden:
            click.echo(f"    ... and {hidden} more", err=True)

    if result.data_source_unavailable:
        click.echo("  data source unavailable: no unit succeeded", err=True)


def _run(factory: Callable[[], Coroutine[Any, Any, ImportResult]]) -> None:
    """Run an import coroutine, print its summary and set the exit code."""
    command = click.get_current_context().command_path
    with import_context(command=command):
        try:
            result = asyncio.run(factory())
        except (ConfigurationError, ValueError, RuntimeError) as exc:
            log.error("import_configuration_error", error=str(exc))
            click.echo(f"Configuration error: {exc}", err=True)
            raise SystemExit(1) from exc

    echo_result(result)
    if not result.success:
        raise SystemExit(1)


def _none_if_empty(values: tuple[str, ...]) -> list[str] | None:
    return list(values) or None


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["json", "console"]),
    help="Log output format",
)
def main(log_level: str, log_format: str) -> None:
    """econcal economic calendar import workers."""
    configure_logging(log_level=log_level, log_format=log_format)


@main.group(name="import")
def import_group() -> None:
    """Import observations or scheduled releases from a provider."""


# ---------------------------------------------------------------------------
# Historical imports
# ---------------------------------------------------------------------------


@import_group.command()
@click.option("--series", "series_ids", multiple=True, help="FRED series id (repeatable).")
@click.option("--start", default=None, help="First observation date (YYYY-MM-DD).")
@click.option("--end", default=None, help="Last observation date (YYYY-MM-DD).")
@_validation_options
def fred(
    series_ids: tuple[str, ...],
    start: str | None,
    end: str | None,
    **validation: Any,
) -> None:
    """Import FRED series."""
    from econcal_pipeline.pipelines.historical import import_fred

    options = _build_options(**validation)
    _run(lambda: import_fred(_none_if_empty(series_ids), start=start, end=end, options=options))


@import_group.command()
@click.option("--series", "series_ids", multiple=True, help="BLS series id (repeatable).")
@click.option("--start-year", type=int, default=None)
@click.option("--end-year", type=int, default=None)
@_validation_options
def bls(
    series_ids: tuple[str, ...],
    start_year: int | None,
    end_year: int | None,
    **validation: Any,
) -> None:
    """Import BLS series."""
    from econcal_pipeline.pipelines.historical import import_bls

    options = _build_options(**validation)
    _run(
        lambda: import_bls(
            _none_if_empty(series_ids),
            start_year=start_year,
            end_year=end_year,
            options=options,
        )
    )


@import_group.command()
@click.option("--series", "series_keys", multiple=True, help="ECB series key (repeatable).")
@click.option("--start", "start_period", default=None, help="First period (YYYY-MM).")
@click.option("--end", "end_period", default=None, help="Last period (YYYY-MM).")
@_validation_options
def ecb(
    series_keys: tuple[str, ...],
    start_period: str | None,
    end_period: str | None,
    **validation: Any,
) -> None:
    """Import ECB Statistical Data Warehouse series."""
    from econcal_pipeline.pipelines.historical import import_ecb

    options = _build_options(**validation)
    _run(
        lambda: import_ecb(
            _none_if_empty(series_keys),
            start_period=start_period,
            end_period=end_period,
            options=options,
        )
    )


@import_group.command()
@click.option("--indicator", "indicators", multiple=True, help="WEO indicator code (repeatable).")
@click.option("--country", "countries", multiple=True, help="ISO2 country code (repeatable).")
@click.option("--start-year", type=int, default=None)
@click.option("--end-year", type=int, default=None)
@_validation_options
def imf(
    indicators: tuple[str, ...],
    countries: tuple[str, ...],
    start_year: int | None,
    end_year: int | None,
    **validation: Any,
) -> None:
    """Import IMF World Economic Outlook indicators."""
    from econcal_pipeline.pipelines.historical import import_imf

    options = _build_options(**validation)
    _run(
        lambda: import_imf(
            _none_if_empty(indicators),
            _none_if_empty(countries),
            start_year=start_year,
            end_year=end_year,
            options=options,
        )
    )


@import_group.command(name="world-bank")
@click.option("--indicator", "indicators", multiple=True, help="WDI indicator code (repeatable).")
@click.option("--country", "countries", multiple=True, help="ISO2 country code (repeatable).")
@click.option("--start-year", type=int, default=None)
@click.option("--end-year", type=int, default=None)
@_validation_options
def world_bank(
    indicators: tuple[str, ...],
    countries: tuple[str, ...],
    start_year: int | None,
    end_year: int | None,
    **validation: Any,
) -> None:
    """Import World Bank development indicators."""
    from econcal_pipeline.pipelines.historical import import_world_bank

    options = _build_options(**validation)
    _run(
        lambda: import_world_bank(
            _none_if_empty(indicators),
            _none_if_empty(countries),
            start_year=start_year,
            end_year=end_year,
            options=options,
        )
    )


# ---------------------------------------------------------------------------
# Calendar imports
# ---------------------------------------------------------------------------


@import_group.command()
@click.option("--months", type=click.IntRange(min=1), default=None, help="Months ahead, from this one.")
def cme(months: int | None) -> None:
    """Scrape the CME economic calendar (TradingEconomics page as fallback)."""
    from econcal_pipeline.pipelines.calendar import import_cme_events

    _run(lambda: import_cme_events(months))


@import_group.command()
@click.option("--days", type=click.IntRange(min=1), default=None, help="Days ahead to import.")
def upcoming(days: int | None) -> None:
    """Import upcoming releases from every calendar API with a key."""
    from econcal_pipeline.pipelines.calendar import import_upcoming_events

    _run(lambda: import_upcoming_events(days))


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@main.command()
@click.argument(
    "provider",
    type=click.Choice(["fred", "bls", "ecb", "imf", "world-bank"], case_sensitive=False),
)
def catalog(provider: str) -> None:
    """List the configured series for a historical provider."""
    from econcal_pipeline.sources.catalog import catalog_for, describe_entry

    entries = catalog_for(provider.lower())  # type: ignore[arg-type]
    click.echo(f"{provider}: {len(entries)} entries")
    for entry in entries:
        click.echo(f"  {describe_entry(entry)}")


if __name__ == "__main__":
    main()
