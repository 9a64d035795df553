"""
pipelines/runner.py — Import run state machine and result summary.

Every import pipeline drives one ImportRun:

  configuring → fetching → normalizing → validating → reconciling → summarizing
                    ↑__________________________________________|
                            (next unit: series, country or month)

A unit failure at any stage is recorded as "{unit}: {message}" and the run
moves on to the next unit. finish() freezes the tallies into an ImportResult.

Usage:
    run = ImportRun("fred_import")
    for series_id in series_ids:
        run.advance(RunState.FETCHING)
        try:
            ...
            run.unit_succeeded(series_id)
        except Exception as exc:
            run.unit_failed(series_id, exc)
    result = run.finish()
    result.status    # "success" | "partial_failure" | "failure"
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

import structlog

from econcal_shared.models import ScheduleChange
from econcal_pipeline.loaders.reconciler import ReconcileResult
from econcal_pipeline.transforms.validation import ValidationStats

log = structlog.get_logger(__name__)

MAX_DISPLAY_SCHEDULE_CHANGES = 5
MAX_DISPLAY_ERRORS = 10


class RunState(str, Enum):
    CONFIGURING = "configuring"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    VALIDATING = "validating"
    RECONCILING = "reconciling"
    SUMMARIZING = "summarizing"


# Calendar imports skip validation; a failed unit may restart at fetching
# from anywhere.
_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.CONFIGURING: {RunState.FETCHING, RunState.SUMMARIZING},
    RunState.FETCHING: {RunState.FETCHING, RunState.NORMALIZING, RunState.SUMMARIZING},
    RunState.NORMALIZING: {
        RunState.FETCHING,
        RunState.VALIDATING,
        RunState.RECONCILING,
        RunState.SUMMARIZING,
    },
    RunState.VALIDATING: {RunState.FETCHING, RunState.RECONCILING, RunState.SUMMARIZING},
    RunState.RECONCILING: {RunState.FETCHING, RunState.SUMMARIZING},
    RunState.SUMMARIZING: set(),
}


@dataclass(frozen=True)
class ImportResult:
    """Summary of one import run."""

    pipeline: str
    total_units: int = 0
    successful: int = 0
    failed: int = 0
    records_seen: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    duplicates_removed: int = 0
    outliers_removed: int = 0
    indicators_created: int = 0
    skipped_reasons: Mapping[str, int] = field(default_factory=dict)
    errors: tuple[str, ...] = ()
    schedule_changes: tuple[ScheduleChange, ...] = ()
    data_source_unavailable: bool = False
    data_source: str | None = None
    state: RunState = RunState.SUMMARIZING
    duration_ms: int = 0

    def __post_init__(self) -> None:
        # Frozen all the way down: callers may pass lists and dicts
        object.__setattr__(self, "skipped_reasons", MappingProxyType(dict(self.skipped_reasons)))
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "schedule_changes", tuple(self.schedule_changes))

    @property
    def status(self) -> str:
        if self.total_units >= 1 and self.successful == 0:
            return "failure"
        if self.errors:
            return "partial_failure"
        return "success"

    @property
    def success(self) -> bool:
        return self.status != "failure"

    @property
    def display_schedule_changes(self) -> list[ScheduleChange]:
        return list(self.schedule_changes[:MAX_DISPLAY_SCHEDULE_CHANGES])

    @property
    def display_errors(self) -> list[str]:
        return list(self.errors[:MAX_DISPLAY_ERRORS])

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "pipeline": self.pipeline,
            "status": self.status,
            "total_units": self.total_units,
            "successful": self.successful,
            "failed": self.failed,
            "records_seen": self.records_seen,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "duplicates_removed": self.duplicates_removed,
            "outliers_removed": self.outliers_removed,
            "schedule_changes": len(self.schedule_changes),
            "errors": len(self.errors),
            "data_source": self.data_source,
            "duration_ms": self.duration_ms,
        }


def error_message(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


class ImportRun:
    """Mutable tallies for a run in progress."""

    def __init__(self, pipeline: str, *, data_source: str | None = None) -> None:
        self.pipeline = pipeline
        self.state = RunState.CONFIGURING
        self.data_source = data_source
        self.data_source_unavailable = False
        self.total_units = 0
        self.successful = 0
        self.failed = 0
        self.records_seen = 0
        self.inserted = 0
        self.updated = 0
        self.skipped = 0
        self.duplicates_removed = 0
        self.outliers_removed = 0
        self.indicators_created = 0
        self.skipped_reasons: Counter[str] = Counter()
        self.errors: list[str] = []
        self.schedule_changes: list[ScheduleChange] = []
        self._t0 = time.monotonic()
        self._log = log.bind(pipeline=pipeline)

    def advance(self, state: RunState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal run transition {self.state.value} → {state.value}")
        self.state = state

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    def unit_succeeded(self, unit: str) -> None:
        self.total_units += 1
        self.successful += 1
        self._log.debug("unit_complete", unit=unit)

    def unit_failed(self, unit: str, exc: BaseException | str) -> None:
        message = exc if isinstance(exc, str) else error_message(exc)
        self.total_units += 1
        self.failed += 1
        self.errors.append(f"{unit}: {message}")
        self._log.error("unit_failed", unit=unit, error=message)

    def record_error(self, unit: str, exc: BaseException | str) -> None:
        """An error inside an already counted unit."""
        message = exc if isinstance(exc, str) else error_message(exc)
        self.errors.append(f"{unit}: {message}")
        self._log.error("unit_error", unit=unit, error=message)

    # ------------------------------------------------------------------
    # Tallies
    # ------------------------------------------------------------------

    def add_validation(self, stats: ValidationStats) -> None:
        self.records_seen += stats.total_received
        self.skipped += stats.skipped_count
        self.duplicates_removed += stats.duplicate_count
        self.outliers_removed += stats.outlier_count
        self.skipped_reasons.update(stats.skipped_reasons)

    def add_reconcile(self, unit: str, result: ReconcileResult) -> None:
        self.inserted += result.inserted
        self.updated += result.updated
        self.skipped += result.skipped
        self.duplicates_removed += result.duplicates_removed
        self.errors.extend(f"{unit}: {e}" for e in result.errors)
        self.schedule_changes.extend(result.schedule_changes)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def finish(self) -> ImportResult:
        self.advance(RunState.SUMMARIZING)
        if self.total_units > 0 and self.successful == 0:
            self.data_source_unavailable = True

        result = ImportResult(
            pipeline=self.pipeline,
            total_units=self.total_units,
            successful=self.successful,
            failed=self.failed,
            records_seen=self.records_seen,
            inserted=self.inserted,
            updated=self.updated,
            skipped=self.skipped,
            duplicates_removed=self.duplicates_removed,
            outliers_removed=self.outliers_removed,
            indicators_created=self.indicators_created,
            skipped_reasons=self.skipped_reasons,
            errors=tuple(self.errors),
            schedule_changes=tuple(self.schedule_changes),
            data_source_unavailable=self.data_source_unavailable,
            data_source=self.data_source,
            state=self.state,
            duration_ms=int((time.monotonic() - self._t0) * 1000),
        )
        self._log.info("import_summary", **result.as_log_fields())
        return result
