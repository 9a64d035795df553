"""
transforms/validation.py — Observation validation, outlier detection and batch processing.

Every historical import passes its observations through process_observations
before anything reaches the record store:

  1. filter   — date sanity and value checks; rejects are skipped with a reason
  2. outliers — optional z-score pass over the numeric survivors
  3. dedupe   — optional last-write-wins collapse on a caller-supplied key

Skip reasons are plain strings ("Missing value", "Invalid date: 2024-02-30",
"Outlier value") and are counted into a histogram so a run summary can say
why records were dropped.

Usage:
    from econcal_pipeline.transforms.validation import (
        ValidationOptions, process_observations,
    )

    options = ValidationOptions.from_settings()
    survivors, stats = process_observations(observations, options, key_fn=lambda o: o.date)
    stats.skipped_reasons   # {"Missing value": 3}
"""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date

import polars as pl
import structlog

from econcal_shared.config import settings
from econcal_shared.models import Observation
from econcal_pipeline.transforms.dedupe import deduplicate

log = structlog.get_logger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

OUTLIER_REASON = "Outlier value"


@dataclass(frozen=True)
class ValidationOptions:
    allow_missing: bool = False
    min_value: float | None = None
    max_value: float | None = None
    outlier_std_devs: float | None = None   # None disables the outlier pass

    @classmethod
    def from_settings(cls, **overrides: object) -> "ValidationOptions":
        """Options from VALIDATION_* settings, with non-None overrides applied."""
        values = {
            "allow_missing": settings.validation_allow_missing,
            "min_value": settings.validation_min_value,
            "max_value": settings.validation_max_value,
            "outlier_std_devs": settings.validation_outlier_std_devs,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str | None = None


VALID = ValidationResult(valid=True)


@dataclass
class ValidationStats:
    total_received: int = 0
    valid_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0
    outlier_count: int = 0
    skipped_reasons: dict[str, int] = field(default_factory=dict)


def _fmt(n: float) -> str:
    return str(int(n)) if float(n).is_integer() else repr(float(n))


def _is_missing(value: str) -> bool:
    return value.strip() in {"", "."}


def _numeric(value: str) -> float | None:
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


# ---------------------------------------------------------------------------
# Single-observation checks
# ---------------------------------------------------------------------------


def validate_observation_date(value: str, *, today: date | None = None) -> ValidationResult:
    if not _DATE_RE.match(value):
        return ValidationResult(False, f"Invalid date format: {value}")
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        return ValidationResult(False, f"Invalid date: {value}")
    if parsed > (today or date.today()):
        return ValidationResult(False, f"Future date not allowed: {value}")
    return VALID


def validate_observation_value(
    value: str, options: ValidationOptions | None = None
) -> ValidationResult:
    options = options or ValidationOptions()

    if _is_missing(value):
        return VALID if options.allow_missing else ValidationResult(False, "Missing value")

    number = _numeric(value)
    if number is None:
        return ValidationResult(False, f"Invalid numeric value: {value}")

    if options.min_value is not None and number < options.min_value:
        return ValidationResult(
            False, f"Value {_fmt(number)} below minimum {_fmt(options.min_value)}"
        )
    if options.max_value is not None and number > options.max_value:
        return ValidationResult(
            False, f"Value {_fmt(number)} above maximum {_fmt(options.max_value)}"
        )
    return VALID


def validate_observation(
    obs: Observation,
    options: ValidationOptions | None = None,
    *,
    today: date | None = None,
) -> ValidationResult:
    """Date first, then value; the first failing check supplies the reason."""
    result = validate_observation_date(obs.date, today=today)
    if not result.valid:
        return result
    return validate_observation_value(obs.value, options)


def filter_valid_observations(
    observations: Sequence[Observation],
    options: ValidationOptions | None = None,
    *,
    today: date | None = None,
) -> tuple[list[Observation], list[tuple[Observation, str]]]:
    """Split observations into (valid, [(rejected, reason), ...])."""
    valid: list[Observation] = []
    skipped: list[tuple[Observation, str]] = []
    for obs in observations:
        result = validate_observation(obs, options, today=today)
        if result.valid:
            valid.append(obs)
        else:
            skipped.append((obs, result.reason or "Unknown validation error"))
    return valid, skipped


# ---------------------------------------------------------------------------
# Outliers
# ---------------------------------------------------------------------------


def detect_outliers(
    observations: Sequence[Observation],
    std_devs: float = 3.0,
) -> tuple[list[Observation], list[tuple[Observation, float]]]:
    """
    Flag readings more than std_devs population standard deviations from the mean.

    Only numeric readings enter the statistics. Non-numeric readings (the
    missing ones allowed through by allow_missing) are never flagged and stay
    in the normal list.

    Returns:
        (normal, [(outlier, deviation), ...]) in input order.
    """
    values = pl.Series("value", [_numeric(o.value) for o in observations], dtype=pl.Float64)
    numeric = values.drop_nulls()
    if numeric.is_empty():
        return list(observations), []

    mean = numeric.mean()
    std = numeric.std(ddof=0)
    if not std:
        return list(observations), []

    normal: list[Observation] = []
    outliers: list[tuple[Observation, float]] = []
    for obs, value in zip(observations, values.to_list()):
        if value is None:
            normal.append(obs)
            continue
        deviation = abs(value - mean) / std
        if deviation > std_devs:
            outliers.append((obs, deviation))
        else:
            normal.append(obs)
    return normal, outliers


# ---------------------------------------------------------------------------
# Batch entry point
# ---------------------------------------------------------------------------


def process_observations(
    observations: Sequence[Observation],
    options: ValidationOptions | None = None,
    key_fn: Callable[[Observation], str] | None = None,
    *,
    today: date | None = None,
) -> tuple[list[Observation], ValidationStats]:
    """
    Filter → outliers → dedupe.

    Outliers count as skips under the "Outlier value" reason as well as in
    outlier_count. valid_count is the number of survivors.
    """
    options = options or ValidationOptions()
    stats = ValidationStats(total_received=len(observations))

    survivors, skipped = filter_valid_observations(observations, options, today=today)
    reasons: Counter[str] = Counter(reason for _, reason in skipped)
    stats.skipped_count = len(skipped)

    if options.outlier_std_devs is not None:
        survivors, outliers = detect_outliers(survivors, options.outlier_std_devs)
        stats.outlier_count = len(outliers)
        stats.skipped_count += len(outliers)
        if outliers:
            reasons[OUTLIER_REASON] += len(outliers)

    if key_fn is not None:
        deduped = deduplicate(survivors, key_fn)
        survivors = deduped.unique
        stats.duplicate_count = deduped.duplicate_count

    stats.valid_count = len(survivors)
    stats.skipped_reasons = dict(reasons)

    if stats.skipped_count or stats.duplicate_count:
        log.debug(
            "observations_filtered",
            received=stats.total_received,
            kept=stats.valid_count,
            skipped=stats.skipped_count,
            duplicates=stats.duplicate_count,
        )
    return survivors, stats
