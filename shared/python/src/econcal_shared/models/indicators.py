"""
models/indicators.py — Pydantic models for the indicators and releases tables.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator

from econcal_shared.time_utils import canonical_timestamp


def release_key(indicator_id: str, release_at: str, period: str) -> str:
    """Identity key shared by deduplication and reconciliation."""
    return f"{indicator_id}|{release_at}|{period}"


class Indicator(BaseModel):
    """
    Matches the indicators table row.

    One row per logical series x country; (name, country_code) is unique.
    `id` is None until the row has been created in the store.
    """

    id: str | None = None
    name: str
    country_code: str
    category: str
    source_name: str
    source_url: str | None = None

    @property
    def cache_key(self) -> str:
        return f"{self.country_code}:{self.name}"

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Indicator":
        return cls(**{k: v for k, v in row.items() if k in cls.model_fields})

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude={"id"}, exclude_none=True)


class Release(BaseModel):
    """
    Matches the releases table row.

    Identity key is (indicator_id, release_at, period); release_at is kept in
    canonical UTC ISO form so keys compare equal regardless of how the store
    serializes timestamps.
    """

    id: str | None = None
    indicator_id: str
    release_at: str
    period: str
    actual: str | None = None
    forecast: str | None = None
    previous: str | None = None
    unit: str | None = None
    notes: str | None = None

    @field_validator("release_at", mode="before")
    @classmethod
    def canonical_release_at(cls, v: Any) -> str:
        return canonical_timestamp(v)

    @property
    def key(self) -> str:
        return release_key(self.indicator_id, self.release_at, self.period)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Release":
        return cls(**{k: v for k, v in row.items() if k in cls.model_fields})

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude={"id"}, exclude_none=True)
