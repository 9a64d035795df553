"""
models/records.py — Canonical records produced by source normalizers.

Observation   — one historical reading from a bulk-history provider
CalendarEvent — one scheduled (or occurred) release from a calendar provider
ScheduleChange — emitted when a stored release moved to a new timestamp

All three are immutable once created.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

from econcal_shared.constants import Impact


class Observation(BaseModel):
    """
    A historical indicator reading.

    `value` is the provider's original numeric string, or a missing-value
    sentinel; it is never rounded through float.
    """

    model_config = ConfigDict(frozen=True)

    date: str                        # YYYY-MM-DD, first day of the period
    value: str
    period: str                      # display label, part of the release key
    source_indicator_id: str
    country_code: str | None = None
    country_name: str | None = None


class CalendarEvent(BaseModel):
    """A scheduled release as published by a calendar provider."""

    model_config = ConfigDict(frozen=True)

    country: str                     # ISO2
    event_name: str
    date: str                        # YYYY-MM-DD, local to `timezone`
    time: str = "00:00"              # HH:MM, local to `timezone`
    impact: Impact = "Low"
    category: str = "Other"
    source_link: str = ""
    source: str = "cme"
    timezone: str = "UTC"
    actual: str | None = None
    forecast: str | None = None
    previous: str | None = None
    unit: str | None = None


ChangeType = Literal["time_changed", "date_changed", "cancelled", "new"]


class ScheduleChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    indicator_id: str
    indicator_name: str
    country: str
    change_type: ChangeType
    old_value: str | None = None
    new_value: str | None = None
    release_id: str | None = None
