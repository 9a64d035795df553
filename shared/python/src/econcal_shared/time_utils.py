"""
time_utils.py — Period conversion and timestamp utilities.

Providers encode periods in several ways:
- ISO date: "2024-01-15"
- Monthly: "2024-01" (SDMX), "M01" + year (BLS)
- Quarterly: "2024-Q1" (SDMX), "Q01" + year (BLS)
- Semi-annual: "S01" / "S02" + year (BLS)
- Annual: "2024", "A01" + year

Every period maps to the FIRST day of the period plus a display label such
as "Jan 2024", "Q1 2024" or "2024".

Usage:
    from econcal_shared.time_utils import sdmx_period_to_date, period_label

    sdmx_period_to_date("2024-Q2")          # "2024-04-01"
    period_label("2024-04-01", "quarterly")  # "Q2 2024"
    to_utc_iso("2024-03-12", "08:30", "America/New_York")
    # "2024-03-12T12:30:00+00:00"
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from econcal_shared.constants import MONTH_ABBREVIATIONS


def month_label(d: date) -> str:
    """'Mon YYYY' label for the month containing d."""
    return f"{MONTH_ABBREVIATIONS[d.month - 1]} {d.year}"


def quarter_of(d: date) -> int:
    return (d.month - 1) // 3 + 1


def period_label(iso_date: str, frequency: str) -> str:
    """
    Display label for an observation date given the series frequency.

    quarterly → "Q1 2024", annual → "2024", weekly/daily → the date itself,
    monthly and anything else → "Jan 2024".
    """
    d = date.fromisoformat(iso_date)
    match frequency.strip().lower():
        case "quarterly" | "q":
            return f"Q{quarter_of(d)} {d.year}"
        case "annual" | "a":
            return str(d.year)
        case "weekly" | "daily" | "w" | "d" | "b":
            return iso_date
        case _:
            return month_label(d)


# ---------------------------------------------------------------------------
# SDMX period codes (ECB, IMF)
# ---------------------------------------------------------------------------

_SDMX_MONTH = re.compile(r"^(\d{4})-(\d{2})$")
_SDMX_QUARTER = re.compile(r"^(\d{4})-Q(\d)$")
_YEAR = re.compile(r"^\d{4}$")


def sdmx_period_to_date(period: str) -> str:
    """Convert an SDMX TIME_PERIOD to the ISO date of the period start."""
    if _SDMX_MONTH.match(period):
        return f"{period}-01"
    m = _SDMX_QUARTER.match(period)
    if m:
        month = (int(m.group(2)) - 1) * 3 + 1
        return f"{m.group(1)}-{month:02d}-01"
    if _YEAR.match(period):
        return f"{period}-01-01"
    return period


def sdmx_period_label(period: str) -> str:
    """Display label for an SDMX TIME_PERIOD; daily periods pass through."""
    m = _SDMX_QUARTER.match(period)
    if m:
        return f"Q{m.group(2)} {m.group(1)}"
    m = _SDMX_MONTH.match(period)
    if m:
        return f"{MONTH_ABBREVIATIONS[int(m.group(2)) - 1]} {m.group(1)}"
    return period


def year_to_date(year: str | int) -> str:
    return f"{year}-01-01"


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def to_utc_iso(day: str, time_of_day: str = "00:00", tz_name: str = "UTC") -> str:
    """
    Combine a local date and HH:MM time in tz_name into a UTC ISO timestamp.

    The zone's DST rules apply, so 08:30 New York time is 12:30Z in summer
    and 13:30Z in winter.
    """
    local = datetime.fromisoformat(f"{day}T{time_of_day}:00").replace(
        tzinfo=ZoneInfo(tz_name)
    )
    return canonical_timestamp(local)


def canonical_timestamp(value: str | datetime) -> str:
    """
    Normalize a timestamp to 'YYYY-MM-DDTHH:MM:SS+00:00'.

    Stored rows come back as '2024-01-01T00:00:00+00:00', '...Z' or with
    fractional seconds; identity keys compare this canonical form.
    """
    dt = date_parser.isoparse(value) if isinstance(value, str) else value
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def day_bounds(day: str, tz_name: str = "UTC") -> tuple[str, str]:
    """Inclusive UTC start/end timestamps of a calendar day local to tz_name."""
    start = datetime.fromisoformat(day).replace(tzinfo=ZoneInfo(tz_name))
    end = start + relativedelta(days=1, seconds=-1)
    return canonical_timestamp(start), canonical_timestamp(end)


def month_starts(start: date, count: int) -> list[date]:
    """First day of `count` consecutive months beginning with start's month."""
    first = start.replace(day=1)
    return [first + relativedelta(months=i) for i in range(count)]
