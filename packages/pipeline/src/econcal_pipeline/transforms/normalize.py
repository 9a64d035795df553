"""
transforms/normalize.py — Pure normalization helpers for calendar events.

Calendar providers disagree on country spelling, impact scales, time formats
and event naming. Everything here is a pure function over strings so the
scraper and API clients produce the same CalendarEvent vocabulary.

Usage:
    from econcal_pipeline.transforms.normalize import (
        categorize_event, estimate_impact, parse_time, normalize_event_name,
    )

    categorize_event("Nonfarm Payrolls")          # "Employment"
    estimate_impact("Housing Starts", False)       # "Medium"
    parse_time("8:30 PM")                          # "20:30"
    normalize_event_name("CPI (YoY) Final")        # "cpi"
"""

from __future__ import annotations

import re
from datetime import date
from typing import Final

from econcal_shared.constants import Impact
from econcal_shared.models import CalendarEvent
from econcal_shared.time_utils import month_label, to_utc_iso

# ---------------------------------------------------------------------------
# Category and impact keyword tables (case-insensitive substring match)
# ---------------------------------------------------------------------------

# Checked in order; the first category with a matching keyword wins
CATEGORY_KEYWORDS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("GDP", ("gdp", "gross domestic")),
    ("Inflation", ("cpi", "inflation", "consumer price", "ppi", "producer price")),
    (
        "Employment",
        ("employment", "unemployment", "payroll", "jobless", "jobs", "labor", "nonfarm"),
    ),
    (
        "Interest Rates",
        (
            "interest rate", "rate decision", "monetary", "central bank",
            "fed ", "fomc", "ecb ", "boj ", "boe ",
        ),
    ),
    ("Consumer", ("retail", "consumer", "sentiment", "confidence")),
    ("Housing", ("housing", "building", "home", "construction")),
    ("Manufacturing", ("manufacturing", "industrial", "pmi", "factory", "ism")),
    ("Trade", ("trade", "export", "import", "balance")),
    ("Bonds", ("bond", "auction", "treasury", "bill")),
)

HIGH_IMPACT_TERMS: Final[tuple[str, ...]] = (
    "nonfarm payroll",
    "non-farm payroll",
    "employment situation",
    "cpi",
    "consumer price",
    "gdp",
    "fomc",
    "federal reserve",
    "interest rate",
    "rate decision",
    "retail sales",
    "ism manufacturing",
    "ism services",
)

MEDIUM_IMPACT_TERMS: Final[tuple[str, ...]] = (
    "ppi",
    "producer price",
    "industrial production",
    "housing starts",
    "building permits",
    "durable goods",
    "trade balance",
    "jobless claims",
    "pmi",
    "consumer confidence",
    "michigan sentiment",
)


def categorize_event(event_name: str) -> str:
    lower = event_name.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in lower for k in keywords):
            return category
    return "Other"


def estimate_impact(event_name: str, has_report: bool = False) -> Impact:
    """
    Keyword-based impact estimate. Defaults to Low; an event that ships a
    supplementary report is at least Medium.
    """
    lower = event_name.lower()
    if any(term in lower for term in HIGH_IMPACT_TERMS):
        return "High"
    if any(term in lower for term in MEDIUM_IMPACT_TERMS):
        return "Medium"
    if has_report:
        return "Medium"
    return "Low"


def normalize_impact(value: str | None) -> Impact:
    match (value or "").strip().lower():
        case "high":
            return "High"
        case "medium":
            return "Medium"
        case _:
            return "Low"


def importance_to_impact(importance: int | str | None) -> Impact:
    """TradingEconomics importance scale 1..3."""
    try:
        level = int(importance or 0)
    except (TypeError, ValueError):
        return "Low"
    if level >= 3:
        return "High"
    if level >= 2:
        return "Medium"
    return "Low"


# ---------------------------------------------------------------------------
# Times
# ---------------------------------------------------------------------------

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)?", re.IGNORECASE)


def parse_time(text: str | None) -> str:
    """'8:30 AM' / '10:00 pm' / '14:00' → 'HH:MM'. Unparseable → '00:00'."""
    if not text:
        return "00:00"
    m = _TIME_RE.search(text.strip())
    if not m:
        return "00:00"
    hours, minutes, meridiem = int(m.group(1)), m.group(2), (m.group(3) or "").upper()
    if meridiem == "PM" and hours != 12:
        hours += 12
    elif meridiem == "AM" and hours == 12:
        hours = 0
    return f"{hours:02d}:{minutes}"


def release_timestamp(event: CalendarEvent) -> str:
    """UTC ISO release_at for an event, honoring the zone its time is in."""
    return to_utc_iso(event.date, event.time, event.timezone)


def event_period(iso_date: str) -> str:
    """Calendar releases are labelled by month: '2024-03-12' → 'Mar 2024'."""
    return month_label(date.fromisoformat(iso_date))


# ---------------------------------------------------------------------------
# Event names
# ---------------------------------------------------------------------------

_BRACKETS_RE = re.compile(r"[()\[\]{}]")
_QUALIFIERS_RE = re.compile(
    r"\b(yoy|mom|qoq|sa|nsa|final|preliminary|flash|revised)\b", re.IGNORECASE
)
_SPACES_RE = re.compile(r"\s+")


def normalize_event_name(name: str) -> str:
    """
    Canonical event name for cross-source matching.

    Lowercases, turns brackets into spaces, strips whole-word period and
    revision qualifiers and collapses whitespace, so "CPI (YoY)" and
    "CPI YoY" both become "cpi".
    """
    s = _BRACKETS_RE.sub(" ", name.lower())
    s = _QUALIFIERS_RE.sub(" ", s)
    return _SPACES_RE.sub(" ", s).strip()


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

_VALUE_SUFFIX_RE = re.compile(r"[KMB%]", re.IGNORECASE)


def parse_scaled_value(value: str | None) -> float | None:
    """'2.5%' / '180K' / '-1.2B' → float, with the suffix dropped."""
    if value is None or value.strip() in {"", "-"}:
        return None
    cleaned = _VALUE_SUFFIX_RE.sub("", value).strip()
    try:
        return float(cleaned)
    except ValueError:
        return None


def format_value(value: float | int | None) -> str | None:
    """
    Display string for a numeric calendar value.

    >= 1000 → thousands separators, no decimals; >= 1 → up to 2 decimals;
    below 1 → up to 4 decimals. Trailing zeros are dropped.
    """
    if value is None:
        return None
    magnitude = abs(value)
    if magnitude >= 1000:
        return f"{round(value):,}"
    digits = 2 if magnitude >= 1 else 4
    text = f"{value:,.{digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in {"-0", ""} else text


def display_value(raw: str | None) -> str | None:
    """Provider value string → display string, or None when absent."""
    return format_value(parse_scaled_value(raw))


# ---------------------------------------------------------------------------
# Countries
# ---------------------------------------------------------------------------

CME_COUNTRY_TO_ISO: Final[dict[str, str]] = {
    code: code
    for code in (
        "US", "JP", "DE", "GB", "EU", "FR", "IT", "ES", "CA", "AU", "NZ",
        "CH", "CN", "IN", "BR", "MX", "KR", "RU", "ZA", "AR", "ID", "SA",
        "TR", "SE", "NO", "PL", "NL", "BE", "AT", "SG", "HK", "TW",
    )
} | {"UK": "GB"}

# Full country names used by Finnhub and the TradingEconomics API
COUNTRY_NAME_TO_ISO: Final[dict[str, str]] = {
    "United States": "US",
    "United Kingdom": "GB",
    "European Union": "EU",
    "Euro Area": "EU",
    "Eurozone": "EU",
    "Germany": "DE",
    "France": "FR",
    "Italy": "IT",
    "Spain": "ES",
    "Japan": "JP",
    "China": "CN",
    "Canada": "CA",
    "Australia": "AU",
    "Brazil": "BR",
    "India": "IN",
    "Russia": "RU",
    "South Korea": "KR",
    "Korea": "KR",
    "Mexico": "MX",
    "Indonesia": "ID",
    "Turkey": "TR",
    "Saudi Arabia": "SA",
    "Argentina": "AR",
    "South Africa": "ZA",
    "Switzerland": "CH",
    "Netherlands": "NL",
    "Belgium": "BE",
    "Austria": "AT",
    "Sweden": "SE",
    "Norway": "NO",
    "Poland": "PL",
    "Singapore": "SG",
    "Hong Kong": "HK",
    "New Zealand": "NZ",
    "Portugal": "PT",
    "Greece": "GR",
    "Ireland": "IE",
    "Denmark": "DK",
    "Finland": "FI",
    "Israel": "IL",
    "Thailand": "TH",
    "Malaysia": "MY",
    "Philippines": "PH",
    "Vietnam": "VN",
    "Colombia": "CO",
    "Chile": "CL",
    "Peru": "PE",
    "Egypt": "EG",
    "Nigeria": "NG",
    "Kenya": "KE",
    "Pakistan": "PK",
    "Bangladesh": "BD",
    "Taiwan": "TW",
    "UAE": "AE",
    "United Arab Emirates": "AE",
    "Qatar": "QA",
    "Kuwait": "KW",
}

_ISO_CODES: Final[frozenset[str]] = frozenset(COUNTRY_NAME_TO_ISO.values())


def cme_country(code: str) -> str:
    code = code.strip().upper()
    return CME_COUNTRY_TO_ISO.get(code, code)


def country_name_to_iso(country: str, *, truncate_unknown: bool = True) -> str:
    """
    Map a provider's country spelling to ISO2.

    Known names map through the table and ISO2 codes pass through. Anything
    else falls back to its first two letters upper-cased, or is returned
    unchanged when truncate_unknown is False.
    """
    country = country.strip()
    if country in COUNTRY_NAME_TO_ISO:
        return COUNTRY_NAME_TO_ISO[country]
    if country.upper() in _ISO_CODES:
        return country.upper()
    return country[:2].upper() if truncate_unknown else country


def split_datetime(value: str | None) -> tuple[str, str]:
    """
    'YYYY-MM-DD HH:mm:ss' or 'YYYY-MM-DDTHH:MM:SS' → ('YYYY-MM-DD', 'HH:MM').

    A bare date gets '00:00'.
    """
    text = (value or "").strip().replace("T", " ")
    day, _, clock = text.partition(" ")
    return day[:10], clock[:5] if len(clock) >= 5 else "00:00"
