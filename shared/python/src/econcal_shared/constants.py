"""
constants.py — shared constants used across sources, transforms and loaders.

Month labels, impact levels, indicator categories and the G20+ country list
are defined here so every provider module produces the same vocabulary.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Period labels (fixed English table, independent of process locale)
# ---------------------------------------------------------------------------
MONTH_ABBREVIATIONS: Final[tuple[str, ...]] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# ---------------------------------------------------------------------------
# Calendar event vocabulary
# ---------------------------------------------------------------------------
Impact = Literal["Low", "Medium", "High"]

Category = Literal[
    "GDP",
    "Inflation",
    "Employment",
    "Interest Rates",
    "Consumer",
    "Housing",
    "Manufacturing",
    "Trade",
    "Bonds",
    "Monetary",
    "Government",
    "Investment",
    "Finance",
    "Demographics",
    "Other",
]

# Calendar API providers, most trusted first
CalendarProvider = Literal["fmp", "finnhub", "trading_economics"]
SOURCE_PRIORITY: Final[dict[str, int]] = {
    "fmp": 0,
    "finnhub": 1,
    "trading_economics": 2,
}

# Timezone CME and the TradingEconomics page publish release times in
EASTERN_TZ: Final[str] = "America/New_York"

# ---------------------------------------------------------------------------
# Countries: G20 members plus other major economies (ISO2 -> display name)
# ---------------------------------------------------------------------------
G20_PLUS_COUNTRIES: Final[dict[str, str]] = {
    "AR": "Argentina",
    "AU": "Australia",
    "BR": "Brazil",
    "CA": "Canada",
    "CN": "China",
    "FR": "France",
    "DE": "Germany",
    "IN": "India",
    "ID": "Indonesia",
    "IT": "Italy",
    "JP": "Japan",
    "MX": "Mexico",
    "RU": "Russia",
    "SA": "Saudi Arabia",
    "ZA": "South Africa",
    "KR": "South Korea",
    "TR": "Turkey",
    "GB": "United Kingdom",
    "US": "United States",
    "EU": "European Union",
    "ES": "Spain",
    "NL": "Netherlands",
    "CH": "Switzerland",
    "SE": "Sweden",
    "NO": "Norway",
    "PL": "Poland",
    "BE": "Belgium",
    "AT": "Austria",
    "SG": "Singapore",
    "HK": "Hong Kong",
    "NZ": "New Zealand",
}
