"""
tests/test_transforms/test_normalize.py — Calendar event normalization helpers.
"""

from __future__ import annotations

import pytest

from econcal_pipeline.transforms.normalize import (
    categorize_event,
    cme_country,
    country_name_to_iso,
    display_value,
    estimate_impact,
    event_period,
    format_value,
    importance_to_impact,
    normalize_event_name,
    normalize_impact,
    parse_scaled_value,
    parse_time,
    release_timestamp,
    split_datetime,
)
from conftest import make_event


class TestCategorizeEvent:
    @pytest.mark.parametrize(
        "name, category",
        [
            ("GDP Growth Rate QoQ", "GDP"),
            ("Core CPI (MoM)", "Inflation"),
            ("Nonfarm Payrolls", "Employment"),
            ("FOMC Rate Decision", "Interest Rates"),
            ("Retail Sales (MoM)", "Consumer"),
            ("Housing Starts", "Housing"),
            ("ISM Manufacturing PMI", "Manufacturing"),
            ("Trade Balance", "Trade"),
            ("10-Year Note Auction", "Bonds"),
            ("Beige Book", "Other"),
        ],
    )
    def test_keywords(self, name, category):
        assert categorize_event(name) == category

    def test_first_matching_category_wins(self):
        # "consumer price" is Inflation even though "consumer" is a Consumer keyword
        assert categorize_event("Consumer Price Index") == "Inflation"


class TestImpact:
    def test_high_impact_keywords(self):
        assert estimate_impact("Core CPI (YoY)") == "High"
        assert estimate_impact("Nonfarm Payrolls") == "High"

    def test_medium_impact_keywords(self):
        assert estimate_impact("Housing Starts") == "Medium"

    def test_report_lifts_low_to_medium(self):
        assert estimate_impact("Beige Book") == "Low"
        assert estimate_impact("Beige Book", has_report=True) == "Medium"

    @pytest.mark.parametrize("raw, expected", [("High", "High"), ("medium", "Medium"), ("", "Low"), (None, "Low"), ("None", "Low")])
    def test_normalize_impact(self, raw, expected):
        assert normalize_impact(raw) == expected

    @pytest.mark.parametrize("raw, expected", [(3, "High"), ("2", "Medium"), (1, "Low"), (None, "Low"), ("x", "Low")])
    def test_importance_scale(self, raw, expected):
        assert importance_to_impact(raw) == expected


class TestTimes:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("8:30 AM", "08:30"),
            ("12:00 PM", "12:00"),
            ("12:15 am", "00:15"),
            ("2:00 PM", "14:00"),
            ("14:45", "14:45"),
            ("All Day", "00:00"),
            ("", "00:00"),
            (None, "00:00"),
        ],
    )
    def test_parse_time(self, text, expected):
        assert parse_time(text) == expected

    def test_release_timestamp_applies_dst(self):
        winter = make_event(day="2024-01-11", time="08:30")
        summer = make_event(day="2024-07-11", time="08:30")
        assert release_timestamp(winter) == "2024-01-11T13:30:00+00:00"
        assert release_timestamp(summer) == "2024-07-11T12:30:00+00:00"

    def test_release_timestamp_utc_event(self):
        event = make_event(time="12:30", timezone="UTC")
        assert release_timestamp(event) == "2024-03-12T12:30:00+00:00"

    def test_event_period_is_month_label(self):
        assert event_period("2024-03-12") == "Mar 2024"

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2024-03-12 12:30:00", ("2024-03-12", "12:30")),
            ("2024-03-12T08:00:00", ("2024-03-12", "08:00")),
            ("2024-03-12", ("2024-03-12", "00:00")),
            (None, ("", "00:00")),
        ],
    )
    def test_split_datetime(self, value, expected):
        assert split_datetime(value) == expected


class TestEventNames:
    @pytest.mark.parametrize(
        "name",
        ["CPI (YoY)", "CPI YoY", "cpi  yoy", "CPI [YoY] Final", "CPI Flash"],
    )
    def test_variants_collapse(self, name):
        assert normalize_event_name(name) == "cpi"

    def test_qualifiers_are_whole_words_only(self):
        # "sa" inside "Sales" is not a qualifier
        assert normalize_event_name("Retail Sales MoM SA") == "retail sales"

    def test_distinct_events_stay_distinct(self):
        assert normalize_event_name("Core CPI (MoM)") != normalize_event_name("CPI (MoM)")


class TestValues:
    @pytest.mark.parametrize(
        "raw, expected",
        [("2.5%", 2.5), ("180K", 180.0), ("-1.2B", -1.2), ("", None), ("-", None), (None, None), ("n/a", None)],
    )
    def test_parse_scaled_value(self, raw, expected):
        assert parse_scaled_value(raw) == expected

    @pytest.mark.parametrize(
        "value, expected",
        [
            (275000, "275,000"),
            (1234.6, "1,235"),
            (3.10, "3.1"),
            (3.0, "3"),
            (0.25, "0.25"),
            (0.12346, "0.1235"),
            (-0.5, "-0.5"),
            (0.0, "0"),
            (None, None),
        ],
    )
    def test_format_value(self, value, expected):
        assert format_value(value) == expected

    def test_display_value(self):
        assert display_value("3.0%") == "3"
        assert display_value("") is None


class TestCountries:
    def test_cme_codes(self):
        assert cme_country("UK") == "GB"
        assert cme_country("us") == "US"
        assert cme_country("XX") == "XX"

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("United States", "US"),
            ("Euro Area", "EU"),
            ("South Korea", "KR"),
            ("de", "DE"),
            ("Atlantis", "AT"),
        ],
    )
    def test_country_name_to_iso(self, name, expected):
        assert country_name_to_iso(name) == expected

    def test_unknown_name_kept_when_not_truncating(self):
        assert country_name_to_iso("Atlantis", truncate_unknown=False) == "Atlantis"
