"""
econcal_shared — configuration, store client, models and time helpers
shared by the econcal ingestion pipelines.

Usage:
    from econcal_shared.config import settings
    from econcal_shared.db import get_supabase_client
    from econcal_shared.models import Indicator, Release, Observation, CalendarEvent
    from econcal_shared.time_utils import period_label, to_utc_iso
    from econcal_shared.constants import G20_PLUS_COUNTRIES, SOURCE_PRIORITY
"""

__version__ = "0.1.0"
