from econcal_shared.models.indicators import Indicator, Release, release_key
from econcal_shared.models.records import CalendarEvent, Observation, ScheduleChange

__all__ = [
    "Indicator",
    "Release",
    "release_key",
    "Observation",
    "CalendarEvent",
    "ScheduleChange",
]
