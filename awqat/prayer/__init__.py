from .errors import AwqatError, CancelError, InitError, InvalidPrayerError, PrayerTimesError, ScheduleError
from .models import (
    HORIZON_DAYS,
    CalculationMethod,
    DayTimes,
    GeoCoordinate,
    Madhab,
    PrayerEvent,
    ScheduleConfig,
    ScheduledAlarm,
    notification_id,
)
from .plugin import AwqatPlugin
from .prayer_base import PrayerTimeEngine

__all__ = [
    "AwqatError",
    "AwqatPlugin",
    "CalculationMethod",
    "CancelError",
    "DayTimes",
    "GeoCoordinate",
    "HORIZON_DAYS",
    "InitError",
    "InvalidPrayerError",
    "Madhab",
    "PrayerEvent",
    "PrayerTimeEngine",
    "PrayerTimesError",
    "ScheduleConfig",
    "ScheduleError",
    "ScheduledAlarm",
    "notification_id",
]
