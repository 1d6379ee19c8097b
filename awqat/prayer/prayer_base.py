"""
Prayer time engine: turns a calendar day and a ScheduleConfig into six event timestamps.
"""
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from awqat.prayer import astronomy
from awqat.prayer.models import CalculationMethod, DayTimes, PrayerEvent, ScheduleConfig

# (fajr_angle, isha_angle) in degrees of solar depression.
METHOD_ANGLES: Dict[CalculationMethod, Tuple[float, float]] = {
    CalculationMethod.MUSLIM_WORLD_LEAGUE: (18.0, 17.0),
    CalculationMethod.EGYPTIAN: (19.5, 17.5),
    CalculationMethod.KARACHI: (18.0, 18.0),
    CalculationMethod.UMM_AL_QURA: (18.5, 90.0),
    CalculationMethod.NORTH_AMERICA: (15.0, 15.0),
    CalculationMethod.DUBAI: (18.2, 18.2),
    CalculationMethod.KUWAIT: (18.0, 17.5),
    CalculationMethod.QATAR: (18.0, 90.0),
    CalculationMethod.SINGAPORE: (20.0, 18.0),
    CalculationMethod.TURKEY: (18.0, 17.0),
    CalculationMethod.TEHRAN: (17.7, 14.0),
}

DEFAULT_ANGLES = METHOD_ANGLES[CalculationMethod.MUSLIM_WORLD_LEAGUE]

# Methods whose isha is conventionally "90 minutes after maghrib". The value is
# used as a literal depression angle here, which the sun rarely reaches.
FIXED_INTERVAL_ISHA_SENTINEL = 90.0


def method_angles(method: CalculationMethod) -> Tuple[float, float]:
    """Return (fajr_angle, isha_angle); unknown methods fall back to Muslim World League."""
    return METHOD_ANGLES.get(method, DEFAULT_ANGLES)


def resolve_zone(day: date, tz_name: Optional[str]) -> tzinfo:
    """Zone for the given day: the named IANA zone, or the host's local offset on that day."""
    if tz_name:
        return ZoneInfo(tz_name)
    return datetime.combine(day, time(12)).astimezone().tzinfo


def utc_offset_hours(day: date, zone: tzinfo) -> float:
    """UTC offset of ``zone`` around local noon of ``day``, in hours."""
    offset = zone.utcoffset(datetime.combine(day, time(12)))
    return offset.total_seconds() / 3600.0 if offset else 0.0


class PrayerBackend(ABC):
    """Base class for prayer time backends."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def compute_day_times(self, day: date, config: ScheduleConfig) -> DayTimes:
        """Compute the events of ``day`` for the location and method in ``config``.

        Events the sun never reaches on that day are returned as None.
        """
        pass


class PrayerTimeEngine(PrayerBackend):
    """Local astronomical calculation; no network, no state beyond a warning memo."""

    def __init__(self):
        super().__init__()
        self._sentinel_warned = set()

    def compute_day_times(self, day: date, config: ScheduleConfig) -> DayTimes:
        if isinstance(day, datetime):
            day = day.date()
        zone = resolve_zone(day, config.timezone)
        tz = utc_offset_hours(day, zone)
        fajr_angle, isha_angle = method_angles(config.method)
        jd = astronomy.julian_date(day.year, day.month, day.day)
        lat, lng = config.latitude, config.longitude

        hours = {
            PrayerEvent.FAJR: astronomy.event_time(jd, lat, lng, fajr_angle, tz, before_noon=True),
            PrayerEvent.SUNRISE: astronomy.sunrise_time(jd, lat, lng, tz),
            PrayerEvent.DHUHR: astronomy.solar_noon(jd, lng, tz),
            PrayerEvent.ASR: astronomy.asr_time(jd, lat, lng, tz, config.madhab.shadow_factor),
            PrayerEvent.MAGHRIB: astronomy.sunset_time(jd, lat, lng, tz),
            PrayerEvent.ISHA: astronomy.event_time(jd, lat, lng, isha_angle, tz, before_noon=False),
        }

        missing = [kind.value for kind, value in hours.items() if value is None]
        if missing:
            self.logger.debug(f"No solution on {day} at ({lat}, {lng}) for: {', '.join(missing)}")
        if hours[PrayerEvent.ISHA] is None and isha_angle == FIXED_INTERVAL_ISHA_SENTINEL:
            if config.method not in self._sentinel_warned:
                self._sentinel_warned.add(config.method)
                self.logger.warning(
                    f"Method {config.method.value} uses a {isha_angle} degree isha angle; "
                    f"isha is unavailable on most days"
                )

        stamps = {kind: self._to_datetime(day, value, tz, zone) for kind, value in hours.items()}
        return DayTimes(
            date=day,
            fajr=stamps[PrayerEvent.FAJR],
            sunrise=stamps[PrayerEvent.SUNRISE],
            dhuhr=stamps[PrayerEvent.DHUHR],
            asr=stamps[PrayerEvent.ASR],
            maghrib=stamps[PrayerEvent.MAGHRIB],
            isha=stamps[PrayerEvent.ISHA],
        )

    @staticmethod
    def _to_datetime(day: date, hours: Optional[float], tz: float, zone: tzinfo) -> Optional[datetime]:
        """Anchor an hour offset at local midnight; hours outside [0, 24) land on the neighbouring day."""
        if hours is None:
            return None
        midnight_utc = datetime.combine(day, time(0), tzinfo=timezone.utc) - timedelta(hours=tz)
        return (midnight_utc + timedelta(seconds=int(hours * 3600))).astimezone(zone)
