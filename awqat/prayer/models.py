"""
Value types shared by the prayer time engine, the reminder scheduler and the config store.
"""
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

HORIZON_DAYS = 7

# Persisted list separators: prayers use ",", the message pool uses a marker
# that cannot appear in a prayer name.
PRAYERS_SEPARATOR = ","
MESSAGES_SEPARATOR = "|#|"


class PrayerEvent(str, Enum):
    """One of the six daily events. Sunrise is computed but never reminded."""
    FAJR = "fajr"
    SUNRISE = "sunrise"
    DHUHR = "dhuhr"
    ASR = "asr"
    MAGHRIB = "maghrib"
    ISHA = "isha"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


REMINDER_PRAYERS: Tuple[PrayerEvent, ...] = (
    PrayerEvent.FAJR,
    PrayerEvent.DHUHR,
    PrayerEvent.ASR,
    PrayerEvent.MAGHRIB,
    PrayerEvent.ISHA,
)

BASE_NOTIFICATION_IDS: Dict[PrayerEvent, int] = {
    PrayerEvent.FAJR: 1001,
    PrayerEvent.DHUHR: 1002,
    PrayerEvent.ASR: 1003,
    PrayerEvent.MAGHRIB: 1004,
    PrayerEvent.ISHA: 1005,
}


def notification_id(kind: PrayerEvent, day_offset: int) -> int:
    """Stable alarm id for (kind, day_offset); unique while day_offset < 10 and kinds stay below 10 apart."""
    if kind not in BASE_NOTIFICATION_IDS:
        raise ValueError(f"No notification id for {kind.value}")
    if not 0 <= day_offset < HORIZON_DAYS:
        raise ValueError(f"day_offset must be in [0, {HORIZON_DAYS}), got {day_offset}")
    return BASE_NOTIFICATION_IDS[kind] + day_offset * 10


def parse_prayer(name: str) -> PrayerEvent:
    """Map a prayer name to a remindable PrayerEvent; raises ValueError for anything else."""
    try:
        kind = PrayerEvent(str(name).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown prayer: {name}") from None
    if kind not in BASE_NOTIFICATION_IDS:
        raise ValueError(f"Unknown prayer: {name}")
    return kind


class CalculationMethod(str, Enum):
    MUSLIM_WORLD_LEAGUE = "muslim_world_league"
    EGYPTIAN = "egyptian"
    KARACHI = "karachi"
    UMM_AL_QURA = "umm_al_qura"
    NORTH_AMERICA = "north_america"
    DUBAI = "dubai"
    KUWAIT = "kuwait"
    QATAR = "qatar"
    SINGAPORE = "singapore"
    TURKEY = "turkey"
    TEHRAN = "tehran"
    MOONSIGHTING_COMMITTEE = "moonsighting_committee"


class Madhab(str, Enum):
    SHAFI = "shafi"
    HANAFI = "hanafi"

    @property
    def shadow_factor(self) -> int:
        return 2 if self is Madhab.HANAFI else 1


@dataclass(frozen=True)
class GeoCoordinate:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    @property
    def is_unset(self) -> bool:
        """(0, 0) is the 'never configured' marker and disables scheduling."""
        return self.latitude == 0.0 and self.longitude == 0.0


@dataclass(frozen=True)
class DayTimes:
    """Event timestamps for one calendar day. An event is None when the sun never reaches its angle."""
    date: date
    fajr: Optional[datetime]
    sunrise: Optional[datetime]
    dhuhr: Optional[datetime]
    asr: Optional[datetime]
    maghrib: Optional[datetime]
    isha: Optional[datetime]

    def get(self, kind: PrayerEvent) -> Optional[datetime]:
        return getattr(self, kind.value)

    @property
    def missing(self) -> List[PrayerEvent]:
        return [kind for kind in PrayerEvent if self.get(kind) is None]

    @property
    def is_complete(self) -> bool:
        return not self.missing

    def as_dict(self) -> Dict[str, Any]:
        """JSON-friendly view: event name -> ISO datetime (or None), plus the date."""
        data: Dict[str, Any] = {"date": self.date.isoformat()}
        for kind in PrayerEvent:
            value = self.get(kind)
            data[kind.value] = value.isoformat() if value else None
        return data


@dataclass(frozen=True)
class ScheduledAlarm:
    notification_id: int
    trigger_at: datetime
    kind: PrayerEvent
    day_offset: int
    title: str
    body: str
    image_resource: Optional[str] = None
    should_reschedule: bool = True

    def payload(self) -> Dict[str, Any]:
        """Data handed to the timer backend and returned to the fire handler."""
        data = {
            "notification_id": self.notification_id,
            "prayer_name": self.kind.display_name,
            "title": self.title,
            "body": self.body,
            "should_reschedule": self.should_reschedule,
        }
        if self.image_resource:
            data["image_resource"] = self.image_resource
        return data


class ScheduleConfig(BaseModel):
    """The persisted reminder configuration. Immutable; replaced wholesale on every update."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(0.0, ge=-90.0, le=90.0)
    longitude: float = Field(0.0, ge=-180.0, le=180.0)
    method: CalculationMethod = CalculationMethod.MUSLIM_WORLD_LEAGUE
    madhab: Madhab = Madhab.SHAFI
    prayers: Tuple[PrayerEvent, ...] = ()
    offset_minutes: int = 0
    custom_title: Optional[str] = None
    custom_body: Optional[str] = None
    messages: Tuple[str, ...] = ()
    show_image: bool = True
    enabled: bool = False
    timezone: Optional[str] = None

    @field_validator("prayers", mode="before")
    @classmethod
    def _split_prayers(cls, value):
        if isinstance(value, str):
            value = [p for p in value.split(PRAYERS_SEPARATOR) if p.strip()]
        return [str(getattr(p, "value", p)).strip().lower() for p in value or ()]

    @field_validator("prayers")
    @classmethod
    def _check_prayers(cls, value: Tuple[PrayerEvent, ...]) -> Tuple[PrayerEvent, ...]:
        if PrayerEvent.SUNRISE in value:
            raise ValueError("sunrise cannot be selected for reminders")
        # Canonical day order, no duplicates.
        return tuple(kind for kind in REMINDER_PRAYERS if kind in value)

    @field_validator("messages", mode="before")
    @classmethod
    def _drop_empty_messages(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(MESSAGES_SEPARATOR)
        return [m for m in value if m]

    @field_validator("messages")
    @classmethod
    def _check_messages(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        for message in value:
            if MESSAGES_SEPARATOR in message:
                raise ValueError(f"message may not contain {MESSAGES_SEPARATOR!r}")
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {value}") from e
        return value

    @property
    def coordinate(self) -> GeoCoordinate:
        return GeoCoordinate(self.latitude, self.longitude)

    @property
    def can_schedule(self) -> bool:
        """Enabled, with at least one prayer and a real location."""
        return self.enabled and bool(self.prayers) and not self.coordinate.is_unset
