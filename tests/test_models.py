from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from awqat.prayer.models import (
    REMINDER_PRAYERS,
    GeoCoordinate,
    PrayerEvent,
    ScheduleConfig,
    ScheduledAlarm,
    notification_id,
    parse_prayer,
)

from .conftest import MECCA


def test_notification_ids_are_unique_over_the_horizon() -> None:
    ids = [notification_id(kind, day) for kind in REMINDER_PRAYERS for day in range(7)]
    assert len(set(ids)) == 35
    assert notification_id(PrayerEvent.FAJR, 0) == 1001
    assert notification_id(PrayerEvent.ISHA, 6) == 1065
    assert notification_id(PrayerEvent.ASR, 3) == 1033


@pytest.mark.parametrize("kind, day", [(PrayerEvent.SUNRISE, 0), (PrayerEvent.FAJR, 7), (PrayerEvent.FAJR, -1)])
def test_notification_id_rejects_out_of_range(kind, day) -> None:
    with pytest.raises(ValueError):
        notification_id(kind, day)


def test_parse_prayer_is_case_insensitive() -> None:
    assert parse_prayer(" Fajr ") is PrayerEvent.FAJR
    assert parse_prayer("MAGHRIB") is PrayerEvent.MAGHRIB


@pytest.mark.parametrize("name", ["sunrise", "tahajjud", ""])
def test_parse_prayer_rejects_unknown(name) -> None:
    with pytest.raises(ValueError):
        parse_prayer(name)


def test_prayers_are_canonicalized() -> None:
    config = ScheduleConfig(prayers="isha,fajr,,fajr")
    assert config.prayers == (PrayerEvent.FAJR, PrayerEvent.ISHA)
    assert ScheduleConfig(prayers=["Asr", PrayerEvent.DHUHR]).prayers == (PrayerEvent.DHUHR, PrayerEvent.ASR)


def test_sunrise_cannot_be_selected() -> None:
    with pytest.raises(ValidationError):
        ScheduleConfig(prayers=["fajr", "sunrise"])


@pytest.mark.parametrize("field, value", [("latitude", 91.0), ("latitude", -90.5), ("longitude", 181.0)])
def test_coordinates_out_of_range(field, value) -> None:
    with pytest.raises(ValidationError):
        ScheduleConfig(**{field: value})


def test_messages_drop_empty_entries_and_reject_separator() -> None:
    assert ScheduleConfig(messages=["a", "", "b"]).messages == ("a", "b")
    assert ScheduleConfig(messages="a|#|b").messages == ("a", "b")
    with pytest.raises(ValidationError):
        ScheduleConfig(messages=["bad |#| message"])


def test_unknown_timezone_rejected() -> None:
    with pytest.raises(ValidationError):
        ScheduleConfig(timezone="Mars/Olympus_Mons")
    assert ScheduleConfig(timezone="").timezone is None


def test_can_schedule_requires_enabled_prayers_and_location() -> None:
    assert ScheduleConfig(**MECCA, prayers=["fajr"], enabled=True).can_schedule
    assert not ScheduleConfig(**MECCA, prayers=["fajr"], enabled=False).can_schedule
    assert not ScheduleConfig(**MECCA, prayers=[], enabled=True).can_schedule
    assert not ScheduleConfig(prayers=["fajr"], enabled=True).can_schedule


def test_config_is_immutable() -> None:
    config = ScheduleConfig(**MECCA)
    with pytest.raises(ValidationError):
        config.latitude = 10.0


def test_geo_coordinate() -> None:
    assert GeoCoordinate(0.0, 0.0).is_unset
    assert not GeoCoordinate(0.0, 1.0).is_unset
    with pytest.raises(ValueError):
        GeoCoordinate(100.0, 0.0)


def test_alarm_payload() -> None:
    alarm = ScheduledAlarm(
        notification_id=1002,
        trigger_at=datetime(2024, 6, 21, 9, 22, tzinfo=timezone.utc),
        kind=PrayerEvent.DHUHR,
        day_offset=0,
        title="Time for Dhuhr",
        body="It's time for Dhuhr prayer",
        image_resource="notification_dhuhr",
    )
    payload = alarm.payload()
    assert payload["prayer_name"] == "Dhuhr"
    assert payload["should_reschedule"] is True
    assert payload["image_resource"] == "notification_dhuhr"

    plain = ScheduledAlarm(1002, alarm.trigger_at, PrayerEvent.DHUHR, 0, "t", "b")
    assert "image_resource" not in plain.payload()
