from awqat.core.db import session_scope
from awqat.core.models import Setting, get_all_settings
from awqat.prayer.models import CalculationMethod, Madhab, PrayerEvent, ScheduleConfig
from awqat.prayer.service import (
    SettingsConfigStore,
    from_settings,
    load_schedule_config,
    save_schedule_config,
    to_settings,
)

from .conftest import MECCA


def test_nothing_stored_loads_none(db) -> None:
    assert load_schedule_config() is None


def test_round_trip(db) -> None:
    config = ScheduleConfig(
        **MECCA,
        method="egyptian",
        madhab="hanafi",
        prayers=["fajr", "isha"],
        offset_minutes=-15,
        custom_title="Salah",
        messages=["Pray before you are prayed upon", "Come to success"],
        show_image=False,
        enabled=True,
    )
    store = SettingsConfigStore()
    store.save(config)

    assert store.load().model_dump() == config.model_dump()


def test_persisted_layout(db) -> None:
    save_schedule_config(
        ScheduleConfig(**MECCA, prayers=["isha", "fajr"], messages=["a", "b"], enabled=True)
    )
    stored = get_all_settings()

    assert stored["prayers"] == "fajr,isha"
    assert stored["random_messages"] == "a|#|b"
    assert stored["reminders_enabled"] == "true"
    assert stored["show_image"] == "true"
    assert stored["custom_title"] is None
    assert float(stored["latitude"]) == MECCA["latitude"]


def test_last_write_wins(db) -> None:
    save_schedule_config(ScheduleConfig(**MECCA, prayers=["fajr"], enabled=True))
    save_schedule_config(ScheduleConfig(**MECCA, prayers=["asr"], enabled=False))

    loaded = load_schedule_config()
    assert loaded.prayers == (PrayerEvent.ASR,)
    assert loaded.enabled is False


def test_absent_keys_take_defaults(db) -> None:
    with session_scope() as session:
        session.add(Setting(key="latitude", value="33.5"))
        session.add(Setting(key="longitude", value="36.3"))

    loaded = load_schedule_config()
    assert loaded.latitude == 33.5
    assert loaded.method is CalculationMethod.MUSLIM_WORLD_LEAGUE
    assert loaded.madhab is Madhab.SHAFI
    assert loaded.prayers == ()
    assert loaded.offset_minutes == 0
    assert loaded.show_image is True
    assert loaded.enabled is False
    assert loaded.timezone is None


def test_empty_pool_and_prayers_round_trip_without_db() -> None:
    config = ScheduleConfig(**MECCA)
    values = to_settings(config)

    assert values["prayers"] == ""
    assert values["random_messages"] is None
    assert from_settings(values).model_dump() == config.model_dump()
