from awqat.prayer.models import PrayerEvent, ScheduleConfig
from awqat.prayer.scheduler import ReminderScheduler
from awqat.prayer.task import AlarmFireHandler, CascadeState, RescheduleCascade, Trigger

from .conftest import MECCA, NOW, FixedNow, MemoryStore


def _cascade(engine, timers, config=None):
    store = MemoryStore(config)
    scheduler = ReminderScheduler(engine, timers)
    return RescheduleCascade(store, scheduler, FixedNow(NOW).now), store


def test_no_saved_config(engine, timers) -> None:
    cascade, _ = _cascade(engine, timers)
    assert cascade.on_boot() is False
    assert timers.registered == {}


def test_disabled_reminders_are_not_rescheduled(engine, timers, mecca_config) -> None:
    cascade, _ = _cascade(engine, timers, mecca_config.model_copy(update={"enabled": False}))
    assert cascade.on_boot() is False
    assert timers.registered == {}


def test_empty_selection_or_unset_location(engine, timers) -> None:
    cascade, store = _cascade(engine, timers, ScheduleConfig(**MECCA, prayers=[], enabled=True))
    assert cascade.reconcile() is False

    store.config = ScheduleConfig(prayers=["fajr"], enabled=True)
    assert cascade.reconcile() is False
    assert timers.registered == {}


def test_boot_registers_full_horizon(engine, timers, mecca_config) -> None:
    cascade, _ = _cascade(engine, timers, mecca_config)

    assert cascade.on_boot() is True
    assert len(timers.registered) == 35
    assert cascade.last_trigger == Trigger.BOOT
    assert cascade.state == CascadeState.IDLE


def test_reconcile_is_idempotent(engine, timers, mecca_config) -> None:
    cascade, _ = _cascade(engine, timers, mecca_config)
    cascade.reconcile()
    first = {k: v["when"] for k, v in timers.registered.items()}
    cascade.on_alarm_fired()

    assert {k: v["when"] for k, v in timers.registered.items()} == first
    assert cascade.last_trigger == Trigger.ALARM_FIRED


def test_backend_failure_returns_false(engine, timers, mecca_config) -> None:
    cascade, _ = _cascade(engine, timers, mecca_config)
    timers.fail_on_schedule = True

    assert cascade.reconcile() is False
    assert "timer backend unavailable" in cascade.last_error
    assert cascade.state == CascadeState.IDLE


def test_unreadable_store_returns_false(engine, timers, mecca_config) -> None:
    cascade, store = _cascade(engine, timers, mecca_config)
    store.fail_on_load = True

    assert cascade.reconcile() is False
    assert cascade.state == CascadeState.IDLE


def test_reconcile_in_progress_is_not_reentered(engine, timers, mecca_config) -> None:
    cascade, _ = _cascade(engine, timers, mecca_config)
    cascade.state = CascadeState.RECONCILING

    assert cascade.reconcile() is False
    assert timers.registered == {}


def test_fired_alarm_delivers_and_tops_up(engine, timers, sink, mecca_config) -> None:
    cascade, _ = _cascade(engine, timers, mecca_config)
    handler = AlarmFireHandler(sink, cascade)

    handler(1001, {"notification_id": 1001, "prayer_name": "Fajr", "title": "Fajr", "body": "Wake up",
                   "should_reschedule": True})

    assert sink.delivered == [(1001, "Fajr", "Wake up")]
    assert len(timers.registered) == 35


def test_fired_alarm_without_text_uses_defaults(engine, timers, sink, mecca_config) -> None:
    cascade, _ = _cascade(engine, timers, mecca_config)
    AlarmFireHandler(sink, cascade)(1004, {"prayer_name": "Maghrib"})

    assert sink.delivered == [(1004, "Time for Maghrib", "It's time for Maghrib prayer")]
    assert timers.registered == {}


def test_delivery_failure_still_reschedules(engine, timers, sink, mecca_config) -> None:
    cascade, _ = _cascade(engine, timers, mecca_config)
    sink.fail = True
    AlarmFireHandler(sink, cascade)(1002, {"prayer_name": "Dhuhr", "should_reschedule": True})

    assert len(timers.registered) == 35


def test_failed_reconcile_keeps_pending_timers(engine, timers, mecca_config) -> None:
    cascade, _ = _cascade(engine, timers, mecca_config)
    assert cascade.on_boot() is True
    pending = {k: v["when"] for k, v in timers.registered.items()}
    assert len(pending) == 35

    timers.fail_on_schedule = True
    assert cascade.on_alarm_fired() is False
    assert {k: v["when"] for k, v in timers.registered.items()} == pending


def test_alarm_after_reminders_disabled_is_dropped(engine, timers, sink, mecca_config) -> None:
    cascade, store = _cascade(engine, timers, mecca_config)
    cascade.on_boot()
    store.config = mecca_config.model_copy(update={"enabled": False})

    AlarmFireHandler(sink, cascade)(1001, {"notification_id": 1001, "prayer_name": "Fajr",
                                           "should_reschedule": True})

    assert sink.delivered == []
    assert timers.registered == {}


def test_alarm_for_deselected_prayer_is_dropped(engine, timers, sink, mecca_config) -> None:
    cascade, store = _cascade(engine, timers, mecca_config)
    cascade.on_boot()
    store.config = mecca_config.model_copy(update={"prayers": (PrayerEvent.DHUHR, PrayerEvent.ASR)})

    AlarmFireHandler(sink, cascade)(1001, {"notification_id": 1001, "prayer_name": "Fajr",
                                           "should_reschedule": True})

    assert sink.delivered == []
    assert not any(1001 + 10 * day in timers.registered for day in range(7))
    assert 1002 in timers.registered
