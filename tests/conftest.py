import logging
from datetime import datetime, timezone

import pytest

from awqat.core.db import dispose_db, init_db
from awqat.prayer.models import ScheduleConfig
from awqat.prayer.prayer_base import PrayerTimeEngine

MECCA = {"latitude": 21.4225, "longitude": 39.8262, "timezone": "Asia/Riyadh"}
ALL_PRAYERS = ("fajr", "dhuhr", "asr", "maghrib", "isha")

# 03:30 in Mecca on the summer solstice, before that day's fajr.
NOW = datetime(2024, 6, 21, 0, 30, tzinfo=timezone.utc)


class FixedNow:
    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now


class FakeTimerService:
    """Records registrations by id; registering an id again replaces it."""

    def __init__(self, exact: bool = True) -> None:
        self.registered = {}
        self.cancelled = []
        self.exact = exact
        self.fail_on_schedule = False
        self.fail_on_cancel = False

    def schedule_at(self, alarm_id, when, exact, payload=None):
        if self.fail_on_schedule:
            raise RuntimeError("timer backend unavailable")
        self.registered[alarm_id] = {"when": when, "exact": exact, "payload": payload or {}}

    def cancel(self, alarm_id):
        if self.fail_on_cancel:
            raise RuntimeError("timer backend unavailable")
        self.cancelled.append(alarm_id)
        self.registered.pop(alarm_id, None)

    def exact_alarms_permitted(self):
        return self.exact


class FakeSink:
    def __init__(self, permitted: bool = True) -> None:
        self.delivered = []
        self.permitted = permitted
        self.fail = False

    def deliver(self, notification_id, title, body):
        if self.fail:
            raise RuntimeError("notification channel closed")
        self.delivered.append((notification_id, title, body))

    def has_permission(self):
        return self.permitted


class MemoryStore:
    def __init__(self, config=None) -> None:
        self.config = config
        self.saves = 0
        self.fail_on_save = False
        self.fail_on_load = False

    def load(self):
        if self.fail_on_load:
            raise RuntimeError("settings unreadable")
        return self.config

    def save(self, config):
        if self.fail_on_save:
            raise RuntimeError("disk full")
        self.config = config
        self.saves += 1


@pytest.fixture(autouse=True)
def _isolate_global_state():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    dispose_db()
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def db():
    init_db(db_url="sqlite://")
    yield
    dispose_db()


@pytest.fixture
def engine():
    return PrayerTimeEngine()


@pytest.fixture
def timers():
    return FakeTimerService()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def mecca_config():
    return ScheduleConfig(**MECCA, prayers=ALL_PRAYERS, enabled=True)
