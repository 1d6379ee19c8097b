"""
Core-facing operations: initialize, get_prayer_times, schedule_reminders, cancel_all_reminders,
cancel_reminder. Each returns True (or the computed times) on success and raises an
AwqatError subclass carrying the error code otherwise.
"""
import logging
import random
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from awqat.core.task_manager import TimerService
from awqat.prayer.errors import CancelError, InitError, InvalidPrayerError, PrayerTimesError, ScheduleError
from awqat.prayer.models import HORIZON_DAYS, DayTimes, PrayerEvent, ScheduleConfig, parse_prayer
from awqat.prayer.notifier import NotificationSink
from awqat.prayer.prayer_base import PrayerBackend, PrayerTimeEngine
from awqat.prayer.scheduler import ReminderScheduler, local_today
from awqat.prayer.service import ConfigStore
from awqat.prayer.task import AlarmFireHandler, RescheduleCascade

DateInput = Union[None, date, datetime, int, float, str]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AwqatPlugin:
    def __init__(
        self,
        store: ConfigStore,
        timer_service: TimerService,
        sink: NotificationSink,
        engine: Optional[PrayerBackend] = None,
        horizon_days: int = HORIZON_DAYS,
        now_provider: Callable[[], datetime] = _utc_now,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.sink = sink
        self.engine = engine or PrayerTimeEngine()
        self.now_provider = now_provider
        self.scheduler = ReminderScheduler(self.engine, timer_service, horizon_days, rng)
        self.cascade = RescheduleCascade(store, self.scheduler, now_provider)
        self.fire_handler = AlarmFireHandler(sink, self.cascade)
        self.config: Optional[ScheduleConfig] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    # ----- configuration -----

    def _current_config(self) -> ScheduleConfig:
        if self.config is not None:
            return self.config
        stored = self.store.load()
        return stored or ScheduleConfig()

    def initialize(self, config: Union[ScheduleConfig, Mapping[str, Any]]) -> bool:
        """Adopt a new configuration and persist it.

        A ScheduleConfig replaces the current one wholesale; a mapping is applied on top of
        the current (or stored) configuration, so ``{"latitude": .., "longitude": ..}``
        moves the location while keeping the reminder selection.
        """
        try:
            if isinstance(config, ScheduleConfig):
                new_config = config
            elif isinstance(config, Mapping):
                merged = self._current_config().model_dump()
                merged.update(config)
                new_config = ScheduleConfig.model_validate(merged)
            else:
                raise TypeError(f"Expected ScheduleConfig or mapping, got {type(config).__name__}")
        except (ValidationError, TypeError, ValueError) as e:
            raise InitError(f"Invalid configuration: {e}") from e

        try:
            self.store.save(new_config)
        except Exception as e:
            raise InitError(f"Could not persist configuration: {e}") from e
        self.config = new_config
        self.logger.info(
            f"Initialized at ({new_config.latitude}, {new_config.longitude}) "
            f"method={new_config.method.value} madhab={new_config.madhab.value}"
        )
        return True

    update_config = initialize

    def load_saved_config(self) -> Optional[ScheduleConfig]:
        """Adopt the stored configuration, if any (used at startup)."""
        stored = self.store.load()
        if stored is not None:
            self.config = stored
        return stored

    # ----- prayer times -----

    def _resolve_date(self, when: DateInput, config: ScheduleConfig) -> date:
        if when is None:
            return local_today(self.now_provider(), config)
        if isinstance(when, datetime):
            if when.tzinfo is not None:
                return local_today(when, config)
            return when.date()
        if isinstance(when, date):
            return when
        if isinstance(when, bool):
            raise TypeError("bool is not a date")
        if isinstance(when, (int, float)):
            # Epoch milliseconds.
            return local_today(datetime.fromtimestamp(when / 1000.0, tz=timezone.utc), config)
        if isinstance(when, str):
            text = when.strip()
            if len(text) == 10:
                return date.fromisoformat(text)
            return self._resolve_date(datetime.fromisoformat(text), config)
        raise TypeError(f"Unsupported date value: {when!r}")

    def get_prayer_times(self, when: DateInput = None) -> DayTimes:
        """Six event times for the day containing ``when``; unreachable events are None."""
        if self.config is None:
            raise PrayerTimesError("Not initialized: call initialize() with a location first")
        config = self.config
        try:
            day = self._resolve_date(when, config)
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise PrayerTimesError(f"Unreadable date {when!r}: {e}") from e
        try:
            return self.engine.compute_day_times(day, config)
        except Exception as e:
            raise PrayerTimesError(f"Prayer time computation failed for {day}: {e}") from e

    # ----- reminders -----

    def _parse_prayers(self, prayers: Iterable[Union[str, PrayerEvent]]) -> list:
        kinds = []
        for name in prayers:
            try:
                kinds.append(parse_prayer(getattr(name, "value", name)))
            except ValueError:
                self.logger.warning(f"Ignoring unknown prayer: {name}")
        return kinds

    def schedule_reminders(
        self,
        prayers: Iterable[Union[str, PrayerEvent]],
        offset_minutes: int = 0,
        title: Optional[str] = None,
        body: Optional[str] = None,
        messages: Optional[Iterable[str]] = None,
    ) -> bool:
        """Persist the reminder selection, then register the full horizon."""
        if self.config is None:
            raise ScheduleError("Not initialized: call initialize() with a location first")
        if isinstance(offset_minutes, bool) or not isinstance(offset_minutes, int):
            raise ScheduleError(f"offset_minutes must be an integer, got {offset_minutes!r}")
        if isinstance(prayers, str):
            prayers = [prayers]

        try:
            values = self.config.model_dump()
            values.update(
                prayers=self._parse_prayers(prayers),
                offset_minutes=offset_minutes,
                custom_title=title,
                custom_body=body,
                messages=list(messages) if messages else (),
                enabled=True,
            )
            new_config = ScheduleConfig.model_validate(values)
        except ValidationError as e:
            raise ScheduleError(f"Invalid reminder settings: {e}") from e

        try:
            self.store.save(new_config)
        except Exception as e:
            raise ScheduleError(f"Could not persist configuration: {e}") from e
        self.config = new_config

        if new_config.coordinate.is_unset:
            self.logger.warning("Location is unset, no reminders scheduled")
            try:
                self.scheduler.cancel_all()
            except Exception as e:
                raise ScheduleError(f"Could not clear reminders for the previous location: {e}") from e
            return True
        try:
            self.scheduler.schedule(new_config, self.now_provider())
        except Exception as e:
            raise ScheduleError(f"Could not register reminders: {e}") from e
        return True

    def cancel_all_reminders(self) -> bool:
        """Remove every alarm in the id range and mark reminders disabled."""
        try:
            removed = self.scheduler.cancel_all()
        except Exception as e:
            raise CancelError(f"Could not cancel reminders: {e}") from e
        try:
            current = self.store.load() or self.config
            if current is not None:
                disabled = current.model_copy(update={"enabled": False})
                self.store.save(disabled)
                self.config = disabled
        except Exception as e:
            raise CancelError(f"Could not persist disabled state: {e}") from e
        self.logger.info(f"Cancelled all reminders ({removed} ids)")
        return True

    def cancel_reminder(self, prayer: Union[str, PrayerEvent]) -> bool:
        """Remove every day of one prayer and drop it from the stored selection."""
        try:
            kind = parse_prayer(getattr(prayer, "value", prayer))
        except ValueError as e:
            raise InvalidPrayerError(str(e)) from e
        try:
            self.scheduler.cancel_kind(kind)
        except Exception as e:
            raise CancelError(f"Could not cancel {kind.value}: {e}") from e
        try:
            current = self.store.load() or self.config
            if current is not None and kind in current.prayers:
                remaining = tuple(p for p in current.prayers if p != kind)
                updated = current.model_copy(update={"prayers": remaining})
                self.store.save(updated)
                self.config = updated
        except Exception as e:
            raise CancelError(f"Could not persist selection without {kind.value}: {e}") from e
        self.logger.info(f"Cancelled {kind.value} reminders")
        return True

    def has_permission(self) -> bool:
        return bool(self.sink.has_permission())

    # ----- host triggers -----

    def on_boot(self) -> bool:
        return self.cascade.on_boot()

    def handle_alarm(self, alarm_id: int, payload: Dict[str, Any]) -> None:
        self.fire_handler(alarm_id, payload)
