"""
Reminder scheduler: turns a ScheduleConfig into alarms over a rolling horizon and
registers or cancels them by their derived notification ids.

Nothing is remembered between calls; ids are recomputed from (prayer, day offset).
"""
import logging
import random
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from awqat.core.task_manager import TimerService
from awqat.prayer.models import (
    HORIZON_DAYS,
    REMINDER_PRAYERS,
    PrayerEvent,
    ScheduleConfig,
    ScheduledAlarm,
    notification_id,
)
from awqat.prayer.prayer_base import PrayerBackend

DEFAULT_TITLE = "Time for {prayer}"
DEFAULT_BODY = "It's time for {prayer} prayer"


def local_today(now: datetime, config: ScheduleConfig) -> date:
    """Calendar date of ``now`` in the config's zone (host local zone when unset)."""
    if config.timezone:
        return now.astimezone(ZoneInfo(config.timezone)).date()
    return now.astimezone().date()


class ReminderScheduler:
    def __init__(
        self,
        engine: PrayerBackend,
        timer_service: TimerService,
        horizon_days: int = HORIZON_DAYS,
        rng: Optional[random.Random] = None,
    ):
        if not 1 <= horizon_days <= HORIZON_DAYS:
            raise ValueError(f"horizon_days must be in [1, {HORIZON_DAYS}], got {horizon_days}")
        self.engine = engine
        self.timer_service = timer_service
        self.horizon_days = horizon_days
        self.rng = rng or random.Random()
        self.logger = logging.getLogger(self.__class__.__name__)

    def build_trigger_set(
        self,
        config: ScheduleConfig,
        now: datetime,
        horizon_days: Optional[int] = None,
    ) -> List[ScheduledAlarm]:
        """Alarms for every selected prayer over the horizon, in time order, none at or before ``now``."""
        horizon = self.horizon_days if horizon_days is None else horizon_days
        if not 1 <= horizon <= HORIZON_DAYS:
            raise ValueError(f"horizon_days must be in [1, {HORIZON_DAYS}], got {horizon}")
        today = local_today(now, config)
        offset = timedelta(minutes=config.offset_minutes)
        alarms: List[ScheduledAlarm] = []

        for day_offset in range(horizon):
            day = today + timedelta(days=day_offset)
            times = self.engine.compute_day_times(day, config)
            for kind in config.prayers:
                event_at = times.get(kind)
                if event_at is None:
                    self.logger.debug(f"{kind.value} unavailable on {day}, skipping")
                    continue
                trigger_at = event_at + offset
                if trigger_at <= now:
                    continue
                alarms.append(self._make_alarm(config, kind, day_offset, trigger_at))

        alarms.sort(key=lambda a: a.trigger_at)
        return alarms

    def _make_alarm(self, config: ScheduleConfig, kind: PrayerEvent, day_offset: int, trigger_at: datetime) -> ScheduledAlarm:
        prayer = kind.display_name
        if config.messages:
            body = self.rng.choice(config.messages)
        else:
            body = config.custom_body or DEFAULT_BODY.format(prayer=prayer)
        return ScheduledAlarm(
            notification_id=notification_id(kind, day_offset),
            trigger_at=trigger_at,
            kind=kind,
            day_offset=day_offset,
            title=config.custom_title or DEFAULT_TITLE.format(prayer=prayer),
            body=body,
            image_resource=f"notification_{kind.value}" if config.show_image else None,
            should_reschedule=True,
        )

    def use_exact_alarms(self) -> bool:
        """Ask the backend whether exact idle-allowed timers are permitted right now."""
        return bool(self.timer_service.exact_alarms_permitted())

    def register(self, alarms: Iterable[ScheduledAlarm]) -> int:
        """Register alarms; each id replaces any timer already registered under it."""
        exact = self.use_exact_alarms()
        if not exact:
            self.logger.warning("Exact alarms not permitted, registering in alarm-clock mode")
        count = 0
        for alarm in alarms:
            self.timer_service.schedule_at(alarm.notification_id, alarm.trigger_at, exact, alarm.payload())
            self.logger.info(
                f"Scheduled {alarm.kind.value} #{alarm.notification_id} at {alarm.trigger_at.isoformat()}"
            )
            count += 1
        return count

    def schedule(self, config: ScheduleConfig, now: datetime) -> List[ScheduledAlarm]:
        """Build the trigger set for a fresh horizon anchored at ``now`` and register it.

        Ids shift by one day every midnight, so yesterday's (prayer, day + 1) and today's
        (prayer, day) point at the same event. New alarms replace their ids first; only
        ids left outside the new set are cancelled afterwards, so a backend failure
        mid-registration leaves the previously pending timers in place.
        """
        alarms = self.build_trigger_set(config, now)
        self.register(alarms)
        keep = {alarm.notification_id for alarm in alarms}
        self.cancel_ids(alarm_id for alarm_id in self.alarm_ids() if alarm_id not in keep)
        self.logger.info(f"Registered {len(alarms)} reminders over {self.horizon_days} days")
        return alarms

    @staticmethod
    def alarm_ids(kinds: Iterable[PrayerEvent] = REMINDER_PRAYERS, horizon_days: int = HORIZON_DAYS) -> List[int]:
        return [notification_id(kind, day) for kind in kinds for day in range(horizon_days)]

    def cancel_ids(self, ids: Iterable[int]) -> int:
        count = 0
        for alarm_id in ids:
            self.timer_service.cancel(alarm_id)
            count += 1
        return count

    def cancel_kind(self, kind: PrayerEvent) -> int:
        """Cancel every day of one prayer across the full id range."""
        return self.cancel_ids(self.alarm_ids([kind]))

    def cancel_all(self) -> int:
        return self.cancel_ids(self.alarm_ids())
