"""
Reschedule cascade: rebuilds the reminder horizon from the stored configuration whenever
an alarm fires or the host restarts, plus the handler that runs when an alarm fires.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from awqat.prayer.models import parse_prayer
from awqat.prayer.notifier import NotificationSink
from awqat.prayer.scheduler import DEFAULT_BODY, DEFAULT_TITLE, ReminderScheduler
from awqat.prayer.service import ConfigStore


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CascadeState:
    IDLE = "idle"
    RECONCILING = "reconciling"


class Trigger:
    """What asked for a reconcile."""
    ALARM_FIRED = "alarm_fired"
    BOOT = "boot"
    CONFIG_CHANGED = "config_changed"


class RescheduleCascade:
    """Idle -> Reconciling on a trigger, back to Idle when done whatever the outcome. No retries."""

    def __init__(
        self,
        store: ConfigStore,
        scheduler: ReminderScheduler,
        now_provider: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.scheduler = scheduler
        self.now_provider = now_provider
        self.state = CascadeState.IDLE
        self.last_trigger: Optional[str] = None
        self.last_error: Optional[str] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    def reconcile(self, now: Optional[datetime] = None, trigger: str = Trigger.BOOT) -> bool:
        """Re-register the full horizon from the stored config.

        Returns False, without raising, when reminders are disabled, unconfigured, or
        when loading or registering fails; existing timers are then left as they are.
        """
        if self.state == CascadeState.RECONCILING:
            self.logger.debug(f"Reconcile already running, ignoring {trigger}")
            return False
        self.state = CascadeState.RECONCILING
        self.last_trigger = trigger
        try:
            config = self.store.load()
            if config is None:
                self.logger.debug("No saved configuration, nothing to reschedule")
                return False
            if not config.enabled:
                self.logger.debug("Reminders disabled, skipping reschedule")
                return False
            if not config.can_schedule:
                self.logger.debug("No prayers configured or invalid location")
                return False
            alarms = self.scheduler.schedule(config, now or self.now_provider())
            self.last_error = None
            self.logger.info(f"Reconciled after {trigger}: {len(alarms)} reminders pending")
            return True
        except Exception as e:
            self.last_error = str(e)
            self.logger.exception(f"Failed to reschedule after {trigger}: {e}")
            return False
        finally:
            self.state = CascadeState.IDLE

    def on_boot(self, now: Optional[datetime] = None) -> bool:
        self.logger.info("Boot completed, checking if reminders need rescheduling")
        return self.reconcile(now, trigger=Trigger.BOOT)

    def on_alarm_fired(self, now: Optional[datetime] = None) -> bool:
        return self.reconcile(now, trigger=Trigger.ALARM_FIRED)


class AlarmFireHandler:
    """Delivers the reminder if the stored config still wants it, then tops the horizon up."""

    def __init__(self, sink: NotificationSink, cascade: RescheduleCascade):
        self.sink = sink
        self.cascade = cascade
        self.logger = logging.getLogger(self.__class__.__name__)

    def _still_wanted(self, alarm_id: int, payload: Dict[str, Any]) -> bool:
        """Check the stored config; cancel what it no longer asks for.

        Settings may have been changed by another process since this alarm was registered.
        """
        try:
            config = self.cascade.store.load()
        except Exception as e:
            self.logger.error(f"Stored configuration unreadable, delivering alarm {alarm_id} anyway: {e}")
            return True

        if config is None or not config.enabled:
            self.logger.info(f"Reminders disabled, dropping alarm {alarm_id} and clearing pending reminders")
            self.cascade.scheduler.cancel_all()
            return False

        try:
            kind = parse_prayer(payload.get("prayer_name", ""))
        except ValueError:
            return True
        if kind not in config.prayers:
            self.logger.info(f"{kind.value} no longer selected, dropping alarm {alarm_id}")
            self.cascade.scheduler.cancel_kind(kind)
            return False
        return True

    def __call__(self, alarm_id: int, payload: Dict[str, Any]) -> None:
        self.logger.debug(f"Alarm received! ID: {alarm_id}")
        try:
            if not self._still_wanted(alarm_id, payload):
                return
        except Exception as e:
            self.logger.error(f"Could not cancel stale reminders after alarm {alarm_id}: {e}", exc_info=True)
            return
        prayer = payload.get("prayer_name") or "Prayer"
        title = payload.get("title") or DEFAULT_TITLE.format(prayer=prayer)
        body = payload.get("body") or DEFAULT_BODY.format(prayer=prayer)
        try:
            self.sink.deliver(payload.get("notification_id", alarm_id), title, body)
        except Exception as e:
            self.logger.error(f"Failed to deliver reminder {alarm_id}: {e}", exc_info=True)

        if payload.get("should_reschedule"):
            self.cascade.on_alarm_fired()
