"""
Timer backend: one threading.Timer per alarm id, fired alarms delivered through a queue.

Timer threads never run reminder logic themselves; they only post (alarm_id, payload)
to ``result_queue`` and the application drains it on the main thread.
"""
import logging
import threading
from datetime import datetime, timezone
from queue import Queue
from threading import Timer
from typing import Any, Callable, Dict, List, Optional, Protocol


class TimerService(Protocol):
    def schedule_at(self, alarm_id: int, when: datetime, exact: bool, payload: Optional[Dict[str, Any]] = None) -> None: ...

    def cancel(self, alarm_id: int) -> None: ...

    def exact_alarms_permitted(self) -> bool: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ThreadingTimerService:
    """In-process TimerService. Registering an existing id replaces the previous timer."""

    def __init__(self, exact_alarms: bool = True, now_provider: Callable[[], datetime] = _utc_now):
        self.tasks: Dict[int, Timer] = {}
        self.result_queue: Queue = Queue()
        self.logger = logging.getLogger("TimerService")
        self._exact_alarms = exact_alarms
        self._now = now_provider
        self._lock = threading.Lock()

    def exact_alarms_permitted(self) -> bool:
        return self._exact_alarms

    def set_exact_alarms(self, permitted: bool) -> None:
        self._exact_alarms = permitted

    def schedule_at(self, alarm_id: int, when: datetime, exact: bool, payload: Optional[Dict[str, Any]] = None) -> None:
        """Start a timer firing at ``when`` (aware datetime)."""
        delay = max(0.0, (when - self._now()).total_seconds())
        timer = Timer(delay, self._fire, args=(alarm_id, payload or {}))
        timer.daemon = True
        timer.scheduled_time = when
        timer.exact = exact
        with self._lock:
            existing = self.tasks.pop(alarm_id, None)
            if existing is not None:
                self.logger.debug(f"Replacing existing timer {alarm_id}")
                existing.cancel()
            self.tasks[alarm_id] = timer
        timer.start()
        self.logger.debug(f"Timer {alarm_id} started, fires at {when} ({'exact' if exact else 'alarm clock'})")

    def _fire(self, alarm_id: int, payload: Dict[str, Any]) -> None:
        with self._lock:
            # Runs on the Timer's own thread; a replacement registered meanwhile stays.
            if self.tasks.get(alarm_id) is threading.current_thread():
                del self.tasks[alarm_id]
        self.result_queue.put((alarm_id, payload))

    def cancel(self, alarm_id: int) -> None:
        with self._lock:
            timer = self.tasks.pop(alarm_id, None)
        if timer is not None:
            timer.cancel()
            self.logger.debug(f"Cancelled timer {alarm_id}")

    def get_active_timers(self) -> List[Dict[str, Any]]:
        """Return active timer ids with their fire time and mode (for API)."""
        with self._lock:
            items = sorted(self.tasks.items(), key=lambda item: item[1].scheduled_time)
        return [
            {"id": alarm_id, "fires_at": timer.scheduled_time, "exact": timer.exact}
            for alarm_id, timer in items
        ]

    def stop(self) -> None:
        """Stop all scheduled timers."""
        with self._lock:
            timers = list(self.tasks.values())
            self.tasks.clear()
        for timer in timers:
            timer.cancel()
