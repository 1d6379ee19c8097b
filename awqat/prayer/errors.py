"""
Error taxonomy for the reminder core. Each exception carries the code reported to callers.

"No solution for this event today" is not an error and has no class here; the engine
reports such events as None.
"""
from typing import Optional


class AwqatError(Exception):
    """Base error with a stable code."""

    code = "AWQAT_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        data = {"code": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class InitError(AwqatError):
    """Malformed configuration input."""
    code = "INIT_ERROR"


class PrayerTimesError(AwqatError):
    """Prayer time computation failed for a reason other than a missing event (e.g. unreadable date)."""
    code = "PRAYER_TIMES_ERROR"


class ScheduleError(AwqatError):
    """Persisting the configuration or registering timers failed."""
    code = "SCHEDULE_ERROR"


class CancelError(AwqatError):
    """The timer backend failed while removing alarms."""
    code = "CANCEL_ERROR"


class InvalidPrayerError(AwqatError):
    """Unknown prayer name."""
    code = "INVALID_PRAYER"
