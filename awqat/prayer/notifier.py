"""
Notification delivery contract. Rendering (images, styles, channels) belongs to the host;
the core only hands over id, title and body.
"""
import logging
from collections import deque
from typing import Deque, Protocol, Tuple

CHANNEL_ID = "awqat_prayer_reminders"


class NotificationSink(Protocol):
    def deliver(self, notification_id: int, title: str, body: str) -> None: ...

    def has_permission(self) -> bool: ...


class LoggingNotificationSink:
    """Writes every reminder to the log. Used when no richer host sink is attached."""

    def __init__(self, permitted: bool = True):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.permitted = permitted
        self.delivered: Deque[Tuple[int, str, str]] = deque(maxlen=100)

    def deliver(self, notification_id: int, title: str, body: str) -> None:
        self.delivered.append((notification_id, title, body))
        self.logger.info(f"[{CHANNEL_ID}] #{notification_id} {title}: {body}")

    def has_permission(self) -> bool:
        return self.permitted
