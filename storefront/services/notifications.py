"""
Shopper-facing notifications (toasts).

The cart only knows the NotificationSink interface; rendering is up to the
UI layer that installs a sink.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List

from storefront.logging import get_logger

logger = get_logger(__name__)


class Severity(str, Enum):
    """Toast severity."""
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    severity: Severity
    title: str
    description: str = ""


class NotificationSink(ABC):
    """Receives every shopper-facing event."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        """Deliver one notification."""

    def success(self, title: str, description: str = "") -> None:
        self.notify(Notification(Severity.SUCCESS, title, description))

    def info(self, title: str, description: str = "") -> None:
        self.notify(Notification(Severity.INFO, title, description))

    def warning(self, title: str, description: str = "") -> None:
        self.notify(Notification(Severity.WARNING, title, description))

    def error(self, title: str, description: str = "") -> None:
        self.notify(Notification(Severity.ERROR, title, description))


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the log. Default for headless use."""

    _LEVELS = {
        Severity.SUCCESS: "info",
        Severity.INFO: "info",
        Severity.WARNING: "warning",
        Severity.ERROR: "error",
    }

    def notify(self, notification: Notification) -> None:
        log = getattr(logger, self._LEVELS[notification.severity])
        log(f"[{notification.severity.value}] {notification.title}: {notification.description}")


class RecordingNotificationSink(NotificationSink):
    """Keeps notifications in memory until the UI drains them."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def drain(self) -> List[Notification]:
        """Return pending notifications and forget them."""
        pending, self.notifications = self.notifications, []
        return pending

    @property
    def titles(self) -> List[str]:
        return [n.title for n in self.notifications]
