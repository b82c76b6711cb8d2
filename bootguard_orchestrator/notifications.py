"""
Operator notification sinks.

Notifications are short, human-readable messages about the loading mode and
installation failures. They never carry stack traces.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from .logger import BootstrapLogger

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class NotificationSink(Protocol):
    def notify(self, level: NotificationLevel, message: str, context: Optional[Dict[str, Any]] = None) -> None: ...


@dataclass
class Notification:
    level: NotificationLevel
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class RecordingNotificationSink:
    """Keeps notifications in memory."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, level: NotificationLevel, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.notifications.append(Notification(NotificationLevel(level), message, dict(context or {})))

    def messages(self, level: Optional[NotificationLevel] = None) -> List[str]:
        return [n.message for n in self.notifications if level is None or n.level == level]

    def clear(self) -> None:
        self.notifications.clear()


class LoggingNotificationSink:
    """Writes notifications to the bootstrap log."""

    def __init__(self, event_logger: Optional[BootstrapLogger] = None):
        self.event_logger = event_logger

    def notify(self, level: NotificationLevel, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        level = NotificationLevel(level)
        if self.event_logger is not None:
            self.event_logger.log_event(level.value.upper(), message, event="operator_notification",
                                        **(context or {}))
        else:
            logger.log(getattr(logging, level.value.upper()), message)


class SafeNotificationSink:
    """Wraps any sink so that notifying can never fail the caller."""

    def __init__(self, inner: NotificationSink):
        self.inner = inner

    def notify(self, level: NotificationLevel, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.inner.notify(level, message, context or {})
        except Exception as e:
            logger.warning("Notification sink %s failed: %s", type(self.inner).__name__, e)
