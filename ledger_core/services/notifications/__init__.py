"""
Notification Services Package

Best-effort change notifications: a sink contract, the queueing dispatcher
the core publishes through, and two ready-made sinks.
"""

from ledger_core.services.notifications.interface import (
    NotificationError,
    NotificationSinkInterface,
)
from ledger_core.services.notifications.dispatcher import NotificationDispatcher
from ledger_core.services.notifications.sinks import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
)

__all__ = [
    "InMemoryNotificationSink",
    "LoggingNotificationSink",
    "NotificationDispatcher",
    "NotificationError",
    "NotificationSinkInterface",
]
