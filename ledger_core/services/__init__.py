"""Services package: persistence gateways and notification delivery."""

from ledger_core.services.notifications import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
    NotificationDispatcher,
    NotificationError,
    NotificationSinkInterface,
)
from ledger_core.services.storage import (
    ConnectionError,
    DuplicateError,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    SQLiteLedgerStorage,
    StorageError,
)

__all__ = [
    # Notifications
    "InMemoryNotificationSink",
    "LoggingNotificationSink",
    "NotificationDispatcher",
    "NotificationError",
    "NotificationSinkInterface",
    # Storage
    "ConnectionError",
    "DuplicateError",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "SQLiteLedgerStorage",
    "StorageError",
]
