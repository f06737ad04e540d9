"""
Abstract Notification Sink Interface

DESIGN DECISION: Change notifications are best-effort. The core never waits
on a sink and a failing sink never fails a ledger write. Delivery to actual
clients (websockets, queues, email) belongs to the sink implementation.
"""

from abc import ABC, abstractmethod

from ledger_core.models.events import ChangeNotification


class NotificationSinkInterface(ABC):
    """Receives change notifications from the dispatcher."""

    @abstractmethod
    async def push(self, notification: ChangeNotification) -> None:
        """
        Deliver one notification.

        Raises:
            NotificationError: If delivery failed and may be retried
        """
        pass


class NotificationError(Exception):
    """Raised by a sink when a push could not be delivered."""
    pass
