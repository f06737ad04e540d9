"""Notification sinks shipped with the core."""

import structlog

from ledger_core.models.events import ChangeNotification
from ledger_core.services.notifications.interface import NotificationSinkInterface


class LoggingNotificationSink(NotificationSinkInterface):
    """Writes every notification to the structured log."""

    def __init__(self):
        self._logger = structlog.get_logger(__name__)

    async def push(self, notification: ChangeNotification) -> None:
        self._logger.info(
            "change_notification",
            entity_kind=notification.entity_kind.value,
            action=notification.action.value,
            entity_id=getattr(notification.entity, "id", None),
            recipients=len(notification.recipient_user_ids),
        )


class InMemoryNotificationSink(NotificationSinkInterface):
    """Records pushes in order. Used by tests and local development."""

    def __init__(self):
        self.notifications: list[ChangeNotification] = []

    async def push(self, notification: ChangeNotification) -> None:
        self.notifications.append(notification)

    def clear(self) -> None:
        self.notifications.clear()
