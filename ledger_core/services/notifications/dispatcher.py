"""
Notification Dispatcher

Fire-and-forget bridge between the ledger core and a notification sink.

publish() never blocks and never raises: events go onto a bounded
asyncio.Queue with put_nowait, and a full queue drops the event with a
warning. A single worker task drains the queue and pushes each event to the
sink, retrying failed pushes with exponential backoff. Events that still
fail are logged and discarded.
"""

import asyncio
from typing import Iterable, Optional, Union

import structlog
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from ledger_core.audit.logger import AuditLogger
from ledger_core.models.events import ChangeAction, ChangeNotification, EntityKind
from ledger_core.models.ledger import Account, Price, Transaction
from ledger_core.services.notifications.interface import NotificationSinkInterface

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    """Queues change notifications and delivers them in the background."""

    def __init__(
        self,
        sink: NotificationSinkInterface,
        queue_size: int = 1000,
        max_attempts: int = 3,
        retry_wait_min: float = 0.5,
        retry_wait_max: float = 5.0,
        enabled: bool = True,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._sink = sink
        self._queue: asyncio.Queue[ChangeNotification] = asyncio.Queue(maxsize=queue_size)
        self._max_attempts = max_attempts
        self._retry_wait_min = retry_wait_min
        self._retry_wait_max = retry_wait_max
        self._enabled = enabled
        self._audit = audit_logger or AuditLogger()
        self._worker: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def publish(
        self,
        kind: EntityKind,
        entity: Union[Transaction, Account, Price],
        user_ids: Iterable[str],
        action: ChangeAction,
    ) -> bool:
        """
        Enqueue a notification without waiting.

        Returns False when notifications are disabled or the queue is full.
        """
        if not self._enabled:
            return False

        notification = ChangeNotification(
            entity_kind=kind,
            action=action,
            entity=entity.model_copy(deep=True),
            recipient_user_ids=list(user_ids),
        )
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            logger.warning(
                "notification_queue_full",
                entity_kind=kind.value,
                action=action.value,
            )
            self._audit.log_notification_dropped(kind.value, action.value)
            return False
        return True

    async def start(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run())

    async def flush(self) -> None:
        """Wait until every queued notification has been handled."""
        await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        """Stop the worker, optionally delivering what is already queued."""
        if self._worker is None:
            return
        if drain and not self._worker.done():
            await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def _run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self._deliver(notification)
            finally:
                self._queue.task_done()

    async def _deliver(self, notification: ChangeNotification) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._retry_wait_min,
                max=self._retry_wait_max,
            ),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self._sink.push(notification)
        except Exception as e:
            logger.error(
                "notification_push_failed",
                entity_kind=notification.entity_kind.value,
                action=notification.action.value,
                error=str(e),
            )
            self._audit.log_notification_failed(
                notification.entity_kind.value,
                notification.action.value,
                str(e),
                self._max_attempts,
            )
