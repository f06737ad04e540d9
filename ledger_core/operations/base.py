"""
Shared plumbing for the ledger services.

Every service gets the same collaborators: the persistence gateway, an
optional notification dispatcher, the audit logger and a clock. The clock is
injectable so tests can pin "now".
"""

from typing import Optional, Union

import structlog

from ledger_core.audit.logger import AuditLogger
from ledger_core.errors import PermissionDeniedError
from ledger_core.hierarchy.resolver import resolve
from ledger_core.models.events import ChangeAction, EntityKind
from ledger_core.models.ledger import Account, Price, Transaction
from ledger_core.services.notifications.dispatcher import NotificationDispatcher
from ledger_core.services.storage.interface import LedgerStorageInterface, StorageError
from ledger_core.utils import Clock, truncate_to_ms, utc_now

logger = structlog.get_logger(__name__)


class LedgerService:
    """Base class holding the collaborators every service needs."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        dispatcher: Optional[NotificationDispatcher] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utc_now,
    ):
        self._storage = storage
        self._dispatcher = dispatcher
        self._audit = audit_logger or AuditLogger()
        self._clock = clock

    def _now(self):
        return truncate_to_ms(self._clock())

    async def _require_membership(
        self,
        org_id: str,
        user_id: str,
        message: str = "User does not belong to org",
    ) -> None:
        if not await self._storage.user_belongs_to_org(user_id, org_id):
            raise PermissionDeniedError(message)

    async def _require_admin(self, org_id: str, user_id: str, message: str) -> None:
        if user_id not in await self._storage.get_org_admin_ids(org_id):
            raise PermissionDeniedError(message)

    async def _resolved_accounts(self, org_id: str, user_id: str) -> list[Account]:
        """The user's visible accounts. Requires org membership."""
        await self._require_membership(org_id, user_id)
        return resolve(
            await self._storage.get_accounts_by_org(org_id),
            await self._storage.get_permissioned_account_ids(org_id, user_id),
        )

    async def _notify(
        self,
        kind: EntityKind,
        entity: Union[Transaction, Account, Price],
        org_id: str,
        action: ChangeAction,
    ) -> None:
        """Publish a change to every org member. Never raises."""
        if self._dispatcher is None:
            return
        try:
            user_ids = await self._storage.get_org_user_ids(org_id)
        except StorageError as e:
            logger.warning(
                "notification_recipients_unavailable",
                org_id=org_id,
                entity_kind=kind.value,
                error=str(e),
            )
            return
        self._dispatcher.publish(kind, entity, user_ids, action)
