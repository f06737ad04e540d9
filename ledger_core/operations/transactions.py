"""
Ledger Writer: create, replace, delete and list transactions.

DESIGN DECISION: Transactions are never edited in place. An update retires
the original (soft delete, superseded_by = new id) and inserts the
replacement in one gateway call, so history stays queryable through
includeDeleted and two racing updates cannot both win.
"""

from typing import Optional

from ledger_core.errors import (
    ConflictError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    permission_denied_for_account,
)
from ledger_core.hierarchy.resolver import writable_ids
from ledger_core.models.events import ChangeAction, EntityKind
from ledger_core.models.ledger import QueryOptions, Transaction
from ledger_core.operations.base import LedgerService
from ledger_core.validation.validator import TransactionValidator, require_id


class TransactionService(LedgerService):
    """Validates and writes transactions."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._validator = TransactionValidator(self._storage)

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        """
        Validate and insert a new transaction with its splits.

        Raises:
            InvalidInputError, NotFoundError, PermissionDeniedError
        """
        try:
            await self._validator.validate(transaction)
        except LedgerError as e:
            self._audit.log_transaction_rejected(
                transaction.org_id, transaction.user_id, transaction.id, e.message
            )
            raise

        now = self._now()
        new = transaction.model_copy(deep=True, update={
            "inserted": now,
            "updated": now,
            "date": transaction.date or now,
            "deleted": False,
            "superseded_by": None,
        })

        await self._storage.insert_transaction(new)

        self._audit.log_transaction_created(new.org_id, new.user_id, new.id, len(new.splits))
        await self._notify(EntityKind.TRANSACTION, new, new.org_id, ChangeAction.CREATE)
        return new

    async def update_transaction(self, old_id: str, transaction: Transaction) -> Transaction:
        """
        Replace transaction `old_id` with `transaction`.

        The replacement must carry a new id. It keeps the original's
        inserted time; a missing date falls back to the original's date.
        Write access is checked against the new version only.

        Raises:
            InvalidInputError: bad fields, same id reused, split rule broken
            NotFoundError: original missing or in another org
            PermissionDeniedError: a split account of the new version not writable
            ConflictError: original already deleted or replaced
        """
        try:
            self._validator.validate_fields(transaction)
            require_id(old_id, "id")
            if transaction.id == old_id:
                raise InvalidInputError("replacement transaction must have a new id")
            await self._validator.check_splits(transaction)
        except LedgerError as e:
            self._audit.log_transaction_rejected(
                transaction.org_id, transaction.user_id, transaction.id, e.message
            )
            raise

        original = await self._storage.get_transaction(old_id)
        if original is None or original.org_id != transaction.org_id:
            raise NotFoundError("Transaction not found")
        if original.deleted:
            raise ConflictError("transaction has already been deleted or replaced")

        now = self._now()
        new = transaction.model_copy(deep=True, update={
            "inserted": original.inserted,
            "updated": now,
            "date": transaction.date or original.date,
            "deleted": False,
            "superseded_by": None,
        })

        await self._storage.delete_and_insert_transaction(old_id, new)

        retired = original.model_copy(update={
            "deleted": True,
            "updated": now,
            "superseded_by": new.id,
        })
        self._audit.log_transaction_replaced(new.org_id, new.user_id, old_id, new.id)
        await self._notify(EntityKind.TRANSACTION, retired, new.org_id, ChangeAction.DELETE)
        await self._notify(EntityKind.TRANSACTION, new, new.org_id, ChangeAction.CREATE)
        return new

    async def delete_transaction(self, transaction_id: str, user_id: str, org_id: str) -> Transaction:
        """
        Soft delete a transaction and its splits.

        Raises:
            NotFoundError, PermissionDeniedError, ConflictError
        """
        original = await self._storage.get_transaction(transaction_id)
        if original is None or original.org_id != org_id:
            raise NotFoundError("Transaction not found")

        accounts = await self._resolved_accounts(org_id, user_id)
        writable = writable_ids(accounts)
        for split in original.splits:
            if split.account_id not in writable:
                raise permission_denied_for_account(split.account_id)

        if original.deleted:
            raise ConflictError("transaction has already been deleted or replaced")

        now = self._now()
        await self._storage.delete_transaction(transaction_id, now)

        deleted = original.model_copy(update={"deleted": True, "updated": now})
        self._audit.log_transaction_deleted(org_id, user_id, transaction_id)
        await self._notify(EntityKind.TRANSACTION, deleted, org_id, ChangeAction.DELETE)
        return deleted

    async def get_transactions_by_account(
        self,
        org_id: str,
        user_id: str,
        account_id: str,
        options: Optional[QueryOptions] = None,
    ) -> list[Transaction]:
        """Transactions touching one account. Requires write access to it."""
        accounts = await self._resolved_accounts(org_id, user_id)
        if account_id not in writable_ids(accounts):
            raise permission_denied_for_account(account_id)
        return await self._storage.list_transactions(
            org_id, [account_id], options or QueryOptions()
        )

    async def get_transactions_by_org(
        self,
        org_id: str,
        user_id: str,
        options: Optional[QueryOptions] = None,
    ) -> list[Transaction]:
        """Transactions touching any account the user can see."""
        accounts = await self._resolved_accounts(org_id, user_id)
        return await self._storage.list_transactions(
            org_id, [a.id for a in accounts], options or QueryOptions()
        )
