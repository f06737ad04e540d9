"""
Chart of accounts: create, update, delete and read accounts.

Every call requires org membership. Writes additionally require write
access to the parent (and, for update and delete, to the account itself).
Reads return the resolver's view: only accounts the user may see, each
annotated with read_only.
"""

from datetime import datetime
from typing import Optional

from ledger_core.balances.calculator import BalanceCalculator
from ledger_core.errors import (
    InvalidInputError,
    NotFoundError,
    permission_denied_for_account,
)
from ledger_core.hierarchy.resolver import AccountTree, writable_ids
from ledger_core.models.events import ChangeAction, EntityKind
from ledger_core.models.ledger import Account
from ledger_core.operations.base import LedgerService
from ledger_core.validation.validator import require, require_id


class AccountService(LedgerService):
    """Account CRUD and balance-annotated reads."""

    def __init__(self, *args, default_precision: int = 2, **kwargs):
        super().__init__(*args, **kwargs)
        self._balances = BalanceCalculator(self._storage)
        self._default_precision = default_precision

    @staticmethod
    def _validate_fields(account: Account) -> None:
        require_id(account.id, "id")
        require_id(account.org_id, "orgId")
        require(account.name, "name")
        require(account.currency, "currency")
        if account.parent == account.id:
            raise InvalidInputError("account cannot be its own parent")

    async def create_account(self, account: Account, user_id: str) -> Account:
        """
        Insert a new account beneath a parent the user can write.

        Raises:
            InvalidInputError, PermissionDeniedError
        """
        self._validate_fields(account)

        accounts = await self._resolved_accounts(account.org_id, user_id)
        if account.parent not in writable_ids(accounts):
            raise permission_denied_for_account(account.parent)

        now = self._now()
        update = {
            "inserted": now,
            "updated": now,
            "balance": None,
            "native_balance": None,
            "read_only": False,
            "has_children": False,
        }
        if "precision" not in account.model_fields_set:
            update["precision"] = self._default_precision
        new = account.model_copy(deep=True, update=update)

        await self._storage.insert_account(new)

        self._audit.log_account_created(new.org_id, user_id, new.id, new.name)
        await self._notify(EntityKind.ACCOUNT, new, new.org_id, ChangeAction.CREATE)
        return new

    async def update_account(self, account: Account, user_id: str) -> Account:
        """
        Change an account's name, parent, currency, precision or side.

        Returns the stored account with cost-basis balances as of now.

        Raises:
            InvalidInputError: bad fields, self-parenting, moving beneath
                one of its own descendants
            NotFoundError: account missing or in another org
            PermissionDeniedError: account or new parent not writable
        """
        self._validate_fields(account)

        accounts = await self._resolved_accounts(account.org_id, user_id)
        existing = await self._storage.get_account(account.id)
        if existing is None or existing.org_id != account.org_id:
            raise NotFoundError("Account not found")

        writable = writable_ids(accounts)
        if account.id not in writable:
            raise permission_denied_for_account(account.id)
        if account.parent not in writable:
            raise permission_denied_for_account(account.parent)

        tree = AccountTree(await self._storage.get_accounts_by_org(account.org_id))
        if tree.is_descendant(account.parent, account.id):
            raise InvalidInputError("account cannot be moved beneath its own descendant")

        now = self._now()
        updated = existing.model_copy(update={
            "name": account.name,
            "parent": account.parent,
            "currency": account.currency,
            "precision": account.precision,
            "debit_balance": account.debit_balance,
            "updated": now,
        })
        await self._storage.update_account(updated)
        await self._balances.add_balance(updated, now)

        self._audit.log_account_updated(updated.org_id, user_id, updated.id, updated.name)
        await self._notify(EntityKind.ACCOUNT, updated, updated.org_id, ChangeAction.UPDATE)
        return updated

    async def delete_account(self, account_id: str, user_id: str, org_id: str) -> Account:
        """
        Hard delete a leaf account that has never been posted to.

        Raises:
            PermissionDeniedError, InvalidInputError, NotFoundError
        """
        accounts = await self._resolved_accounts(org_id, user_id)
        if account_id not in writable_ids(accounts):
            raise permission_denied_for_account(account_id)

        if await self._storage.get_split_count(account_id) != 0:
            raise InvalidInputError("Cannot delete an account that has transactions")
        if await self._storage.get_child_count(account_id) != 0:
            raise InvalidInputError("Cannot delete an account that has children")

        account = await self._storage.get_account(account_id)
        if account is None:
            raise NotFoundError("Account not found")

        await self._storage.delete_account(account_id)

        self._audit.log_account_deleted(org_id, user_id, account_id, account.name)
        await self._notify(EntityKind.ACCOUNT, account, org_id, ChangeAction.DELETE)
        return account

    async def get_accounts(self, org_id: str, user_id: str) -> list[Account]:
        return await self._resolved_accounts(org_id, user_id)

    async def get_accounts_with_balances(
        self,
        org_id: str,
        user_id: str,
        as_of: Optional[datetime] = None,
    ) -> list[Account]:
        """Visible accounts with cost-basis balances as of `as_of` (default now)."""
        accounts = await self._resolved_accounts(org_id, user_id)
        return await self._balances.add_balances(accounts, as_of or self._now())

    async def get_account(self, org_id: str, account_id: str, user_id: str) -> Account:
        for account in await self._resolved_accounts(org_id, user_id):
            if account.id == account_id:
                return account
        raise NotFoundError("Account not found")

    async def get_account_with_balance(
        self,
        org_id: str,
        account_id: str,
        user_id: str,
        as_of: Optional[datetime] = None,
    ) -> Account:
        account = await self.get_account(org_id, account_id, user_id)
        return await self._balances.add_balance(account, as_of or self._now())
