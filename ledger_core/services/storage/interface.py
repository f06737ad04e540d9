"""
Abstract Storage Interface (the Persistence Gateway)

DESIGN DECISION: The ledger core talks to storage only through this contract.
This allows us to:
1. Run the whole core against an in-memory gateway in tests
2. Swap SQLite for a server database without touching business rules
3. Keep every multi-row write a single call the gateway runs as one unit

The interface is intentionally narrow - we're not building an ORM.
Business rules (permissions, zero-sum, delete guards) live in the core;
the gateway only stores, loads and aggregates.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ledger_core.models.ledger import (
    Account,
    Budget,
    Invite,
    Org,
    Price,
    QueryOptions,
    Transaction,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (in-memory, SQLite, ...) must implement
    these methods. Methods returning Optional return None for a missing row;
    they never raise for "not found".
    """

    # -------------------------------------------------------------------------
    # Orgs and membership
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_org(self, org: Org, user_id: str, accounts: list[Account]) -> None:
        """
        Create an org with its seed chart of accounts, in one unit of work.

        Inserts the org, an admin membership for user_id, every account in
        `accounts` and a write permission for user_id on the root account
        (the one with an empty parent).

        Raises:
            DuplicateError: If the org or an account id already exists
            StorageError: If the write fails; nothing is persisted
        """
        pass

    @abstractmethod
    async def update_org(self, org: Org) -> None:
        """Persist name, timezone and updated of an existing org."""
        pass

    @abstractmethod
    async def get_org(self, org_id: str, user_id: str) -> Optional[Org]:
        """Load an org only if user_id is a member of it."""
        pass

    @abstractmethod
    async def get_org_by_id(self, org_id: str) -> Optional[Org]:
        pass

    @abstractmethod
    async def get_orgs(self, user_id: str) -> list[Org]:
        """All orgs the user belongs to, ordered by name."""
        pass

    @abstractmethod
    async def get_org_user_ids(self, org_id: str) -> list[str]:
        pass

    @abstractmethod
    async def get_org_admin_ids(self, org_id: str) -> list[str]:
        pass

    @abstractmethod
    async def user_belongs_to_org(self, user_id: str, org_id: str) -> bool:
        pass

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_account(self, account: Account) -> None:
        """
        Insert an account. Computed fields (balances, readOnly) are ignored.

        Raises:
            DuplicateError: If the account id already exists
        """
        pass

    @abstractmethod
    async def update_account(self, account: Account) -> None:
        """Persist name, parent, currency, precision, debitBalance and updated."""
        pass

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def get_accounts_by_org(self, org_id: str) -> list[Account]:
        pass

    @abstractmethod
    async def get_root_account(self, org_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def delete_account(self, account_id: str) -> None:
        """Hard delete. The caller has already checked the delete guards."""
        pass

    @abstractmethod
    async def get_split_count(self, account_id: str) -> int:
        """Number of non-deleted splits posted to the account."""
        pass

    @abstractmethod
    async def get_child_count(self, account_id: str) -> int:
        pass

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_permissioned_account_ids(self, org_id: str, user_id: str) -> list[str]:
        """Account ids the user was explicitly granted write access to."""
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_transaction(self, transaction: Transaction) -> None:
        """
        Insert a transaction and its splits atomically.

        Raises:
            DuplicateError: If the transaction id already exists
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Load a transaction (deleted or not) with all its splits in order."""
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str, updated: datetime) -> None:
        """
        Soft delete a transaction and its splits.

        Raises:
            ConflictError: If the transaction is no longer active
        """
        pass

    @abstractmethod
    async def delete_and_insert_transaction(self, old_id: str, transaction: Transaction) -> None:
        """
        Replace a transaction in one unit of work.

        The old row is soft deleted with superseded_by = transaction.id and
        updated = transaction.updated; the new row is inserted with its splits.

        Raises:
            ConflictError: If the old row was no longer active when the unit
                of work ran (a concurrent update or delete won)
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        org_id: str,
        account_ids: list[str],
        options: QueryOptions,
    ) -> list[Transaction]:
        """
        List transactions with at least one split in `account_ids`.

        Filters, sort and pagination follow QueryOptions. Each transaction
        carries all of its splits, not just the matching ones.
        """
        pass

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    @abstractmethod
    async def sum_split_amounts(
        self,
        org_id: str,
        as_of: datetime,
        account_ids: Optional[list[str]] = None,
    ) -> dict[str, int]:
        """
        Sum split.amount per account over non-deleted splits dated before as_of.

        Accounts without such splits are absent from the result.
        """
        pass

    @abstractmethod
    async def sum_split_native_amounts(
        self,
        org_id: str,
        as_of: datetime,
        account_ids: Optional[list[str]] = None,
    ) -> dict[str, int]:
        """Same as sum_split_amounts, over split.native_amount."""
        pass

    @abstractmethod
    async def get_nearest_price(
        self,
        org_id: str,
        currency: str,
        as_of: datetime,
    ) -> Optional[Price]:
        """The org's price for currency whose date is closest to as_of."""
        pass

    # -------------------------------------------------------------------------
    # Prices
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_price(self, price: Price) -> None:
        pass

    @abstractmethod
    async def get_price(self, price_id: str) -> Optional[Price]:
        pass

    @abstractmethod
    async def delete_price(self, price_id: str) -> None:
        pass

    @abstractmethod
    async def get_prices_nearest_in_time(self, org_id: str, date: datetime) -> list[Price]:
        """One price per currency: the one dated closest to `date`."""
        pass

    @abstractmethod
    async def get_prices_by_currency(self, org_id: str, currency: str) -> list[Price]:
        """All prices for a currency, oldest first."""
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_budget(self, org_id: str) -> Optional[Budget]:
        """The org's budget with items ordered by account id, or None."""
        pass

    @abstractmethod
    async def replace_budget(self, budget: Budget) -> None:
        """Delete all of the org's budget items and insert the new ones atomically."""
        pass

    @abstractmethod
    async def delete_budget(self, org_id: str) -> None:
        pass

    # -------------------------------------------------------------------------
    # Invites
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_invite(self, invite: Invite) -> None:
        pass

    @abstractmethod
    async def get_invite(self, invite_id: str) -> Optional[Invite]:
        pass

    @abstractmethod
    async def get_invites(self, org_id: str, inserted_after: datetime) -> list[Invite]:
        """Invites of the org inserted at or after `inserted_after`."""
        pass

    @abstractmethod
    async def accept_invite(self, invite: Invite, user_id: str) -> None:
        """
        Accept an invite in one unit of work.

        Adds a non-admin membership for user_id, marks the invite accepted
        (updated = invite.updated) and grants write access on the org root.
        """
        pass

    @abstractmethod
    async def delete_invite(self, invite_id: str) -> None:
        pass

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    @abstractmethod
    async def ping(self) -> None:
        """
        Raises:
            ConnectionError: If the backend is unreachable
        """
        pass

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Raised when trying to insert a row whose id already exists."""
    pass


class ConnectionError(StorageError):
    """Raised when the storage backend can't be reached."""
    pass
