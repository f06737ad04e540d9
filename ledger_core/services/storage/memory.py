"""
In-Memory Ledger Storage

Reference gateway for tests and local development.

Every write builds a new copy of the affected tables and swaps it in under an
asyncio.Lock, so a multi-row write is visible completely or not at all.
Stored models are copied on the way in and on the way out; callers can never
mutate stored state through a returned object.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

import structlog

from ledger_core.errors import ConflictError
from ledger_core.models.ledger import (
    Account,
    Budget,
    Invite,
    Org,
    Price,
    QueryOptions,
    Transaction,
)
from ledger_core.queries.executor import TransactionQueryExecutor
from ledger_core.services.storage.interface import (
    DuplicateError,
    LedgerStorageInterface,
)
from ledger_core.utils import to_ms

logger = structlog.get_logger(__name__)

_COMPUTED_ACCOUNT_FIELDS = {
    "balance": None,
    "native_balance": None,
    "read_only": False,
    "has_children": False,
}


@dataclass
class _Tables:
    orgs: dict = field(default_factory=dict)             # org_id -> Org
    memberships: dict = field(default_factory=dict)      # (user_id, org_id) -> admin
    accounts: dict = field(default_factory=dict)         # account_id -> Account
    permissions: frozenset = frozenset()                 # {(user_id, org_id, account_id)}
    transactions: dict = field(default_factory=dict)     # tx_id -> Transaction
    prices: dict = field(default_factory=dict)           # price_id -> Price
    budgets: dict = field(default_factory=dict)          # org_id -> Budget
    invites: dict = field(default_factory=dict)          # invite_id -> Invite

    def clone(self) -> "_Tables":
        return replace(
            self,
            orgs=dict(self.orgs),
            memberships=dict(self.memberships),
            accounts=dict(self.accounts),
            transactions=dict(self.transactions),
            prices=dict(self.prices),
            budgets=dict(self.budgets),
            invites=dict(self.invites),
        )


def _copy(model):
    return model.model_copy(deep=True) if model is not None else None


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed gateway. Not shared across processes."""

    def __init__(self):
        self._tables = _Tables()
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Orgs and membership
    # -------------------------------------------------------------------------

    async def create_org(self, org: Org, user_id: str, accounts: list[Account]) -> None:
        async with self._lock:
            tables = self._tables.clone()
            if org.id in tables.orgs:
                raise DuplicateError(f"org {org.id} already exists")
            tables.orgs[org.id] = _copy(org)
            tables.memberships[(user_id, org.id)] = True

            grants = set(tables.permissions)
            for account in accounts:
                if account.id in tables.accounts:
                    raise DuplicateError(f"account {account.id} already exists")
                tables.accounts[account.id] = account.model_copy(
                    deep=True, update=_COMPUTED_ACCOUNT_FIELDS
                )
                if account.is_root:
                    grants.add((user_id, org.id, account.id))
            tables.permissions = frozenset(grants)

            self._tables = tables

    async def update_org(self, org: Org) -> None:
        async with self._lock:
            tables = self._tables.clone()
            current = tables.orgs.get(org.id)
            if current is None:
                return
            tables.orgs[org.id] = current.model_copy(update={
                "name": org.name,
                "timezone": org.timezone,
                "updated": org.updated,
            })
            self._tables = tables

    async def get_org(self, org_id: str, user_id: str) -> Optional[Org]:
        tables = self._tables
        if (user_id, org_id) not in tables.memberships:
            return None
        return _copy(tables.orgs.get(org_id))

    async def get_org_by_id(self, org_id: str) -> Optional[Org]:
        return _copy(self._tables.orgs.get(org_id))

    async def get_orgs(self, user_id: str) -> list[Org]:
        tables = self._tables
        orgs = [
            tables.orgs[org_id]
            for (member, org_id) in tables.memberships
            if member == user_id and org_id in tables.orgs
        ]
        return [_copy(o) for o in sorted(orgs, key=lambda o: (o.name, o.id))]

    async def get_org_user_ids(self, org_id: str) -> list[str]:
        return sorted(u for (u, o) in self._tables.memberships if o == org_id)

    async def get_org_admin_ids(self, org_id: str) -> list[str]:
        return sorted(
            u for (u, o), admin in self._tables.memberships.items()
            if o == org_id and admin
        )

    async def user_belongs_to_org(self, user_id: str, org_id: str) -> bool:
        return (user_id, org_id) in self._tables.memberships

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def insert_account(self, account: Account) -> None:
        async with self._lock:
            tables = self._tables.clone()
            if account.id in tables.accounts:
                raise DuplicateError(f"account {account.id} already exists")
            tables.accounts[account.id] = account.model_copy(
                deep=True, update=_COMPUTED_ACCOUNT_FIELDS
            )
            self._tables = tables

    async def update_account(self, account: Account) -> None:
        async with self._lock:
            tables = self._tables.clone()
            current = tables.accounts.get(account.id)
            if current is None:
                return
            tables.accounts[account.id] = current.model_copy(update={
                "name": account.name,
                "parent": account.parent,
                "currency": account.currency,
                "precision": account.precision,
                "debit_balance": account.debit_balance,
                "updated": account.updated,
            })
            self._tables = tables

    async def get_account(self, account_id: str) -> Optional[Account]:
        return _copy(self._tables.accounts.get(account_id))

    async def get_accounts_by_org(self, org_id: str) -> list[Account]:
        return [
            _copy(a) for a in self._tables.accounts.values() if a.org_id == org_id
        ]

    async def get_root_account(self, org_id: str) -> Optional[Account]:
        for account in self._tables.accounts.values():
            if account.org_id == org_id and account.is_root:
                return _copy(account)
        return None

    async def delete_account(self, account_id: str) -> None:
        async with self._lock:
            tables = self._tables.clone()
            tables.accounts.pop(account_id, None)
            tables.permissions = frozenset(
                p for p in tables.permissions if p[2] != account_id
            )
            self._tables = tables

    async def get_split_count(self, account_id: str) -> int:
        return sum(
            1
            for t in self._tables.transactions.values()
            if not t.deleted
            for s in t.splits
            if s.account_id == account_id
        )

    async def get_child_count(self, account_id: str) -> int:
        return sum(1 for a in self._tables.accounts.values() if a.parent == account_id)

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    async def get_permissioned_account_ids(self, org_id: str, user_id: str) -> list[str]:
        return sorted(
            account_id
            for (u, o, account_id) in self._tables.permissions
            if u == user_id and o == org_id
        )

    async def grant_permission(self, user_id: str, org_id: str, account_id: str) -> None:
        """Add a write grant directly. Grants are otherwise managed outside the core."""
        async with self._lock:
            tables = self._tables.clone()
            tables.permissions = tables.permissions | {(user_id, org_id, account_id)}
            self._tables = tables

    async def add_member(self, user_id: str, org_id: str, admin: bool = False) -> None:
        async with self._lock:
            tables = self._tables.clone()
            tables.memberships[(user_id, org_id)] = admin
            self._tables = tables

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @staticmethod
    def _stored_transaction(transaction: Transaction) -> Transaction:
        stored = transaction.model_copy(deep=True)
        for split in stored.splits:
            split.transaction_id = stored.id
        return stored

    async def insert_transaction(self, transaction: Transaction) -> None:
        async with self._lock:
            tables = self._tables.clone()
            if transaction.id in tables.transactions:
                raise DuplicateError(f"transaction {transaction.id} already exists")
            tables.transactions[transaction.id] = self._stored_transaction(transaction)
            self._tables = tables

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return _copy(self._tables.transactions.get(transaction_id))

    async def delete_transaction(self, transaction_id: str, updated: datetime) -> None:
        async with self._lock:
            tables = self._tables.clone()
            current = tables.transactions.get(transaction_id)
            if current is None or current.deleted:
                raise ConflictError("transaction has already been deleted or replaced")
            tables.transactions[transaction_id] = current.model_copy(
                update={"deleted": True, "updated": updated}
            )
            self._tables = tables

    async def delete_and_insert_transaction(self, old_id: str, transaction: Transaction) -> None:
        async with self._lock:
            tables = self._tables.clone()
            current = tables.transactions.get(old_id)
            if current is None or current.deleted:
                raise ConflictError("transaction has already been deleted or replaced")
            if transaction.id in tables.transactions:
                raise DuplicateError(f"transaction {transaction.id} already exists")
            tables.transactions[old_id] = current.model_copy(update={
                "deleted": True,
                "updated": transaction.updated,
                "superseded_by": transaction.id,
            })
            tables.transactions[transaction.id] = self._stored_transaction(transaction)
            self._tables = tables

    async def list_transactions(
        self,
        org_id: str,
        account_ids: list[str],
        options: QueryOptions,
    ) -> list[Transaction]:
        candidates = [
            t for t in self._tables.transactions.values() if t.org_id == org_id
        ]
        executor = TransactionQueryExecutor(options)
        return [_copy(t) for t in executor.execute(candidates, account_ids)]

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def _sum_splits(
        self,
        org_id: str,
        as_of: datetime,
        account_ids: Optional[list[str]],
        attribute: str,
    ) -> dict[str, int]:
        wanted = set(account_ids) if account_ids is not None else None
        cutoff = to_ms(as_of)
        totals: dict[str, int] = {}
        for t in self._tables.transactions.values():
            if t.org_id != org_id or t.deleted or to_ms(t.date) >= cutoff:
                continue
            for split in t.splits:
                if wanted is not None and split.account_id not in wanted:
                    continue
                totals[split.account_id] = (
                    totals.get(split.account_id, 0) + getattr(split, attribute)
                )
        return totals

    async def sum_split_amounts(
        self,
        org_id: str,
        as_of: datetime,
        account_ids: Optional[list[str]] = None,
    ) -> dict[str, int]:
        return self._sum_splits(org_id, as_of, account_ids, "amount")

    async def sum_split_native_amounts(
        self,
        org_id: str,
        as_of: datetime,
        account_ids: Optional[list[str]] = None,
    ) -> dict[str, int]:
        return self._sum_splits(org_id, as_of, account_ids, "native_amount")

    async def get_nearest_price(
        self,
        org_id: str,
        currency: str,
        as_of: datetime,
    ) -> Optional[Price]:
        target = to_ms(as_of)
        candidates = [
            p for p in self._tables.prices.values()
            if p.org_id == org_id and p.currency == currency
        ]
        if not candidates:
            return None
        nearest = min(candidates, key=lambda p: (abs(to_ms(p.date) - target), p.id))
        return _copy(nearest)

    # -------------------------------------------------------------------------
    # Prices
    # -------------------------------------------------------------------------

    async def insert_price(self, price: Price) -> None:
        async with self._lock:
            tables = self._tables.clone()
            if price.id in tables.prices:
                raise DuplicateError(f"price {price.id} already exists")
            tables.prices[price.id] = _copy(price)
            self._tables = tables

    async def get_price(self, price_id: str) -> Optional[Price]:
        return _copy(self._tables.prices.get(price_id))

    async def delete_price(self, price_id: str) -> None:
        async with self._lock:
            tables = self._tables.clone()
            tables.prices.pop(price_id, None)
            self._tables = tables

    async def get_prices_nearest_in_time(self, org_id: str, date: datetime) -> list[Price]:
        currencies = sorted({
            p.currency for p in self._tables.prices.values() if p.org_id == org_id
        })
        prices = []
        for currency in currencies:
            price = await self.get_nearest_price(org_id, currency, date)
            if price is not None:
                prices.append(price)
        return prices

    async def get_prices_by_currency(self, org_id: str, currency: str) -> list[Price]:
        prices = [
            p for p in self._tables.prices.values()
            if p.org_id == org_id and p.currency == currency
        ]
        return [_copy(p) for p in sorted(prices, key=lambda p: (to_ms(p.date), p.id))]

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def get_budget(self, org_id: str) -> Optional[Budget]:
        budget = self._tables.budgets.get(org_id)
        if budget is None or not budget.items:
            return None
        budget = _copy(budget)
        budget.items.sort(key=lambda item: item.account_id)
        return budget

    async def replace_budget(self, budget: Budget) -> None:
        async with self._lock:
            tables = self._tables.clone()
            stored = _copy(budget)
            for item in stored.items:
                item.org_id = budget.org_id
            tables.budgets[budget.org_id] = stored
            self._tables = tables

    async def delete_budget(self, org_id: str) -> None:
        async with self._lock:
            tables = self._tables.clone()
            tables.budgets.pop(org_id, None)
            self._tables = tables

    # -------------------------------------------------------------------------
    # Invites
    # -------------------------------------------------------------------------

    async def insert_invite(self, invite: Invite) -> None:
        async with self._lock:
            tables = self._tables.clone()
            if invite.id in tables.invites:
                raise DuplicateError(f"invite {invite.id} already exists")
            tables.invites[invite.id] = _copy(invite)
            self._tables = tables

    async def get_invite(self, invite_id: str) -> Optional[Invite]:
        return _copy(self._tables.invites.get(invite_id))

    async def get_invites(self, org_id: str, inserted_after: datetime) -> list[Invite]:
        cutoff = to_ms(inserted_after)
        invites = [
            i for i in self._tables.invites.values()
            if i.org_id == org_id and to_ms(i.inserted) >= cutoff
        ]
        return [_copy(i) for i in sorted(invites, key=lambda i: (to_ms(i.inserted), i.id))]

    async def accept_invite(self, invite: Invite, user_id: str) -> None:
        async with self._lock:
            tables = self._tables.clone()
            current = tables.invites.get(invite.id)
            if current is None or current.accepted:
                raise ConflictError("invite already accepted")
            tables.memberships[(user_id, current.org_id)] = False
            tables.invites[invite.id] = current.model_copy(
                update={"accepted": True, "updated": invite.updated}
            )
            root = next(
                (a for a in tables.accounts.values()
                 if a.org_id == current.org_id and a.is_root),
                None,
            )
            if root is not None:
                tables.permissions = tables.permissions | {
                    (user_id, current.org_id, root.id)
                }
            else:
                logger.warning("org_has_no_root_account", org_id=current.org_id)
            self._tables = tables

    async def delete_invite(self, invite_id: str) -> None:
        async with self._lock:
            tables = self._tables.clone()
            tables.invites.pop(invite_id, None)
            self._tables = tables

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def ping(self) -> None:
        return None
