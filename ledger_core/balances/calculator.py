"""
Balance Calculator

Annotates accounts with balance and native_balance as of a point in time.

Two ways to get the native (org currency) balance:
- COST (default everywhere): the sum of the native amounts recorded on the
  splits, i.e. what the postings cost at the time they were made
- NEAREST PRICE: the account-currency balance converted with the org's
  price closest in time to as_of

DESIGN DECISION: Every balance is computed before any account is touched,
so a gateway failure leaves the whole batch unmodified.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog

from ledger_core.errors import NotFoundError
from ledger_core.models.ledger import Account
from ledger_core.services.storage.interface import LedgerStorageInterface
from ledger_core.utils import round_half_away_from_zero

logger = structlog.get_logger(__name__)


def convert_to_native(
    balance: int,
    price: float,
    account_precision: int,
    org_precision: int,
) -> int:
    """
    Convert minor units of a foreign currency into org minor units.

    balance * price / 10^(account_precision - org_precision), rounded half
    away from zero.
    """
    scale = Decimal(10) ** (account_precision - org_precision)
    return round_half_away_from_zero(Decimal(balance) * Decimal(str(price)) / scale)


class BalanceCalculator:
    """Computes balances through the persistence gateway."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def _cost_balances(
        self,
        accounts: list[Account],
        as_of: datetime,
    ) -> list[tuple[Optional[int], Optional[int]]]:
        by_org: dict[str, list[str]] = {}
        for account in accounts:
            by_org.setdefault(account.org_id, []).append(account.id)

        amounts: dict[str, int] = {}
        natives: dict[str, int] = {}
        for org_id, ids in by_org.items():
            amounts.update(await self._storage.sum_split_amounts(org_id, as_of, ids))
            natives.update(await self._storage.sum_split_native_amounts(org_id, as_of, ids))

        return [(amounts.get(a.id), natives.get(a.id)) for a in accounts]

    async def add_balances(self, accounts: list[Account], as_of: datetime) -> list[Account]:
        """
        Set balance and native_balance (cost basis) on each account in place.

        None means the account has no non-deleted split dated before as_of.
        """
        results = await self._cost_balances(accounts, as_of)
        for account, (balance, native_balance) in zip(accounts, results):
            account.balance = balance
            account.native_balance = native_balance
        return accounts

    async def add_balance(self, account: Account, as_of: datetime) -> Account:
        await self.add_balances([account], as_of)
        return account

    async def add_native_balances_nearest(
        self,
        accounts: list[Account],
        as_of: datetime,
    ) -> list[Account]:
        """
        Set balance and a price-converted native_balance on each account.

        Same-currency accounts get native_balance == balance. Foreign-currency
        accounts with no price for their currency get 0. Accounts without
        splits keep None for both.

        Raises:
            NotFoundError: If an account's org does not exist
        """
        results = await self._cost_balances(accounts, as_of)

        orgs = {}
        for org_id in {a.org_id for a in accounts}:
            org = await self._storage.get_org_by_id(org_id)
            if org is None:
                raise NotFoundError("Org not found")
            orgs[org_id] = org

        natives: list[Optional[int]] = []
        for account, (balance, _) in zip(accounts, results):
            org = orgs[account.org_id]
            if balance is None:
                natives.append(None)
            elif account.currency == org.currency:
                natives.append(balance)
            else:
                price = await self._storage.get_nearest_price(
                    account.org_id, account.currency, as_of
                )
                if price is None:
                    logger.debug(
                        "no_price_for_currency",
                        org_id=account.org_id,
                        currency=account.currency,
                    )
                    natives.append(0)
                else:
                    natives.append(convert_to_native(
                        balance, price.price, account.precision, org.precision
                    ))

        for account, (balance, _), native in zip(accounts, results, natives):
            account.balance = balance
            account.native_balance = native
        return accounts

    async def add_native_balance_nearest(self, account: Account, as_of: datetime) -> Account:
        await self.add_native_balances_nearest([account], as_of)
        return account
