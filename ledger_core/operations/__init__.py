"""Ledger use cases, one service per aggregate."""

from ledger_core.operations.accounts import AccountService
from ledger_core.operations.base import LedgerService
from ledger_core.operations.budgets import BudgetService
from ledger_core.operations.orgs import OrgService, seed_accounts
from ledger_core.operations.prices import PriceService
from ledger_core.operations.transactions import TransactionService

__all__ = [
    "AccountService",
    "BudgetService",
    "LedgerService",
    "OrgService",
    "PriceService",
    "TransactionService",
    "seed_accounts",
]
