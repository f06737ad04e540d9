"""
Main Orchestrator for the Ledger Core

This module ties the services together behind one facade, LedgerCore, which
is what API handlers call. One coroutine per use case; each takes the
caller's user id and returns entities or raises a LedgerError.

DESIGN DECISION: The orchestrator owns wiring, not rules:
- Business rules live in operations/ and validation/
- Storage and notification backends are injected (or built from settings)
- Every write is audited by the service that performs it

Usage:
    core = await create_ledger_core()
    org = await core.create_org(Org(id=new_guid(), name="Acme", currency="USD"), user_id)
    ...
    await core.close()
"""

from datetime import datetime
from typing import Optional

import structlog

from ledger_core.audit import AuditLogger, configure_logging
from ledger_core.config import Settings, get_settings
from ledger_core.models.ledger import (
    Account,
    Budget,
    Invite,
    Org,
    Price,
    QueryOptions,
    Transaction,
)
from ledger_core.operations import (
    AccountService,
    BudgetService,
    OrgService,
    PriceService,
    TransactionService,
)
from ledger_core.services.notifications import (
    LoggingNotificationSink,
    NotificationDispatcher,
    NotificationSinkInterface,
)
from ledger_core.services.storage import (
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    SQLiteLedgerStorage,
)
from ledger_core.utils import Clock, utc_now

logger = structlog.get_logger(__name__)


class LedgerCore:
    """
    Facade over the ledger services.

    Call start() before use so queued notifications get delivered, and
    close() when done.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        dispatcher: Optional[NotificationDispatcher] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utc_now,
        invite_expiry_days: int = 7,
        default_precision: int = 2,
    ):
        self.storage = storage
        self.dispatcher = dispatcher
        audit_logger = audit_logger or AuditLogger()

        common = dict(dispatcher=dispatcher, audit_logger=audit_logger, clock=clock)
        self.orgs = OrgService(
            storage,
            invite_expiry_days=invite_expiry_days,
            default_precision=default_precision,
            **common,
        )
        self.accounts = AccountService(storage, default_precision=default_precision, **common)
        self.transactions = TransactionService(storage, **common)
        self.prices = PriceService(storage, **common)
        self.budgets = BudgetService(storage, **common)

    async def start(self) -> None:
        if self.dispatcher is not None:
            await self.dispatcher.start()

    async def close(self) -> None:
        if self.dispatcher is not None:
            await self.dispatcher.stop()
        await self.storage.close()

    async def ping(self) -> None:
        """Raises ConnectionError when storage is unreachable."""
        await self.storage.ping()

    # -------------------------------------------------------------------------
    # Orgs
    # -------------------------------------------------------------------------

    async def create_org(self, org: Org, user_id: str) -> Org:
        return await self.orgs.create_org(org, user_id)

    async def update_org(self, org: Org, user_id: str) -> Org:
        return await self.orgs.update_org(org, user_id)

    async def get_org(self, org_id: str, user_id: str) -> Org:
        return await self.orgs.get_org(org_id, user_id)

    async def get_orgs(self, user_id: str) -> list[Org]:
        return await self.orgs.get_orgs(user_id)

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def create_account(self, account: Account, user_id: str) -> Account:
        return await self.accounts.create_account(account, user_id)

    async def update_account(self, account: Account, user_id: str) -> Account:
        return await self.accounts.update_account(account, user_id)

    async def delete_account(self, account_id: str, user_id: str, org_id: str) -> Account:
        return await self.accounts.delete_account(account_id, user_id, org_id)

    async def get_accounts(self, org_id: str, user_id: str) -> list[Account]:
        return await self.accounts.get_accounts(org_id, user_id)

    async def get_accounts_with_balances(
        self,
        org_id: str,
        user_id: str,
        as_of: Optional[datetime] = None,
    ) -> list[Account]:
        return await self.accounts.get_accounts_with_balances(org_id, user_id, as_of)

    async def get_account(self, org_id: str, account_id: str, user_id: str) -> Account:
        return await self.accounts.get_account(org_id, account_id, user_id)

    async def get_account_with_balance(
        self,
        org_id: str,
        account_id: str,
        user_id: str,
        as_of: Optional[datetime] = None,
    ) -> Account:
        return await self.accounts.get_account_with_balance(org_id, account_id, user_id, as_of)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        return await self.transactions.create_transaction(transaction)

    async def update_transaction(self, old_id: str, transaction: Transaction) -> Transaction:
        return await self.transactions.update_transaction(old_id, transaction)

    async def delete_transaction(self, transaction_id: str, user_id: str, org_id: str) -> Transaction:
        return await self.transactions.delete_transaction(transaction_id, user_id, org_id)

    async def get_transactions_by_account(
        self,
        org_id: str,
        user_id: str,
        account_id: str,
        options: Optional[QueryOptions] = None,
    ) -> list[Transaction]:
        return await self.transactions.get_transactions_by_account(
            org_id, user_id, account_id, options
        )

    async def get_transactions_by_org(
        self,
        org_id: str,
        user_id: str,
        options: Optional[QueryOptions] = None,
    ) -> list[Transaction]:
        return await self.transactions.get_transactions_by_org(org_id, user_id, options)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def create_budget(self, budget: Budget, user_id: str) -> Budget:
        return await self.budgets.create_budget(budget, user_id)

    async def get_budget(self, org_id: str, user_id: str) -> Budget:
        return await self.budgets.get_budget(org_id, user_id)

    async def delete_budget(self, org_id: str, user_id: str) -> None:
        await self.budgets.delete_budget(org_id, user_id)

    # -------------------------------------------------------------------------
    # Prices
    # -------------------------------------------------------------------------

    async def create_price(self, price: Price, user_id: str) -> Price:
        return await self.prices.create_price(price, user_id)

    async def delete_price(self, price_id: str, user_id: str) -> Price:
        return await self.prices.delete_price(price_id, user_id)

    async def get_prices_nearest_in_time(
        self,
        org_id: str,
        date: datetime,
        user_id: str,
    ) -> list[Price]:
        return await self.prices.get_prices_nearest_in_time(org_id, date, user_id)

    async def get_prices_by_currency(
        self,
        org_id: str,
        currency: str,
        user_id: str,
    ) -> list[Price]:
        return await self.prices.get_prices_by_currency(org_id, currency, user_id)

    # -------------------------------------------------------------------------
    # Invites
    # -------------------------------------------------------------------------

    async def create_invite(self, invite: Invite, user_id: str) -> Invite:
        return await self.orgs.create_invite(invite, user_id)

    async def accept_invite(self, invite: Invite, user_id: str) -> Invite:
        return await self.orgs.accept_invite(invite, user_id)

    async def get_invites(self, org_id: str, user_id: str) -> list[Invite]:
        return await self.orgs.get_invites(org_id, user_id)

    async def delete_invite(self, invite_id: str, user_id: str) -> None:
        await self.orgs.delete_invite(invite_id, user_id)


async def create_ledger_core(
    settings: Optional[Settings] = None,
    storage: Optional[LedgerStorageInterface] = None,
    sink: Optional[NotificationSinkInterface] = None,
    clock: Clock = utc_now,
) -> LedgerCore:
    """
    Factory function to build and start a LedgerCore.

    Args:
        settings: Settings to read from (defaults to get_settings())
        storage: Gateway to use; built from StorageSettings when None
        sink: Notification sink; LoggingNotificationSink when None
        clock: Source of "now"

    Returns:
        A started LedgerCore
    """
    settings = settings or get_settings()
    ledger_settings = settings.ledger
    storage_settings = settings.storage
    notify_settings = settings.notifications

    configure_logging("DEBUG" if ledger_settings.debug_mode else ledger_settings.log_level)

    if storage is None:
        if storage_settings.backend == "sqlite":
            sqlite_storage = SQLiteLedgerStorage(
                storage_settings.sqlite_path,
                connect_attempts=storage_settings.connect_attempts,
            )
            await sqlite_storage.connect()
            storage = sqlite_storage
        else:
            storage = InMemoryLedgerStorage()

    audit_logger = AuditLogger()
    dispatcher = NotificationDispatcher(
        sink or LoggingNotificationSink(),
        queue_size=notify_settings.queue_size,
        max_attempts=notify_settings.max_attempts,
        retry_wait_min=notify_settings.retry_wait_min,
        retry_wait_max=notify_settings.retry_wait_max,
        enabled=notify_settings.enabled,
        audit_logger=audit_logger,
    )

    core = LedgerCore(
        storage,
        dispatcher=dispatcher,
        audit_logger=audit_logger,
        clock=clock,
        invite_expiry_days=ledger_settings.invite_expiry_days,
        default_precision=ledger_settings.default_precision,
    )
    await core.start()

    logger.info(
        "ledger_core_started",
        environment=ledger_settings.app_environment,
        storage_backend=type(storage).__name__,
        notifications_enabled=notify_settings.enabled,
    )
    return core
