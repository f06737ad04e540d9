"""
Shared fixtures for the ledger core tests.

Every test gets a fresh in-memory gateway, a pinned clock and a recording
notification sink. The `org` fixture creates an org owned by ALICE, who is
admin and can write the whole chart of accounts.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from ledger_core.models.ledger import Account, Org, Split, Transaction
from ledger_core.orchestrator import LedgerCore
from ledger_core.services.notifications import (
    InMemoryNotificationSink,
    NotificationDispatcher,
)
from ledger_core.services.storage import InMemoryLedgerStorage
from ledger_core.utils import new_guid

ALICE = "alice"
BOB = "bob"
START = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def sink():
    return InMemoryNotificationSink()


@pytest_asyncio.fixture
async def dispatcher(sink):
    dispatcher = NotificationDispatcher(sink, retry_wait_min=0, retry_wait_max=0)
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest.fixture
def core(storage, dispatcher, clock):
    return LedgerCore(storage, dispatcher=dispatcher, clock=clock)


@pytest_asyncio.fixture
async def org(core):
    return await core.create_org(Org(id=new_guid(), name="Acme", currency="USD"), ALICE)


@pytest_asyncio.fixture
async def chart(core, org):
    """Seed accounts by name."""
    return {a.name: a for a in await core.get_accounts(org.id, ALICE)}


@pytest.fixture
def make_account(core, org):
    """Create an account beneath `parent` as ALICE."""

    async def _make(name: str, parent: Account, currency: str = "USD", precision: int = 2,
                    debit_balance: bool = True, user_id: str = ALICE) -> Account:
        return await core.create_account(
            Account(
                id=new_guid(),
                org_id=org.id,
                name=name,
                parent=parent.id,
                currency=currency,
                precision=precision,
                debit_balance=debit_balance,
            ),
            user_id,
        )

    return _make


@pytest.fixture
def build_transaction(org):
    """
    Build (not store) a transaction from (account, amount) or
    (account, amount, native_amount) legs.
    """

    def _build(*legs, date=None, description="", user_id=ALICE, transaction_id=None):
        splits = []
        for leg in legs:
            account, amount = leg[0], leg[1]
            native = leg[2] if len(leg) > 2 else amount
            splits.append(Split(account_id=account.id, amount=amount, native_amount=native))
        return Transaction(
            id=transaction_id or new_guid(),
            org_id=org.id,
            user_id=user_id,
            date=date,
            description=description,
            splits=splits,
        )

    return _build


@pytest.fixture
def join(storage, org):
    """Make a user a plain member of the org with grants on `accounts`."""

    async def _join(user_id: str, *accounts: Account) -> None:
        await storage.add_member(user_id, org.id)
        for account in accounts:
            await storage.grant_permission(user_id, org.id, account.id)

    return _join
