"""Tests for best-effort change notifications."""

import pytest

from conftest import ALICE, BOB
from ledger_core.models.events import ChangeAction, EntityKind
from ledger_core.models.ledger import Account
from ledger_core.orchestrator import LedgerCore
from ledger_core.services.notifications import (
    InMemoryNotificationSink,
    NotificationDispatcher,
    NotificationError,
)


class FlakySink(InMemoryNotificationSink):
    """Fails the first `failures` pushes, then records."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def push(self, notification):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise NotificationError("sink unavailable")
        await super().push(notification)


def _account(name: str = "Cash") -> Account:
    return Account(id="a" * 32, org_id="o" * 32, name=name)


@pytest.mark.asyncio
class TestNotificationDispatcher:
    """Tests for queueing and delivery."""

    async def test_delivers_in_order(self, sink, dispatcher):
        dispatcher.publish(EntityKind.ACCOUNT, _account("A"), ["u1"], ChangeAction.CREATE)
        dispatcher.publish(EntityKind.ACCOUNT, _account("B"), ["u1"], ChangeAction.UPDATE)
        await dispatcher.flush()

        assert [n.entity.name for n in sink.notifications] == ["A", "B"]
        assert sink.notifications[0].recipient_user_ids == ["u1"]

    async def test_entity_snapshot_is_copied(self, sink, dispatcher):
        account = _account("Before")
        dispatcher.publish(EntityKind.ACCOUNT, account, [], ChangeAction.CREATE)
        account.name = "After"
        await dispatcher.flush()
        assert sink.notifications[0].entity.name == "Before"

    async def test_queue_full_drops(self):
        dispatcher = NotificationDispatcher(InMemoryNotificationSink(), queue_size=1)
        assert dispatcher.publish(EntityKind.ACCOUNT, _account(), [], ChangeAction.CREATE)
        assert not dispatcher.publish(EntityKind.ACCOUNT, _account(), [], ChangeAction.CREATE)
        assert dispatcher.pending == 1

    async def test_disabled(self):
        dispatcher = NotificationDispatcher(InMemoryNotificationSink(), enabled=False)
        assert not dispatcher.publish(EntityKind.ACCOUNT, _account(), [], ChangeAction.CREATE)
        assert dispatcher.pending == 0

    async def test_retries_then_delivers(self):
        sink = FlakySink(failures=2)
        dispatcher = NotificationDispatcher(
            sink, max_attempts=3, retry_wait_min=0, retry_wait_max=0
        )
        await dispatcher.start()
        dispatcher.publish(EntityKind.ACCOUNT, _account(), [], ChangeAction.CREATE)
        await dispatcher.stop()

        assert sink.attempts == 3
        assert len(sink.notifications) == 1

    async def test_gives_up_after_max_attempts(self):
        sink = FlakySink(failures=100)
        dispatcher = NotificationDispatcher(
            sink, max_attempts=2, retry_wait_min=0, retry_wait_max=0
        )
        await dispatcher.start()
        dispatcher.publish(EntityKind.ACCOUNT, _account("A"), [], ChangeAction.CREATE)
        await dispatcher.flush()

        assert sink.attempts == 2
        assert sink.notifications == []
        assert dispatcher.is_running

        sink.failures = 0
        dispatcher.publish(EntityKind.ACCOUNT, _account("B"), [], ChangeAction.CREATE)
        await dispatcher.stop()
        assert [n.entity.name for n in sink.notifications] == ["B"]

    async def test_stop_drains_queue(self):
        sink = InMemoryNotificationSink()
        dispatcher = NotificationDispatcher(sink)
        dispatcher.publish(EntityKind.PRICE, _account(), [], ChangeAction.DELETE)
        await dispatcher.start()
        await dispatcher.stop()
        assert len(sink.notifications) == 1
        assert not dispatcher.is_running


@pytest.mark.asyncio
class TestLedgerNotifications:
    """Tests for what the ledger operations publish."""

    async def test_update_sends_delete_then_create(
        self, core, sink, dispatcher, chart, make_account, build_transaction
    ):
        cash = await make_account("Cash", chart["Assets"])
        rent = await make_account("Rent", chart["Expenses"])
        original = await core.create_transaction(build_transaction((cash, -10), (rent, 10)))
        await dispatcher.flush()
        sink.clear()

        replacement = await core.update_transaction(
            original.id, build_transaction((cash, -20), (rent, 20))
        )
        await dispatcher.flush()

        assert [(n.action, n.entity.id) for n in sink.notifications] == [
            (ChangeAction.DELETE, original.id),
            (ChangeAction.CREATE, replacement.id),
        ]
        assert sink.notifications[0].entity.superseded_by == replacement.id

    async def test_recipients_are_org_members(
        self, core, sink, dispatcher, join, chart, make_account
    ):
        await join(BOB)
        await make_account("Cash", chart["Assets"])
        await dispatcher.flush()

        notification = sink.notifications[-1]
        assert notification.entity_kind == EntityKind.ACCOUNT
        assert sorted(notification.recipient_user_ids) == [ALICE, BOB]

    async def test_failing_sink_does_not_fail_writes(self, storage, clock, org, chart):
        sink = FlakySink(failures=100)
        dispatcher = NotificationDispatcher(
            sink, max_attempts=1, retry_wait_min=0, retry_wait_max=0
        )
        core = LedgerCore(storage, dispatcher=dispatcher, clock=clock)
        await core.start()

        account = await core.create_account(
            Account(id="c" * 32, org_id=org.id, name="Cash",
                    parent=chart["Assets"].id, currency="USD"),
            ALICE,
        )
        await core.close()

        assert (await storage.get_account(account.id)).name == "Cash"
        assert sink.attempts == 1
