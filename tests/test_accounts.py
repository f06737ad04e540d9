"""Tests for the chart of accounts operations."""

from datetime import timedelta

import pytest

from conftest import ALICE, BOB, START
from ledger_core.errors import (
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from ledger_core.models.ledger import Account
from ledger_core.utils import new_guid


@pytest.mark.asyncio
class TestCreateAccount:
    """Tests for account creation."""

    async def test_create_under_writable_parent(self, core, org, chart, make_account):
        cash = await make_account("Cash", chart["Assets"])
        assert cash.inserted == START
        assert cash.parent == chart["Assets"].id

        visible = {a.id: a for a in await core.get_accounts(org.id, ALICE)}
        assert cash.id in visible
        assert visible[chart["Assets"].id].has_children is True

    async def test_default_precision(self, core, org, chart):
        account = await core.create_account(
            Account(id=new_guid(), org_id=org.id, name="Cash",
                    parent=chart["Assets"].id, currency="USD"),
            ALICE,
        )
        assert account.precision == 2

    async def test_name_and_currency_required(self, core, org, chart):
        with pytest.raises(InvalidInputError, match="name required"):
            await core.create_account(
                Account(id=new_guid(), org_id=org.id, parent=chart["Assets"].id,
                        currency="USD"),
                ALICE,
            )
        with pytest.raises(InvalidInputError, match="currency required"):
            await core.create_account(
                Account(id=new_guid(), org_id=org.id, parent=chart["Assets"].id,
                        name="Cash"),
                ALICE,
            )

    async def test_self_parent_rejected(self, core, org):
        account_id = new_guid()
        with pytest.raises(InvalidInputError, match="own parent"):
            await core.create_account(
                Account(id=account_id, org_id=org.id, name="Loop",
                        parent=account_id, currency="USD"),
                ALICE,
            )

    async def test_parent_must_be_writable(self, core, join, org, chart, make_account):
        cash = await make_account("Cash", chart["Assets"])
        await join(BOB, cash)
        with pytest.raises(PermissionDeniedError):
            await core.create_account(
                Account(id=new_guid(), org_id=org.id, name="Petty",
                        parent=chart["Assets"].id, currency="USD"),
                BOB,
            )

    async def test_non_member_rejected(self, core, org, chart):
        with pytest.raises(PermissionDeniedError, match="does not belong"):
            await core.create_account(
                Account(id=new_guid(), org_id=org.id, name="Cash",
                        parent=chart["Assets"].id, currency="USD"),
                BOB,
            )


@pytest.mark.asyncio
class TestUpdateAccount:
    """Tests for account updates."""

    async def test_rename_and_keep_inserted(self, core, clock, org, chart, make_account):
        cash = await make_account("Cash", chart["Assets"])
        clock.advance(hours=1)

        updated = await core.update_account(
            cash.model_copy(update={"name": "Wallet"}), ALICE
        )
        assert updated.name == "Wallet"
        assert updated.inserted == cash.inserted
        assert updated.updated == START + timedelta(hours=1)

    async def test_update_returns_balance(
        self, core, clock, org, chart, make_account, build_transaction
    ):
        cash = await make_account("Cash", chart["Assets"])
        rent = await make_account("Rent", chart["Expenses"])
        await core.create_transaction(build_transaction((cash, -400), (rent, 400)))
        clock.advance(seconds=1)

        updated = await core.update_account(cash.model_copy(update={"name": "Wallet"}), ALICE)
        assert updated.balance == -400

    async def test_self_parent_rejected(self, core, chart, make_account):
        cash = await make_account("Cash", chart["Assets"])
        with pytest.raises(InvalidInputError, match="own parent"):
            await core.update_account(cash.model_copy(update={"parent": cash.id}), ALICE)

    async def test_move_beneath_descendant_rejected(self, core, chart, make_account):
        bank = await make_account("Bank", chart["Assets"])
        checking = await make_account("Checking", bank)
        with pytest.raises(InvalidInputError, match="own descendant"):
            await core.update_account(bank.model_copy(update={"parent": checking.id}), ALICE)

    async def test_move_to_other_parent(self, core, org, chart, make_account):
        cash = await make_account("Cash", chart["Assets"])
        moved = await core.update_account(
            cash.model_copy(update={"parent": chart["Expenses"].id}), ALICE
        )
        assert moved.parent == chart["Expenses"].id

    async def test_missing_account(self, core, org, chart):
        with pytest.raises(NotFoundError, match="Account not found"):
            await core.update_account(
                Account(id=new_guid(), org_id=org.id, name="Ghost",
                        parent=chart["Assets"].id, currency="USD"),
                ALICE,
            )


@pytest.mark.asyncio
class TestDeleteAccount:
    """Tests for hard deletion guards."""

    async def test_delete_leaf(self, core, org, chart, make_account):
        cash = await make_account("Cash", chart["Assets"])
        deleted = await core.delete_account(cash.id, ALICE, org.id)
        assert deleted.id == cash.id
        assert cash.id not in {a.id for a in await core.get_accounts(org.id, ALICE)}

    async def test_account_with_transactions(
        self, core, org, chart, make_account, build_transaction
    ):
        cash = await make_account("Cash", chart["Assets"])
        rent = await make_account("Rent", chart["Expenses"])
        await core.create_transaction(build_transaction((cash, -1), (rent, 1)))
        with pytest.raises(InvalidInputError, match="Cannot delete an account that has transactions"):
            await core.delete_account(cash.id, ALICE, org.id)

    async def test_account_with_children(self, core, org, chart, make_account):
        bank = await make_account("Bank", chart["Assets"])
        await make_account("Checking", bank)
        with pytest.raises(InvalidInputError, match="Cannot delete an account that has children"):
            await core.delete_account(bank.id, ALICE, org.id)

    async def test_deleted_transactions_do_not_block(
        self, core, org, chart, make_account, build_transaction
    ):
        cash = await make_account("Cash", chart["Assets"])
        rent = await make_account("Rent", chart["Expenses"])
        tx = await core.create_transaction(build_transaction((cash, -1), (rent, 1)))
        await core.delete_transaction(tx.id, ALICE, org.id)
        await core.delete_account(cash.id, ALICE, org.id)

    async def test_read_only_account(self, core, join, org, chart, make_account):
        cash = await make_account("Cash", chart["Assets"])
        await join(BOB, cash)
        with pytest.raises(PermissionDeniedError):
            await core.delete_account(chart["Assets"].id, BOB, org.id)


@pytest.mark.asyncio
class TestReadAccounts:
    """Tests for the resolver-backed reads."""

    async def test_member_with_one_grant(self, core, join, org, chart, make_account):
        cash = await make_account("Cash", chart["Assets"])
        rent = await make_account("Rent", chart["Expenses"])
        await join(BOB, cash)

        visible = {a.id: a for a in await core.get_accounts(org.id, BOB)}
        assert visible[cash.id].read_only is False
        assert visible[chart["Assets"].id].read_only is True
        assert visible[chart["Root"].id].read_only is True
        assert rent.id not in visible

    async def test_get_hidden_account(self, core, join, org, chart, make_account):
        cash = await make_account("Cash", chart["Assets"])
        rent = await make_account("Rent", chart["Expenses"])
        await join(BOB, cash)
        with pytest.raises(NotFoundError):
            await core.get_account(org.id, rent.id, BOB)

    async def test_non_member(self, core, org):
        with pytest.raises(PermissionDeniedError):
            await core.get_accounts(org.id, BOB)

    async def test_root_account(self, storage, org, chart):
        root = await storage.get_root_account(org.id)
        assert root.id == chart["Root"].id
        assert await storage.get_root_account("missing") is None
