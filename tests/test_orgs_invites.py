"""Tests for org creation, membership and invites."""

import pytest

from conftest import ALICE, BOB, START
from ledger_core.errors import (
    ConflictError,
    ExpiredError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from ledger_core.models.ledger import Invite, Org
from ledger_core.operations import seed_accounts
from ledger_core.utils import new_guid

CAROL = "carol"


@pytest.mark.asyncio
class TestCreateOrg:
    """Tests for org creation and the seeded chart of accounts."""

    async def test_seeds_six_accounts(self, core, org):
        accounts = await core.get_accounts(org.id, ALICE)
        assert sorted(a.name for a in accounts) == sorted(
            ["Root", "Assets", "Liabilities", "Equity", "Income", "Expenses"]
        )

        by_name = {a.name: a for a in accounts}
        root = by_name["Root"]
        assert root.parent == ""
        for name in ("Assets", "Liabilities", "Equity", "Income", "Expenses"):
            assert by_name[name].parent == root.id
            assert by_name[name].currency == "USD"
            assert by_name[name].read_only is False

    async def test_creator_is_admin(self, core, storage, org):
        assert await storage.get_org_admin_ids(org.id) == [ALICE]
        assert await core.orgs.user_belongs_to_org(ALICE, org.id)

    async def test_timestamps_and_precision(self, org):
        assert org.inserted == START
        assert org.updated == START
        assert org.precision == 2

    async def test_requires_name(self, core):
        with pytest.raises(InvalidInputError, match="name required"):
            await core.create_org(Org(id=new_guid(), currency="USD"), ALICE)

    async def test_get_orgs(self, core, org):
        orgs = await core.get_orgs(ALICE)
        assert [o.id for o in orgs] == [org.id]
        assert await core.get_orgs(BOB) == []

    async def test_get_org_for_non_member(self, core, org):
        with pytest.raises(NotFoundError, match="Org not found"):
            await core.get_org(org.id, BOB)


class TestSeedAccounts:
    """Tests for the seed chart builder."""

    def test_debit_sides(self):
        org = Org(id=new_guid(), name="Acme", currency="EUR", precision=3)
        accounts = {a.name: a for a in seed_accounts(org)}
        assert accounts["Assets"].debit_balance is True
        assert accounts["Expenses"].debit_balance is True
        assert accounts["Liabilities"].debit_balance is False
        assert accounts["Income"].debit_balance is False
        assert all(a.precision == 3 for a in accounts.values())

    def test_root_first(self):
        org = Org(id=new_guid(), name="Acme", currency="USD")
        assert seed_accounts(org)[0].is_root


@pytest.mark.asyncio
class TestUpdateOrg:
    """Tests for org updates."""

    async def test_rename(self, core, clock, org):
        clock.advance(minutes=1)
        updated = await core.update_org(org.model_copy(update={"name": "Acme Ltd"}), ALICE)
        assert updated.name == "Acme Ltd"
        assert updated.inserted == org.inserted
        assert (await core.get_org(org.id, ALICE)).name == "Acme Ltd"

    async def test_currency_is_not_changed(self, core, org):
        updated = await core.update_org(org.model_copy(update={"currency": "EUR"}), ALICE)
        assert updated.currency == "USD"

    async def test_non_member_denied(self, core, org):
        with pytest.raises(PermissionDeniedError, match="access denied"):
            await core.update_org(org.model_copy(update={"name": "Mine"}), BOB)


@pytest.mark.asyncio
class TestInvites:
    """Tests for invite creation and acceptance."""

    async def _invite(self, core, org) -> Invite:
        return await core.create_invite(Invite(org_id=org.id, email="bob@example.com"), ALICE)

    async def test_create_invite(self, core, org):
        invite = await self._invite(core, org)
        assert len(invite.id) == 8
        assert invite.accepted is False
        assert invite.inserted == START

    async def test_only_admin_can_invite(self, core, join, org):
        await join(BOB)
        with pytest.raises(PermissionDeniedError, match="Must be org admin"):
            await core.create_invite(Invite(org_id=org.id, email="c@example.com"), BOB)

    async def test_accept_grants_root(self, core, org, chart):
        invite = await self._invite(core, org)
        accepted = await core.accept_invite(Invite(id=invite.id, accepted=True), BOB)
        assert accepted.accepted is True

        visible = {a.name: a for a in await core.get_accounts(org.id, BOB)}
        assert len(visible) == 6
        assert visible["Root"].read_only is False

    async def test_accept_requires_flag(self, core, org):
        invite = await self._invite(core, org)
        with pytest.raises(InvalidInputError, match="accepted must be true"):
            await core.accept_invite(Invite(id=invite.id), BOB)

    async def test_accept_twice(self, core, org):
        invite = await self._invite(core, org)
        await core.accept_invite(Invite(id=invite.id, accepted=True), BOB)
        with pytest.raises(ConflictError, match="already accepted"):
            await core.accept_invite(Invite(id=invite.id, accepted=True), CAROL)

    async def test_accept_unknown(self, core, org):
        with pytest.raises(NotFoundError):
            await core.accept_invite(Invite(id="deadbeef", accepted=True), BOB)

    async def test_valid_at_exactly_seven_days(self, core, clock, org):
        """The expiry window is inclusive of its last instant."""
        invite = await self._invite(core, org)
        clock.advance(days=7)
        accepted = await core.accept_invite(Invite(id=invite.id, accepted=True), BOB)
        assert accepted.accepted is True

    async def test_expired_after_seven_days(self, core, clock, org):
        invite = await self._invite(core, org)
        clock.advance(days=7, milliseconds=1)
        with pytest.raises(ExpiredError, match="invite has expired"):
            await core.accept_invite(Invite(id=invite.id, accepted=True), BOB)

    async def test_expired_after_eight_days(self, core, clock, org):
        invite = await self._invite(core, org)
        clock.advance(days=8)
        with pytest.raises(ExpiredError, match="invite has expired"):
            await core.accept_invite(Invite(id=invite.id, accepted=True), BOB)

    async def test_existing_member_cannot_accept(self, core, org):
        invite = await self._invite(core, org)
        with pytest.raises(ConflictError, match="already belongs"):
            await core.accept_invite(Invite(id=invite.id, accepted=True), ALICE)

    async def test_get_invites_hides_expired(self, core, clock, org):
        old = await self._invite(core, org)
        clock.advance(days=8)
        fresh = await self._invite(core, org)

        invites = await core.get_invites(org.id, ALICE)
        assert [i.id for i in invites] == [fresh.id]
        assert old.id not in {i.id for i in invites}

    async def test_delete_invite(self, core, org):
        invite = await self._invite(core, org)
        await core.delete_invite(invite.id, ALICE)
        assert await core.get_invites(org.id, ALICE) == []

    async def test_delete_invite_requires_admin(self, core, join, org):
        invite = await self._invite(core, org)
        await join(BOB)
        with pytest.raises(PermissionDeniedError):
            await core.delete_invite(invite.id, BOB)
