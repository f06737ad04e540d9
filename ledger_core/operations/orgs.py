"""
Organizations, membership and invites.

Creating an org seeds its chart of accounts:

    Root (debit)
    ├── Assets (debit)
    ├── Liabilities (credit)
    ├── Equity (credit)
    ├── Income (credit)
    └── Expenses (debit)

and makes the creator an admin with write access on Root. Users who join
through an invite become plain members with write access on Root.
"""

from datetime import datetime, timedelta

from ledger_core.errors import (
    ConflictError,
    ExpiredError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from ledger_core.models.audit import AuditEventType
from ledger_core.models.ledger import Account, Invite, Org
from ledger_core.operations.base import LedgerService
from ledger_core.utils import new_guid, new_invite_id
from ledger_core.validation.validator import require, require_id

SEED_ACCOUNTS = (
    ("Assets", True),
    ("Liabilities", False),
    ("Equity", False),
    ("Income", False),
    ("Expenses", True),
)


def seed_accounts(org: Org) -> list[Account]:
    """The six starting accounts of a new org, Root first."""
    common = {
        "org_id": org.id,
        "inserted": org.inserted,
        "updated": org.updated,
        "currency": org.currency,
        "precision": org.precision,
    }
    root = Account(id=new_guid(), name="Root", parent="", debit_balance=True, **common)
    children = [
        Account(id=new_guid(), name=name, parent=root.id, debit_balance=debit, **common)
        for name, debit in SEED_ACCOUNTS
    ]
    return [root, *children]


class OrgService(LedgerService):
    """Org lifecycle and invites."""

    def __init__(
        self,
        *args,
        invite_expiry_days: int = 7,
        default_precision: int = 2,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self._invite_expiry = timedelta(days=invite_expiry_days)
        self._default_precision = default_precision

    # -------------------------------------------------------------------------
    # Orgs
    # -------------------------------------------------------------------------

    async def create_org(self, org: Org, user_id: str) -> Org:
        """
        Create an org, its seed accounts and the creator's admin membership.

        Raises:
            InvalidInputError: id, name or currency missing
        """
        require_id(org.id, "id")
        require(org.name, "name")
        require(org.currency, "currency")
        require(user_id, "userId")

        now = self._now()
        update = {"inserted": now, "updated": now}
        if "precision" not in org.model_fields_set:
            update["precision"] = self._default_precision
        new = org.model_copy(update=update)

        await self._storage.create_org(new, user_id, seed_accounts(new))

        self._audit.log_org_created(new.id, user_id, new.name)
        return new

    async def update_org(self, org: Org, user_id: str) -> Org:
        """
        Rename an org or change its timezone.

        Raises:
            PermissionDeniedError: "access denied" when the user is not a member
            InvalidInputError: name missing
        """
        existing = await self._storage.get_org(org.id, user_id)
        if existing is None:
            raise PermissionDeniedError("access denied")
        require(org.name, "name")

        updated = existing.model_copy(update={
            "name": org.name,
            "timezone": org.timezone,
            "updated": self._now(),
        })
        await self._storage.update_org(updated)

        self._audit.log_org_updated(updated.id, user_id, updated.name)
        return updated

    async def get_org(self, org_id: str, user_id: str) -> Org:
        org = await self._storage.get_org(org_id, user_id)
        if org is None:
            raise NotFoundError("Org not found")
        return org

    async def get_orgs(self, user_id: str) -> list[Org]:
        return await self._storage.get_orgs(user_id)

    async def user_belongs_to_org(self, user_id: str, org_id: str) -> bool:
        return await self._storage.user_belongs_to_org(user_id, org_id)

    # -------------------------------------------------------------------------
    # Invites
    # -------------------------------------------------------------------------

    def _is_expired(self, invite: Invite, now: datetime) -> bool:
        return now > invite.inserted + self._invite_expiry

    async def create_invite(self, invite: Invite, user_id: str) -> Invite:
        """
        Create an invite with a fresh short id. Org admins only.

        Raises:
            InvalidInputError: orgId missing
            PermissionDeniedError: caller is not an org admin
        """
        require(invite.org_id, "orgId")
        await self._require_admin(invite.org_id, user_id, "Must be org admin to invite users")

        now = self._now()
        new = invite.model_copy(update={
            "id": new_invite_id(),
            "inserted": now,
            "updated": now,
            "accepted": False,
        })
        await self._storage.insert_invite(new)

        self._audit.log_invite(AuditEventType.INVITE_CREATED, new.org_id, user_id, new.id)
        return new

    async def accept_invite(self, invite: Invite, user_id: str) -> Invite:
        """
        Join the invite's org as a non-admin member.

        Raises:
            InvalidInputError: accepted flag not set, id missing
            NotFoundError: no such invite
            ConflictError: already accepted, or user already a member
            ExpiredError: older than the expiry window
        """
        if invite.accepted is not True:
            raise InvalidInputError("accepted must be true")
        if not invite.id:
            raise InvalidInputError("missing invite id")

        original = await self._storage.get_invite(invite.id)
        if original is None:
            raise NotFoundError("Invite not found")
        if original.accepted:
            raise ConflictError("invite already accepted")

        now = self._now()
        if self._is_expired(original, now):
            raise ExpiredError("invite has expired")

        if await self._storage.user_belongs_to_org(user_id, original.org_id):
            raise ConflictError("user already belongs to org")

        accepted = original.model_copy(update={"accepted": True, "updated": now})
        await self._storage.accept_invite(accepted, user_id)

        self._audit.log_invite(
            AuditEventType.INVITE_ACCEPTED, accepted.org_id, user_id, accepted.id
        )
        return accepted

    async def get_invites(self, org_id: str, user_id: str) -> list[Invite]:
        """Unexpired invites of the org. Org admins only."""
        await self._require_admin(org_id, user_id, "Must be org admin to invite users")
        return await self._storage.get_invites(org_id, self._now() - self._invite_expiry)

    async def delete_invite(self, invite_id: str, user_id: str) -> None:
        invite = await self._storage.get_invite(invite_id)
        if invite is None:
            raise NotFoundError("Invite not found")
        await self._require_admin(invite.org_id, user_id, "Must be org admin to delete invite")

        await self._storage.delete_invite(invite_id)

        self._audit.log_invite(AuditEventType.INVITE_DELETED, invite.org_id, user_id, invite_id)
