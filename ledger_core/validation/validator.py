"""
Two-Stage Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages, and both run
before anything is written:

STAGE 1 - FIELD VALIDATION:
- Required identifiers present and well formed
- Split amounts fit a signed 64-bit integer
- No storage access needed

STAGE 2 - SPLIT VALIDATION (check_splits):
- At least two splits
- The user belongs to the org
- Every split account is writable by the user and is a leaf
- Native-currency splits carry amount == native_amount
- Native amounts add up to exactly zero

IMPORTANT: Validation NEVER fixes input. The first violation is raised as a
LedgerError with a short message the caller can show as is.
"""

from dataclasses import dataclass

import structlog

from ledger_core.errors import (
    InvalidInputError,
    NotFoundError,
    permission_denied_for_account,
)
from ledger_core.hierarchy.resolver import resolve
from ledger_core.models.ledger import Account, Org, Transaction
from ledger_core.services.storage.interface import LedgerStorageInterface
from ledger_core.utils import fits_int64, is_valid_guid

logger = structlog.get_logger(__name__)


def require(value, field: str) -> None:
    """Raise InvalidInputError("<field> required") for an empty value."""
    if value is None or value == "":
        raise InvalidInputError(f"{field} required")


def require_id(value: str, field: str = "id") -> None:
    """Required and shaped like a 32-hex-character identifier."""
    require(value, field)
    if not is_valid_guid(value):
        raise InvalidInputError(f"invalid {field}")


@dataclass
class SplitCheck:
    """What check_splits loaded, so callers need not load it twice."""
    org: Org
    accounts: list[Account]


class TransactionValidator:
    """
    Validates transactions before they reach the ledger writer.

    Stage 1: validate_fields (no storage)
    Stage 2: check_splits (loads the org and the user's accounts)
    """

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    def validate_fields(self, transaction: Transaction) -> None:
        """
        Stage 1: identifiers and amount ranges.

        Raises:
            InvalidInputError: "id required", "invalid id", "orgId required",
                "invalid orgId", "userId required",
                "amount out of range", "nativeAmount out of range"
        """
        require_id(transaction.id, "id")
        require_id(transaction.org_id, "orgId")
        require(transaction.user_id, "userId")
        for split in transaction.splits:
            if not fits_int64(split.amount):
                raise InvalidInputError("amount out of range")
            if not fits_int64(split.native_amount):
                raise InvalidInputError("nativeAmount out of range")

    async def check_splits(self, transaction: Transaction) -> SplitCheck:
        """
        Stage 2: split rules, checked in a fixed order.

        Raises:
            InvalidInputError: fewer than 2 splits, parent account used,
                native amount mismatch, splits not summing to 0
            NotFoundError: org missing or user not a member
            PermissionDeniedError: split account not writable by the user
        """
        if len(transaction.splits) < 2:
            raise InvalidInputError("at least 2 splits are required")

        org = await self._storage.get_org(transaction.org_id, transaction.user_id)
        if org is None:
            raise NotFoundError("Org not found")

        accounts = resolve(
            await self._storage.get_accounts_by_org(transaction.org_id),
            await self._storage.get_permissioned_account_ids(
                transaction.org_id, transaction.user_id
            ),
        )
        writable = {a.id: a for a in accounts if not a.read_only}

        total = 0
        for split in transaction.splits:
            account = writable.get(split.account_id)
            if account is None:
                raise permission_denied_for_account(split.account_id)

            if account.has_children:
                raise InvalidInputError("Cannot use parent account for split")

            if account.currency == org.currency and split.amount != split.native_amount:
                raise InvalidInputError(
                    "nativeAmount must equal amount for native currency splits"
                )

            total += split.native_amount

        if total != 0:
            raise InvalidInputError("splits must add up to 0")

        return SplitCheck(org=org, accounts=accounts)

    async def validate(self, transaction: Transaction) -> SplitCheck:
        """Run both stages."""
        self.validate_fields(transaction)
        return await self.check_splits(transaction)
