"""
Core Data Models for the Ledger

These models define the schemas for everything the ledger stores or returns.
They are designed to:
1. Enforce type safety at the boundary (amounts are integers, never floats)
2. Serialize to the camelCase wire format API clients expect
3. Carry computed annotations (balances, readOnly) without persisting them

DESIGN DECISION: Monetary amounts are signed integers in minor currency units
(cents for USD) and must fit a signed 64-bit integer. Floating point only
appears in Price.price, the exchange-rate multiplier.
"""

from datetime import datetime
from enum import Enum
from typing import Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from ledger_core.errors import InvalidInputError
from ledger_core.utils import fits_int64, truncate_to_ms


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionState(str, Enum):
    """
    Lifecycle of a stored transaction row.

    absent -> ACTIVE -> (SUPERSEDED | DELETED)

    SUPERSEDED rows were replaced by an update; the replacing row starts ACTIVE.
    Both terminal states are soft deletes - the row is still queryable with
    includeDeleted.
    """
    ACTIVE = "active"
    SUPERSEDED = "superseded"
    DELETED = "deleted"


class SortOrder(str, Enum):
    """Transaction listing sort modes."""
    DATE_DESC = ""  # date desc, inserted desc
    UPDATED_ASC = "updated-asc"


class LedgerModel(BaseModel):
    """Base for all wire models: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, v):
        if isinstance(v, datetime):
            return truncate_to_ms(v)
        return v


# =============================================================================
# ORGANIZATION
# =============================================================================

class Org(LedgerModel):
    """Tenant boundary. Owns accounts, transactions, prices and the budget."""

    id: str = ""
    inserted: Optional[datetime] = None
    updated: Optional[datetime] = None
    name: str = ""
    currency: str = ""
    precision: int = Field(default=2, ge=0, le=18)
    timezone: str = ""


class Invite(LedgerModel):
    """Invitation for a user to join an org. Expires after a fixed window."""

    id: str = ""
    org_id: str = ""
    inserted: Optional[datetime] = None
    updated: Optional[datetime] = None
    email: str = ""
    accepted: bool = False


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(LedgerModel):
    """
    A node in the org's chart of accounts.

    balance/native_balance are computed at read time. None means the account
    has no splits before the as-of date, which is NOT the same as 0.
    """

    id: str = ""
    org_id: str = ""
    inserted: Optional[datetime] = None
    updated: Optional[datetime] = None
    name: str = ""
    parent: str = Field(
        default="",
        description="Parent account id; empty for the org root"
    )
    currency: str = ""
    precision: int = Field(default=2, ge=0, le=18)
    debit_balance: bool = Field(
        default=False,
        description="True when the account increases on debit (positive amounts)"
    )
    balance: Optional[int] = None
    native_balance: Optional[int] = None
    read_only: bool = False
    has_children: bool = Field(default=False, exclude=True)

    @property
    def is_root(self) -> bool:
        return self.parent == ""


# =============================================================================
# TRANSACTIONS
# =============================================================================

def _check_amount(value: int, field: str) -> int:
    if not fits_int64(value):
        raise InvalidInputError(f"{to_camel(field)} out of range")
    return value


class Split(LedgerModel):
    """One leg of a transaction. Never created or updated on its own."""

    transaction_id: str = Field(default="", exclude=True)
    account_id: str = ""
    amount: int = Field(
        default=0,
        description="Signed amount in the account's currency minor units"
    )
    native_amount: int = Field(
        default=0,
        description="Signed amount in the org currency minor units"
    )

    @field_validator("amount", "native_amount")
    @classmethod
    def _amount_in_range(cls, v: int, info) -> int:
        return _check_amount(v, info.field_name)


class Transaction(LedgerModel):
    """
    An atomic, balanced financial event.

    CRITICAL: the sum of native_amount over all splits must be exactly 0.
    That is enforced by the validator before anything is written.
    """

    id: str = ""
    org_id: str = ""
    user_id: str = ""
    date: Optional[datetime] = Field(
        default=None,
        description="Value date; defaults to the insert time"
    )
    inserted: Optional[datetime] = None
    updated: Optional[datetime] = None
    description: str = ""
    data: str = Field(
        default="",
        description="Free-form client data, stored verbatim"
    )
    deleted: bool = False
    superseded_by: Optional[str] = Field(
        default=None,
        description="Id of the transaction that replaced this one"
    )
    splits: list[Split] = Field(default_factory=list)

    @property
    def state(self) -> TransactionState:
        if not self.deleted:
            return TransactionState.ACTIVE
        if self.superseded_by:
            return TransactionState.SUPERSEDED
        return TransactionState.DELETED

    @property
    def native_total(self) -> int:
        return sum(split.native_amount for split in self.splits)

    def account_ids(self) -> list[str]:
        """Distinct split account ids in split order."""
        seen: dict[str, None] = {}
        for split in self.splits:
            seen.setdefault(split.account_id, None)
        return list(seen)


# =============================================================================
# PRICES AND BUDGETS
# =============================================================================

class Price(LedgerModel):
    """Exchange rate: units of org currency per one unit of `currency`."""

    id: str = ""
    org_id: str = ""
    currency: str = ""
    date: Optional[datetime] = None
    inserted: Optional[datetime] = None
    updated: Optional[datetime] = None
    price: float = Field(default=0.0, ge=0.0)


class BudgetItem(LedgerModel):
    org_id: str = Field(default="", exclude=True)
    account_id: str = ""
    amount: int = 0

    @field_validator("amount")
    @classmethod
    def _amount_in_range(cls, v: int) -> int:
        return _check_amount(v, "amount")


class Budget(LedgerModel):
    """The org's single active budget. Replacing it supersedes the old one."""

    org_id: str = ""
    inserted: Optional[datetime] = None
    items: list[BudgetItem] = Field(default_factory=list)


# =============================================================================
# QUERY OPTIONS (transaction listings)
# =============================================================================

_QUERY_INT_PARAMS = (
    "limit",
    "skip",
    "sinceInserted",
    "sinceUpdated",
    "beforeInserted",
    "beforeUpdated",
    "startDate",
    "endDate",
)


class QueryOptions(LedgerModel):
    """
    Filters for transaction listings.

    All time bounds are epoch milliseconds; 0 means "not set".
    """

    limit: int = Field(default=0, ge=0)
    skip: int = Field(default=0, ge=0)
    since_inserted: int = 0
    since_updated: int = 0
    before_inserted: int = 0
    before_updated: int = 0
    start_date: int = 0
    end_date: int = 0
    description_starts_with: str = ""
    include_deleted: bool = False
    sort: SortOrder = SortOrder.DATE_DESC

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "QueryOptions":
        """
        Parse a flat string-keyed parameter set (e.g. URL query values).

        Raises:
            InvalidInputError: if a numeric option is not a non-negative
                integer. Unknown sort modes fall back to the default order.
        """
        values: dict = {}

        for key in _QUERY_INT_PARAMS:
            raw = params.get(key)
            if raw is None or raw == "":
                continue
            try:
                values[key] = int(raw)
            except (TypeError, ValueError):
                raise InvalidInputError("invalid query options")

        if params.get("descriptionStartsWith"):
            values["descriptionStartsWith"] = params["descriptionStartsWith"]

        values["includeDeleted"] = params.get("includeDeleted") == "true"

        if params.get("sort") == SortOrder.UPDATED_ASC.value:
            values["sort"] = SortOrder.UPDATED_ASC

        try:
            return cls(**values)
        except ValueError:
            raise InvalidInputError("invalid query options")
