"""
Data Models Package

This package contains all Pydantic models used by the ledger core.
All data flowing through the system must conform to these schemas.
"""

from ledger_core.models.ledger import (
    Account,
    Budget,
    BudgetItem,
    Invite,
    Org,
    Price,
    QueryOptions,
    SortOrder,
    Split,
    Transaction,
    TransactionState,
)
from ledger_core.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger_core.models.events import (
    ChangeAction,
    ChangeNotification,
    EntityKind,
)

__all__ = [
    # Ledger models
    "Account",
    "Budget",
    "BudgetItem",
    "Invite",
    "Org",
    "Price",
    "QueryOptions",
    "SortOrder",
    "Split",
    "Transaction",
    "TransactionState",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Notifications
    "ChangeAction",
    "ChangeNotification",
    "EntityKind",
]
