"""
Audit Models for the Ledger Core

Every business write in the ledger produces an audit event. This provides:
1. Traceability of who changed which org, account or transaction
2. Debugging information when a write is rejected or a push fails
3. A structured record that a log shipper can index without parsing prose

DESIGN DECISION: Audit events are append-only log records. They are written to
the structured log, never to the ledger tables themselves.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    One event type per ledger write, plus the failure paths.
    """
    # Orgs and membership
    ORG_CREATED = "org_created"
    ORG_UPDATED = "org_updated"
    INVITE_CREATED = "invite_created"
    INVITE_ACCEPTED = "invite_accepted"
    INVITE_DELETED = "invite_deleted"

    # Chart of accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_REPLACED = "transaction_replaced"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Prices and budgets
    PRICE_CREATED = "price_created"
    PRICE_DELETED = "price_deleted"
    BUDGET_REPLACED = "budget_replaced"
    BUDGET_DELETED = "budget_deleted"

    # Delivery
    NOTIFICATION_DROPPED = "notification_dropped"
    NOTIFICATION_FAILED = "notification_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every ledger write creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context
    org_id: Optional[str] = Field(
        default=None,
        description="Org the event belongs to"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="User who triggered the event"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'invite')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "org_id": self.org_id,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(org_id, user_id, tx_id, 2)
        event = AuditEventBuilder.invite_accepted(org_id, user_id, invite_id)
    """

    @staticmethod
    def org_created(org_id: str, user_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ORG_CREATED,
            org_id=org_id,
            user_id=user_id,
            entity_type="org",
            entity_id=org_id,
            description=f"Org created: {name}",
            details={"name": name},
        )

    @staticmethod
    def org_updated(org_id: str, user_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ORG_UPDATED,
            org_id=org_id,
            user_id=user_id,
            entity_type="org",
            entity_id=org_id,
            description=f"Org updated: {name}",
        )

    @staticmethod
    def account_changed(
        event_type: AuditEventType,
        org_id: str,
        user_id: str,
        account_id: str,
        name: str,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            org_id=org_id,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            description=f"Account {verb}: {name}",
            details={"name": name},
        )

    @staticmethod
    def transaction_created(
        org_id: str,
        user_id: str,
        transaction_id: str,
        split_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            org_id=org_id,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction created with {split_count} splits",
            details={"split_count": split_count},
        )

    @staticmethod
    def transaction_replaced(
        org_id: str,
        user_id: str,
        old_id: str,
        new_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REPLACED,
            org_id=org_id,
            user_id=user_id,
            entity_type="transaction",
            entity_id=new_id,
            description=f"Transaction {old_id} replaced by {new_id}",
            details={"old_id": old_id, "new_id": new_id},
        )

    @staticmethod
    def transaction_deleted(
        org_id: str,
        user_id: str,
        transaction_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            org_id=org_id,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
        )

    @staticmethod
    def transaction_rejected(
        org_id: str,
        user_id: str,
        transaction_id: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            org_id=org_id,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction rejected by validation",
            error_message=reason,
        )

    @staticmethod
    def price_changed(
        event_type: AuditEventType,
        org_id: str,
        user_id: str,
        price_id: str,
        currency: str,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            org_id=org_id,
            user_id=user_id,
            entity_type="price",
            entity_id=price_id,
            description=f"Price {verb} for {currency}",
            details={"currency": currency},
        )

    @staticmethod
    def budget_changed(
        event_type: AuditEventType,
        org_id: str,
        user_id: str,
        item_count: int = 0,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            org_id=org_id,
            user_id=user_id,
            entity_type="budget",
            entity_id=org_id,
            description=f"Budget {verb}",
            details={"item_count": item_count},
        )

    @staticmethod
    def invite_changed(
        event_type: AuditEventType,
        org_id: str,
        user_id: str,
        invite_id: str,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            org_id=org_id,
            user_id=user_id,
            entity_type="invite",
            entity_id=invite_id,
            description=f"Invite {verb}",
        )

    @staticmethod
    def notification_failed(
        entity_kind: str,
        action: str,
        error_message: str,
        attempts: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_kind,
            description=f"Notification push failed: {entity_kind} {action}",
            details={"attempts": attempts, "action": action},
            error_message=error_message,
        )

    @staticmethod
    def notification_dropped(entity_kind: str, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_DROPPED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_kind,
            description=f"Notification queue full, dropped: {entity_kind} {action}",
            details={"action": action},
        )
