"""
Audit Logger

DESIGN DECISION: Every ledger write is logged as a structured audit event.
This provides:
1. Traceability of changes per org and user
2. Debugging capability when writes are rejected
3. A record of notification pushes that were dropped or failed

The audit logger:
- Writes to structlog only; the ledger tables are never touched
- Never raises (a broken log pipeline must not fail a committed write)
"""

import logging

import structlog

from ledger_core.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Attach the stdlib root handler structlog renders through."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level, logging.INFO))


class AuditLogger:
    """Central audit logging service."""

    def __init__(self):
        self._logger = structlog.get_logger("ledger_core.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at a level matching its severity."""
        try:
            log_dict = event.to_log_dict()
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:  # noqa: BLE001
            logging.getLogger(__name__).exception("audit logging failed")

    def log_org_created(self, org_id: str, user_id: str, name: str) -> None:
        self.log(AuditEventBuilder.org_created(org_id, user_id, name))

    def log_org_updated(self, org_id: str, user_id: str, name: str) -> None:
        self.log(AuditEventBuilder.org_updated(org_id, user_id, name))

    def log_account_created(self, org_id: str, user_id: str, account_id: str, name: str) -> None:
        self.log(AuditEventBuilder.account_changed(
            AuditEventType.ACCOUNT_CREATED, org_id, user_id, account_id, name
        ))

    def log_account_updated(self, org_id: str, user_id: str, account_id: str, name: str) -> None:
        self.log(AuditEventBuilder.account_changed(
            AuditEventType.ACCOUNT_UPDATED, org_id, user_id, account_id, name
        ))

    def log_account_deleted(self, org_id: str, user_id: str, account_id: str, name: str) -> None:
        self.log(AuditEventBuilder.account_changed(
            AuditEventType.ACCOUNT_DELETED, org_id, user_id, account_id, name
        ))

    def log_transaction_created(
        self, org_id: str, user_id: str, transaction_id: str, split_count: int
    ) -> None:
        self.log(AuditEventBuilder.transaction_created(
            org_id, user_id, transaction_id, split_count
        ))

    def log_transaction_replaced(self, org_id: str, user_id: str, old_id: str, new_id: str) -> None:
        self.log(AuditEventBuilder.transaction_replaced(org_id, user_id, old_id, new_id))

    def log_transaction_deleted(self, org_id: str, user_id: str, transaction_id: str) -> None:
        self.log(AuditEventBuilder.transaction_deleted(org_id, user_id, transaction_id))

    def log_transaction_rejected(
        self, org_id: str, user_id: str, transaction_id: str, reason: str
    ) -> None:
        self.log(AuditEventBuilder.transaction_rejected(org_id, user_id, transaction_id, reason))

    def log_price_created(self, org_id: str, user_id: str, price_id: str, currency: str) -> None:
        self.log(AuditEventBuilder.price_changed(
            AuditEventType.PRICE_CREATED, org_id, user_id, price_id, currency
        ))

    def log_price_deleted(self, org_id: str, user_id: str, price_id: str, currency: str) -> None:
        self.log(AuditEventBuilder.price_changed(
            AuditEventType.PRICE_DELETED, org_id, user_id, price_id, currency
        ))

    def log_budget_replaced(self, org_id: str, user_id: str, item_count: int) -> None:
        self.log(AuditEventBuilder.budget_changed(
            AuditEventType.BUDGET_REPLACED, org_id, user_id, item_count
        ))

    def log_budget_deleted(self, org_id: str, user_id: str) -> None:
        self.log(AuditEventBuilder.budget_changed(AuditEventType.BUDGET_DELETED, org_id, user_id))

    def log_invite(
        self, event_type: AuditEventType, org_id: str, user_id: str, invite_id: str
    ) -> None:
        self.log(AuditEventBuilder.invite_changed(event_type, org_id, user_id, invite_id))

    def log_notification_failed(
        self, entity_kind: str, action: str, error_message: str, attempts: int
    ) -> None:
        self.log(AuditEventBuilder.notification_failed(
            entity_kind, action, error_message, attempts
        ))

    def log_notification_dropped(self, entity_kind: str, action: str) -> None:
        self.log(AuditEventBuilder.notification_dropped(entity_kind, action))
