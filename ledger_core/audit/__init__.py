"""Audit logging package."""

from ledger_core.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
