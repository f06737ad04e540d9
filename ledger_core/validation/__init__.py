"""Validation package."""

from ledger_core.validation.validator import (
    SplitCheck,
    TransactionValidator,
    require,
    require_id,
)

__all__ = ["SplitCheck", "TransactionValidator", "require", "require_id"]
