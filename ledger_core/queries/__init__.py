"""Transaction listing package."""

from ledger_core.queries.executor import TransactionQueryExecutor

__all__ = ["TransactionQueryExecutor"]
