"""
Transaction Query Execution

DESIGN DECISION: Listing semantics are defined once, here, over plain
Transaction objects. The in-memory gateway runs them directly; the SQLite
gateway translates the same options into SQL and its tests compare against
this behaviour.

Semantics:
- a transaction matches when at least one of its splits is posted to one of
  the requested accounts and every set filter passes
- a filter value of 0 (or "") means "not set"
- sort is date desc, inserted desc (or updated asc), ties broken by id
- skip/limit count distinct transactions after sorting
"""

from typing import Iterable

from ledger_core.models.ledger import QueryOptions, SortOrder, Transaction
from ledger_core.utils import to_ms


class TransactionQueryExecutor:
    """Applies QueryOptions to an in-memory collection of transactions."""

    def __init__(self, options: QueryOptions):
        self._options = options

    def matches(self, transaction: Transaction, account_ids: set[str]) -> bool:
        opts = self._options

        if not any(split.account_id in account_ids for split in transaction.splits):
            return False
        if not opts.include_deleted and transaction.deleted:
            return False

        inserted = to_ms(transaction.inserted)
        updated = to_ms(transaction.updated)
        date = to_ms(transaction.date)

        if opts.since_inserted and not inserted > opts.since_inserted:
            return False
        if opts.since_updated and not updated > opts.since_updated:
            return False
        if opts.before_inserted and not inserted < opts.before_inserted:
            return False
        if opts.before_updated and not updated < opts.before_updated:
            return False
        if opts.start_date and not date >= opts.start_date:
            return False
        if opts.end_date and not date < opts.end_date:
            return False
        if opts.description_starts_with and not transaction.description.casefold().startswith(
            opts.description_starts_with.casefold()
        ):
            return False

        return True

    def sort(self, transactions: list[Transaction]) -> list[Transaction]:
        if self._options.sort == SortOrder.UPDATED_ASC:
            return sorted(transactions, key=lambda t: (to_ms(t.updated), t.id))

        # date desc, inserted desc, then id asc
        by_id = sorted(transactions, key=lambda t: t.id)
        return sorted(
            by_id,
            key=lambda t: (to_ms(t.date), to_ms(t.inserted)),
            reverse=True,
        )

    def paginate(self, transactions: list[Transaction]) -> list[Transaction]:
        start = self._options.skip
        if self._options.limit:
            return transactions[start:start + self._options.limit]
        return transactions[start:]

    def execute(
        self,
        transactions: Iterable[Transaction],
        account_ids: Iterable[str],
    ) -> list[Transaction]:
        wanted = set(account_ids)
        matched = [t for t in transactions if self.matches(t, wanted)]
        return self.paginate(self.sort(matched))
