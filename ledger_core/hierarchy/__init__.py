"""Account hierarchy and permission resolution."""

from ledger_core.hierarchy.resolver import AccountTree, resolve, writable_ids

__all__ = ["AccountTree", "resolve", "writable_ids"]
