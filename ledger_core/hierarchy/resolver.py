"""
Account Hierarchy Resolver

Turns an org's flat account list plus a user's explicit write grants into
the list of accounts the user can see, each annotated with read_only and
has_children.

Access rules:
1. A grant on an account gives write access to it and every descendant
2. Every ancestor of a granted account is visible read-only
3. The org's top-level accounts (the root and its children) are always
   visible read-only, even with no grants at all
4. Write wins over read-only when both apply

DESIGN DECISION: The tree is an arena. Accounts live in one list and
parent/children links are integer indices into it, so there are no object
back-pointers and the input models are never touched. Callers get copies.
"""

from typing import Iterable, Optional

import structlog

from ledger_core.models.ledger import Account

logger = structlog.get_logger(__name__)


class AccountTree:
    """
    Index-linked forest over one org's accounts.

    Accounts whose parent is missing from the list are treated as roots of
    their own subtree. Parent cycles are assumed absent (account writes
    reject them).
    """

    def __init__(self, accounts: Iterable[Account]):
        self._accounts: list[Account] = list(accounts)
        self._index: dict[str, int] = {}
        for i, account in enumerate(self._accounts):
            self._index[account.id] = i

        self._parent: list[Optional[int]] = [None] * len(self._accounts)
        self._children: list[list[int]] = [[] for _ in self._accounts]
        for i, account in enumerate(self._accounts):
            parent = self._index.get(account.parent) if account.parent else None
            if parent is not None and parent != i:
                self._parent[i] = parent
                self._children[parent].append(i)
            elif account.parent:
                logger.warning(
                    "orphan_account",
                    account_id=account.id,
                    parent_id=account.parent,
                )

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._index

    def __len__(self) -> int:
        return len(self._accounts)

    def get(self, account_id: str) -> Optional[Account]:
        i = self._index.get(account_id)
        return self._accounts[i] if i is not None else None

    def has_children(self, account_id: str) -> bool:
        i = self._index.get(account_id)
        return i is not None and bool(self._children[i])

    def _descendants(self, i: int) -> list[int]:
        found: list[int] = []
        stack = list(self._children[i])
        while stack:
            j = stack.pop()
            found.append(j)
            stack.extend(self._children[j])
        return found

    def _ancestors(self, i: int) -> list[int]:
        found: list[int] = []
        j = self._parent[i]
        while j is not None and j not in found:
            found.append(j)
            j = self._parent[j]
        return found

    def descendant_ids(self, account_id: str) -> set[str]:
        i = self._index.get(account_id)
        if i is None:
            return set()
        return {self._accounts[j].id for j in self._descendants(i)}

    def ancestor_ids(self, account_id: str) -> list[str]:
        """Ancestors nearest first, ending at the top of the subtree."""
        i = self._index.get(account_id)
        if i is None:
            return []
        return [self._accounts[j].id for j in self._ancestors(i)]

    def is_descendant(self, candidate_id: str, of_id: str) -> bool:
        return of_id in self.ancestor_ids(candidate_id)

    def _top_level(self) -> set[int]:
        tops: set[int] = set()
        for i, parent in enumerate(self._parent):
            if parent is None:
                tops.add(i)
                if self._accounts[i].is_root:
                    tops.update(self._children[i])
        return tops

    def top_level_ids(self) -> set[str]:
        """The root, the root's children and any orphaned account."""
        return {self._accounts[i].id for i in self._top_level()}

    def access(self, permissioned_ids: Iterable[str]) -> tuple[set[int], set[int]]:
        """Return (writable, readable) index sets for the given grants."""
        writable: set[int] = set()
        readable: set[int] = set(self._top_level())

        for account_id in permissioned_ids:
            i = self._index.get(account_id)
            if i is None:
                logger.warning("permission_for_unknown_account", account_id=account_id)
                continue
            writable.add(i)
            writable.update(self._descendants(i))
            readable.update(self._ancestors(i))

        return writable, readable - writable

    def annotated(self, i: int, read_only: bool) -> Account:
        return self._accounts[i].model_copy(
            deep=True,
            update={
                "read_only": read_only,
                "has_children": bool(self._children[i]),
            },
        )


def resolve(org_accounts: Iterable[Account], permissioned_ids: Iterable[str]) -> list[Account]:
    """
    Compute the accounts visible to a user.

    Args:
        org_accounts: every account of one org
        permissioned_ids: account ids the user was granted write access to

    Returns:
        Copies of the visible accounts, annotated with read_only and
        has_children, sorted by name then id.
    """
    tree = AccountTree(org_accounts)
    writable, read_only = tree.access(permissioned_ids)

    result = [tree.annotated(i, read_only=False) for i in writable]
    result.extend(tree.annotated(i, read_only=True) for i in read_only)
    result.sort(key=lambda a: (a.name, a.id))
    return result


def writable_ids(accounts: Iterable[Account]) -> set[str]:
    """Ids of resolved accounts the user may post to or change."""
    return {a.id for a in accounts if not a.read_only}
