"""
Business Errors

Every rule violation raised by the ledger core is a LedgerError.
The message is short and safe to show to the caller verbatim.

Persistence failures are NOT here - they are StorageError subclasses,
defined next to the gateway contract in services/storage/interface.py.
"""


class LedgerError(Exception):
    """Base exception for business rule violations."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(LedgerError):
    """Missing/malformed field, unbalanced splits, parent-account postings."""
    pass


class PermissionDeniedError(LedgerError):
    """Caller lacks write access or org membership."""
    pass


class NotFoundError(LedgerError):
    """Referenced entity does not exist (or is not visible to the caller)."""
    pass


class ConflictError(LedgerError):
    """The entity is not in a state that allows the operation."""
    pass


class ExpiredError(ConflictError):
    """An invite was accepted after its expiry window."""
    pass


def permission_denied_for_account(account_id: str) -> PermissionDeniedError:
    return PermissionDeniedError(
        f"user does not have permission to access account {account_id}"
    )
