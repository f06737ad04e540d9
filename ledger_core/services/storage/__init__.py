"""
Storage Services Package

Provides the persistence gateway contract and two reference implementations:
an in-memory gateway and an aiosqlite gateway. Designed to be swappable.
"""

from ledger_core.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    StorageError,
)
from ledger_core.services.storage.memory import InMemoryLedgerStorage
from ledger_core.services.storage.sqlite import SQLiteLedgerStorage

__all__ = [
    # Interface
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "StorageError",
    # Implementations
    "InMemoryLedgerStorage",
    "SQLiteLedgerStorage",
]
