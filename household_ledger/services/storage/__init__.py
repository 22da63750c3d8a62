"""
Storage Services Package

Provides the abstract RecordStore interface and its implementations.
In-memory for tests and local use, Google Sheets for persistence.
"""

from household_ledger.services.storage.interface import (
    INDEXES,
    ConnectionError,
    EntityType,
    NotFoundError,
    RecordStore,
    StorageError,
)
from household_ledger.services.storage.memory import InMemoryRecordStore
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interface
    "INDEXES",
    "EntityType",
    "RecordStore",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
]
