"""Services package."""

from household_ledger.services.storage import (
    ConnectionError,
    EntityType,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    NotFoundError,
    RecordStore,
    StorageError,
)

__all__ = [
    "ConnectionError",
    "EntityType",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
    "NotFoundError",
    "RecordStore",
    "StorageError",
]
