"""
Abstract Storage Interface

DESIGN DECISION: The engine talks to storage through one generic, keyed
record interface. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Each call is transactional on its own; nothing spans calls, so a logical
operation that writes several entity types is NOT atomic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional


class EntityType(str, Enum):
    """Every kind of record the ledger reads or writes."""
    BILL_TEMPLATES = "bill_templates"
    BILL_PLANS = "bill_plans"
    BILLS = "bills"
    LOANS = "loans"
    LOAN_PAYMENTS = "loan_payments"
    LOAN_INSTALLMENTS = "loan_installments"
    TRANSACTIONS = "transactions"
    INVOICE_PAYMENTS = "invoice_payments"
    PERSON_BALANCES = "person_balances"
    BALANCE_EVENTS = "balance_events"
    CARDS = "cards"
    AUDIT_EVENTS = "audit_events"


# Secondary indexes: entity type -> index name -> record fields (camelCase)
INDEXES: dict[EntityType, dict[str, tuple[str, ...]]] = {
    EntityType.TRANSACTIONS: {
        "invoice_idx": ("cardId", "invoiceMonth"),
    },
    EntityType.INVOICE_PAYMENTS: {
        "by_invoiceKey": ("invoiceKey",),
    },
    EntityType.BILLS: {
        "by_month": ("month",),
        "by_plan": ("planId",),
    },
    EntityType.LOAN_PAYMENTS: {
        "by_loanId": ("loanId",),
    },
    EntityType.LOAN_INSTALLMENTS: {
        "by_loanId": ("loanId",),
    },
    EntityType.BALANCE_EVENTS: {
        "by_person": ("personId",),
    },
}


def index_fields(entity_type: EntityType, index: str) -> tuple[str, ...]:
    """Look up the fields of a declared index."""
    try:
        return INDEXES[EntityType(entity_type)][index]
    except KeyError:
        raise StorageError(f"Index {index!r} not declared on {entity_type}")


def index_key(record: dict[str, Any], fields: tuple[str, ...]) -> tuple:
    return tuple(record.get(f) for f in fields)


def normalize_key(key: Any) -> tuple:
    """Accept a scalar key for single-field indexes."""
    return tuple(key) if isinstance(key, (tuple, list)) else (key,)


class RecordStore(ABC):
    """
    Abstract interface for keyed record storage.

    Records are plain dicts with a string "id". Any storage implementation
    (Google Sheets, SQLite, IndexedDB behind an API, ...) must implement
    these methods.
    """

    @abstractmethod
    async def list(self, entity_type: EntityType) -> list[dict[str, Any]]:
        """
        Return every record of an entity type.

        Returns:
            List of records (copies; mutating them does not touch storage)
        """
        pass

    @abstractmethod
    async def get(
        self,
        entity_type: EntityType,
        record_id: str,
    ) -> Optional[dict[str, Any]]:
        """
        Retrieve a record by id.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def put(self, entity_type: EntityType, record: dict[str, Any]) -> bool:
        """
        Insert or replace a whole record, keyed by record["id"].

        Raises:
            StorageError: If the write fails or the record has no id
        """
        pass

    @abstractmethod
    async def remove(self, entity_type: EntityType, record_id: str) -> bool:
        """
        Delete a record by id.

        Returns:
            True if a record was deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def list_by_index(
        self,
        entity_type: EntityType,
        index: str,
        key: Any,
    ) -> list[dict[str, Any]]:
        """Return the records whose index fields equal key."""
        pass

    @abstractmethod
    async def delete_by_index(
        self,
        entity_type: EntityType,
        index: str,
        key: Any,
    ) -> int:
        """
        Delete every record whose index fields equal key.

        Returns:
            Number of records deleted
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
