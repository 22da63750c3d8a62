"""
In-memory RecordStore.

Used by the test-suite and as the default backend when nothing else is
configured. Records are deep-copied in and out so callers can never mutate
stored state by accident.
"""

from __future__ import annotations

import copy
from collections import defaultdict
from typing import Any, Optional

from household_ledger.services.storage.interface import (
    EntityType,
    RecordStore,
    StorageError,
    index_fields,
    index_key,
    normalize_key,
)


class InMemoryRecordStore(RecordStore):
    """Dict-of-dicts store keyed by entity type, then record id."""

    def __init__(self, seed: Optional[dict[str, list[dict[str, Any]]]] = None):
        self._data: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        for entity_type, records in (seed or {}).items():
            for record in records:
                self._data[EntityType(entity_type).value][record["id"]] = copy.deepcopy(record)

    def _table(self, entity_type: EntityType) -> dict[str, dict[str, Any]]:
        return self._data[EntityType(entity_type).value]

    async def list(self, entity_type: EntityType) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._table(entity_type).values()]

    async def get(
        self,
        entity_type: EntityType,
        record_id: str,
    ) -> Optional[dict[str, Any]]:
        record = self._table(entity_type).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, entity_type: EntityType, record: dict[str, Any]) -> bool:
        record_id = record.get("id")
        if not record_id:
            raise StorageError(f"Cannot store a {entity_type} record without an id")
        self._table(entity_type)[record_id] = copy.deepcopy(record)
        return True

    async def remove(self, entity_type: EntityType, record_id: str) -> bool:
        return self._table(entity_type).pop(record_id, None) is not None

    async def list_by_index(
        self,
        entity_type: EntityType,
        index: str,
        key: Any,
    ) -> list[dict[str, Any]]:
        fields = index_fields(entity_type, index)
        wanted = normalize_key(key)
        return [
            copy.deepcopy(r)
            for r in self._table(entity_type).values()
            if index_key(r, fields) == wanted
        ]

    async def delete_by_index(
        self,
        entity_type: EntityType,
        index: str,
        key: Any,
    ) -> int:
        fields = index_fields(entity_type, index)
        wanted = normalize_key(key)
        table = self._table(entity_type)
        doomed = [rid for rid, r in table.items() if index_key(r, fields) == wanted]
        for rid in doomed:
            del table[rid]
        return len(doomed)

    def count(self, entity_type: EntityType) -> int:
        """Number of stored records of a type (test helper)."""
        return len(self._table(entity_type))
