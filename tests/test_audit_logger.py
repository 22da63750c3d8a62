"""Tests for the audit logger."""

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.models import AuditEventBuilder
from household_ledger.services.storage import EntityType, InMemoryRecordStore, StorageError


class BrokenStore(InMemoryRecordStore):
    async def put(self, entity_type, record):
        raise StorageError("offline")


class TestAuditLogger:

    async def test_persists_to_store(self):
        store = InMemoryRecordStore()
        logger = AuditLogger(store)
        correlation_id = create_correlation_id()

        ok = await logger.log(AuditEventBuilder.bill_status_changed(
            "bill_1", skipped=True, correlation_id=correlation_id,
        ))

        assert ok is True
        records = await store.list(EntityType.AUDIT_EVENTS)
        assert records[0]["entity_id"] == "bill_1"
        assert records[0]["correlation_id"] == str(correlation_id)

    async def test_without_store_only_logs(self):
        assert await AuditLogger().log(
            AuditEventBuilder.bills_repaired("2026-03", ["b1"])
        ) is True

    async def test_storage_failure_is_swallowed(self):
        """A failed audit write never fails the operation being audited."""
        logger = AuditLogger(BrokenStore())
        ok = await logger.log(AuditEventBuilder.not_found("bill", "b1", "skip"))
        assert ok is False

    async def test_helpers(self):
        store = InMemoryRecordStore()
        logger = AuditLogger(store)

        await logger.log_not_found("loan", "loan_1", "delete_loan")
        await logger.log_validation_failed("bill", "b1", [{"field": "amount"}])
        await logger.log_error("storage", "timeout", {"retries": 3})

        types = sorted(r["event_type"] for r in await store.list(EntityType.AUDIT_EVENTS))
        assert types == ["not_found", "system_error", "validation_failed"]
