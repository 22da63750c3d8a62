"""
Audit Logger

DESIGN DECISION: Every state-changing ledger operation is logged.
This provides:
1. Complete traceability of payments and reversals
2. Debugging capability when a multi-step operation stops half-way
3. History the household can look at

The audit logger:
- Is async so it fits between the awaited store calls of a flow
- Gracefully handles failures (a failed audit write never fails the operation)
- Groups the events of one request under a correlation id
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from household_ledger.config import get_settings
from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from household_ledger.services.storage import EntityType, RecordStore


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog for local logging.

    Defaults come from LogSettings; arguments override them.
    """
    log_settings = get_settings().log
    level = level or log_settings.level
    json_output = log_settings.json_output if json_output is None else json_output

    logging.basicConfig(format="%(message)s", level=getattr(logging, level))
    logging.getLogger().setLevel(getattr(logging, level))

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Writes ledger audit events.

    Logs events both to:
    1. Structured local log through structlog
    2. The audit_events entity type of the store (when one is given)
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
    ):
        """
        Args:
            store: Record store for persistence.
                   If None, only logs locally.
        """
        self._store = store
        self._logger = structlog.get_logger("household_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to the store if available.

        Returns True if the store write succeeded (or no store configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._store is not None:
            try:
                return await self._store.put(EntityType.AUDIT_EVENTS, event.to_record())
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_validation_failed(
        self,
        entity_type: str,
        entity_id: Optional[str],
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected payment request."""
        await self.log(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_not_found(
        self,
        entity_type: str,
        entity_id: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an operation that targeted a record that no longer exists."""
        await self.log(AuditEventBuilder.not_found(
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    New id shared by every event of one ledger request.

    Use this at the start of a user action (e.g. paying a bill) and pass it
    through every event the action emits.
    """
    return uuid4()
