"""
Audit Models for the Household Ledger

Every state-changing operation on bills, loans and invoices is logged.
This provides:
1. Traceability of every payment recorded or reversed
2. Debugging information when a multi-step operation stops half-way
3. The ability to reconstruct how a bill reached its current state

DESIGN DECISION: Audit events are only ever appended. Undoing a payment
adds a bill_payment_undone event; it never edits the bill_paid one.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from household_ledger.models.base import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Generation
    BILLS_GENERATED = "bills_generated"
    PLAN_INSTALLMENTS_GENERATED = "plan_installments_generated"
    PLAN_BILLS_RESTAMPED = "plan_bills_restamped"
    LOAN_INSTALLMENTS_GENERATED = "loan_installments_generated"

    # Bill state machine
    BILL_PAID = "bill_paid"
    BILL_PAYMENT_UNDONE = "bill_payment_undone"
    BILL_SKIPPED = "bill_skipped"
    BILL_UNSKIPPED = "bill_unskipped"
    BILLS_REPAIRED = "bills_repaired"
    REPAIR_WRITE_FAILED = "repair_write_failed"

    # Loans
    LOAN_SAVED = "loan_saved"
    LOAN_PAYMENT_REGISTERED = "loan_payment_registered"
    LOAN_PAYMENT_DELETED = "loan_payment_deleted"
    LOAN_DELETED = "loan_deleted"
    INSTALLMENT_SKIPPED = "installment_skipped"
    INSTALLMENT_UNSKIPPED = "installment_unskipped"

    # Invoices
    INVOICE_PAYMENT_REGISTERED = "invoice_payment_registered"
    INVOICE_PAYMENT_DELETED = "invoice_payment_deleted"
    INVOICE_DELETED = "invoice_deleted"

    # Person balances
    BALANCE_MONTH_CLOSED = "balance_month_closed"
    BALANCE_PAYMENT_REGISTERED = "balance_payment_registered"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """How loudly an event is logged locally."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    One ledger operation, its outcome and the records it touched.
    Flows emit one per write, plus one per rejected request.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bill', 'loan', 'invoice')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking the steps of one logical operation
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Flatten to plain values for structlog keyword arguments.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_record(self) -> dict:
        """Convert to a record for the audit_events store (keyed by id)."""
        record = self.to_log_dict()
        record["id"] = record["event_id"]
        return record


class AuditEventBuilder:
    """
    Factory methods for the events the flows emit.

    Usage:
        event = AuditEventBuilder.bill_paid(bill_id, amount, status, tx_id,
                                            correlation_id=correlation_id)
    """

    @staticmethod
    def bills_generated(
        month: str,
        created: int,
        existed: int,
        updated: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_GENERATED,
            entity_type="month",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"Generated bills for {month}: {created} new, {existed} existed",
            details={"created": created, "existed": existed, "updated": updated},
            is_user_action=True,
        )

    @staticmethod
    def plan_installments_generated(
        plan_id: str,
        created: int,
        existed: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLAN_INSTALLMENTS_GENERATED,
            entity_type="bill_plan",
            entity_id=plan_id,
            correlation_id=correlation_id,
            description=f"Plan installments generated: {created} new, {existed} existed",
            details={"created": created, "existed": existed},
            is_user_action=True,
        )

    @staticmethod
    def plan_bills_restamped(
        plan_id: str,
        from_month: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLAN_BILLS_RESTAMPED,
            entity_type="bill_plan",
            entity_id=plan_id,
            correlation_id=correlation_id,
            description=f"Re-stamped {count} open bills from {from_month}",
            details={"from_month": from_month, "count": count},
        )

    @staticmethod
    def bill_paid(
        bill_id: str,
        amount: str,
        status: str,
        tx_id: Optional[str],
        excess: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        details = {"amount": amount, "status": status, "tx_id": tx_id}
        if excess:
            # confirmed overpayment: the bill only absorbs what was owed
            details["excess"] = excess
        return AuditEvent(
            event_type=AuditEventType.BILL_PAID,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Payment of {amount} recorded, bill is now {status}",
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def bill_payment_undone(
        bill_id: str,
        amount: str,
        status: str,
        tx_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_PAYMENT_UNDONE,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Payment of {amount} reversed, bill is now {status}",
            details={"amount": amount, "status": status, "tx_id": tx_id},
            is_user_action=True,
        )

    @staticmethod
    def bill_status_changed(
        bill_id: str,
        skipped: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.BILL_SKIPPED if skipped
                else AuditEventType.BILL_UNSKIPPED
            ),
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Bill skipped" if skipped else "Bill reopened",
            is_user_action=True,
        )

    @staticmethod
    def bills_repaired(
        month: str,
        bill_ids: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_REPAIRED,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_id=month,
            description=f"Repaired {len(bill_ids)} inconsistent bills",
            details={"bill_ids": bill_ids},
        )

    @staticmethod
    def repair_write_failed(
        bill_id: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPAIR_WRITE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            entity_id=bill_id,
            description="Could not persist repaired bill",
            error_message=error_message,
        )

    @staticmethod
    def loan_event(
        event_type: AuditEventType,
        loan_id: str,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="loan",
            entity_id=loan_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def invoice_event(
        event_type: AuditEventType,
        invoice_key: str,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="invoice",
            entity_id=invoice_key,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def balance_event(
        event_type: AuditEventType,
        person_id: str,
        month: str,
        amount_cents: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="person_balance",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Balance event for {month}: {amount_cents} cents",
            details={"month": month, "amount_cents": amount_cents},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        entity_id: Optional[str],
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def not_found(
        entity_type: str,
        entity_id: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOT_FOUND,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{operation}: {entity_type} {entity_id} no longer exists",
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
