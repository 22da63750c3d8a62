"""
Loan Models

A Loan is money borrowed from or lent to another person. It owns zero or
more LoanInstallments (the repayment schedule) and LoanPayments (money that
actually moved). Payments are allocated onto installments once, when the
payment is registered, and the allocation is recorded on each installment
so that deleting the payment can roll it back exactly.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from household_ledger.models.base import Money, RecordModel, utcnow


class LoanRole(str, Enum):
    """Which side of the loan the household is on."""
    I_OWE = "i_owe"
    OWED_TO_ME = "owed_to_me"


class LoanStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class InstallmentStatus(str, Enum):
    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"
    SKIPPED = "skipped"


class Loan(RecordModel):
    """
    A peer-to-peer loan.

    status is only ever persisted as open by this engine; a loan whose
    balance reaches zero is *computed* as closed (see LoanSummary).
    """

    title: str = Field(..., min_length=1, max_length=200)
    role: LoanRole
    borrower_person_id: Optional[str] = None
    lender_person_id: Optional[str] = None
    principal: Money = Field(..., ge=0)
    currency: str = Field(default="BRL", min_length=3, max_length=3)
    start_date: date
    total_installments: int = Field(default=1, ge=1)
    installment_amount: Money = Field(default=0, ge=0)
    due_day: int = Field(default=1, ge=1, le=31)
    notes: Optional[str] = Field(default=None, max_length=1000)
    status: LoanStatus = LoanStatus.OPEN
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class LoanInstallment(RecordModel):
    """One scheduled repayment of a loan."""

    loan_id: str
    installment_no: int = Field(..., ge=1)
    installment_total: int = Field(..., ge=1)
    due_date: date
    amount: Money = Field(..., ge=0)
    currency: str = Field(default="BRL", min_length=3, max_length=3)
    status: InstallmentStatus = InstallmentStatus.OPEN
    paid_amount: Money = Field(default=0, ge=0)
    paid_payment_ids: list[str] = Field(default_factory=list)
    # payment id -> amount that payment applied to this installment
    allocations: dict[str, Money] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("paid_payment_ids", mode="before")
    @classmethod
    def ids_default(cls, v):
        return [] if v is None else v


class LoanPayment(RecordModel):
    """Money that moved towards a loan."""

    loan_id: str
    date: date
    amount: Money = Field(..., gt=0)
    account_id: Optional[str] = None
    person_id: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# DERIVED VIEWS (never stored)
# =============================================================================

class AllocationResult(BaseModel):
    """What allocate() did with one payment."""

    payment_id: str
    applied: Decimal = Decimal("0.00")
    unallocated: Decimal = Decimal("0.00")
    installments: list[LoanInstallment] = Field(
        default_factory=list,
        description="Installments that changed and must be written",
    )


class LoanSummary(BaseModel):
    """Loan enriched with its derived balance."""

    loan: Loan
    payments: list[LoanPayment] = Field(default_factory=list)
    installments: list[LoanInstallment] = Field(default_factory=list)
    total_paid: Decimal
    total_allocated: Decimal
    unallocated: Decimal
    saldo: Decimal
    computed_status: LoanStatus
    progress_pct: float = Field(ge=0)

    @property
    def is_closed(self) -> bool:
        return self.computed_status == LoanStatus.CLOSED


class UpcomingInstallment(BaseModel):
    installment: LoanInstallment
    loan_title: str
    role: LoanRole
    overdue: bool = False


class LoansOverview(BaseModel):
    """Everything the loans screen needs, for one view state."""

    loans: list[LoanSummary] = Field(default_factory=list)
    total_i_owe: Decimal = Decimal("0.00")
    total_owed_to_me: Decimal = Decimal("0.00")
    upcoming: list[UpcomingInstallment] = Field(default_factory=list)


class LoanDeletionResult(BaseModel):
    loan_id: str
    payments_deleted: int = 0
    installments_deleted: int = 0
    installments_orphaned: int = 0


class InstallmentGenerationResult(BaseModel):
    created: int = 0
    existed: int = 0
    installments: list[LoanInstallment] = Field(default_factory=list)
