"""
Bill Models

A BillTemplate (fixed monthly bill) or a BillPlan (fixed number of
installments) is the user-authored definition. A Bill is one obligation
instance for one calendar month, generated from either of them on demand.

DESIGN DECISION: Bill.payments is the single source of truth for what was
paid. The legacy single-payment fields (paid_at, paid_tx_id, paid_via_*)
are still written, mirroring the latest payment, so older readers of the
same records keep working.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from household_ledger.models.base import Money, RecordModel, utcnow
from household_ledger.utils.dates import MONTH_PATTERN
from household_ledger.utils.money import from_cents, to_cents


# =============================================================================
# ENUMS
# =============================================================================

class BillStatus(str, Enum):
    """
    Bill payment state.

    open -> partial -> paid, open <-> skipped.
    """
    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"
    SKIPPED = "skipped"


class PaymentMethod(str, Enum):
    """Where a bill payment came from."""
    ACCOUNT = "account"
    CARD = "card"


class CardHolder(str, Enum):
    """Which holder of a credit card made a purchase or payment."""
    MAIN = "main"
    ADDITIONAL = "additional"


# =============================================================================
# DEFINITIONS
# =============================================================================

class BillTemplate(RecordModel):
    """
    Recurring monthly bill definition.

    Generated bills snapshot the template at generation time and keep a
    reference back through template_id.
    """

    name: str = Field(..., min_length=1, max_length=200)
    amount: Money = Field(..., ge=0)
    currency: str = Field(default="BRL", min_length=3, max_length=3)
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    person_id: Optional[str] = None
    due_day: int = Field(..., ge=1, le=31)
    tags: list[str] = Field(default_factory=list)
    default_pay_type: Optional[PaymentMethod] = None
    default_pay_id: Optional[str] = None
    active: bool = True
    sort_order: int = 0
    pinned: bool = False
    updated_at: Optional[datetime] = None

    @field_validator("active", mode="before")
    @classmethod
    def default_active(cls, v):
        # Older templates were written without the flag
        return True if v is None else v


class BillPlan(RecordModel):
    """Fixed-count installment plan (e.g. 10x on a purchase)."""

    name: str = Field(..., min_length=1, max_length=200)
    amount: Money = Field(..., ge=0, description="Amount per installment")
    total_installments: int = Field(..., ge=1)
    start_month: str = Field(..., pattern=MONTH_PATTERN)
    due_day: int = Field(..., ge=1, le=31)
    currency: str = Field(default="BRL", min_length=3, max_length=3)
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    person_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    default_pay_type: Optional[PaymentMethod] = None
    default_pay_id: Optional[str] = None
    active: bool = True
    updated_at: Optional[datetime] = None


# =============================================================================
# BILL INSTANCE
# =============================================================================

class BillPayment(RecordModel):
    """
    One entry of a bill's payment history.

    tx_id points at the side-effect transaction so the payment can be
    reversed later.
    """

    id: Optional[str] = None
    date: date
    amount: Money = Field(..., gt=0)
    method: Optional[PaymentMethod] = None
    via_id: Optional[str] = None
    via_label: Optional[str] = None
    tx_id: Optional[str] = None
    invoice_month: Optional[str] = None
    card_holder: Optional[CardHolder] = None
    created_at: datetime = Field(default_factory=utcnow)


class Bill(RecordModel):
    """One obligation instance for one calendar month."""

    name: str = Field(..., min_length=1, max_length=200)
    template_id: Optional[str] = None
    plan_id: Optional[str] = None
    installment_number: Optional[int] = Field(default=None, ge=1)
    installment_total: Optional[int] = Field(default=None, ge=1)

    month: str = Field(..., pattern=MONTH_PATTERN)
    due_date: date
    amount: Money = Field(..., ge=0)
    currency: str = Field(default="BRL", min_length=3, max_length=3)

    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    person_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    default_pay_type: Optional[PaymentMethod] = None
    default_pay_id: Optional[str] = None

    # Payment state
    status: BillStatus = BillStatus.OPEN
    paid_amount: Money = Field(default=0, ge=0)
    payments: list[BillPayment] = Field(default_factory=list)

    # Legacy single-payment fields
    paid_at: Optional[date] = None
    paid_tx_id: Optional[str] = None
    paid_via_type: Optional[PaymentMethod] = None
    paid_via_id: Optional[str] = None
    paid_via_label: Optional[str] = None

    skipped_at: Optional[datetime] = None
    user_edited: bool = False
    sort_order: int = 0
    pinned: bool = False

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default(cls, v):
        return [] if v is None else v

    @property
    def remaining(self) -> Decimal:
        """Amount still owed (never negative)."""
        return from_cents(max(0, to_cents(self.amount) - to_cents(self.paid_amount)))

    @property
    def is_settled(self) -> bool:
        return self.status in (BillStatus.PAID, BillStatus.SKIPPED)


class GenerationResult(BaseModel):
    """
    Outcome of a generation run.

    Already-existing bills are not an error: they are counted in `existed`
    and left alone (or synced, when update_existing was requested).
    """

    created: int = 0
    existed: int = 0
    updated: int = 0
    bills: list[Bill] = Field(
        default_factory=list,
        description="Bills that must be written (new or updated)",
    )
