"""
Card invoice and transaction models.

Transactions are the side-effect records written when a bill or invoice is
paid. Card purchases carry (card_id, invoice_month, card_holder) and are the
raw material the invoice reconciler sums up.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from household_ledger.models.base import (
    Money,
    OptionalMoney,
    RecordModel,
    utcnow,
)
from household_ledger.models.bill import CardHolder
from household_ledger.utils.dates import MONTH_PATTERN


INVOICE_PAYMENT_KIND = "INVOICE_PAYMENT"


def make_invoice_key(card_id: str, invoice_month: str) -> str:
    return f"{card_id}__{invoice_month}"


class TransactionType(str, Enum):
    EXPENSE = "expense"
    REVENUE = "revenue"
    INVOICE_PAYMENT = "invoice_payment"


class InvoiceStatus(str, Enum):
    """Invoice reconciliation status (labels as shown to the household)."""
    OPEN = "ABERTA"
    PARTIAL = "PARCIAL"
    PAID = "PAGA"


class Transaction(RecordModel):
    """
    A ledger transaction.

    value is in the transaction currency; value_brl, when present, is the
    converted amount the invoice totals use.
    """

    type: str = TransactionType.EXPENSE.value
    kind: Optional[str] = None
    date: date
    description: str = ""
    value: Money
    currency: str = Field(default="BRL", min_length=3, max_length=3)
    value_brl: OptionalMoney = Field(default=None, alias="valueBRL")

    account_id: Optional[str] = None
    card_id: Optional[str] = None
    invoice_month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)
    card_holder: Optional[CardHolder] = None

    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    person_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default(cls, v):
        return [] if v is None else v

    @property
    def is_invoice_payment(self) -> bool:
        return self.kind == INVOICE_PAYMENT_KIND

    @property
    def holder(self) -> CardHolder:
        return self.card_holder or CardHolder.MAIN

    @property
    def effective_value(self) -> Decimal:
        """valueBRL when it was set, otherwise value."""
        return self.value_brl if self.value_brl else self.value


class InvoicePayment(RecordModel):
    """A payment registered against one holder's share of an invoice."""

    invoice_key: str
    card_id: str
    invoice_month: str = Field(..., pattern=MONTH_PATTERN)
    holder: CardHolder = CardHolder.MAIN
    date: date
    amount: Money = Field(..., gt=0)
    account_id: Optional[str] = None
    person_id: Optional[str] = None
    tx_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class HolderTotals(BaseModel):
    total: Decimal = Decimal("0.00")
    paid: Decimal = Decimal("0.00")
    remaining: Decimal = Decimal("0.00")


class InvoiceSummary(BaseModel):
    """Reconciled state of one card invoice."""

    card_id: str
    month: str
    invoice_key: str
    by_holder: dict[CardHolder, HolderTotals]
    total: Decimal
    paid: Decimal
    remaining: Decimal
    status: InvoiceStatus
    expenses: list[Transaction] = Field(default_factory=list)
    payments: list[InvoicePayment] = Field(default_factory=list)

    def holder(self, holder: CardHolder) -> HolderTotals:
        return self.by_holder.get(holder, HolderTotals())


class InvoiceDeletionResult(BaseModel):
    invoice_key: str
    payments_deleted: int = 0
    payment_transactions_deleted: int = 0
    transactions_deleted: int = 0
