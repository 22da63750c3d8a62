"""
Bill State Machine

    open -> partial -> paid
    open -> skipped -> open

DESIGN DECISION: Every transition is a pure function that takes a Bill and
returns a new Bill. The flows do the reading and writing; nothing in here
touches storage, so every rule can be tested on plain objects.

Status is always derived from paid_amount vs amount (in cents, one cent of
tolerance). No transition sets a status by hand except skip.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from household_ledger.engine.errors import InvalidTransitionError, LedgerValidationError
from household_ledger.models.base import utcnow
from household_ledger.models.bill import (
    Bill,
    BillPayment,
    BillStatus,
    CardHolder,
    PaymentMethod,
)
from household_ledger.models.invoice import Transaction, TransactionType
from household_ledger.utils.money import covers, from_cents, to_cents, to_decimal


PAYABLE = (BillStatus.OPEN, BillStatus.PARTIAL)

_PAID_FIELDS = ("paidAt", "paidTxId", "paidViaType", "paidViaId", "paidViaLabel")


def derive_status(paid_cents: int, amount_cents: int) -> BillStatus:
    """Status implied by the paid amount of a non-skipped bill."""
    if paid_cents <= 0:
        return BillStatus.OPEN
    if covers(paid_cents, amount_cents):
        return BillStatus.PAID
    return BillStatus.PARTIAL


def is_consistent(bill: Bill) -> bool:
    """True when status agrees with paid_amount."""
    paid_c = to_cents(bill.paid_amount)
    if bill.status == BillStatus.SKIPPED:
        return paid_c == 0 and not bill.payments
    if paid_c > to_cents(bill.amount) + 1:
        return False
    return derive_status(paid_c, to_cents(bill.amount)) == bill.status


def _mirror_legacy_fields(bill: Bill) -> None:
    """Point the single-payment fields at the latest payment (or clear them)."""
    latest = bill.payments[-1] if bill.payments else None
    bill.paid_at = latest.date if latest else None
    bill.paid_tx_id = latest.tx_id if latest else None
    bill.paid_via_type = latest.method if latest else None
    bill.paid_via_id = latest.via_id if latest else None
    bill.paid_via_label = latest.via_label if latest else None


# =============================================================================
# TRANSITIONS
# =============================================================================

def apply_payment(bill: Bill, payment: BillPayment) -> Bill:
    """
    Record a payment on a bill.

    paid_amount never exceeds amount: a confirmed overpayment keeps its full
    value on the payment (and its transaction) but only fills the bill.

    Raises:
        InvalidTransitionError: If the bill is paid or skipped
    """
    if bill.status not in PAYABLE:
        raise InvalidTransitionError(bill.id, bill.status.value, "pay")

    updated = bill.model_copy(deep=True)
    amount_c = to_cents(updated.amount)
    paid_c = min(to_cents(updated.paid_amount) + to_cents(payment.amount), amount_c)

    updated.payments.append(payment)
    updated.paid_amount = from_cents(paid_c)
    updated.status = derive_status(paid_c, amount_c)
    updated.skipped_at = None
    _mirror_legacy_fields(updated)
    updated.updated_at = utcnow()
    return updated


def undo_payment(bill: Bill, index: int = -1) -> tuple[Bill, BillPayment]:
    """
    Remove one payment from a bill.

    Returns the updated bill and the removed payment (its tx_id is the
    transaction the caller must delete).

    Raises:
        InvalidTransitionError: If the bill has no payment to undo
        LedgerValidationError: If index does not point at a payment
    """
    if not bill.payments or bill.status == BillStatus.SKIPPED:
        raise InvalidTransitionError(bill.id, bill.status.value, "undo a payment on")
    try:
        bill.payments[index]
    except IndexError:
        raise LedgerValidationError.single(
            "payment_index",
            "invalid_value",
            f"Bill {bill.id} has no payment at index {index}",
        )

    updated = bill.model_copy(deep=True)
    removed = updated.payments.pop(index)
    # paid_amount may be capped by an overpayment, so rebuild it from what is left
    amount_c = to_cents(updated.amount)
    paid_c = min(sum(to_cents(p.amount) for p in updated.payments), amount_c)

    updated.paid_amount = from_cents(paid_c)
    updated.status = derive_status(paid_c, amount_c)
    _mirror_legacy_fields(updated)
    updated.updated_at = utcnow()
    return updated, removed


def skip_bill(bill: Bill, now: Optional[datetime] = None) -> Bill:
    """Mark an open bill as not due this month."""
    if bill.status != BillStatus.OPEN:
        raise InvalidTransitionError(bill.id, bill.status.value, "skip")

    updated = bill.model_copy(deep=True)
    updated.status = BillStatus.SKIPPED
    updated.paid_amount = Decimal("0.00")
    updated.payments = []
    _mirror_legacy_fields(updated)
    updated.skipped_at = now or utcnow()
    updated.updated_at = updated.skipped_at
    return updated


def unskip_bill(bill: Bill) -> Bill:
    if bill.status != BillStatus.SKIPPED:
        raise InvalidTransitionError(bill.id, bill.status.value, "unskip")

    updated = bill.model_copy(deep=True)
    updated.status = BillStatus.OPEN
    updated.skipped_at = None
    updated.updated_at = utcnow()
    return updated


# =============================================================================
# SIDE-EFFECT TRANSACTION
# =============================================================================

def build_payment_transaction(
    bill: Bill,
    tx_id: str,
    amount: Decimal,
    pay_date: date,
    method: PaymentMethod,
    via_id: str,
    invoice_month: Optional[str] = None,
    card_holder: Optional[CardHolder] = None,
    usd_rate: Decimal = Decimal("0"),
    card_currency: Optional[str] = None,
) -> Transaction:
    """
    The expense a bill payment creates.

    Account payments hit the account; card payments land on the chosen
    invoice month and holder. A USD bill gets valueBRL from the configured
    rate. If the card is in another currency, the amount is booked in the
    card's currency as-is.
    """
    amount = to_decimal(amount)
    currency = bill.currency
    value_brl: Optional[Decimal] = amount
    if currency == "USD":
        value_brl = to_decimal(amount * usd_rate) if usd_rate > 0 else None

    fields: dict[str, Any] = {}
    if method == PaymentMethod.CARD:
        if card_currency and card_currency != currency:
            currency = card_currency
            value_brl = amount
        fields = {
            "card_id": via_id,
            "invoice_month": invoice_month,
            "card_holder": card_holder or CardHolder.MAIN,
        }
        description = f"Conta no cartão: {bill.name}"
    else:
        fields = {"account_id": via_id}
        description = f"Pagamento: {bill.name}"

    return Transaction(
        id=tx_id,
        type=TransactionType.EXPENSE.value,
        date=pay_date,
        description=description,
        value=amount,
        currency=currency,
        value_brl=value_brl,
        category_id=bill.category_id,
        subcategory_id=bill.subcategory_id,
        person_id=bill.person_id,
        tags=list(bill.tags),
        **fields,
    )


# =============================================================================
# SELF-REPAIR
# =============================================================================

class RepairReport(BaseModel):
    """Result of a repair pass over raw bill records."""

    bills: list[dict[str, Any]] = Field(default_factory=list)
    repaired: list[str] = Field(
        default_factory=list,
        description="Ids of the records that changed and should be written back",
    )

    @property
    def count(self) -> int:
        return len(self.repaired)


def _has_paid_data(record: dict[str, Any]) -> bool:
    if to_cents(record.get("paidAmount")) > 0:
        return True
    if record.get("payments"):
        return True
    return any(record.get(f) for f in _PAID_FIELDS)


def repair_record(record: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """
    Heal one stored bill record.

    Rules, in order:
    1. Missing status is inferred from the legacy `paid` flag
    2. paid with no paidAmount gets the full amount
    3. open with paidAmount > 0 becomes partial
    4. partial that covers the amount becomes paid
    5. skipped carrying any payment data is cleared
    Then a one-time upgrade builds payments[] from the legacy paid* fields.

    Only the fields these rules name are touched.
    """
    fixed = dict(record)
    amount_c = to_cents(fixed.get("amount"))
    status = fixed.get("status")

    if not status:
        status = BillStatus.PAID.value if fixed.get("paid") else BillStatus.OPEN.value
        fixed["status"] = status

    if status == BillStatus.PAID.value and fixed.get("paidAmount") in (None, "", 0):
        fixed["paidAmount"] = float(from_cents(amount_c))

    paid_c = to_cents(fixed.get("paidAmount"))

    if status == BillStatus.OPEN.value and paid_c > 0:
        status = BillStatus.PARTIAL.value
        fixed["status"] = status

    if status == BillStatus.PARTIAL.value and covers(paid_c, amount_c):
        status = BillStatus.PAID.value
        fixed["status"] = status

    if status == BillStatus.SKIPPED.value and _has_paid_data(fixed):
        fixed["paidAmount"] = 0.0
        fixed["payments"] = []
        for f in _PAID_FIELDS:
            fixed[f] = None

    if (
        status in (BillStatus.PAID.value, BillStatus.PARTIAL.value)
        and not fixed.get("payments")
        and (fixed.get("paidAt") or fixed.get("paidTxId"))
        and to_cents(fixed.get("paidAmount") or fixed.get("amount")) > 0
    ):
        fixed["payments"] = [_legacy_payment(fixed)]

    return fixed, fixed != record


def _legacy_payment(record: dict[str, Any]) -> dict[str, Any]:
    paid_at = record.get("paidAt") or f"{record.get('month')}-01"
    amount = record.get("paidAmount") or record.get("amount")
    return {
        "id": f"{record.get('id')}_legacy",
        "date": str(paid_at)[:10],
        "amount": float(to_decimal(amount)),
        "method": record.get("paidViaType"),
        "viaId": record.get("paidViaId"),
        "viaLabel": record.get("paidViaLabel"),
        "txId": record.get("paidTxId"),
        "invoiceMonth": record.get("invoiceMonth"),
        "cardHolder": record.get("cardHolder"),
    }


def repair(records: list[dict[str, Any]]) -> RepairReport:
    """Run repair_record over every record. Idempotent."""
    report = RepairReport()
    for record in records:
        fixed, changed = repair_record(record)
        report.bills.append(fixed)
        if changed:
            report.repaired.append(fixed.get("id"))
    return report
