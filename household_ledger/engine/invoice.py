"""
Invoice Reconciler

Sums a card invoice (card, month) per holder and compares it with the
payments registered against it.

    PAGA     nothing left (within a cent) and something was charged
    PARCIAL  something paid and something left
    ABERTA   everything else

Only expense transactions count as charges; invoice-payment transactions
(kind INVOICE_PAYMENT) are the payments themselves and are skipped.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from household_ledger.models.bill import CardHolder
from household_ledger.models.invoice import (
    INVOICE_PAYMENT_KIND,
    HolderTotals,
    InvoicePayment,
    InvoiceStatus,
    InvoiceSummary,
    Transaction,
    TransactionType,
    make_invoice_key,
)
from household_ledger.utils.money import TOLERANCE_CENTS, from_cents, to_cents


def is_invoice_expense(tx: Transaction) -> bool:
    return tx.type == TransactionType.EXPENSE.value and not tx.is_invoice_payment


def invoice_status(total_c: int, paid_c: int) -> InvoiceStatus:
    remaining_c = max(0, total_c - paid_c)
    if remaining_c <= TOLERANCE_CENTS and total_c > 0:
        return InvoiceStatus.PAID
    if paid_c > TOLERANCE_CENTS and remaining_c > TOLERANCE_CENTS:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.OPEN


def reconcile(
    card_id: str,
    month: str,
    transactions: Iterable[Transaction],
    payments: Iterable[InvoicePayment],
) -> InvoiceSummary:
    """
    Build the reconciled view of one invoice.

    transactions may contain anything; only the card's expenses for the
    month are used. payments are filtered by invoice key.
    """
    key = make_invoice_key(card_id, month)
    expenses = sorted(
        (
            t for t in transactions
            if t.card_id == card_id and t.invoice_month == month and is_invoice_expense(t)
        ),
        key=lambda t: t.date,
        reverse=True,
    )
    payments = sorted(
        (p for p in payments if p.invoice_key == key),
        key=lambda p: p.date,
        reverse=True,
    )

    total_c = {h: 0 for h in CardHolder}
    paid_c = {h: 0 for h in CardHolder}
    for tx in expenses:
        total_c[tx.holder] += to_cents(tx.effective_value)
    for p in payments:
        paid_c[p.holder] += to_cents(p.amount)

    by_holder = {
        h: HolderTotals(
            total=from_cents(total_c[h]),
            paid=from_cents(paid_c[h]),
            remaining=from_cents(max(0, total_c[h] - paid_c[h])),
        )
        for h in CardHolder
    }

    total_global = sum(total_c.values())
    paid_global = sum(paid_c.values())

    return InvoiceSummary(
        card_id=card_id,
        month=month,
        invoice_key=key,
        by_holder=by_holder,
        total=from_cents(total_global),
        paid=from_cents(paid_global),
        remaining=from_cents(max(0, total_global - paid_global)),
        status=invoice_status(total_global, paid_global),
        expenses=expenses,
        payments=payments,
    )


def build_invoice_payment(
    payment_id: str,
    tx_id: str,
    card_id: str,
    month: str,
    holder: CardHolder,
    amount: Decimal,
    pay_date: date,
    account_id: Optional[str] = None,
    person_id: Optional[str] = None,
    currency: str = "BRL",
) -> tuple[InvoicePayment, Transaction]:
    """
    The payment record and its (negative) transaction.

    Both share tx_id so either can find the other.
    """
    payment = InvoicePayment(
        id=payment_id,
        invoice_key=make_invoice_key(card_id, month),
        card_id=card_id,
        invoice_month=month,
        holder=holder,
        date=pay_date,
        amount=amount,
        account_id=account_id,
        person_id=person_id,
        tx_id=tx_id,
    )
    holder_label = "Titular" if holder == CardHolder.MAIN else "Adicional"
    tx = Transaction(
        id=tx_id,
        type=TransactionType.INVOICE_PAYMENT.value,
        kind=INVOICE_PAYMENT_KIND,
        date=pay_date,
        description=f"Pagamento Fatura {holder_label} {month}",
        value=-payment.amount,
        currency=currency,
        account_id=account_id,
        card_id=card_id,
        invoice_month=month,
        card_holder=holder,
        person_id=person_id,
    )
    return payment, tx
