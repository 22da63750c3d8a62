"""
Person Balance Tracker

What an additional card holder owes the main holder, kept in integer cents.
Closing a month adds that month's charges; payments subtract.

Events are the history, PersonBalance is the running total. Both are
written by the flow; this module only computes them.
"""

from datetime import datetime
from typing import Iterable, Optional

from household_ledger.engine.errors import InvalidTransitionError, LedgerValidationError
from household_ledger.models.balance import (
    BalanceEvent,
    BalanceEventType,
    MonthStatement,
    PersonBalance,
    balance_id,
)
from household_ledger.models.base import utcnow
from household_ledger.models.bill import CardHolder
from household_ledger.models.invoice import Transaction
from household_ledger.engine.invoice import is_invoice_expense
from household_ledger.utils.money import to_cents


def _require_positive(amount_cents: int) -> None:
    if amount_cents <= 0:
        raise LedgerValidationError.single(
            "amount", "invalid_value", "Amount must be greater than zero"
        )


def is_month_closed(events: Iterable[BalanceEvent], person_id: str, month: str) -> bool:
    return any(
        e.person_id == person_id and e.month == month and e.type == BalanceEventType.CHARGES
        for e in events
    )


def _bump(balance: Optional[PersonBalance], person_id: str, delta_cents: int) -> PersonBalance:
    if balance is None:
        balance = PersonBalance(id=balance_id(person_id), person_id=person_id)
    updated = balance.model_copy(deep=True)
    updated.balance_cents += delta_cents
    updated.updated_at = utcnow()
    return updated


def close_month(
    balance: Optional[PersonBalance],
    events: Iterable[BalanceEvent],
    person_id: str,
    month: str,
    amount,
    event_id: str,
) -> tuple[BalanceEvent, PersonBalance]:
    """
    Fold a month's charges into the balance.

    Raises:
        LedgerValidationError: If amount is not positive
        InvalidTransitionError: If the month was already closed
    """
    amount_c = to_cents(amount)
    _require_positive(amount_c)
    if is_month_closed(events, person_id, month):
        raise InvalidTransitionError(f"{person_id}/{month}", "closed", "close")

    event = BalanceEvent(
        id=event_id,
        person_id=person_id,
        month=month,
        type=BalanceEventType.CHARGES,
        amount_cents=amount_c,
        note=f"Fechamento fatura {month}",
    )
    return event, _bump(balance, person_id, amount_c)


def register_payment(
    balance: Optional[PersonBalance],
    person_id: str,
    month: str,
    amount,
    event_id: str,
    note: Optional[str] = None,
    paid_at: Optional[datetime] = None,
) -> tuple[BalanceEvent, PersonBalance]:
    """Record money received from the person (a negative event)."""
    amount_c = to_cents(amount)
    _require_positive(amount_c)

    event = BalanceEvent(
        id=event_id,
        person_id=person_id,
        month=month,
        type=BalanceEventType.PAYMENT,
        amount_cents=-amount_c,
        note=note,
        created_at=paid_at or utcnow(),
    )
    return event, _bump(balance, person_id, -amount_c)


def estimate_charges(
    transactions: Iterable[Transaction],
    card_ids: Iterable[str],
    month: str,
) -> int:
    """Additional-holder expenses on the given cards for a month, in cents."""
    card_ids = set(card_ids)
    return sum(
        to_cents(t.effective_value)
        for t in transactions
        if t.card_id in card_ids
        and t.invoice_month == month
        and t.holder == CardHolder.ADDITIONAL
        and is_invoice_expense(t)
    )


def month_statement(
    events: Iterable[BalanceEvent],
    person_id: str,
    month: str,
    estimated_charges_cents: int = 0,
) -> MonthStatement:
    """
    A person's balance movement for one month.

    An open month uses the estimated charges; a closed one uses the
    recorded charges event.
    """
    events = [e for e in events if e.person_id == person_id]
    start_c = sum(e.amount_cents for e in events if e.month < month)
    this_month = [e for e in events if e.month == month]

    charge = next((e for e in this_month if e.type == BalanceEventType.CHARGES), None)
    charges_c = charge.amount_cents if charge else estimated_charges_cents
    payments_c = sum(abs(e.amount_cents) for e in this_month if e.type == BalanceEventType.PAYMENT)
    adjustments_c = sum(e.amount_cents for e in this_month if e.type == BalanceEventType.ADJUSTMENT)

    return MonthStatement(
        person_id=person_id,
        month=month,
        closed=charge is not None,
        start_cents=start_c,
        charges_cents=charges_c,
        payments_cents=payments_c,
        adjustments_cents=adjustments_c,
        end_cents=start_c + charges_c - payments_c + adjustments_c,
    )
