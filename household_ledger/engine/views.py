"""
Month view of the bills screen.

Totals are taken over every bill of the month; filters and sorting only
decide which rows are shown.
"""

from collections import defaultdict
from datetime import date
from typing import Iterable

from household_ledger.models.bill import Bill, BillStatus
from household_ledger.models.views import (
    BillMonthView,
    BillSort,
    BillViewState,
    CurrencyTotals,
    MethodFilter,
    StatusFilter,
)
from household_ledger.utils.dates import add_months
from household_ledger.utils.money import from_cents, to_cents


def _passes(bill: Bill, state: BillViewState) -> bool:
    filters = state.filters
    if filters.status == StatusFilter.OPEN and bill.status == BillStatus.PAID:
        return False
    if filters.status == StatusFilter.PAID and bill.status != BillStatus.PAID:
        return False
    if filters.method != MethodFilter.ALL:
        if bill.status != BillStatus.PAID:
            return False
        if bill.paid_via_type is None or bill.paid_via_type.value != filters.method.value:
            return False
    if filters.person_id and bill.person_id != filters.person_id:
        return False
    return True


def _sort_key(sort: BillSort):
    if sort == BillSort.PAID_DESC:
        return lambda b: b.paid_at or date.min
    if sort == BillSort.AMOUNT_DESC:
        return lambda b: b.amount
    return lambda b: (b.due_date, b.sort_order, b.name)


def build_month_view(bills: Iterable[Bill], state: BillViewState) -> BillMonthView:
    month_bills = [b for b in bills if b.month == state.month]

    expected = defaultdict(int)
    open_ = defaultdict(int)
    paid = defaultdict(int)
    by_method = {"account": 0, "card": 0}
    for bill in month_bills:
        if bill.status == BillStatus.SKIPPED:
            continue
        currency = bill.currency or "BRL"
        expected[currency] += to_cents(bill.amount)
        paid[currency] += to_cents(bill.paid_amount)
        open_[currency] += to_cents(bill.remaining)
        if bill.status == BillStatus.PAID and bill.paid_via_type is not None:
            by_method[bill.paid_via_type.value] += 1

    totals = {
        cur: CurrencyTotals(
            expected=from_cents(expected[cur]),
            open=from_cents(open_[cur]),
            paid=from_cents(paid[cur]),
        )
        for cur in expected
    }

    sort = state.filters.sort
    rows = sorted(
        (b for b in month_bills if _passes(b, state)),
        key=_sort_key(sort),
        reverse=sort in (BillSort.PAID_DESC, BillSort.AMOUNT_DESC),
    )
    # Pinned bills always lead
    rows.sort(key=lambda b: not b.pinned)

    return BillMonthView(state=state, bills=rows, totals=totals, paid_by_method=by_method)


def shift_month(state: BillViewState, delta: int) -> BillViewState:
    """Move the view to another month, keeping the filters."""
    return state.model_copy(update={"month": add_months(state.month, delta)})
