"""
Loan Ledger

Derives a loan's balance from its payments and builds its repayment
schedule.

DESIGN DECISION: The loan balance (saldo) is never stored. It is
max(0, principal - Σ payments), computed on every read, and a loan whose
saldo drops to one cent or less is shown as closed without the stored
status ever changing. Deleting a payment therefore reopens the loan with
no extra bookkeeping.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from household_ledger.engine.errors import InvalidTransitionError
from household_ledger.models.loan import (
    InstallmentGenerationResult,
    InstallmentStatus,
    Loan,
    LoanInstallment,
    LoanPayment,
    LoanRole,
    LoansOverview,
    LoanStatus,
    LoanSummary,
    UpcomingInstallment,
)
from household_ledger.models.views import LoanView, LoanViewState
from household_ledger.utils.dates import add_months, clamp_due_date, month_of
from household_ledger.utils.money import (
    TOLERANCE_CENTS,
    from_cents,
    sum_cents,
    to_cents,
)


def installment_id(loan_id: str, number: int) -> str:
    """Deterministic installment id, so regenerating never duplicates."""
    return f"li_{loan_id}_{number}"


def summarize_loan(
    loan: Loan,
    payments: Iterable[LoanPayment],
    installments: Iterable[LoanInstallment] = (),
) -> LoanSummary:
    """Compute the derived balance of one loan."""
    payments = sorted(
        (p for p in payments if p.loan_id == loan.id),
        key=lambda p: (p.date, p.created_at),
    )
    installments = sorted(
        (i for i in installments if i.loan_id == loan.id),
        key=lambda i: (i.due_date, i.installment_no),
    )

    principal_c = to_cents(loan.principal)
    paid_c = sum_cents(p.amount for p in payments)
    allocated_c = sum_cents(i.paid_amount for i in installments)
    saldo_c = max(0, principal_c - paid_c)

    if loan.status == LoanStatus.CLOSED or saldo_c <= TOLERANCE_CENTS:
        computed = LoanStatus.CLOSED
    else:
        computed = LoanStatus.OPEN

    progress = min(100.0, paid_c * 100 / principal_c) if principal_c > 0 else 100.0

    return LoanSummary(
        loan=loan,
        payments=payments,
        installments=installments,
        total_paid=from_cents(paid_c),
        total_allocated=from_cents(allocated_c),
        unallocated=from_cents(max(0, paid_c - allocated_c)),
        saldo=from_cents(saldo_c),
        computed_status=computed,
        progress_pct=round(progress, 2),
    )


def generate_loan_installments(
    loan: Loan,
    existing: Iterable[LoanInstallment] = (),
) -> InstallmentGenerationResult:
    """
    Build the repayment schedule of a loan.

    Each installment is installment_amount when set, else principal / N with
    the leftover cents on the last one. Installments that already exist are
    kept untouched (they may carry payments).
    """
    count = loan.total_installments
    taken = {i.id for i in existing if i.loan_id == loan.id}

    if to_cents(loan.installment_amount) > 0:
        amounts = [to_cents(loan.installment_amount)] * count
    else:
        base_c, leftover_c = divmod(to_cents(loan.principal), count)
        amounts = [base_c] * count
        amounts[-1] += leftover_c

    start = month_of(loan.start_date)
    result = InstallmentGenerationResult()
    for number in range(1, count + 1):
        inst_id = installment_id(loan.id, number)
        if inst_id in taken:
            result.existed += 1
            continue
        result.installments.append(LoanInstallment(
            id=inst_id,
            loan_id=loan.id,
            installment_no=number,
            installment_total=count,
            due_date=clamp_due_date(add_months(start, number - 1), loan.due_day),
            amount=from_cents(amounts[number - 1]),
            currency=loan.currency,
        ))
        result.created += 1
    return result


def skip_installment(inst: LoanInstallment) -> LoanInstallment:
    if inst.status not in (InstallmentStatus.OPEN, InstallmentStatus.PARTIAL):
        raise InvalidTransitionError(inst.id, inst.status.value, "skip")
    updated = inst.model_copy(deep=True)
    updated.status = InstallmentStatus.SKIPPED
    return updated


def unskip_installment(inst: LoanInstallment) -> LoanInstallment:
    if inst.status != InstallmentStatus.SKIPPED:
        raise InvalidTransitionError(inst.id, inst.status.value, "unskip")
    updated = inst.model_copy(deep=True)
    updated.status = (
        InstallmentStatus.PARTIAL
        if to_cents(updated.paid_amount) > 0
        else InstallmentStatus.OPEN
    )
    return updated


def matches_view(summary: LoanSummary, view: LoanView) -> bool:
    if view == LoanView.I_OWE:
        return summary.loan.role == LoanRole.I_OWE
    if view == LoanView.OWED_TO_ME:
        return summary.loan.role == LoanRole.OWED_TO_ME
    if view == LoanView.OPEN:
        return not summary.is_closed
    if view == LoanView.CLOSED:
        return summary.is_closed
    return True


def build_overview(
    loans: Iterable[Loan],
    payments: Iterable[LoanPayment],
    installments: Iterable[LoanInstallment],
    state: Optional[LoanViewState] = None,
    today: Optional[date] = None,
) -> LoansOverview:
    """
    Everything the loans screen shows.

    Totals only count loans that are still open (computed). Upcoming lists
    open/partial installments due up to today + upcoming_days,
    overdue ones included.
    """
    state = state or LoanViewState()
    today = today or date.today()
    horizon = today + timedelta(days=state.upcoming_days)
    payments = list(payments)
    installments = list(installments)

    summaries = [summarize_loan(loan, payments, installments) for loan in loans]

    i_owe_c = sum(
        to_cents(s.saldo) for s in summaries
        if not s.is_closed and s.loan.role == LoanRole.I_OWE
    )
    owed_c = sum(
        to_cents(s.saldo) for s in summaries
        if not s.is_closed and s.loan.role == LoanRole.OWED_TO_ME
    )

    upcoming = []
    for s in summaries:
        if s.is_closed:
            continue
        for inst in s.installments:
            if inst.status not in (InstallmentStatus.OPEN, InstallmentStatus.PARTIAL):
                continue
            if inst.due_date <= horizon:
                upcoming.append(UpcomingInstallment(
                    installment=inst,
                    loan_title=s.loan.title,
                    role=s.loan.role,
                    overdue=inst.due_date < today,
                ))
    upcoming.sort(key=lambda u: (u.installment.due_date, u.installment.installment_no))

    return LoansOverview(
        loans=[s for s in summaries if matches_view(s, state.view)],
        total_i_owe=from_cents(i_owe_c),
        total_owed_to_me=from_cents(owed_c),
        upcoming=upcoming,
    )
