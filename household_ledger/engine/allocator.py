"""
Payment Allocator (Loans)

A loan payment is spread over the loan's open installments, earliest due
date first, exactly once: when the payment is registered. Whatever does not
fit is reported as unallocated and never parked anywhere.

DESIGN DECISION: Each installment records how much every payment applied to
it (allocations). Deleting a payment subtracts that recorded amount, so a
payment split across two installments is rolled back exactly instead of
being subtracted in full from both.
"""

from typing import Iterable

from household_ledger.models.loan import (
    AllocationResult,
    InstallmentStatus,
    LoanInstallment,
    LoanPayment,
)
from household_ledger.utils.money import covers, from_cents, to_cents


ALLOCATABLE = (InstallmentStatus.OPEN, InstallmentStatus.PARTIAL)


def allocation_order(installments: Iterable[LoanInstallment]) -> list[LoanInstallment]:
    """Open/partial installments, earliest due date first."""
    candidates = [i for i in installments if i.status in ALLOCATABLE]
    return sorted(candidates, key=lambda i: (i.due_date, i.installment_no))


def allocate(
    installments: Iterable[LoanInstallment],
    payment: LoanPayment,
) -> AllocationResult:
    """
    Apply a payment to the loan's installments.

    Σ applied == min(payment, Σ remaining of the candidates); no installment
    ends up funded beyond its amount.

    Returns:
        AllocationResult with the changed installments (copies) to write
    """
    remaining_c = to_cents(payment.amount)
    applied_total_c = 0
    changed = []

    for original in allocation_order(
        i for i in installments if i.loan_id == payment.loan_id
    ):
        if remaining_c <= 0:
            break

        amount_c = to_cents(original.amount)
        paid_c = to_cents(original.paid_amount)
        rest_c = max(0, amount_c - paid_c)
        if rest_c <= 0:
            continue

        applied_c = min(rest_c, remaining_c)
        inst = original.model_copy(deep=True)
        inst.paid_amount = from_cents(paid_c + applied_c)
        if payment.id not in inst.paid_payment_ids:
            inst.paid_payment_ids.append(payment.id)
        allocations = dict(inst.allocations)
        previous_c = to_cents(allocations.get(payment.id, 0))
        allocations[payment.id] = from_cents(previous_c + applied_c)
        inst.allocations = allocations
        inst.status = (
            InstallmentStatus.PAID
            if covers(paid_c + applied_c, amount_c)
            else InstallmentStatus.PARTIAL
        )

        remaining_c -= applied_c
        applied_total_c += applied_c
        changed.append(inst)

    return AllocationResult(
        payment_id=payment.id,
        applied=from_cents(applied_total_c),
        unallocated=from_cents(max(0, remaining_c)),
        installments=changed,
    )


def deallocate(
    installments: Iterable[LoanInstallment],
    payment: LoanPayment,
) -> list[LoanInstallment]:
    """
    Roll a payment back out of every installment it touched.

    Rows written before allocations were recorded fall back to subtracting
    the whole payment amount. Every non-skipped row comes back partial or
    open, even when what is left still covers it.

    Returns:
        The changed installments (copies) to write
    """
    changed = []
    for original in installments:
        if payment.id not in original.paid_payment_ids:
            continue

        inst = original.model_copy(deep=True)
        allocations = dict(inst.allocations)
        applied = allocations.pop(payment.id, payment.amount)
        paid_c = max(0, to_cents(inst.paid_amount) - to_cents(applied))

        inst.paid_amount = from_cents(paid_c)
        inst.paid_payment_ids = [p for p in inst.paid_payment_ids if p != payment.id]
        inst.allocations = allocations
        if inst.status != InstallmentStatus.SKIPPED:
            inst.status = (
                InstallmentStatus.PARTIAL if paid_c > 0 else InstallmentStatus.OPEN
            )
        changed.append(inst)
    return changed
