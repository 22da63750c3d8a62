"""
Template/Plan Generator

Turns user-authored definitions into Bills:
- a BillTemplate yields at most one Bill per month
- a BillPlan yields one Bill per installment number

DESIGN DECISION: Generation is idempotent. A Bill that already exists for
the (template, month) or (plan, installment) slot is counted as existed and
never duplicated, so pressing "generate" twice, or retrying after a failure
half-way through, is always safe.

Everything here is pure: the caller passes the existing bills in and writes
the returned ones out.
"""

from datetime import date
from typing import Callable, Iterable, Optional

from household_ledger.models.base import utcnow
from household_ledger.models.bill import (
    Bill,
    BillPlan,
    BillStatus,
    BillTemplate,
    GenerationResult,
)
from household_ledger.utils.dates import add_months, clamp_due_date, current_month
from household_ledger.utils.ids import new_id


IdFactory = Callable[[str], str]

# Fields a template or plan hands down to its bills
_SNAPSHOT_FIELDS = (
    "currency",
    "category_id",
    "subcategory_id",
    "person_id",
    "default_pay_type",
    "default_pay_id",
)


def _snapshot(source) -> dict:
    data = {f: getattr(source, f) for f in _SNAPSHOT_FIELDS}
    data["tags"] = list(source.tags)
    return data


def bill_from_template(
    template: BillTemplate,
    month: str,
    id_factory: IdFactory = new_id,
) -> Bill:
    return Bill(
        id=id_factory("bill"),
        template_id=template.id,
        name=template.name,
        month=month,
        due_date=clamp_due_date(month, template.due_day),
        amount=template.amount,
        status=BillStatus.OPEN,
        sort_order=template.sort_order,
        pinned=template.pinned,
        **_snapshot(template),
    )


def _sync_from_template(bill: Bill, template: BillTemplate) -> Optional[Bill]:
    """
    Refresh an untouched open bill from its template.

    Amount and name always follow the template; the other snapshot fields
    are only filled where the bill has nothing. Returns None when nothing
    changed.
    """
    updated = bill.model_copy(deep=True)
    updated.amount = template.amount
    updated.name = template.name
    for f in _SNAPSHOT_FIELDS:
        if getattr(updated, f) in (None, ""):
            setattr(updated, f, getattr(template, f))
    if not updated.tags and template.tags:
        updated.tags = list(template.tags)

    if updated.model_dump() == bill.model_dump():
        return None
    updated.updated_at = utcnow()
    return updated


def generate_month(
    templates: Iterable[BillTemplate],
    existing: Iterable[Bill],
    month: str,
    update_existing: bool = False,
    id_factory: IdFactory = new_id,
) -> GenerationResult:
    """
    Create the month's bills for every active template.

    Args:
        templates: All templates (inactive ones are ignored)
        existing: Bills already stored for that month
        month: "YYYY-MM"
        update_existing: Sync open, non-user-edited bills from their template

    Returns:
        GenerationResult whose bills are the new and updated ones to write
    """
    clamp_due_date(month, 1)  # validates the month string
    by_template = {
        b.template_id: b for b in existing
        if b.template_id and b.month == month
    }

    result = GenerationResult()
    for template in templates:
        if not template.active:
            continue

        current = by_template.get(template.id)
        if current is None:
            bill = bill_from_template(template, month, id_factory)
            by_template[template.id] = bill
            result.bills.append(bill)
            result.created += 1
            continue

        result.existed += 1
        if (
            update_existing
            and current.status == BillStatus.OPEN
            and not current.user_edited
        ):
            synced = _sync_from_template(current, template)
            if synced is not None:
                result.bills.append(synced)
                result.updated += 1

    return result


def generate_plan_installments(
    plan: BillPlan,
    existing: Iterable[Bill],
    id_factory: IdFactory = new_id,
) -> GenerationResult:
    """Create the plan's missing installment bills (1..N)."""
    taken = {
        b.installment_number for b in existing
        if b.plan_id == plan.id and b.installment_number
    }

    result = GenerationResult()
    for number in range(1, plan.total_installments + 1):
        if number in taken:
            result.existed += 1
            continue

        month = add_months(plan.start_month, number - 1)
        result.bills.append(Bill(
            id=id_factory("bill"),
            plan_id=plan.id,
            name=plan.name,
            installment_number=number,
            installment_total=plan.total_installments,
            month=month,
            due_date=clamp_due_date(month, plan.due_day),
            amount=plan.amount,
            status=BillStatus.OPEN,
            **_snapshot(plan),
        ))
        result.created += 1

    return result


def restamp_future_plan_bills(
    plan: BillPlan,
    existing: Iterable[Bill],
    today: Optional[date] = None,
) -> list[Bill]:
    """
    Push an edited plan onto its open bills from the current month on.

    Paid, partial and skipped installments, and past months, are left as
    they are. Returns only the bills that changed.
    """
    from_month = current_month(today)
    changed = []
    for bill in existing:
        if bill.plan_id != plan.id:
            continue
        if bill.status != BillStatus.OPEN or bill.month < from_month:
            continue

        updated = bill.model_copy(deep=True)
        updated.due_date = clamp_due_date(bill.month, plan.due_day)
        updated.amount = plan.amount
        for f, value in _snapshot(plan).items():
            setattr(updated, f, value)

        if updated.model_dump() != bill.model_dump():
            updated.updated_at = utcnow()
            changed.append(updated)
    return changed
