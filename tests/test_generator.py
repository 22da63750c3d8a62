"""Tests for bill generation from templates and plans."""

import itertools
from datetime import date
from decimal import Decimal

import pytest

from household_ledger.engine import (
    generate_month,
    generate_plan_installments,
    restamp_future_plan_bills,
)
from household_ledger.models import BillStatus, PaymentMethod

from conftest import make_bill, make_plan, make_template


def sequential_ids():
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}_{next(counter)}"


class TestGenerateMonth:
    """Tests for generate_month."""

    def test_creates_one_bill_per_active_template(self):
        templates = [
            make_template(),
            make_template(id="tpl_gym", name="Gym", amount=Decimal("99.90"), due_day=5),
            make_template(id="tpl_old", name="Old", active=False),
        ]
        result = generate_month(templates, [], "2026-03", id_factory=sequential_ids())

        assert result.created == 2
        assert result.existed == 0
        assert [b.template_id for b in result.bills] == ["tpl_rent", "tpl_gym"]
        rent = result.bills[0]
        assert rent.id == "bill_1"
        assert rent.status == BillStatus.OPEN
        assert rent.due_date == date(2026, 3, 10)
        assert rent.amount == Decimal("1500.00")
        assert rent.category_id == "cat_home"

    def test_second_run_is_a_no_op(self):
        """Generating the same month twice never duplicates bills."""
        templates = [make_template()]
        first = generate_month(templates, [], "2026-03")
        second = generate_month(templates, first.bills, "2026-03")

        assert second.created == 0
        assert second.existed == 1
        assert second.bills == []

    def test_due_day_clamped_in_february(self):
        result = generate_month([make_template(due_day=31)], [], "2026-02")
        assert result.bills[0].due_date == date(2026, 2, 28)

    def test_bills_from_other_months_do_not_count(self):
        january = generate_month([make_template()], [], "2026-01")
        february = generate_month([make_template()], january.bills, "2026-02")
        assert february.created == 1

    def test_rejects_malformed_month(self):
        with pytest.raises(ValueError):
            generate_month([make_template()], [], "2026-3")

    def test_update_existing_syncs_amount(self):
        existing = generate_month([make_template()], [], "2026-03").bills
        template = make_template(amount=Decimal("1600.00"), name="Rent (new)")

        result = generate_month([template], existing, "2026-03", update_existing=True)

        assert result.updated == 1
        assert result.bills[0].id == existing[0].id
        assert result.bills[0].amount == Decimal("1600.00")
        assert result.bills[0].name == "Rent (new)"

    def test_update_existing_fills_only_empty_fields(self):
        bill = make_bill(template_id="tpl_rent", category_id="cat_mine", person_id=None)
        template = make_template(category_id="cat_home", person_id="p_1")

        result = generate_month([template], [bill], "2026-03", update_existing=True)

        synced = result.bills[0]
        assert synced.category_id == "cat_mine"
        assert synced.person_id == "p_1"

    def test_update_existing_leaves_edited_and_paid_bills(self):
        edited = make_bill(id="b1", template_id="tpl_rent", user_edited=True)
        paid = make_bill(
            id="b2", template_id="tpl_gym", status=BillStatus.PAID,
            paid_amount=Decimal("200.00"),
        )
        templates = [
            make_template(amount=Decimal("1.00")),
            make_template(id="tpl_gym", amount=Decimal("2.00")),
        ]
        result = generate_month(templates, [edited, paid], "2026-03", update_existing=True)

        assert result.updated == 0
        assert result.existed == 2
        assert result.bills == []

    def test_update_existing_without_changes_writes_nothing(self):
        existing = generate_month([make_template()], [], "2026-03").bills
        result = generate_month([make_template()], existing, "2026-03", update_existing=True)
        assert result.updated == 0


class TestPlanInstallments:
    """Tests for generate_plan_installments."""

    def test_creates_all_installments(self):
        result = generate_plan_installments(make_plan(), [])

        assert result.created == 4
        months = [b.month for b in result.bills]
        assert months == ["2026-01", "2026-02", "2026-03", "2026-04"]
        assert [b.installment_number for b in result.bills] == [1, 2, 3, 4]
        assert all(b.installment_total == 4 for b in result.bills)

    def test_due_day_31_clamps_each_month(self):
        result = generate_plan_installments(make_plan(), [])
        assert [b.due_date for b in result.bills] == [
            date(2026, 1, 31),
            date(2026, 2, 28),
            date(2026, 3, 31),
            date(2026, 4, 30),
        ]

    def test_only_missing_numbers_are_created(self):
        first = generate_plan_installments(make_plan(), [])
        kept = [b for b in first.bills if b.installment_number != 3]

        result = generate_plan_installments(make_plan(), kept)

        assert result.created == 1
        assert result.existed == 3
        assert result.bills[0].installment_number == 3

    def test_crosses_year_boundary(self):
        result = generate_plan_installments(make_plan(start_month="2025-11"), [])
        assert [b.month for b in result.bills] == [
            "2025-11", "2025-12", "2026-01", "2026-02",
        ]


class TestRestamp:
    """Tests for pushing plan edits onto future bills."""

    def test_only_future_open_bills_change(self):
        bills = generate_plan_installments(make_plan(), [], sequential_ids()).bills
        bills[2] = bills[2].model_copy(update={
            "status": BillStatus.PAID,
            "paid_amount": Decimal("250.00"),
        })
        edited = make_plan(amount=Decimal("300.00"), due_day=15,
                           default_pay_type=PaymentMethod.CARD)

        changed = restamp_future_plan_bills(edited, bills, today=date(2026, 2, 20))

        # January is past, March is paid
        assert [b.month for b in changed] == ["2026-02", "2026-04"]
        assert all(b.amount == Decimal("300.00") for b in changed)
        assert changed[0].due_date == date(2026, 2, 15)
        assert changed[0].default_pay_type == PaymentMethod.CARD

    def test_unchanged_plan_restamps_nothing(self):
        bills = generate_plan_installments(make_plan(), []).bills
        assert restamp_future_plan_bills(make_plan(), bills, today=date(2026, 1, 1)) == []
