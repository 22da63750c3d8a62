"""Shared fixtures: an in-memory store and record builders."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.config import LedgerSettings
from household_ledger.models import (
    Bill,
    BillPlan,
    BillTemplate,
    Loan,
    LoanInstallment,
    LoanPayment,
    LoanRole,
)
from household_ledger.services.storage import InMemoryRecordStore


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def ledger_settings():
    return LedgerSettings(usd_rate=Decimal("5.00"), cascade_loan_installments=False)


def make_template(**overrides) -> BillTemplate:
    data = dict(
        id="tpl_rent",
        name="Rent",
        amount=Decimal("1500.00"),
        currency="BRL",
        due_day=10,
        category_id="cat_home",
    )
    data.update(overrides)
    return BillTemplate(**data)


def make_plan(**overrides) -> BillPlan:
    data = dict(
        id="plan_tv",
        name="TV",
        amount=Decimal("250.00"),
        total_installments=4,
        start_month="2026-01",
        due_day=31,
    )
    data.update(overrides)
    return BillPlan(**data)


def make_bill(**overrides) -> Bill:
    data = dict(
        id="bill_1",
        name="Electricity",
        template_id="tpl_power",
        month="2026-03",
        due_date=date(2026, 3, 15),
        amount=Decimal("200.00"),
    )
    data.update(overrides)
    return Bill(**data)


def make_loan(**overrides) -> Loan:
    data = dict(
        id="loan_1",
        title="Car repair",
        role=LoanRole.I_OWE,
        principal=Decimal("1000.00"),
        start_date=date(2026, 1, 5),
        total_installments=4,
        due_day=10,
    )
    data.update(overrides)
    return Loan(**data)


def make_installment(number: int, amount="250.00", **overrides) -> LoanInstallment:
    data = dict(
        id=f"li_loan_1_{number}",
        loan_id="loan_1",
        installment_no=number,
        installment_total=4,
        due_date=date(2026, number, 10),
        amount=Decimal(amount),
    )
    data.update(overrides)
    return LoanInstallment(**data)


def make_loan_payment(amount, payment_id="lp_1", **overrides) -> LoanPayment:
    data = dict(
        id=payment_id,
        loan_id="loan_1",
        date=date(2026, 2, 1),
        amount=Decimal(str(amount)),
    )
    data.update(overrides)
    return LoanPayment(**data)
