"""Tests for invoice reconciliation."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.engine import build_invoice_payment, invoice_status, reconcile
from household_ledger.models import (
    INVOICE_PAYMENT_KIND,
    CardHolder,
    InvoicePayment,
    InvoiceStatus,
    Transaction,
    TransactionType,
)


def purchase(tx_id, value, holder=CardHolder.MAIN, card_id="card_1", month="2026-03", **kw):
    return Transaction(
        id=tx_id,
        date=date(2026, 3, 2),
        value=Decimal(value),
        card_id=card_id,
        invoice_month=month,
        card_holder=holder,
        **kw,
    )


def invoice_payment(payment_id, amount, holder=CardHolder.MAIN):
    payment, _ = build_invoice_payment(
        payment_id=payment_id,
        tx_id=f"tx_{payment_id}",
        card_id="card_1",
        month="2026-03",
        holder=holder,
        amount=Decimal(amount),
        pay_date=date(2026, 4, 5),
    )
    return payment


class TestInvoiceStatus:

    @pytest.mark.parametrize(
        "total,paid,expected",
        [
            (10000, 10000, InvoiceStatus.PAID),
            (10000, 9999, InvoiceStatus.PAID),
            (10000, 4000, InvoiceStatus.PARTIAL),
            (10000, 0, InvoiceStatus.OPEN),
            (0, 0, InvoiceStatus.OPEN),
        ],
    )
    def test_status(self, total, paid, expected):
        assert invoice_status(total, paid) == expected


class TestReconcile:
    """Tests for reconcile."""

    def test_totals_per_holder(self):
        transactions = [
            purchase("t1", "100.00"),
            purchase("t2", "50.00", CardHolder.ADDITIONAL),
            purchase("t3", "25.00", CardHolder.ADDITIONAL),
        ]
        payments = [invoice_payment("ip_1", "100.00")]

        summary = reconcile("card_1", "2026-03", transactions, payments)

        assert summary.total == Decimal("175.00")
        assert summary.paid == Decimal("100.00")
        assert summary.remaining == Decimal("75.00")
        assert summary.status == InvoiceStatus.PARTIAL
        assert summary.holder(CardHolder.MAIN).remaining == Decimal("0.00")
        assert summary.holder(CardHolder.ADDITIONAL).total == Decimal("75.00")
        assert summary.holder(CardHolder.ADDITIONAL).remaining == Decimal("75.00")

    def test_fully_paid(self):
        transactions = [purchase("t1", "80.00"), purchase("t2", "20.00", CardHolder.ADDITIONAL)]
        payments = [
            invoice_payment("ip_1", "80.00"),
            invoice_payment("ip_2", "20.00", CardHolder.ADDITIONAL),
        ]
        summary = reconcile("card_1", "2026-03", transactions, payments)
        assert summary.status == InvoiceStatus.PAID
        assert summary.remaining == Decimal("0.00")

    def test_invoice_payment_transactions_are_not_charges(self):
        """The negative transaction of a payment never lowers the total."""
        _, payment_tx = build_invoice_payment(
            payment_id="ip_1", tx_id="tx_ip_1", card_id="card_1", month="2026-03",
            holder=CardHolder.MAIN, amount=Decimal("30.00"), pay_date=date(2026, 4, 5),
        )
        summary = reconcile("card_1", "2026-03", [purchase("t1", "100.00"), payment_tx], [])
        assert summary.total == Decimal("100.00")
        assert summary.expenses[0].id == "t1"

    def test_revenue_is_ignored(self):
        refund = purchase("t2", "40.00", type=TransactionType.REVENUE.value)
        summary = reconcile("card_1", "2026-03", [purchase("t1", "100.00"), refund], [])
        assert summary.total == Decimal("100.00")

    def test_other_cards_and_months_are_ignored(self):
        transactions = [
            purchase("t1", "100.00"),
            purchase("t2", "999.00", card_id="card_2"),
            purchase("t3", "999.00", month="2026-04"),
        ]
        assert reconcile("card_1", "2026-03", transactions, []).total == Decimal("100.00")

    def test_value_brl_is_used_when_set(self):
        usd = purchase("t1", "10.00", currency="USD", value_brl=Decimal("52.00"))
        assert reconcile("card_1", "2026-03", [usd], []).total == Decimal("52.00")

    def test_overpaid_holder_floors_at_zero(self):
        summary = reconcile(
            "card_1", "2026-03",
            [purchase("t1", "50.00")],
            [invoice_payment("ip_1", "70.00")],
        )
        assert summary.holder(CardHolder.MAIN).remaining == Decimal("0.00")
        assert summary.remaining == Decimal("0.00")
        assert summary.status == InvoiceStatus.PAID

    def test_empty_invoice_is_open(self):
        summary = reconcile("card_1", "2026-03", [], [])
        assert summary.status == InvoiceStatus.OPEN
        assert summary.invoice_key == "card_1__2026-03"


class TestInvoicePaymentRecord:

    def test_payment_and_transaction_share_tx_id(self):
        payment, tx = build_invoice_payment(
            payment_id="ip_1", tx_id="tx_1", card_id="card_1", month="2026-03",
            holder=CardHolder.ADDITIONAL, amount=Decimal("45.50"),
            pay_date=date(2026, 4, 5), account_id="acc_1",
        )
        assert isinstance(payment, InvoicePayment)
        assert payment.tx_id == tx.id == "tx_1"
        assert payment.invoice_key == "card_1__2026-03"
        assert tx.value == Decimal("-45.50")
        assert tx.kind == INVOICE_PAYMENT_KIND
        assert tx.type == TransactionType.INVOICE_PAYMENT.value
        assert tx.card_holder == CardHolder.ADDITIONAL
        assert tx.account_id == "acc_1"
