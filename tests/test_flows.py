"""
Flow tests against the in-memory store.

Each test drives a flow the way the screens do and then looks at what
ended up in the store.
"""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.audit import AuditLogger
from household_ledger.engine import (
    ConfirmationRequiredError,
    InvalidTransitionError,
    LedgerValidationError,
)
from household_ledger.flows import BalanceFlow, BillFlow, InvoiceFlow, LoanFlow
from household_ledger.models import (
    Bill,
    BillStatus,
    BillViewState,
    CardHolder,
    InstallmentStatus,
    InvoiceStatus,
    LoanInstallment,
    PaymentMethod,
    Transaction,
)
from household_ledger.orchestrator import create_app_components
from household_ledger.services.storage import (
    EntityType,
    InMemoryRecordStore,
    NotFoundError,
    StorageError,
)

from conftest import make_bill, make_loan, make_plan, make_template


async def audit_types(store):
    return [r["event_type"] for r in await store.list(EntityType.AUDIT_EVENTS)]


@pytest.fixture
def audit(store):
    return AuditLogger(store)


@pytest.fixture
def bills(store, audit, ledger_settings):
    return BillFlow(store, audit, settings=ledger_settings)


@pytest.fixture
def loans(store, audit, ledger_settings):
    return LoanFlow(store, audit, settings=ledger_settings)


@pytest.fixture
def invoices(store, audit):
    return InvoiceFlow(store, audit)


@pytest.fixture
def balances(store, audit):
    return BalanceFlow(store, audit)


async def put_bill(store, **overrides):
    bill = make_bill(**overrides)
    await store.put(EntityType.BILLS, bill.to_record())
    return bill


class TestBillFlow:
    """Tests for BillFlow."""

    async def test_generate_month_twice(self, store, bills):
        """A second run creates nothing and leaves the store alone."""
        await bills.save_template(make_template())
        await bills.save_template(make_template(id="tpl_gym", name="Gym", due_day=31))

        first = await bills.generate_month("2026-02")
        second = await bills.generate_month("2026-02")

        assert first.created == 2
        assert second.created == 0
        assert second.existed == 2
        assert store.count(EntityType.BILLS) == 2
        stored = await bills.load_month("2026-02")
        assert sorted(b.due_date.day for b in stored) == [10, 28]

    async def test_pay_then_undo(self, store, bills):
        await put_bill(store)

        paid, tx = await bills.pay(
            "bill_1", Decimal("200.00"), PaymentMethod.ACCOUNT, "acc_1",
            pay_date=date(2026, 3, 5),
        )
        assert paid.status == BillStatus.PAID
        assert paid.paid_tx_id == tx.id
        assert await store.get(EntityType.TRANSACTIONS, tx.id) is not None

        undone = await bills.undo("bill_1")
        assert undone.status == BillStatus.OPEN
        assert undone.payments == []
        assert store.count(EntityType.TRANSACTIONS) == 0

        stored = Bill.from_record(await store.get(EntityType.BILLS, "bill_1"))
        assert stored.status == BillStatus.OPEN
        assert stored.paid_amount == Decimal("0.00")
        assert "bill_paid" in (await audit_types(store))
        assert "bill_payment_undone" in (await audit_types(store))

    async def test_overpayment_needs_confirmation(self, store, bills):
        await put_bill(store)

        with pytest.raises(ConfirmationRequiredError) as exc_info:
            await bills.pay("bill_1", Decimal("250.00"), PaymentMethod.ACCOUNT, "acc_1")
        assert exc_info.value.remaining == Decimal("200.00")
        # nothing written
        assert store.count(EntityType.TRANSACTIONS) == 0
        assert (await store.get(EntityType.BILLS, "bill_1"))["status"] == "open"

        paid, tx = await bills.pay(
            "bill_1", Decimal("250.00"), PaymentMethod.ACCOUNT, "acc_1",
            confirm_overpayment=True,
        )
        assert paid.status == BillStatus.PAID
        assert paid.paid_amount == Decimal("200.00")
        assert tx.value == Decimal("250.00")

        events = [
            r for r in await store.list(EntityType.AUDIT_EVENTS)
            if r["event_type"] == "bill_paid"
        ]
        assert events[0]["details"]["excess"] == "50.00"

    async def test_invalid_payment_rejected(self, store, bills):
        await put_bill(store)
        with pytest.raises(LedgerValidationError) as exc_info:
            await bills.pay("bill_1", Decimal("0"), PaymentMethod.CARD, None)
        fields = {i.field for i in exc_info.value.issues}
        assert {"amount", "card_id", "invoice_month"} <= fields
        assert "validation_failed" in (await audit_types(store))

    async def test_pay_missing_bill(self, bills):
        with pytest.raises(NotFoundError):
            await bills.pay("nope", Decimal("1.00"), PaymentMethod.ACCOUNT, "acc_1")

    async def test_pay_skipped_bill(self, store, bills):
        await put_bill(store, status=BillStatus.SKIPPED)
        with pytest.raises(InvalidTransitionError):
            await bills.pay("bill_1", Decimal("1.00"), PaymentMethod.ACCOUNT, "acc_1")
        assert store.count(EntityType.TRANSACTIONS) == 0

    async def test_card_payment_uses_card(self, store, bills):
        await store.put(EntityType.CARDS, {"id": "card_1", "name": "Visa", "currency": "BRL"})
        await put_bill(store, currency="USD", amount=Decimal("10.00"))

        paid, tx = await bills.pay(
            "bill_1", Decimal("10.00"), PaymentMethod.CARD, "card_1",
            invoice_month="2026-04", card_holder=CardHolder.ADDITIONAL,
        )
        assert paid.paid_via_label == "Visa (2026-04)"
        assert paid.payments[0].invoice_month == "2026-04"
        assert tx.currency == "BRL"
        assert tx.invoice_month == "2026-04"
        assert tx.card_holder == CardHolder.ADDITIONAL

    async def test_usd_account_payment_uses_rate(self, store, bills):
        await put_bill(store, currency="USD", amount=Decimal("10.00"))
        _, tx = await bills.pay("bill_1", Decimal("10.00"), PaymentMethod.ACCOUNT, "acc_1")
        assert tx.value_brl == Decimal("50.00")

    async def test_missing_bill_operations_are_no_ops(self, store, bills):
        assert await bills.undo("gone") is None
        assert await bills.skip("gone") is None
        assert await bills.unskip("gone") is None
        assert (await audit_types(store)).count("not_found") == 3

    async def test_skip_and_unskip(self, store, bills):
        await put_bill(store)
        assert (await bills.skip("bill_1")).status == BillStatus.SKIPPED
        assert (await store.get(EntityType.BILLS, "bill_1"))["status"] == "skipped"
        assert (await bills.unskip("bill_1")).status == BillStatus.OPEN

    async def test_mark_all_paid(self, store, bills):
        await put_bill(store, id="b1")
        await put_bill(store, id="b2", amount=Decimal("80.00"),
                       status=BillStatus.PARTIAL, paid_amount=Decimal("30.00"))
        await put_bill(store, id="b3", status=BillStatus.SKIPPED)

        paid = await bills.mark_all_paid("2026-03", PaymentMethod.ACCOUNT, "acc_1")

        assert sorted(b.id for b in paid) == ["b1", "b2"]
        assert all(b.status == BillStatus.PAID for b in paid)
        assert store.count(EntityType.TRANSACTIONS) == 2
        txs = [Transaction.from_record(r) for r in await store.list(EntityType.TRANSACTIONS)]
        assert sorted(t.value for t in txs) == [Decimal("50.00"), Decimal("200.00")]

    async def test_month_view(self, store, bills):
        await put_bill(store)
        view = await bills.month_view(BillViewState(month="2026-03"))
        assert [b.id for b in view.bills] == ["bill_1"]
        assert view.totals["BRL"].open == Decimal("200.00")

    async def test_plan_installments_and_restamp(self, store, bills):
        await bills.save_plan(make_plan())
        result = await bills.generate_plan_installments("plan_tv")
        assert result.created == 4
        again = await bills.generate_plan_installments("plan_tv")
        assert again.created == 0

        changed = await bills.save_plan(
            make_plan(amount=Decimal("275.00")), update_future=True, today=date(2026, 3, 1),
        )
        assert sorted(b.month for b in changed) == ["2026-03", "2026-04"]
        january = await bills.load_month("2026-01")
        assert january[0].amount == Decimal("250.00")

    async def test_plan_installments_missing_plan(self, bills):
        with pytest.raises(NotFoundError):
            await bills.generate_plan_installments("nope")


class FlakyBillStore(InMemoryRecordStore):
    """Bill writes fail; everything else works."""

    async def put(self, entity_type, record):
        if entity_type == EntityType.BILLS and record.get("status") == "partial":
            raise StorageError("sheet unavailable")
        return await super().put(entity_type, record)


class TestRepairOnLoad:

    async def test_repaired_bills_written_back(self, store, bills):
        await store.put(EntityType.BILLS, {
            "id": "legacy", "name": "Gas", "month": "2026-03",
            "dueDate": "2026-03-10", "amount": 50, "paid": True,
        })

        loaded = await bills.load_month("2026-03")

        assert loaded[0].status == BillStatus.PAID
        assert (await store.get(EntityType.BILLS, "legacy"))["status"] == "paid"
        assert "bills_repaired" in (await audit_types(store))

    async def test_failed_write_still_returns_repaired(self, ledger_settings):
        store = FlakyBillStore(seed={"bills": [{
            "id": "b1", "name": "Gas", "month": "2026-03",
            "dueDate": "2026-03-10", "amount": 50, "status": "open", "paidAmount": 20,
        }]})
        flow = BillFlow(store, AuditLogger(store), settings=ledger_settings)

        loaded = await flow.load_month("2026-03")

        assert loaded[0].status == BillStatus.PARTIAL
        assert (await store.get(EntityType.BILLS, "b1"))["status"] == "open"
        assert "repair_write_failed" in (await audit_types(store))

    async def test_undo_legacy_paid_bill(self, store, bills):
        """A bill paid before payments[] existed can still be reversed."""
        await store.put(EntityType.TRANSACTIONS, {"id": "tx_old", "value": 50})
        await store.put(EntityType.BILLS, {
            "id": "b1", "name": "Gas", "month": "2026-03",
            "dueDate": "2026-03-10", "amount": 50, "status": "paid",
            "paidAmount": 50, "paidAt": "2026-03-08", "paidTxId": "tx_old",
            "paidViaType": "account", "paidViaId": "acc_1",
        })

        undone = await bills.undo("b1")

        assert undone.status == BillStatus.OPEN
        assert undone.paid_amount == Decimal("0.00")
        assert undone.payments == []
        assert await store.get(EntityType.TRANSACTIONS, "tx_old") is None
        stored = await store.get(EntityType.BILLS, "b1")
        assert stored["status"] == "open"
        assert stored["paidTxId"] is None

    async def test_legacy_paid_flag_blocks_second_payment(self, store, bills):
        await store.put(EntityType.BILLS, {
            "id": "b1", "name": "Gas", "month": "2026-03",
            "dueDate": "2026-03-10", "amount": 50, "paid": True,
        })

        with pytest.raises(InvalidTransitionError):
            await bills.pay("b1", Decimal("50.00"), PaymentMethod.ACCOUNT, "acc_1")

        assert await store.list(EntityType.TRANSACTIONS) == []
        stored = await store.get(EntityType.BILLS, "b1")
        assert stored["status"] == "paid"
        assert "bills_repaired" in (await audit_types(store))

    async def test_lookup_by_id_survives_failed_repair_write(self, ledger_settings):
        store = FlakyBillStore(seed={"bills": [{
            "id": "b1", "name": "Gas", "month": "2026-03",
            "dueDate": "2026-03-10", "amount": 50, "status": "open", "paidAmount": 20,
        }]})
        flow = BillFlow(store, AuditLogger(store), settings=ledger_settings)

        with pytest.raises(InvalidTransitionError):
            await flow.skip("b1")

        assert "repair_write_failed" in (await audit_types(store))


class TestLoanFlow:
    """Tests for LoanFlow."""

    async def _loan_with_schedule(self, loans):
        await loans.save_loan(make_loan())
        await loans.generate_installments("loan_1")

    async def test_payment_allocates_and_closes(self, store, loans):
        await self._loan_with_schedule(loans)

        payment, allocation = await loans.register_payment(
            "loan_1", Decimal("1000.00"), pay_date=date(2026, 2, 1), note="  all of it "
        )
        assert payment.note == "all of it"
        assert allocation.applied == Decimal("1000.00")

        summary = await loans.get_summary("loan_1")
        assert summary.is_closed
        assert all(i.status == InstallmentStatus.PAID for i in summary.installments)
        # the stored status never changes
        assert (await store.get(EntityType.LOANS, "loan_1"))["status"] == "open"

    async def test_delete_payment_reopens(self, store, loans):
        await self._loan_with_schedule(loans)
        payment, _ = await loans.register_payment("loan_1", Decimal("400.00"))

        assert await loans.delete_payment(payment.id) is True

        summary = await loans.get_summary("loan_1")
        assert summary.saldo == Decimal("1000.00")
        assert not summary.is_closed
        assert all(i.paid_amount == Decimal("0.00") for i in summary.installments)
        assert all(i.status == InstallmentStatus.OPEN for i in summary.installments)

    async def test_delete_missing_payment(self, loans):
        assert await loans.delete_payment("gone") is False

    async def test_payment_validation(self, loans):
        await loans.save_loan(make_loan())
        with pytest.raises(LedgerValidationError):
            await loans.register_payment("loan_1", Decimal("0"))

    async def test_payment_on_missing_loan(self, loans):
        with pytest.raises(NotFoundError):
            await loans.register_payment("gone", Decimal("10.00"))

    async def test_delete_loan_keeps_orphans(self, store, loans):
        await self._loan_with_schedule(loans)
        await loans.register_payment("loan_1", Decimal("100.00"))

        result = await loans.delete_loan("loan_1")

        assert result.payments_deleted == 1
        assert result.installments_orphaned == 4
        assert result.installments_deleted == 0
        assert store.count(EntityType.LOANS) == 0
        assert store.count(EntityType.LOAN_PAYMENTS) == 0
        assert store.count(EntityType.LOAN_INSTALLMENTS) == 4

    async def test_delete_loan_cascade(self, store, audit, ledger_settings):
        settings = ledger_settings.model_copy(update={"cascade_loan_installments": True})
        loans = LoanFlow(store, audit, settings=settings)
        await self._loan_with_schedule(loans)

        result = await loans.delete_loan("loan_1")

        assert result.installments_deleted == 4
        assert store.count(EntityType.LOAN_INSTALLMENTS) == 0

    async def test_delete_missing_loan(self, loans):
        assert await loans.delete_loan("gone") is None

    async def test_skip_installment(self, store, loans):
        await self._loan_with_schedule(loans)
        skipped = await loans.skip_installment("li_loan_1_2")
        assert skipped.status == InstallmentStatus.SKIPPED

        # a skipped installment is passed over by allocation
        _, allocation = await loans.register_payment("loan_1", Decimal("500.00"))
        assert [i.installment_no for i in allocation.installments] == [1, 3]

        reopened = await loans.unskip_installment("li_loan_1_2")
        assert reopened.status == InstallmentStatus.OPEN
        assert await loans.skip_installment("gone") is None

    async def test_overview(self, loans):
        await self._loan_with_schedule(loans)
        overview = await loans.overview(today=date(2026, 1, 1))
        assert overview.total_i_owe == Decimal("1000.00")
        assert [u.installment.installment_no for u in overview.upcoming] == [1]

    async def test_regenerate_installments_is_idempotent(self, store, loans):
        await self._loan_with_schedule(loans)
        result = await loans.generate_installments("loan_1")
        assert result.created == 0
        assert store.count(EntityType.LOAN_INSTALLMENTS) == 4

    async def test_installments_for_missing_loan(self, loans):
        with pytest.raises(NotFoundError):
            await loans.generate_installments("gone")


class TestInvoiceFlow:
    """Tests for InvoiceFlow."""

    async def _charges(self, store):
        for tx_id, value, holder in [
            ("t1", "120.00", "main"),
            ("t2", "80.00", "additional"),
        ]:
            await store.put(EntityType.TRANSACTIONS, {
                "id": tx_id, "type": "expense", "date": "2026-03-02", "value": float(value),
                "cardId": "card_1", "invoiceMonth": "2026-03", "cardHolder": holder,
            })
        # another invoice, must survive deletion
        await store.put(EntityType.TRANSACTIONS, {
            "id": "t3", "type": "expense", "date": "2026-04-02", "value": 10.0,
            "cardId": "card_1", "invoiceMonth": "2026-04",
        })

    async def test_register_payment_and_reconcile(self, store, invoices):
        await self._charges(store)

        payment = await invoices.register_payment(
            "card_1", "2026-03", CardHolder.MAIN, Decimal("120.00"), account_id="acc_1",
        )
        summary = await invoices.get_invoice("card_1", "2026-03")

        assert summary.total == Decimal("200.00")
        assert summary.paid == Decimal("120.00")
        assert summary.status == InvoiceStatus.PARTIAL
        assert summary.holder(CardHolder.ADDITIONAL).remaining == Decimal("80.00")
        tx = await store.get(EntityType.TRANSACTIONS, payment.tx_id)
        assert tx["kind"] == "INVOICE_PAYMENT"
        assert tx["value"] == -120.0

    async def test_delete_payment(self, store, invoices):
        await self._charges(store)
        payment = await invoices.register_payment(
            "card_1", "2026-03", CardHolder.MAIN, Decimal("50.00"),
        )

        assert await invoices.delete_payment(payment.id) is True
        assert await store.get(EntityType.TRANSACTIONS, payment.tx_id) is None
        assert (await invoices.get_invoice("card_1", "2026-03")).paid == Decimal("0.00")
        assert await invoices.delete_payment(payment.id) is False

    async def test_delete_invoice_cascade(self, store, invoices):
        await self._charges(store)
        await invoices.register_payment("card_1", "2026-03", CardHolder.MAIN, Decimal("10.00"))
        await invoices.register_payment(
            "card_1", "2026-03", CardHolder.ADDITIONAL, Decimal("20.00"),
        )

        result = await invoices.delete_invoice("card_1", "2026-03")

        assert result.payments_deleted == 2
        assert result.payment_transactions_deleted == 2
        assert result.transactions_deleted == 2
        assert store.count(EntityType.INVOICE_PAYMENTS) == 0
        assert [r["id"] for r in await store.list(EntityType.TRANSACTIONS)] == ["t3"]

    async def test_invalid_amount(self, invoices):
        with pytest.raises(LedgerValidationError):
            await invoices.register_payment("card_1", "2026-03", CardHolder.MAIN, Decimal("-1"))


class TestBalanceFlow:
    """Tests for BalanceFlow."""

    async def test_close_pay_and_statement(self, store, balances):
        balance = await balances.close_month("p_1", "2026-03", Decimal("150.00"))
        assert balance.balance_cents == 15000

        balance = await balances.register_payment(
            "p_1", "2026-03", Decimal("100.00"), pay_date=date(2026, 4, 2), account_id="acc_1",
        )
        assert balance.balance_cents == 5000
        revenue = [
            r for r in await store.list(EntityType.TRANSACTIONS) if r["type"] == "revenue"
        ]
        assert revenue[0]["value"] == 100.0

        statement = await balances.statement("p_1", "2026-03")
        assert statement.closed is True
        assert statement.end_cents == 5000
        assert (await balances.get_balance("p_1")).balance_cents == 5000

    async def test_month_closes_once(self, balances):
        await balances.close_month("p_1", "2026-03", Decimal("10.00"))
        with pytest.raises(InvalidTransitionError):
            await balances.close_month("p_1", "2026-03", Decimal("10.00"))

    async def test_open_month_estimates_from_cards(self, store, balances):
        await store.put(EntityType.TRANSACTIONS, {
            "id": "t1", "type": "expense", "date": "2026-03-02", "value": 42.5,
            "cardId": "card_1", "invoiceMonth": "2026-03", "cardHolder": "additional",
        })
        statement = await balances.statement("p_1", "2026-03", card_ids=["card_1"])
        assert statement.closed is False
        assert statement.charges_cents == 4250

    async def test_unknown_person_has_zero_balance(self, balances):
        assert (await balances.get_balance("nobody")).balance_cents == 0


class TestOrchestrator:

    async def test_components_share_one_store(self):
        store = InMemoryRecordStore()
        components = create_app_components(store=store)

        await components.bills.save_template(make_template())
        await components.bills.generate_month("2026-03")

        assert components.store is store
        assert store.count(EntityType.BILLS) == 1
        assert store.count(EntityType.AUDIT_EVENTS) >= 1

    async def test_audit_can_stay_local(self):
        store = InMemoryRecordStore()
        components = create_app_components(store=store, persist_audit=False)
        await components.bills.generate_month("2026-03")
        assert store.count(EntityType.AUDIT_EVENTS) == 0


def test_installment_records_round_trip():
    """Allocation maps survive the store's JSON form."""
    inst = LoanInstallment(
        id="li_1", loan_id="loan_1", installment_no=1, installment_total=1,
        due_date=date(2026, 1, 10), amount=Decimal("10.00"),
        allocations={"lp_1": Decimal("4.00")},
    )
    record = inst.to_record()
    assert record["allocations"] == {"lp_1": 4.0}
    assert LoanInstallment.from_record(record).allocations == {"lp_1": Decimal("4.00")}
