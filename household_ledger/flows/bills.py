"""
Bill Flow

Reads bills, templates and plans from the store, runs them through the
engine and writes the results back.

Flow of a payment:
1. Load → fetch the bill (NotFoundError if it is gone)
2. Validate → two-stage validation, nothing written on failure
3. Confirm → overpayments need confirm_overpayment=True
4. Write → transaction first, then the bill
5. Audit

DESIGN DECISION: A payment touches two records (transaction and bill) and
the store has no cross-record transaction. The transaction is written
first: if the bill write then fails, the bill still shows as unpaid and
the household can retry; the opposite order would show a paid bill with
no money leaving any account.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.config import LedgerSettings, get_settings
from household_ledger.engine import (
    ConfirmationRequiredError,
    LedgerValidationError,
    apply_payment,
    build_month_view,
    build_payment_transaction,
    generate_month,
    generate_plan_installments,
    repair,
    repair_record,
    restamp_future_plan_bills,
    skip_bill,
    undo_payment,
    unskip_bill,
)
from household_ledger.engine.bill_state import PAYABLE
from household_ledger.models.audit import AuditEvent, AuditEventBuilder
from household_ledger.models.bill import (
    Bill,
    BillPayment,
    BillPlan,
    BillTemplate,
    CardHolder,
    GenerationResult,
    PaymentMethod,
)
from household_ledger.models.invoice import Transaction
from household_ledger.models.views import BillMonthView, BillViewState
from household_ledger.services.storage import EntityType, NotFoundError, RecordStore
from household_ledger.utils.dates import parse_month
from household_ledger.utils.ids import new_id
from household_ledger.utils.money import from_cents, to_cents, to_decimal
from household_ledger.validation import PaymentValidator


logger = structlog.get_logger(__name__)


class BillFlow:
    """
    Orchestrates everything on the bills screen.

    Generation is idempotent and payments are validated before anything is
    written; see the module docstring for the write order.
    """

    def __init__(
        self,
        store: RecordStore,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[PaymentValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._validator = validator or PaymentValidator()
        self._settings = settings or get_settings().ledger

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def _get_bill(self, bill_id: str) -> Optional[Bill]:
        """Load one bill by id, repaired the same way load_month repairs."""
        record = await self._store.get(EntityType.BILLS, bill_id)
        if record is None:
            return None
        fixed, changed = repair_record(record)
        if changed:
            await self._write_repaired(fixed)
            await self._audit(
                AuditEventBuilder.bills_repaired(str(fixed.get("month")), [bill_id])
            )
        return Bill.from_record(fixed)

    async def _write_repaired(self, record: dict) -> None:
        try:
            await self._store.put(EntityType.BILLS, record)
        except Exception as e:
            # Log failure but don't raise
            logger.warning(
                "bill_repair_write_failed",
                bill_id=record.get("id"),
                error=str(e),
            )
            await self._audit(
                AuditEventBuilder.repair_write_failed(record.get("id"), str(e))
            )

    async def _missing(self, bill_id: str, operation: str) -> None:
        logger.warning("bill_not_found", bill_id=bill_id, operation=operation)
        await self._audit(AuditEventBuilder.not_found("bill", bill_id, operation))

    # =========================================================================
    # READING
    # =========================================================================

    async def load_month(self, month: str) -> list[Bill]:
        """
        All bills of a month, repaired.

        Repaired records are written back best-effort: a failed write is
        logged and the repaired version is still returned.
        """
        parse_month(month)
        records = await self._store.list_by_index(EntityType.BILLS, "by_month", month)
        report = repair(records)

        if report.count:
            repaired = set(report.repaired)
            for record in report.bills:
                if record.get("id") in repaired:
                    await self._write_repaired(record)
            await self._audit(AuditEventBuilder.bills_repaired(month, report.repaired))

        return [Bill.from_record(r) for r in report.bills]

    async def month_view(self, state: BillViewState) -> BillMonthView:
        """Bills of the state's month, filtered and sorted, with totals."""
        return build_month_view(await self.load_month(state.month), state)

    # =========================================================================
    # GENERATION
    # =========================================================================

    async def save_template(self, template: BillTemplate) -> BillTemplate:
        await self._store.put(EntityType.BILL_TEMPLATES, template.to_record())
        return template

    async def generate_month(
        self,
        month: str,
        update_existing: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> GenerationResult:
        """Create this month's bills from the active templates."""
        correlation_id = correlation_id or create_correlation_id()
        templates = [
            BillTemplate.from_record(r)
            for r in await self._store.list(EntityType.BILL_TEMPLATES)
        ]
        existing = await self.load_month(month)

        result = generate_month(templates, existing, month, update_existing)
        for bill in result.bills:
            await self._store.put(EntityType.BILLS, bill.to_record())

        logger.info(
            "bills_generated",
            month=month,
            created=result.created,
            existed=result.existed,
            updated=result.updated,
        )
        await self._audit(AuditEventBuilder.bills_generated(
            month=month,
            created=result.created,
            existed=result.existed,
            updated=result.updated,
            correlation_id=correlation_id,
        ))
        return result

    async def generate_plan_installments(
        self,
        plan_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> GenerationResult:
        """
        Create the missing installment bills of a plan.

        Raises:
            NotFoundError: If the plan does not exist
        """
        record = await self._store.get(EntityType.BILL_PLANS, plan_id)
        if record is None:
            raise NotFoundError(f"Bill plan not found: {plan_id}")
        plan = BillPlan.from_record(record)

        existing = [
            Bill.from_record(r)
            for r in await self._store.list_by_index(EntityType.BILLS, "by_plan", plan_id)
        ]
        result = generate_plan_installments(plan, existing)
        for bill in result.bills:
            await self._store.put(EntityType.BILLS, bill.to_record())

        await self._audit(AuditEventBuilder.plan_installments_generated(
            plan_id=plan_id,
            created=result.created,
            existed=result.existed,
            correlation_id=correlation_id,
        ))
        return result

    async def save_plan(
        self,
        plan: BillPlan,
        update_future: bool = False,
        today: Optional[date] = None,
    ) -> list[Bill]:
        """
        Save a plan; with update_future, push it onto its open bills.

        Returns the bills that were re-stamped.
        """
        await self._store.put(EntityType.BILL_PLANS, plan.to_record())
        if not update_future:
            return []

        existing = [
            Bill.from_record(r)
            for r in await self._store.list_by_index(EntityType.BILLS, "by_plan", plan.id)
        ]
        changed = restamp_future_plan_bills(plan, existing, today)
        for bill in changed:
            await self._store.put(EntityType.BILLS, bill.to_record())

        if changed:
            await self._audit(AuditEventBuilder.plan_bills_restamped(
                plan_id=plan.id,
                from_month=min(b.month for b in changed),
                count=len(changed),
            ))
        return changed

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    async def pay(
        self,
        bill_id: str,
        amount: Decimal,
        method: PaymentMethod,
        via_id: Optional[str],
        pay_date: Optional[date] = None,
        invoice_month: Optional[str] = None,
        card_holder: Optional[CardHolder] = None,
        via_label: Optional[str] = None,
        confirm_overpayment: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Bill, Transaction]:
        """
        Record a payment on a bill and create its transaction.

        Raises:
            NotFoundError: If the bill does not exist
            InvalidTransitionError: If the bill is paid or skipped
            LedgerValidationError: Non-positive amount or missing account/card
            ConfirmationRequiredError: Overpayment without confirm_overpayment
        """
        correlation_id = correlation_id or create_correlation_id()
        bill = await self._get_bill(bill_id)
        if bill is None:
            raise NotFoundError(f"Bill not found: {bill_id}")

        result = self._validator.validate(
            amount=amount,
            method=method,
            source_id=via_id,
            invoice_month=invoice_month,
            remaining=bill.remaining if bill.status in PAYABLE else None,
        )
        if not result.is_valid:
            await self._audit(AuditEventBuilder.validation_failed(
                "bill", bill_id, result.as_dicts(), correlation_id
            ))
            raise LedgerValidationError(
                self._validator.get_user_friendly_summary(result), result
            )
        if result.requires_confirmation and not confirm_overpayment:
            raise ConfirmationRequiredError(
                self._validator.get_user_friendly_summary(result),
                remaining=bill.remaining,
                result=result,
            )

        amount = to_decimal(amount)
        pay_date = pay_date or date.today()
        card_currency = None
        if method == PaymentMethod.CARD:
            card = await self._store.get(EntityType.CARDS, via_id)
            card_currency = card.get("currency") if card else None
            if via_label is None:
                name = card.get("name") if card else None
                via_label = f"{name or 'Cartão'} ({invoice_month})"

        tx_id = new_id("tx")
        payment = BillPayment(
            id=new_id("bpay"),
            date=pay_date,
            amount=amount,
            method=method,
            via_id=via_id,
            via_label=via_label,
            tx_id=tx_id,
            invoice_month=invoice_month if method == PaymentMethod.CARD else None,
            card_holder=(card_holder or CardHolder.MAIN) if method == PaymentMethod.CARD else None,
        )
        # Raises InvalidTransitionError before anything is written
        updated = apply_payment(bill, payment)
        tx = build_payment_transaction(
            bill,
            tx_id=tx_id,
            amount=amount,
            pay_date=pay_date,
            method=method,
            via_id=via_id,
            invoice_month=invoice_month,
            card_holder=card_holder,
            usd_rate=self._settings.usd_rate,
            card_currency=card_currency,
        )

        await self._store.put(EntityType.TRANSACTIONS, tx.to_record())
        await self._store.put(EntityType.BILLS, updated.to_record())

        excess_c = to_cents(amount) - to_cents(bill.remaining)
        await self._audit(AuditEventBuilder.bill_paid(
            bill_id=bill_id,
            amount=str(amount),
            status=updated.status.value,
            tx_id=tx_id,
            excess=str(from_cents(excess_c)) if excess_c > 0 else None,
            correlation_id=correlation_id,
        ))
        return updated, tx

    async def undo(
        self,
        bill_id: str,
        payment_index: int = -1,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Bill]:
        """
        Reverse one payment (the latest by default) and delete its transaction.

        Returns None when the bill no longer exists.
        """
        bill = await self._get_bill(bill_id)
        if bill is None:
            await self._missing(bill_id, "undo")
            return None

        updated, removed = undo_payment(bill, payment_index)
        if removed.tx_id:
            await self._store.remove(EntityType.TRANSACTIONS, removed.tx_id)
        await self._store.put(EntityType.BILLS, updated.to_record())

        await self._audit(AuditEventBuilder.bill_payment_undone(
            bill_id=bill_id,
            amount=str(removed.amount),
            status=updated.status.value,
            tx_id=removed.tx_id,
            correlation_id=correlation_id,
        ))
        return updated

    async def skip(self, bill_id: str) -> Optional[Bill]:
        """Mark an open bill as skipped. None when the bill no longer exists."""
        bill = await self._get_bill(bill_id)
        if bill is None:
            await self._missing(bill_id, "skip")
            return None

        updated = skip_bill(bill)
        await self._store.put(EntityType.BILLS, updated.to_record())
        await self._audit(AuditEventBuilder.bill_status_changed(bill_id, skipped=True))
        return updated

    async def unskip(self, bill_id: str) -> Optional[Bill]:
        bill = await self._get_bill(bill_id)
        if bill is None:
            await self._missing(bill_id, "unskip")
            return None

        updated = unskip_bill(bill)
        await self._store.put(EntityType.BILLS, updated.to_record())
        await self._audit(AuditEventBuilder.bill_status_changed(bill_id, skipped=False))
        return updated

    async def mark_all_paid(
        self,
        month: str,
        method: PaymentMethod,
        via_id: str,
        pay_date: Optional[date] = None,
        invoice_month: Optional[str] = None,
        card_holder: Optional[CardHolder] = None,
    ) -> list[Bill]:
        """
        Pay what is left on every open/partial bill of the month.

        A sequence of independent payments: if one fails the earlier ones
        stay recorded, and running it again only picks up what is still open.
        """
        correlation_id = create_correlation_id()
        paid = []
        for bill in await self.load_month(month):
            if bill.status not in PAYABLE or to_cents(bill.remaining) <= 0:
                continue
            updated, _ = await self.pay(
                bill.id,
                bill.remaining,
                method,
                via_id,
                pay_date=pay_date,
                invoice_month=invoice_month,
                card_holder=card_holder,
                correlation_id=correlation_id,
            )
            paid.append(updated)
        logger.info("bills_marked_paid", month=month, count=len(paid))
        return paid
