"""
Loan Flow

Loans, their installment schedule and their payments.

A payment is written first and then allocated onto the installments; a
deleted payment is first rolled back out of the installments and then
removed. Either way a failure half-way leaves the payment visible, so the
household can see it and retry.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.config import LedgerSettings, get_settings
from household_ledger.engine import (
    LedgerValidationError,
    allocate,
    build_overview,
    deallocate,
    generate_loan_installments,
    skip_installment,
    summarize_loan,
    unskip_installment,
)
from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from household_ledger.models.loan import (
    AllocationResult,
    InstallmentGenerationResult,
    Loan,
    LoanDeletionResult,
    LoanInstallment,
    LoanPayment,
    LoansOverview,
    LoanSummary,
)
from household_ledger.models.views import LoanViewState
from household_ledger.services.storage import EntityType, NotFoundError, RecordStore
from household_ledger.utils.ids import new_id
from household_ledger.utils.money import to_decimal
from household_ledger.validation import PaymentValidator


logger = structlog.get_logger(__name__)


class LoanFlow:
    """Orchestrates everything on the loans screen."""

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

    async def _missing(self, entity_type: str, entity_id: str, operation: str) -> None:
        logger.warning(f"{entity_type}_not_found", entity_id=entity_id, operation=operation)
        await self._audit(AuditEventBuilder.not_found(entity_type, entity_id, operation))

    async def _get_loan(self, loan_id: str) -> Optional[Loan]:
        record = await self._store.get(EntityType.LOANS, loan_id)
        return Loan.from_record(record) if record is not None else None

    async def _installments(self, loan_id: str) -> list[LoanInstallment]:
        return [
            LoanInstallment.from_record(r)
            for r in await self._store.list_by_index(
                EntityType.LOAN_INSTALLMENTS, "by_loanId", loan_id
            )
        ]

    async def _payments(self, loan_id: str) -> list[LoanPayment]:
        return [
            LoanPayment.from_record(r)
            for r in await self._store.list_by_index(
                EntityType.LOAN_PAYMENTS, "by_loanId", loan_id
            )
        ]

    # =========================================================================
    # LOANS
    # =========================================================================

    async def save_loan(self, loan: Loan) -> Loan:
        await self._store.put(EntityType.LOANS, loan.to_record())
        await self._audit(AuditEventBuilder.loan_event(
            AuditEventType.LOAN_SAVED,
            loan.id,
            f"Loan saved: {loan.title}",
            {"principal": str(loan.principal), "role": loan.role.value},
        ))
        return loan

    async def get_summary(self, loan_id: str) -> Optional[LoanSummary]:
        loan = await self._get_loan(loan_id)
        if loan is None:
            return None
        return summarize_loan(
            loan,
            await self._payments(loan_id),
            await self._installments(loan_id),
        )

    async def overview(
        self,
        state: Optional[LoanViewState] = None,
        today: Optional[date] = None,
    ) -> LoansOverview:
        state = state or LoanViewState(upcoming_days=self._settings.upcoming_days)
        loans = [Loan.from_record(r) for r in await self._store.list(EntityType.LOANS)]
        payments = [
            LoanPayment.from_record(r)
            for r in await self._store.list(EntityType.LOAN_PAYMENTS)
        ]
        installments = [
            LoanInstallment.from_record(r)
            for r in await self._store.list(EntityType.LOAN_INSTALLMENTS)
        ]
        return build_overview(loans, payments, installments, state, today)

    async def generate_installments(self, loan_id: str) -> InstallmentGenerationResult:
        """
        Build the loan's repayment schedule (missing installments only).

        Raises:
            NotFoundError: If the loan does not exist
        """
        loan = await self._get_loan(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan not found: {loan_id}")

        result = generate_loan_installments(loan, await self._installments(loan_id))
        for inst in result.installments:
            await self._store.put(EntityType.LOAN_INSTALLMENTS, inst.to_record())

        await self._audit(AuditEventBuilder.loan_event(
            AuditEventType.LOAN_INSTALLMENTS_GENERATED,
            loan_id,
            f"Installments generated: {result.created} new, {result.existed} existed",
            {"created": result.created, "existed": result.existed},
        ))
        return result

    async def delete_loan(self, loan_id: str) -> Optional[LoanDeletionResult]:
        """
        Delete a loan and its payments.

        Installments are deleted too when cascade_loan_installments is set;
        otherwise they stay as orphaned history. Returns None when the loan
        no longer exists.
        """
        loan = await self._get_loan(loan_id)
        if loan is None:
            await self._missing("loan", loan_id, "delete_loan")
            return None

        result = LoanDeletionResult(loan_id=loan_id)
        # Payments first: a loan with no payments left is harmless if we stop here
        result.payments_deleted = await self._store.delete_by_index(
            EntityType.LOAN_PAYMENTS, "by_loanId", loan_id
        )
        if self._settings.cascade_loan_installments:
            result.installments_deleted = await self._store.delete_by_index(
                EntityType.LOAN_INSTALLMENTS, "by_loanId", loan_id
            )
        else:
            result.installments_orphaned = len(await self._installments(loan_id))
        await self._store.remove(EntityType.LOANS, loan_id)

        await self._audit(AuditEventBuilder.loan_event(
            AuditEventType.LOAN_DELETED,
            loan_id,
            f"Loan deleted: {loan.title}",
            result.model_dump(),
        ))
        return result

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def register_payment(
        self,
        loan_id: str,
        amount: Decimal,
        pay_date: Optional[date] = None,
        account_id: Optional[str] = None,
        person_id: Optional[str] = None,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[LoanPayment, AllocationResult]:
        """
        Record a loan payment and allocate it onto the installments.

        Raises:
            NotFoundError: If the loan does not exist
            LedgerValidationError: If amount is not positive
        """
        correlation_id = correlation_id or create_correlation_id()
        result = self._validator.validate_amount(amount)
        if not result.is_valid:
            await self._audit(AuditEventBuilder.validation_failed(
                "loan", loan_id, result.as_dicts(), correlation_id
            ))
            raise LedgerValidationError("Invalid loan payment", result)

        loan = await self._get_loan(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan not found: {loan_id}")

        payment = LoanPayment(
            id=new_id("loan_payment"),
            loan_id=loan_id,
            date=pay_date or date.today(),
            amount=to_decimal(amount),
            account_id=account_id,
            person_id=person_id,
            note=note.strip() if note else None,
        )
        await self._store.put(EntityType.LOAN_PAYMENTS, payment.to_record())

        allocation = allocate(await self._installments(loan_id), payment)
        for inst in allocation.installments:
            await self._store.put(EntityType.LOAN_INSTALLMENTS, inst.to_record())

        if allocation.unallocated > 0:
            logger.info(
                "loan_payment_unallocated",
                loan_id=loan_id,
                payment_id=payment.id,
                unallocated=str(allocation.unallocated),
            )
        await self._audit(AuditEventBuilder.loan_event(
            AuditEventType.LOAN_PAYMENT_REGISTERED,
            loan_id,
            f"Payment of {payment.amount} registered",
            {
                "payment_id": payment.id,
                "applied": str(allocation.applied),
                "unallocated": str(allocation.unallocated),
                "installments": [i.id for i in allocation.installments],
            },
            correlation_id,
        ))
        return payment, allocation

    async def delete_payment(self, payment_id: str) -> bool:
        """
        Roll a payment out of its installments and delete it.

        Returns False when the payment no longer exists.
        """
        record = await self._store.get(EntityType.LOAN_PAYMENTS, payment_id)
        if record is None:
            await self._missing("loan_payment", payment_id, "delete_payment")
            return False
        payment = LoanPayment.from_record(record)

        changed = deallocate(await self._installments(payment.loan_id), payment)
        for inst in changed:
            await self._store.put(EntityType.LOAN_INSTALLMENTS, inst.to_record())
        await self._store.remove(EntityType.LOAN_PAYMENTS, payment_id)

        await self._audit(AuditEventBuilder.loan_event(
            AuditEventType.LOAN_PAYMENT_DELETED,
            payment.loan_id,
            f"Payment of {payment.amount} deleted",
            {"payment_id": payment_id, "installments": [i.id for i in changed]},
        ))
        return True

    # =========================================================================
    # INSTALLMENTS
    # =========================================================================

    async def _set_installment(self, installment_id: str, skip: bool) -> Optional[LoanInstallment]:
        operation = "skip_installment" if skip else "unskip_installment"
        record = await self._store.get(EntityType.LOAN_INSTALLMENTS, installment_id)
        if record is None:
            await self._missing("loan_installment", installment_id, operation)
            return None

        inst = LoanInstallment.from_record(record)
        updated = skip_installment(inst) if skip else unskip_installment(inst)
        await self._store.put(EntityType.LOAN_INSTALLMENTS, updated.to_record())

        await self._audit(AuditEventBuilder.loan_event(
            AuditEventType.INSTALLMENT_SKIPPED if skip else AuditEventType.INSTALLMENT_UNSKIPPED,
            inst.loan_id,
            f"Installment {inst.installment_no}/{inst.installment_total} {updated.status.value}",
            {"installment_id": installment_id},
        ))
        return updated

    async def skip_installment(self, installment_id: str) -> Optional[LoanInstallment]:
        return await self._set_installment(installment_id, skip=True)

    async def unskip_installment(self, installment_id: str) -> Optional[LoanInstallment]:
        return await self._set_installment(installment_id, skip=False)
