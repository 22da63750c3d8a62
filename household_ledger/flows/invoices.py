"""
Invoice Flow

Card invoices are never stored as such: an invoice is the set of card
transactions for (card, month) plus the payments registered against its
key. This flow reconciles them and manages the payments.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.engine import LedgerValidationError, build_invoice_payment, reconcile
from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from household_ledger.models.bill import CardHolder
from household_ledger.models.invoice import (
    InvoiceDeletionResult,
    InvoicePayment,
    InvoiceSummary,
    Transaction,
    make_invoice_key,
)
from household_ledger.services.storage import EntityType, RecordStore
from household_ledger.utils.dates import parse_month
from household_ledger.utils.ids import new_id
from household_ledger.validation import PaymentValidator


logger = structlog.get_logger(__name__)


class InvoiceFlow:
    """Orchestrates the card invoice screen."""

    def __init__(
        self,
        store: RecordStore,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[PaymentValidator] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._validator = validator or PaymentValidator()

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def get_invoice(self, card_id: str, month: str) -> InvoiceSummary:
        parse_month(month)
        transactions = [
            Transaction.from_record(r)
            for r in await self._store.list_by_index(
                EntityType.TRANSACTIONS, "invoice_idx", (card_id, month)
            )
        ]
        payments = [
            InvoicePayment.from_record(r)
            for r in await self._store.list_by_index(
                EntityType.INVOICE_PAYMENTS, "by_invoiceKey", make_invoice_key(card_id, month)
            )
        ]
        return reconcile(card_id, month, transactions, payments)

    async def register_payment(
        self,
        card_id: str,
        month: str,
        holder: CardHolder,
        amount: Decimal,
        pay_date: Optional[date] = None,
        account_id: Optional[str] = None,
        person_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> InvoicePayment:
        """
        Register a payment against one holder's share of an invoice.

        Writes a negative INVOICE_PAYMENT transaction, then the payment.

        Raises:
            LedgerValidationError: If amount is not positive
        """
        correlation_id = correlation_id or create_correlation_id()
        key = make_invoice_key(card_id, month)
        result = self._validator.validate_amount(amount)
        if not result.is_valid:
            await self._audit(AuditEventBuilder.validation_failed(
                "invoice", key, result.as_dicts(), correlation_id
            ))
            raise LedgerValidationError("Invalid invoice payment", result)
        parse_month(month)

        payment, tx = build_invoice_payment(
            payment_id=new_id("inv_pay"),
            tx_id=new_id("tx"),
            card_id=card_id,
            month=month,
            holder=CardHolder(holder),
            amount=amount,
            pay_date=pay_date or date.today(),
            account_id=account_id,
            person_id=person_id,
        )
        await self._store.put(EntityType.TRANSACTIONS, tx.to_record())
        await self._store.put(EntityType.INVOICE_PAYMENTS, payment.to_record())

        await self._audit(AuditEventBuilder.invoice_event(
            AuditEventType.INVOICE_PAYMENT_REGISTERED,
            key,
            f"Invoice payment of {payment.amount} ({payment.holder.value})",
            {"payment_id": payment.id, "tx_id": tx.id},
            correlation_id,
        ))
        return payment

    async def delete_payment(self, payment_id: str) -> bool:
        """
        Delete one invoice payment and its transaction.

        Returns False when the payment no longer exists.
        """
        record = await self._store.get(EntityType.INVOICE_PAYMENTS, payment_id)
        if record is None:
            logger.warning("invoice_payment_not_found", payment_id=payment_id)
            await self._audit(
                AuditEventBuilder.not_found("invoice_payment", payment_id, "delete_payment")
            )
            return False
        payment = InvoicePayment.from_record(record)

        if payment.tx_id:
            await self._store.remove(EntityType.TRANSACTIONS, payment.tx_id)
        await self._store.remove(EntityType.INVOICE_PAYMENTS, payment_id)

        await self._audit(AuditEventBuilder.invoice_event(
            AuditEventType.INVOICE_PAYMENT_DELETED,
            payment.invoice_key,
            f"Invoice payment of {payment.amount} deleted",
            {"payment_id": payment_id, "tx_id": payment.tx_id},
        ))
        return True

    async def delete_invoice(self, card_id: str, month: str) -> InvoiceDeletionResult:
        """
        Delete everything that makes up an invoice.

        Payments (and their transactions) go first, then every card
        transaction of (card, month).
        """
        key = make_invoice_key(card_id, month)
        result = InvoiceDeletionResult(invoice_key=key)

        payments = await self._store.list_by_index(
            EntityType.INVOICE_PAYMENTS, "by_invoiceKey", key
        )
        for record in payments:
            tx_id = record.get("txId")
            if tx_id and await self._store.remove(EntityType.TRANSACTIONS, tx_id):
                result.payment_transactions_deleted += 1
        result.payments_deleted = await self._store.delete_by_index(
            EntityType.INVOICE_PAYMENTS, "by_invoiceKey", key
        )
        result.transactions_deleted = await self._store.delete_by_index(
            EntityType.TRANSACTIONS, "invoice_idx", (card_id, month)
        )

        logger.info("invoice_deleted", invoice_key=key, **result.model_dump(exclude={"invoice_key"}))
        await self._audit(AuditEventBuilder.invoice_event(
            AuditEventType.INVOICE_DELETED,
            key,
            f"Invoice {key} deleted",
            result.model_dump(),
        ))
        return result
