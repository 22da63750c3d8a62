"""
Balance Flow

Running balance of what an additional card holder owes. Each operation
writes the event first and the balance second.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.engine import (
    close_month,
    estimate_charges,
    month_statement,
    register_payment,
)
from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from household_ledger.models.balance import (
    BalanceEvent,
    MonthStatement,
    PersonBalance,
    balance_id,
)
from household_ledger.models.invoice import Transaction, TransactionType
from household_ledger.services.storage import EntityType, RecordStore
from household_ledger.utils.dates import parse_month
from household_ledger.utils.ids import new_id
from household_ledger.utils.money import to_decimal


logger = structlog.get_logger(__name__)


class BalanceFlow:
    """Orchestrates the person balance tracker."""

    def __init__(
        self,
        store: RecordStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def _balance(self, person_id: str) -> Optional[PersonBalance]:
        record = await self._store.get(EntityType.PERSON_BALANCES, balance_id(person_id))
        return PersonBalance.from_record(record) if record is not None else None

    async def _events(self, person_id: str) -> list[BalanceEvent]:
        return [
            BalanceEvent.from_record(r)
            for r in await self._store.list_by_index(
                EntityType.BALANCE_EVENTS, "by_person", person_id
            )
        ]

    async def get_balance(self, person_id: str) -> PersonBalance:
        """Current balance (zero for someone with no history)."""
        balance = await self._balance(person_id)
        return balance or PersonBalance(id=balance_id(person_id), person_id=person_id)

    async def close_month(self, person_id: str, month: str, amount: Decimal) -> PersonBalance:
        """
        Fold a month's charges into the balance.

        Raises:
            LedgerValidationError: If amount is not positive
            InvalidTransitionError: If the month is already closed
        """
        parse_month(month)
        event, balance = close_month(
            await self._balance(person_id),
            await self._events(person_id),
            person_id,
            month,
            amount,
            event_id=new_id("be"),
        )
        await self._store.put(EntityType.BALANCE_EVENTS, event.to_record())
        await self._store.put(EntityType.PERSON_BALANCES, balance.to_record())
        logger.info(
            "balance_month_closed",
            person_id=person_id,
            month=month,
            balance_cents=balance.balance_cents,
        )

        await self._audit(AuditEventBuilder.balance_event(
            AuditEventType.BALANCE_MONTH_CLOSED, person_id, month, event.amount_cents
        ))
        return balance

    async def register_payment(
        self,
        person_id: str,
        month: str,
        amount: Decimal,
        pay_date: Optional[date] = None,
        account_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> PersonBalance:
        """
        Record money received from the person.

        With an account, a revenue transaction is written as well.
        """
        parse_month(month)
        pay_date = pay_date or date.today()
        event, balance = register_payment(
            await self._balance(person_id),
            person_id,
            month,
            amount,
            event_id=new_id("be"),
            note=note.strip() if note else None,
            paid_at=datetime.combine(pay_date, time(12, 0), tzinfo=timezone.utc),
        )
        await self._store.put(EntityType.BALANCE_EVENTS, event.to_record())
        await self._store.put(EntityType.PERSON_BALANCES, balance.to_record())

        if account_id:
            tx = Transaction(
                id=new_id("tx"),
                type=TransactionType.REVENUE.value,
                date=pay_date,
                description="Recebimento Cartão Adicional",
                value=to_decimal(amount),
                value_brl=to_decimal(amount),
                account_id=account_id,
                person_id=person_id,
            )
            await self._store.put(EntityType.TRANSACTIONS, tx.to_record())

        await self._audit(AuditEventBuilder.balance_event(
            AuditEventType.BALANCE_PAYMENT_REGISTERED, person_id, month, event.amount_cents
        ))
        return balance

    async def statement(
        self,
        person_id: str,
        month: str,
        card_ids: Iterable[str] = (),
    ) -> MonthStatement:
        """
        Month report for a person.

        While the month is open, charges are estimated from the
        additional-holder expenses on card_ids.
        """
        parse_month(month)
        card_ids = list(card_ids)
        estimated = 0
        if card_ids:
            transactions = []
            for card_id in card_ids:
                records = await self._store.list_by_index(
                    EntityType.TRANSACTIONS, "invoice_idx", (card_id, month)
                )
                transactions.extend(Transaction.from_record(r) for r in records)
            estimated = estimate_charges(transactions, card_ids, month)
        return month_statement(await self._events(person_id), person_id, month, estimated)
