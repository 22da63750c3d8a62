"""
Person balance models.

Tracks what an additional card holder owes the main holder. Amounts are
integer cents on the record itself (the *CentsBRL fields).
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from household_ledger.models.base import RecordModel, utcnow
from household_ledger.utils.dates import MONTH_PATTERN


def balance_id(person_id: str) -> str:
    return f"balance_{person_id}"


class BalanceEventType(str, Enum):
    CHARGES = "charges"        # month closed, charges added to the balance
    PAYMENT = "payment"        # person paid back
    ADJUSTMENT = "adjustment"


class BalanceEvent(RecordModel):
    person_id: str
    month: str = Field(..., pattern=MONTH_PATTERN)
    type: BalanceEventType
    amount_cents: int = Field(..., alias="amountCentsBRL")
    note: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow)


class PersonBalance(RecordModel):
    person_id: str
    balance_cents: int = Field(default=0, alias="balanceCentsBRL")
    updated_at: datetime = Field(default_factory=utcnow)


class MonthStatement(BaseModel):
    """One person's month: opening balance, movements, closing balance (cents)."""

    person_id: str
    month: str
    closed: bool
    start_cents: int = 0
    charges_cents: int = 0
    payments_cents: int = 0
    adjustments_cents: int = 0
    end_cents: int = 0
