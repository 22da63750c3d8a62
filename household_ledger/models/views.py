"""
View state models.

Screen state (selected month, filters, sort order) is an explicit, frozen
value passed into the view functions and returned, changed, from them. The
engine keeps nothing between calls.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from household_ledger.models.bill import Bill
from household_ledger.utils.dates import MONTH_PATTERN


class StatusFilter(str, Enum):
    ALL = "all"
    OPEN = "open"      # anything not paid
    PAID = "paid"


class MethodFilter(str, Enum):
    ALL = "all"
    ACCOUNT = "account"
    CARD = "card"


class BillSort(str, Enum):
    DUE_ASC = "due_asc"
    PAID_DESC = "paid_desc"
    AMOUNT_DESC = "amount_desc"


class LoanView(str, Enum):
    ALL = "all"
    I_OWE = "i_owe"
    OWED_TO_ME = "owed_to_me"
    OPEN = "open"
    CLOSED = "closed"


class BillFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: StatusFilter = StatusFilter.ALL
    method: MethodFilter = MethodFilter.ALL
    person_id: Optional[str] = None
    sort: BillSort = BillSort.DUE_ASC


class BillViewState(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: str = Field(..., pattern=MONTH_PATTERN)
    filters: BillFilters = Field(default_factory=BillFilters)


class LoanViewState(BaseModel):
    model_config = ConfigDict(frozen=True)

    view: LoanView = LoanView.ALL
    upcoming_days: int = Field(default=30, ge=0)


class CurrencyTotals(BaseModel):
    expected: Decimal = Decimal("0.00")
    open: Decimal = Decimal("0.00")
    paid: Decimal = Decimal("0.00")


class BillMonthView(BaseModel):
    """Bills of one month after filters, with totals taken before filters."""

    state: BillViewState
    bills: list[Bill] = Field(default_factory=list)
    totals: dict[str, CurrencyTotals] = Field(default_factory=dict)
    paid_by_method: dict[str, int] = Field(default_factory=dict)
