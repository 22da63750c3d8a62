"""Flows package: async orchestration over the store and the engine."""

from household_ledger.flows.balances import BalanceFlow
from household_ledger.flows.bills import BillFlow
from household_ledger.flows.invoices import InvoiceFlow
from household_ledger.flows.loans import LoanFlow

__all__ = ["BalanceFlow", "BillFlow", "InvoiceFlow", "LoanFlow"]
