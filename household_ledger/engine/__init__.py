"""
Obligation Ledger Engine

Pure functions over the ledger models. Nothing in this package reads or
writes storage; the flows do that around these calls.
"""

from household_ledger.engine.allocator import allocate, allocation_order, deallocate
from household_ledger.engine.balances import (
    close_month,
    estimate_charges,
    is_month_closed,
    month_statement,
    register_payment,
)
from household_ledger.engine.bill_state import (
    RepairReport,
    apply_payment,
    build_payment_transaction,
    derive_status,
    is_consistent,
    repair,
    repair_record,
    skip_bill,
    undo_payment,
    unskip_bill,
)
from household_ledger.engine.errors import (
    ConfirmationRequiredError,
    InvalidTransitionError,
    LedgerError,
    LedgerValidationError,
)
from household_ledger.engine.generator import (
    bill_from_template,
    generate_month,
    generate_plan_installments,
    restamp_future_plan_bills,
)
from household_ledger.engine.invoice import (
    build_invoice_payment,
    invoice_status,
    is_invoice_expense,
    reconcile,
)
from household_ledger.engine.loan_ledger import (
    build_overview,
    generate_loan_installments,
    installment_id,
    matches_view,
    skip_installment,
    summarize_loan,
    unskip_installment,
)
from household_ledger.engine.views import build_month_view, shift_month

__all__ = [
    # Errors
    "ConfirmationRequiredError",
    "InvalidTransitionError",
    "LedgerError",
    "LedgerValidationError",
    # Bill state machine
    "RepairReport",
    "apply_payment",
    "build_payment_transaction",
    "derive_status",
    "is_consistent",
    "repair",
    "repair_record",
    "skip_bill",
    "undo_payment",
    "unskip_bill",
    # Generator
    "bill_from_template",
    "generate_month",
    "generate_plan_installments",
    "restamp_future_plan_bills",
    # Allocator
    "allocate",
    "allocation_order",
    "deallocate",
    # Loans
    "build_overview",
    "generate_loan_installments",
    "installment_id",
    "matches_view",
    "skip_installment",
    "summarize_loan",
    "unskip_installment",
    # Invoices
    "build_invoice_payment",
    "invoice_status",
    "is_invoice_expense",
    "reconcile",
    # Person balances
    "close_month",
    "estimate_charges",
    "is_month_closed",
    "month_statement",
    "register_payment",
    # Views
    "build_month_view",
    "shift_month",
]
