"""
Data Models Package

This package contains all Pydantic models used by the Household Ledger.
Every record read from or written to the store goes through these schemas.
"""

from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from household_ledger.models.balance import (
    BalanceEvent,
    BalanceEventType,
    MonthStatement,
    PersonBalance,
    balance_id,
)
from household_ledger.models.bill import (
    Bill,
    BillPayment,
    BillPlan,
    BillStatus,
    BillTemplate,
    CardHolder,
    GenerationResult,
    PaymentMethod,
)
from household_ledger.models.invoice import (
    INVOICE_PAYMENT_KIND,
    HolderTotals,
    InvoiceDeletionResult,
    InvoicePayment,
    InvoiceStatus,
    InvoiceSummary,
    Transaction,
    TransactionType,
    make_invoice_key,
)
from household_ledger.models.loan import (
    AllocationResult,
    InstallmentGenerationResult,
    InstallmentStatus,
    Loan,
    LoanDeletionResult,
    LoanInstallment,
    LoanPayment,
    LoanRole,
    LoansOverview,
    LoanStatus,
    LoanSummary,
    UpcomingInstallment,
)
from household_ledger.models.validation import ValidationIssue, ValidationResult
from household_ledger.models.views import (
    BillFilters,
    BillMonthView,
    BillSort,
    BillViewState,
    CurrencyTotals,
    LoanView,
    LoanViewState,
    MethodFilter,
    StatusFilter,
)

__all__ = [
    # Bill models
    "Bill",
    "BillPayment",
    "BillPlan",
    "BillStatus",
    "BillTemplate",
    "CardHolder",
    "GenerationResult",
    "PaymentMethod",
    # Loan models
    "AllocationResult",
    "InstallmentGenerationResult",
    "InstallmentStatus",
    "Loan",
    "LoanDeletionResult",
    "LoanInstallment",
    "LoanPayment",
    "LoanRole",
    "LoansOverview",
    "LoanStatus",
    "LoanSummary",
    "UpcomingInstallment",
    # Invoice models
    "INVOICE_PAYMENT_KIND",
    "HolderTotals",
    "InvoiceDeletionResult",
    "InvoicePayment",
    "InvoiceStatus",
    "InvoiceSummary",
    "Transaction",
    "TransactionType",
    "make_invoice_key",
    # Person balances
    "BalanceEvent",
    "BalanceEventType",
    "MonthStatement",
    "PersonBalance",
    "balance_id",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Views
    "BillFilters",
    "BillMonthView",
    "BillSort",
    "BillViewState",
    "CurrencyTotals",
    "LoanView",
    "LoanViewState",
    "MethodFilter",
    "StatusFilter",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
