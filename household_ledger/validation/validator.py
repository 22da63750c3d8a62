"""
Two-Stage Payment Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - REQUEST VALIDATION:
- Amount present and positive
- Payment source (account or card) selected
- Invoice month well formed for card payments
This catches incomplete forms.

STAGE 2 - SEMANTIC VALIDATION:
- Payment larger than what is still owed (needs confirmation)
- Target not in a payable state
This catches requests that are complete but suspicious.

WHY TWO STAGES:
1. Stage 1 needs nothing but the request
2. Stage 2 needs the current state of the bill/installments
3. Can skip stage 2 if stage 1 fails

IMPORTANT: Validation NEVER silently fixes issues.
Nothing is written until the result is valid (and confirmed, when asked).
"""

from decimal import Decimal
from typing import Optional

from household_ledger.models.bill import PaymentMethod
from household_ledger.models.validation import ValidationIssue, ValidationResult
from household_ledger.utils.dates import parse_month
from household_ledger.utils.money import from_cents, to_cents


class PaymentValidator:
    """
    Validates a payment request before any state is mutated.

    Stage 1: request validation
    Stage 2: semantic validation against what is still owed
    """

    def _validate_request(
        self,
        amount: Optional[Decimal],
        method: Optional[PaymentMethod],
        source_id: Optional[str],
        invoice_month: Optional[str] = None,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: request validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Payment amount is required",
                severity="error",
            ))
        elif to_cents(amount) <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Payment amount must be greater than zero",
                severity="error",
                suggested_fix="Enter the amount that was actually paid",
            ))

        if method == PaymentMethod.CARD:
            if not source_id:
                issues.append(ValidationIssue(
                    field="card_id",
                    issue_type="missing",
                    message="Select the card used for this payment",
                    severity="error",
                ))
            if not invoice_month:
                issues.append(ValidationIssue(
                    field="invoice_month",
                    issue_type="missing",
                    message="Select the invoice month the charge belongs to",
                    severity="error",
                ))
            else:
                try:
                    parse_month(invoice_month)
                except ValueError as e:
                    issues.append(ValidationIssue(
                        field="invoice_month",
                        issue_type="invalid_value",
                        message=str(e),
                        severity="error",
                    ))
        elif not source_id:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="missing",
                message="Select the account used for this payment",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        amount: Decimal,
        remaining: Optional[Decimal],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: semantic validation.

        An amount above what is still owed is not an error, but the caller
        has to confirm it.

        Returns: (needs_confirmation, list_of_issues)
        """
        issues = []
        if remaining is None:
            return False, issues

        excess_c = to_cents(amount) - to_cents(remaining)
        if excess_c > 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="overpayment",
                message=(
                    f"Payment of {amount} is {from_cents(excess_c)} more than "
                    f"the {remaining} still owed"
                ),
                severity="warning",
                suggested_fix="Confirm to record the full amount anyway",
            ))
            return True, issues

        return False, issues

    def validate(
        self,
        amount: Optional[Decimal],
        method: Optional[PaymentMethod] = PaymentMethod.ACCOUNT,
        source_id: Optional[str] = None,
        invoice_month: Optional[str] = None,
        remaining: Optional[Decimal] = None,
    ) -> ValidationResult:
        """
        Run the two-stage pipeline.

        Args:
            amount: Amount being paid
            method: Account or card
            source_id: Account id or card id
            invoice_month: Invoice month, for card payments
            remaining: What is still owed; None skips the overpayment check

        Returns:
            ValidationResult with all issues found
        """
        request_valid, issues = self._validate_request(
            amount, method, source_id, invoice_month
        )

        needs_confirmation = False
        if request_valid:
            needs_confirmation, semantic_issues = self._validate_semantic(amount, remaining)
            issues.extend(semantic_issues)

        return ValidationResult(
            is_valid=request_valid,
            requires_confirmation=needs_confirmation,
            issues=issues,
        )

    def validate_amount(self, amount: Optional[Decimal]) -> ValidationResult:
        """Amount-only check, for payments that need no source (loans, balances)."""
        issues = []
        if amount is None or to_cents(amount) <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Payment amount must be greater than zero",
                severity="error",
            ))
        return ValidationResult(is_valid=not issues, issues=issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Short text for the household, listing what to fix or confirm."""
        if result.is_valid and not result.requires_confirmation:
            return "All checks passed."

        lines = []
        if not result.is_valid:
            lines.append("The payment could not be recorded:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"  - {issue.message}")
        if result.requires_confirmation:
            lines.append("Please confirm:")
            for message in result.warnings:
                lines.append(f"  - {message}")
        return "\n".join(lines)
