"""Ledger engine exceptions."""

from decimal import Decimal
from typing import Optional

from household_ledger.models.validation import ValidationIssue, ValidationResult


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class LedgerValidationError(LedgerError):
    """
    A request was rejected before any state was touched.

    The ValidationResult lists every issue found, not just the first.
    """

    def __init__(self, message: str, result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.result = result or ValidationResult(is_valid=False)

    @classmethod
    def single(cls, field: str, issue_type: str, message: str) -> "LedgerValidationError":
        issue = ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
            severity="error",
        )
        return cls(message, ValidationResult(is_valid=False, issues=[issue]))

    @property
    def issues(self) -> list[ValidationIssue]:
        return self.result.issues


class ConfirmationRequiredError(LedgerValidationError):
    """Payment exceeds what is still owed and the caller did not confirm it."""

    def __init__(
        self,
        message: str,
        remaining: Decimal,
        result: Optional[ValidationResult] = None,
    ):
        super().__init__(message, result)
        self.remaining = remaining


class InvalidTransitionError(LedgerError):
    """The state machine does not allow this transition."""

    def __init__(self, entity_id: str, current: str, action: str):
        super().__init__(f"Cannot {action} {entity_id}: status is {current}")
        self.entity_id = entity_id
        self.current = current
        self.action = action
