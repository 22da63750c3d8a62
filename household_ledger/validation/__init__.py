"""Validation package."""

from household_ledger.validation.validator import PaymentValidator

__all__ = ["PaymentValidator"]
