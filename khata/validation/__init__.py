"""Validation package."""

from khata.validation.validator import ALLOWED_METHODS, LedgerValidator, coerce_amount

__all__ = ["ALLOWED_METHODS", "LedgerValidator", "coerce_amount"]
