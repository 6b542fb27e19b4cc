"""
Ledger Validation

DESIGN DECISION: Validation NEVER silently fixes issues.
A malformed amount is reported, not treated as zero; a BORROW entry
tagged CASH is rejected, not re-tagged.

Checks produce ValidationIssue objects:
- severity "error" blocks the mutation (ValidationError is raised)
- severity "warning" is returned to the caller and logged

The same amount coercion is shared with the ledger engine so that
stored and freshly entered amounts follow one rule.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

import structlog

from khata.config import get_settings
from khata.errors import ValidationError
from khata.models.ledger import (
    Customer,
    PaymentMethod,
    Transaction,
    TransactionType,
    ValidationIssue,
    utc_now,
)

logger = structlog.get_logger(__name__)

ALLOWED_METHODS = {
    TransactionType.BORROW: {PaymentMethod.CREDIT},
    TransactionType.PAYMENT: {PaymentMethod.CASH, PaymentMethod.UPI},
}


def coerce_amount(value: Any, field: str = "amount") -> float:
    """
    Convert an amount to a finite float.

    Accepts ints, floats, Decimals and numeric strings.

    Raises:
        ValidationError: For booleans, non-numeric text, NaN or infinity
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number, got {value!r}")

    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a number, got {value!r}") from None
    else:
        raise ValidationError(f"{field} must be a number, got {type(value).__name__}")

    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number, got {value!r}")
    return number


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="error")


def _warning(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="warning")


class LedgerValidator:
    """
    Business-rule checks for customers and transactions.
    """

    def __init__(self, future_date_tolerance_days: Optional[int] = None):
        if future_date_tolerance_days is None:
            future_date_tolerance_days = get_settings().app.future_date_tolerance_days
        self._future_tolerance = timedelta(days=future_date_tolerance_days)

    def check_amount(self, value: Any, field: str = "amount") -> list[ValidationIssue]:
        """An amount must be numeric and strictly positive."""
        try:
            amount = coerce_amount(value, field)
        except ValidationError as e:
            return [_error(field, "invalid_format", str(e))]

        if amount <= 0:
            return [_error(field, "invalid_value", f"{field} must be greater than zero")]
        return []

    def check_transaction(
        self,
        transaction: Transaction,
        now: Optional[datetime] = None,
    ) -> list[ValidationIssue]:
        """
        Check a transaction before it is stored.

        Returns: list_of_issues (errors and warnings)
        """
        issues = self.check_amount(transaction.amount)

        allowed = ALLOWED_METHODS[transaction.type]
        if transaction.method not in allowed:
            issues.append(_error(
                "method",
                "invalid_value",
                f"{transaction.type.value} entries must use "
                f"{' or '.join(sorted(m.value for m in allowed))}, "
                f"not {transaction.method.value}",
            ))

        if transaction.type == TransactionType.BORROW and not transaction.items.strip():
            issues.append(_error(
                "items",
                "missing",
                "Items are required for a credit (udhaar) entry",
            ))

        now = now or utc_now()
        if transaction.date > now + self._future_tolerance:
            issues.append(_warning(
                "date",
                "future_date",
                f"Transaction date {transaction.date.date().isoformat()} is in the future",
            ))

        return issues

    def check_customer(self, customer: Customer) -> list[ValidationIssue]:
        """Name and phone are required."""
        issues = []
        if not customer.name.strip():
            issues.append(_error("name", "missing", "Customer name is required"))
        if not customer.phone.strip():
            issues.append(_error("phone", "missing", "Customer phone number is required"))
        return issues

    def ensure_valid_transaction(
        self,
        transaction: Transaction,
        now: Optional[datetime] = None,
    ) -> list[ValidationIssue]:
        """
        Raise ValidationError if the transaction has errors.

        Returns:
            The remaining warnings
        """
        return self._raise_on_errors(self.check_transaction(transaction, now), "transaction")

    def ensure_valid_customer(self, customer: Customer) -> list[ValidationIssue]:
        return self._raise_on_errors(self.check_customer(customer), "customer")

    @staticmethod
    def summarize(issues: list[ValidationIssue]) -> str:
        """One line per issue, errors first."""
        ordered = sorted(issues, key=lambda i: i.severity != "error")
        return "; ".join(f"{i.field}: {i.message}" for i in ordered)

    def _raise_on_errors(
        self,
        issues: list[ValidationIssue],
        subject: str,
    ) -> list[ValidationIssue]:
        errors = [i for i in issues if i.severity == "error"]
        if errors:
            raise ValidationError(f"Invalid {subject}: {self.summarize(errors)}", issues=errors)

        warnings = [i for i in issues if i.severity != "error"]
        for issue in warnings:
            logger.warning("validation_warning", subject=subject, field=issue.field, message=issue.message)
        return warnings
