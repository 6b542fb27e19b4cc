"""Tests for ledger validation."""

from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import NOW, make_customer
from khata.errors import ValidationError
from khata.models.ledger import PaymentMethod, Transaction, TransactionType
from khata.validation import LedgerValidator, coerce_amount


@pytest.fixture
def validator():
    return LedgerValidator(future_date_tolerance_days=7)


class TestCoerceAmount:
    """Tests for amount coercion."""

    @pytest.mark.parametrize("value,expected", [
        (5, 5.0),
        (12.5, 12.5),
        ("  42 ", 42.0),
        (Decimal("10.25"), 10.25),
    ])
    def test_accepts_numbers(self, value, expected):
        """Test numeric inputs are converted."""
        assert coerce_amount(value) == expected

    @pytest.mark.parametrize("value", [True, "abc", None, [], float("nan"), "inf"])
    def test_rejects_non_numbers(self, value):
        """Test malformed amounts are never treated as zero."""
        with pytest.raises(ValidationError):
            coerce_amount(value)


class TestTransactionChecks:
    """Tests for transaction business rules."""

    def test_valid_borrow(self, validator):
        """Test a well-formed udhaar entry has no issues."""
        tx = Transaction(customer_id="c1", type=TransactionType.BORROW, amount=100, items="Rice", date=NOW)
        assert validator.check_transaction(tx, now=NOW) == []

    def test_zero_amount(self, validator):
        """Test amounts must be positive."""
        tx = Transaction(customer_id="c1", type=TransactionType.PAYMENT, amount=0, date=NOW)
        issues = validator.check_transaction(tx, now=NOW)
        assert [i.field for i in issues] == ["amount"]
        assert issues[0].severity == "error"

    def test_payment_cannot_be_credit(self, validator):
        """Test a jama entry tagged CREDIT is an error."""
        tx = Transaction(
            customer_id="c1",
            type=TransactionType.PAYMENT,
            amount=10,
            method=PaymentMethod.CREDIT,
            date=NOW,
        )
        issues = validator.check_transaction(tx, now=NOW)
        assert [i.field for i in issues] == ["method"]

    def test_future_date_is_a_warning(self, validator):
        """Test dates far in the future only warn."""
        tx = Transaction(
            customer_id="c1",
            type=TransactionType.PAYMENT,
            amount=10,
            date=NOW + timedelta(days=30),
        )
        warnings = validator.ensure_valid_transaction(tx, now=NOW)
        assert [w.issue_type for w in warnings] == ["future_date"]

    def test_near_future_is_fine(self, validator):
        """Test dates within the tolerance pass."""
        tx = Transaction(
            customer_id="c1",
            type=TransactionType.PAYMENT,
            amount=10,
            date=NOW + timedelta(days=2),
        )
        assert validator.check_transaction(tx, now=NOW) == []

    def test_ensure_raises_with_issues(self, validator):
        """Test errors are attached to the exception."""
        tx = Transaction(customer_id="c1", type=TransactionType.BORROW, amount=-1, items="", date=NOW)
        with pytest.raises(ValidationError) as exc_info:
            validator.ensure_valid_transaction(tx, now=NOW)
        assert {i.field for i in exc_info.value.issues} == {"amount", "items"}


class TestCustomerChecks:
    """Tests for customer business rules."""

    def test_valid_customer(self, validator):
        assert validator.check_customer(make_customer()) == []

    def test_missing_phone(self, validator):
        """Test phone is required."""
        issues = validator.check_customer(make_customer(phone="   "))
        assert [i.field for i in issues] == ["phone"]

    def test_summarize_lists_errors_first(self, validator):
        """Test the summary line."""
        issues = validator.check_customer(make_customer(name="", phone=""))
        assert LedgerValidator.summarize(issues).startswith("name: ")
