"""Tests for reports and customer messages."""

from datetime import date, timedelta

import pytest

from conftest import NOW, fixed_clock, make_customer, run
from khata.config import get_settings
from khata.errors import NotFoundError
from khata.models.ledger import Transaction, TransactionType
from khata.models.report import BalanceFilter
from khata.reports import ReportBuilder, format_amount, reminder_message, transaction_message


@pytest.fixture
def reports(store):
    return ReportBuilder(store, get_settings(), clock=fixed_clock)


def seed(ledger):
    """
    c1 Ramesh owes 350 (active), c2 Sita is paid up,
    c3 Mohan owes 80 and was last seen 45 days ago.
    """
    run(ledger.add_customer_with_opening_balance(make_customer("c1", address="Shivaji Nagar"), opening_amount=500, opening_items="Rice"))
    run(ledger.record_transaction("c1", TransactionType.PAYMENT, 150, date=NOW - timedelta(days=1)))

    run(ledger.add_customer_with_opening_balance(make_customer("c2", name="Sita", phone="9222222222"), opening_amount=200))
    run(ledger.record_transaction("c2", TransactionType.PAYMENT, 200))

    run(ledger.add_customer_with_opening_balance(make_customer("c3", name="Mohan", phone="9333333333")))
    run(ledger.record_transaction("c3", TransactionType.BORROW, 80, items="Soap", date=NOW - timedelta(days=45)))


class TestDashboard:
    """Tests for dashboard_summary()."""

    def test_totals(self, ledger, reports):
        """Test shop-wide figures."""
        seed(ledger)
        summary = run(reports.dashboard_summary())
        assert summary.customer_count == 3
        assert summary.total_borrowed == 780.0
        assert summary.total_collected == 350.0
        assert summary.total_outstanding == 430.0
        assert summary.active_customers == 2
        assert summary.overdue_customers == 1

    def test_recent_transactions(self, ledger, reports):
        """Test at most five entries, newest first."""
        seed(ledger)
        for _ in range(4):
            run(ledger.record_transaction("c1", TransactionType.PAYMENT, 1))
        summary = run(reports.dashboard_summary())
        assert len(summary.recent_transactions) == 5
        dates = [t.date for t in summary.recent_transactions]
        assert dates == sorted(dates, reverse=True)

    def test_empty_shop(self, reports):
        """Test an empty ledger reports zeros."""
        summary = run(reports.dashboard_summary())
        assert summary.customer_count == 0
        assert summary.total_outstanding == 0.0


class TestDailyActivity:
    """Tests for daily_activity()."""

    def test_seven_days(self, ledger, reports):
        """Test per-day sums ending today."""
        seed(ledger)
        days = run(reports.daily_activity())
        assert len(days) == 7
        assert days[-1].day == date(2024, 6, 15)
        assert days[0].day == date(2024, 6, 9)
        assert days[-1].borrowed == 700.0  # two opening balances
        assert days[-1].collected == 200.0
        assert days[-2].collected == 150.0

    def test_old_entries_excluded(self, ledger, reports):
        """Test entries outside the window are ignored."""
        seed(ledger)
        days = run(reports.daily_activity(days=3))
        assert sum(d.borrowed for d in days) == 700.0


class TestStatement:
    """Tests for customer_statement()."""

    def test_statement_figures(self, ledger, store, reports):
        """Test month, year and lifetime totals."""
        run(ledger.add_customer_with_opening_balance(make_customer()))
        for amount, days_ago in ((100, 0), (50, 20), (25, 200)):
            run(ledger.add_transaction(Transaction(
                customer_id="c1",
                type=TransactionType.BORROW,
                amount=amount,
                items="Misc",
                date=NOW - timedelta(days=days_ago),
            )))
        run(ledger.record_transaction("c1", TransactionType.PAYMENT, 60))

        statement = run(reports.customer_statement("c1"))

        assert statement.this_month_borrowed == 100.0
        assert statement.this_year_borrowed == 150.0
        assert statement.total_credit_given == 175.0
        assert statement.total_received == 60.0
        assert statement.balance == 115.0
        assert len(statement.transactions) == 4

    def test_unknown_customer(self, reports):
        with pytest.raises(NotFoundError):
            run(reports.customer_statement("ghost"))


class TestSearch:
    """Tests for search_customers()."""

    def test_search_by_name_case_insensitive(self, ledger, reports):
        seed(ledger)
        assert [c.id for c in run(reports.search_customers("SITA"))] == ["c2"]

    def test_search_by_phone_and_address(self, ledger, reports):
        seed(ledger)
        assert [c.id for c in run(reports.search_customers("93333"))] == ["c3"]
        assert [c.id for c in run(reports.search_customers("shivaji"))] == ["c1"]

    def test_search_by_balance(self, ledger, reports):
        """Test the balance is searchable as text."""
        seed(ledger)
        assert [c.id for c in run(reports.search_customers("350"))] == ["c1"]

    def test_filters(self, ledger, reports):
        """Test DUE and PAID filters."""
        seed(ledger)
        due = run(reports.search_customers("", BalanceFilter.DUE))
        paid = run(reports.search_customers("", BalanceFilter.PAID))
        assert [c.id for c in due] == ["c1", "c3"]
        assert [c.id for c in paid] == ["c2"]


class TestOutstandingReport:
    """Tests for outstanding_report()."""

    def test_rows_and_total(self, ledger, reports):
        seed(ledger)
        report = run(reports.outstanding_report())
        assert report.store_name == "Sharma General Store"
        assert [row.balance for row in report.rows] == [350.0, 0.0, 80.0]
        assert report.total_outstanding == 430.0


class TestMessages:
    """Tests for message templates."""

    def test_format_amount(self):
        assert format_amount(500) == "₹500"
        assert format_amount(12.5) == "₹12.5"
        assert format_amount(-50.0, currency="Rs. ") == "Rs. -50"

    def test_reminder(self):
        """Test the reminder text."""
        customer = make_customer(total_borrowed=500, total_paid=150)
        assert reminder_message(customer) == (
            "Hello Ramesh Gupta, your pending balance is ₹350. "
            "Please pay at your earliest convenience."
        )

    def test_credit_receipt_lists_items(self):
        """Test the udhaar receipt."""
        tx = Transaction(customer_id="c1", type=TransactionType.BORROW, amount=120, items="Atta")
        text = transaction_message(make_customer(), tx, balance=620)
        assert text == (
            "*Credit Added*\n"
            "Name: Ramesh Gupta\n"
            "Amount: ₹120\n"
            "Items: Atta\n"
            "Current Balance: ₹620"
        )

    def test_payment_receipt_has_no_items(self):
        """Test the jama receipt."""
        tx = Transaction(customer_id="c1", type=TransactionType.PAYMENT, amount=100, items="ignored")
        text = transaction_message(make_customer(), tx, balance=0)
        assert text.startswith("*Payment Received*")
        assert "Items" not in text

    def test_builder_uses_current_balance(self, reports):
        """Test the balance defaults to the customer's outstanding amount."""
        customer = make_customer(total_borrowed=300, total_paid=100)
        tx = Transaction(customer_id="c1", type=TransactionType.PAYMENT, amount=100)
        assert reports.transaction_message(customer, tx).endswith("Current Balance: ₹200")
