"""
Report Builder

DESIGN DECISION: Reports are READ-ONLY views.
Every figure is derived from what the record store returns at call time;
nothing here writes back or caches. Balances come from the customers'
stored totals, which the ledger engine keeps in step with the
transactions.

Calendar buckets (daily activity, this month, this year) use UTC dates.
"""

import math
from datetime import datetime, timedelta
from typing import Callable, Optional

from khata.config import Settings, get_settings
from khata.errors import NotFoundError
from khata.models.ledger import Customer, Transaction, TransactionType, ensure_utc, utc_now
from khata.models.report import (
    BalanceFilter,
    CustomerStatement,
    DailyActivity,
    DashboardSummary,
    OutstandingReport,
    OutstandingRow,
)
from khata.reports import messages
from khata.services.storage import RecordStore

RECENT_TRANSACTION_COUNT = 5


class ReportBuilder:
    """
    Builds dashboards, statements and customer messages.

    Args:
        store: Record store to read from
        settings: Application settings (overdue window, currency)
        clock: Source of "now"
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    @property
    def currency(self) -> str:
        return self._settings.app.currency_symbol

    async def dashboard_summary(self) -> DashboardSummary:
        """Shop-wide totals, active and overdue customers, latest entries."""
        now = self._now()
        customers = await self._store.list_customers()
        transactions = await self._store.list_transactions()

        overdue_before = now - timedelta(days=self._settings.app.overdue_after_days)
        due = [c for c in customers if c.outstanding_balance > 0]

        return DashboardSummary(
            generated_at=now,
            customer_count=len(customers),
            total_borrowed=math.fsum(c.total_borrowed for c in customers),
            total_collected=math.fsum(c.total_paid for c in customers),
            total_outstanding=math.fsum(c.outstanding_balance for c in customers),
            active_customers=len(due),
            overdue_customers=sum(1 for c in due if c.last_transaction_date < overdue_before),
            recent_transactions=transactions[:RECENT_TRANSACTION_COUNT],
        )

    async def daily_activity(self, days: int = 7) -> list[DailyActivity]:
        """Credit given and payments collected per day, oldest day first, ending today."""
        if days < 1:
            return []

        today = self._now().date()
        buckets = {
            today - timedelta(days=offset): ([], [])
            for offset in range(days - 1, -1, -1)
        }
        for transaction in await self._store.list_transactions():
            bucket = buckets.get(transaction.date.date())
            if bucket is None:
                continue
            borrowed, collected = bucket
            if transaction.type == TransactionType.BORROW:
                borrowed.append(transaction.amount)
            else:
                collected.append(transaction.amount)

        return [
            DailyActivity(day=day, borrowed=math.fsum(borrowed), collected=math.fsum(collected))
            for day, (borrowed, collected) in buckets.items()
        ]

    async def customer_statement(self, customer_id: str) -> CustomerStatement:
        """
        One customer's account statement.

        Raises:
            NotFoundError: If the customer does not exist
        """
        customer = await self._store.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("customer", customer_id)

        now = self._now()
        transactions = await self._store.list_transactions(customer_id)

        credit = [t for t in transactions if t.type == TransactionType.BORROW]
        this_year = [t for t in credit if t.date.year == now.year]
        this_month = [t for t in this_year if t.date.month == now.month]

        return CustomerStatement(
            generated_at=now,
            customer=customer,
            transactions=transactions,
            balance=customer.outstanding_balance,
            this_month_borrowed=math.fsum(t.amount for t in this_month),
            this_year_borrowed=math.fsum(t.amount for t in this_year),
            total_credit_given=math.fsum(t.amount for t in credit),
            total_received=math.fsum(
                t.amount for t in transactions if t.type == TransactionType.PAYMENT
            ),
        )

    async def search_customers(
        self,
        term: str = "",
        balance_filter: BalanceFilter = BalanceFilter.ALL,
    ) -> list[Customer]:
        """
        Customers whose name, phone, address or balance contains the term.

        Name and address match case-insensitively. The balance matches
        against its plain rendering, so "250" finds a customer owing 1250.
        """
        needle = term.strip().lower()
        results = []
        for customer in await self._store.list_customers():
            balance = customer.outstanding_balance
            if balance_filter == BalanceFilter.DUE and balance <= 0:
                continue
            if balance_filter == BalanceFilter.PAID and balance > 0:
                continue

            haystacks = (
                customer.name.lower(),
                customer.phone,
                (customer.address or "").lower(),
                messages.format_amount(balance, currency=""),
            )
            if any(needle in text for text in haystacks):
                results.append(customer)
        return results

    async def outstanding_report(self) -> OutstandingReport:
        """Per-customer balances for the printable shop report."""
        profile = await self._store.get_profile()
        customers = await self._store.list_customers()

        rows = [
            OutstandingRow(
                customer_id=c.id,
                name=c.name,
                phone=c.phone,
                address=c.address or "",
                total_borrowed=c.total_borrowed,
                total_paid=c.total_paid,
                balance=c.outstanding_balance,
            )
            for c in customers
        ]
        return OutstandingReport(
            generated_at=self._now(),
            store_name=profile.name,
            rows=rows,
            total_outstanding=math.fsum(row.balance for row in rows),
        )

    def reminder_message(self, customer: Customer) -> str:
        return messages.reminder_message(customer, currency=self.currency)

    def transaction_message(
        self,
        customer: Customer,
        transaction: Transaction,
        balance: Optional[float] = None,
    ) -> str:
        """Receipt text; the balance defaults to the customer's current balance."""
        if balance is None:
            balance = customer.outstanding_balance
        return messages.transaction_message(customer, transaction, balance, currency=self.currency)
