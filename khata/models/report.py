"""
Report Models

Read-only views computed from the ledger for dashboards, statements
and reminders. None of these are ever written back to storage.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field

from khata.models.ledger import Customer, Transaction


class BalanceFilter(str, Enum):
    """Customer list filter by balance."""
    ALL = "ALL"
    DUE = "DUE"     # still owes money
    PAID = "PAID"   # fully paid or in advance


class DailyActivity(BaseModel):
    """Credit given and payments collected on one calendar day."""

    day: date
    borrowed: float = 0.0
    collected: float = 0.0


class DashboardSummary(BaseModel):
    """Shop-wide figures shown on the dashboard."""

    generated_at: datetime
    customer_count: int = Field(ge=0)
    total_borrowed: float
    total_collected: float
    total_outstanding: float
    active_customers: int = Field(
        ge=0,
        description="Customers with a positive outstanding balance"
    )
    overdue_customers: int = Field(
        ge=0,
        description="Customers with dues and no activity for the overdue window"
    )
    recent_transactions: list[Transaction] = Field(default_factory=list)


class CustomerStatement(BaseModel):
    """Everything needed to print one customer's account statement."""

    generated_at: datetime
    customer: Customer
    transactions: list[Transaction] = Field(default_factory=list)
    balance: float
    this_month_borrowed: float
    this_year_borrowed: float
    total_credit_given: float
    total_received: float


class OutstandingRow(BaseModel):
    """One line of the shop-wide outstanding report."""

    customer_id: str
    name: str
    phone: str
    address: str
    total_borrowed: float
    total_paid: float
    balance: float


class OutstandingReport(BaseModel):
    """Per-customer balances with the grand total outstanding."""

    generated_at: datetime
    store_name: str
    rows: list[OutstandingRow] = Field(default_factory=list)
    total_outstanding: float
