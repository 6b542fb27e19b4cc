"""
Core Data Models for Khata

These models define the schemas for everything the ledger stores:
customers, their udhaar/jama transactions and the store profile.

They are designed to:
1. Parse both freshly entered data and restored snapshots
2. Serialize to the camelCase JSON used by snapshots and storage
3. Keep derived balances clearly separated from user-entered fields

DESIGN DECISION: Models only check types and shapes.
Business rules (positive amounts, method per type, required names)
live in khata.validation so that violations are reported as
ledger ValidationErrors instead of being rejected at construction.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

TEXT_MAX_LENGTH = 1000


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Opaque unique identifier for customers and transactions."""
    return uuid4().hex


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LedgerModel(BaseModel):
    """
    Base for every persisted ledger record.

    Attributes are snake_case in Python and camelCase on the wire
    (``customer_id`` <-> ``customerId``). Both spellings are accepted
    when parsing.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_record(self) -> dict[str, Any]:
        """Serialize to the JSON-ready dict used by storage and snapshots."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a ledger entry.

    BORROW is udhaar (credit given to the customer).
    PAYMENT is jama (money received from the customer).
    """
    BORROW = "BORROW"
    PAYMENT = "PAYMENT"


class PaymentMethod(str, Enum):
    """How a transaction was settled. BORROW entries are always CREDIT."""
    CASH = "CASH"
    UPI = "UPI"
    CREDIT = "CREDIT"


def default_method_for(tx_type: TransactionType) -> PaymentMethod:
    """Method used when a transaction is recorded without one."""
    if tx_type == TransactionType.BORROW:
        return PaymentMethod.CREDIT
    return PaymentMethod.CASH


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Customer(LedgerModel):
    """
    A shop customer with a running credit account.

    CRITICAL: total_borrowed, total_paid and last_transaction_date are
    a cache of the customer's transaction history. Only the ledger
    engine writes them.
    """

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique customer ID"
    )
    name: str = Field(
        ...,
        max_length=200,
        description="Customer name (required)"
    )
    phone: str = Field(
        ...,
        max_length=30,
        description="Contact number (required)"
    )
    address: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    photo_url: Optional[str] = None

    # Derived from transactions
    total_borrowed: float = Field(default=0.0)
    total_paid: float = Field(default=0.0)
    last_transaction_date: datetime = Field(
        default_factory=utc_now,
        description="Most recent transaction date, or creation time if none"
    )

    @field_validator('last_transaction_date')
    @classmethod
    def normalise_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def outstanding_balance(self) -> float:
        """Amount the customer still owes. Negative means advance credit."""
        return self.total_borrowed - self.total_paid


class Transaction(LedgerModel):
    """
    A single udhaar or jama entry owned by exactly one customer.

    id and customer_id never change after creation; amount, items
    and date may be edited in place.
    """

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique transaction ID"
    )
    customer_id: str = Field(
        ...,
        min_length=1,
        description="Owning customer"
    )
    type: TransactionType
    amount: float = Field(
        ...,
        description="Amount in rupees"
    )
    items: str = Field(
        default="",
        max_length=TEXT_MAX_LENGTH,
        description="Items taken on credit, or a payment description"
    )
    date: datetime = Field(
        default_factory=utc_now,
        description="When the transaction happened (user editable)"
    )
    method: PaymentMethod
    notes: str = Field(
        default="",
        max_length=TEXT_MAX_LENGTH,
        description="Annotation such as opening balance or auto-settlement markers"
    )

    @model_validator(mode='before')
    @classmethod
    def fill_defaults(cls, data: Any) -> Any:
        """Default the method from the type and read null text fields as empty."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("method") is None:
            tx_type = data.get("type")
            try:
                data["method"] = default_method_for(TransactionType(tx_type)).value
            except (TypeError, ValueError):
                # Leave it missing; the type error is reported on its own
                data.pop("method", None)
        for key in ("items", "notes"):
            if key in data and data[key] is None:
                data[key] = ""
        return data

    @field_validator('date')
    @classmethod
    def normalise_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class StoreProfile(LedgerModel):
    """Shop identity used on reports. Not part of the balance invariant."""

    name: str = Field(..., max_length=200)
    address: str = ""
    phone: str = ""
    owner_name: str = ""


class CustomerTotals(LedgerModel):
    """Result of folding a customer's transactions."""

    total_borrowed: float
    total_paid: float
    last_transaction_date: datetime

    @property
    def outstanding_balance(self) -> float:
        return self.total_borrowed - self.total_paid


# =============================================================================
# SNAPSHOT MODELS
# =============================================================================

class Snapshot(LedgerModel):
    """The full dataset at a point in time, as written by export."""

    customers: list[Customer] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    profile: StoreProfile
    export_date: datetime = Field(default_factory=utc_now)


class SnapshotPayload(BaseModel):
    """
    A decoded import payload.

    A collection left as None was absent (or not of the expected shape)
    in the payload and must not be touched by the import.
    """

    customers: Optional[list[Customer]] = None
    transactions: Optional[list[Transaction]] = None
    profile: Optional[StoreProfile] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.customers is None
            and self.transactions is None
            and self.profile is None
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
