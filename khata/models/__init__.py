"""
Data Models Package

This package contains all Pydantic models used in Khata.
All data flowing through the ledger must conform to these schemas.
"""

from khata.models.ledger import (
    Customer,
    CustomerTotals,
    PaymentMethod,
    Snapshot,
    SnapshotPayload,
    StoreProfile,
    Transaction,
    TransactionType,
    ValidationIssue,
    default_method_for,
    ensure_utc,
    new_id,
    utc_now,
)
from khata.models.audit import (
    MUTATION_EVENT_TYPES,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from khata.models.report import (
    BalanceFilter,
    CustomerStatement,
    DailyActivity,
    DashboardSummary,
    OutstandingReport,
    OutstandingRow,
)

__all__ = [
    # Ledger models
    "Customer",
    "CustomerTotals",
    "PaymentMethod",
    "Snapshot",
    "SnapshotPayload",
    "StoreProfile",
    "Transaction",
    "TransactionType",
    "ValidationIssue",
    "default_method_for",
    "ensure_utc",
    "new_id",
    "utc_now",
    # Audit models
    "MUTATION_EVENT_TYPES",
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Report models
    "BalanceFilter",
    "CustomerStatement",
    "DailyActivity",
    "DashboardSummary",
    "OutstandingReport",
    "OutstandingRow",
]
