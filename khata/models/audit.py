"""
Audit Models for Khata

Every ledger mutation produces an AuditEvent. The same event object is
the "on-mutation" notification handed to subscribers: the audit logger
records it, the sync service decides whether to push a snapshot.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from khata.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Customers
    CUSTOMER_CREATED = "customer_created"
    CUSTOMER_UPDATED = "customer_updated"
    CUSTOMER_DELETED = "customer_deleted"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_EDITED = "transaction_edited"
    SETTLEMENT_CREATED = "settlement_created"

    # Derived balances
    BALANCE_RECOMPUTED = "balance_recomputed"

    # Snapshots
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"
    IMPORT_FAILED = "import_failed"
    DATA_CLEARED = "data_cleared"
    PROFILE_UPDATED = "profile_updated"

    # Sync
    SYNC_PUSHED = "sync_pushed"
    SYNC_PULLED = "sync_pulled"
    SYNC_FAILED = "sync_failed"

    # System events
    SYSTEM_ERROR = "system_error"


# Events that change ledger state and therefore warrant a sync push
MUTATION_EVENT_TYPES = frozenset({
    AuditEventType.CUSTOMER_CREATED,
    AuditEventType.CUSTOMER_UPDATED,
    AuditEventType.CUSTOMER_DELETED,
    AuditEventType.TRANSACTION_ADDED,
    AuditEventType.TRANSACTION_EDITED,
    AuditEventType.SETTLEMENT_CREATED,
    AuditEventType.BALANCE_RECOMPUTED,
    AuditEventType.DATA_IMPORTED,
    AuditEventType.DATA_CLEARED,
    AuditEventType.PROFILE_UPDATED,
})


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'customer', 'transaction', 'snapshot')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., an edit and its settlement)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    @property
    def is_mutation(self) -> bool:
        return self.event_type in MUTATION_EVENT_TYPES

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


def _money(amount: float) -> str:
    return f"{amount:,.2f}"


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(tx, correlation_id)
        event = AuditEventBuilder.customer_deleted(customer_id, removed, correlation_id)
    """

    @staticmethod
    def customer_created(
        customer_id: str,
        name: str,
        opening_amount: Optional[float],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CUSTOMER_CREATED,
            entity_type="customer",
            entity_id=customer_id,
            correlation_id=correlation_id,
            description=f"Customer added: {name}",
            details={
                "name": name,
                "opening_amount": opening_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def customer_updated(
        customer_id: str,
        changed_fields: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CUSTOMER_UPDATED,
            entity_type="customer",
            entity_id=customer_id,
            correlation_id=correlation_id,
            description=f"Customer details updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def customer_deleted(
        customer_id: str,
        removed_transactions: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CUSTOMER_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="customer",
            entity_id=customer_id,
            correlation_id=correlation_id,
            description=f"Customer deleted with {removed_transactions} transactions",
            details={"removed_transactions": removed_transactions},
            is_user_action=True,
        )

    @staticmethod
    def transaction_added(
        transaction_id: str,
        customer_id: str,
        tx_type: str,
        amount: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{tx_type} of ₹{_money(amount)} recorded",
            details={
                "customer_id": customer_id,
                "type": tx_type,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_edited(
        transaction_id: str,
        customer_id: str,
        changes: dict[str, Any],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EDITED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction edited",
            details={
                "customer_id": customer_id,
                "changes": changes,
            },
            is_user_action=True,
        )

    @staticmethod
    def settlement_created(
        settlement_id: str,
        settled_transaction_id: str,
        customer_id: str,
        amount: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_CREATED,
            entity_type="transaction",
            entity_id=settlement_id,
            correlation_id=correlation_id,
            description=f"Auto-settlement of ₹{_money(amount)} created",
            details={
                "customer_id": customer_id,
                "settled_transaction_id": settled_transaction_id,
                "amount": amount,
            },
        )

    @staticmethod
    def balance_recomputed(
        customer_id: str,
        total_borrowed: float,
        total_paid: float,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_RECOMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="customer",
            entity_id=customer_id,
            correlation_id=correlation_id,
            description=f"Balance recomputed: ₹{_money(total_borrowed - total_paid)} outstanding",
            details={
                "total_borrowed": total_borrowed,
                "total_paid": total_paid,
            },
        )

    @staticmethod
    def data_exported(
        customer_count: int,
        transaction_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            entity_type="snapshot",
            description=f"Snapshot exported: {customer_count} customers, {transaction_count} transactions",
            details={
                "customers": customer_count,
                "transactions": transaction_count,
            },
        )

    @staticmethod
    def data_imported(
        collections: list[str],
        recomputed: bool,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            entity_type="snapshot",
            description=f"Snapshot imported: {', '.join(collections) or 'nothing'}",
            details={
                "collections": collections,
                "recomputed": recomputed,
                "source": source,
            },
            is_user_action=source == "restore",
        )

    @staticmethod
    def import_failed(
        error_message: str,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description="Snapshot import rejected",
            error_message=error_message,
            details={"source": source},
        )

    @staticmethod
    def data_cleared() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description="All ledger data cleared",
            is_user_action=True,
        )

    @staticmethod
    def profile_updated(store_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            entity_type="profile",
            description=f"Store profile updated: {store_name}",
            is_user_action=True,
        )

    @staticmethod
    def sync_pushed(account: str, size_bytes: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_PUSHED,
            entity_type="snapshot",
            entity_id=account,
            description="Snapshot pushed to remote store",
            details={"size_bytes": size_bytes},
        )

    @staticmethod
    def sync_pulled(account: str, imported: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_PULLED,
            entity_type="snapshot",
            entity_id=account,
            description="Snapshot pulled from remote store",
            details={"imported": imported},
        )

    @staticmethod
    def sync_failed(account: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            entity_id=account,
            description="Snapshot sync failed",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
