"""
Abstract Storage Interface

DESIGN DECISION: The ledger only needs a key-value store of JSON text.
Customers, transactions and the profile are each kept under one key.
This allows us to:
1. Run against a local JSON file, a Google Sheet or memory
2. Use in-memory storage for testing
3. Write several collections together (set_many) so a cascade delete
   or an import is never half-applied

The interface is intentionally tiny - no queries, no business logic.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional

from khata.models.audit import AuditEvent


class KeyValueStore(ABC):
    """
    Abstract interface for the persistence boundary.

    Values are opaque strings (JSON-serialized collections).
    Any backend failure must surface as StorageError.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Returns:
            The stored text, or None if the key was never set
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def set_many(self, values: Mapping[str, str]) -> None:
        """
        Store several values as one write.

        Either every key is updated or none is.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a key. Removing a missing key is not an error."""
        pass

    @abstractmethod
    async def keys(self) -> list[str]:
        """List every stored key."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class CorruptRecordError(StorageError):
    """A stored value could not be parsed back into ledger records."""
    pass
