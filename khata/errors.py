"""
Ledger Exceptions

The two failure kinds the ledger raises itself. Storage failures
(khata.services.storage.StorageError) and snapshot format failures
(khata.ledger.codec.FormatError) come from their own modules.
"""

from typing import Optional

from khata.models.ledger import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """
    Bad or missing required field, or a non-positive / non-numeric amount.

    Attributes:
        issues: The individual problems found, when known
    """

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []


class NotFoundError(LedgerError):
    """Reference to an unknown customer or transaction id."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id
