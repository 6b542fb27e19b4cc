"""
Ledger Package

The balance engine, the lifecycle manager that performs every mutation,
and the snapshot import/export codec.
"""

from khata.errors import LedgerError, NotFoundError, ValidationError
from khata.ledger.engine import LedgerEngine
from khata.ledger.lifecycle import (
    OPENING_BALANCE_NOTE,
    SETTLEMENT_NOTE,
    TransactionLifecycleManager,
)
from khata.ledger.codec import FormatError, SnapshotCodec

__all__ = [
    "FormatError",
    "LedgerEngine",
    "LedgerError",
    "NotFoundError",
    "OPENING_BALANCE_NOTE",
    "SETTLEMENT_NOTE",
    "SnapshotCodec",
    "TransactionLifecycleManager",
    "ValidationError",
]
