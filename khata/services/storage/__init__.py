"""
Storage Services Package

Provides the key-value persistence boundary, its concrete backends
(memory, JSON file, Google Sheets) and the typed RecordStore built on top.
"""

from khata.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CorruptRecordError,
    KeyValueStore,
    StorageError,
)
from khata.services.storage.memory import InMemoryAuditStorage, InMemoryKeyValueStore
from khata.services.storage.json_file import JsonFileKeyValueStore
from khata.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStore,
)
from khata.services.storage.record_store import (
    STORAGE_KEYS,
    RecordStore,
    sort_newest_first,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStore",
    # Exceptions
    "ConnectionError",
    "CorruptRecordError",
    "StorageError",
    # Backends
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStore",
    "InMemoryAuditStorage",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    # Record store
    "STORAGE_KEYS",
    "RecordStore",
    "sort_newest_first",
]
