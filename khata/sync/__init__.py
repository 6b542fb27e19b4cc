"""Snapshot sync package."""

from khata.sync.service import (
    CLOUD_KEY_PREFIX,
    KeyValueSnapshotRemote,
    SnapshotRemote,
    SyncService,
)

__all__ = ["CLOUD_KEY_PREFIX", "KeyValueSnapshotRemote", "SnapshotRemote", "SyncService"]
