"""
Snapshot Sync

Keeps a remote copy of the whole dataset by pushing exported snapshots.

DESIGN DECISION: Sync is last writer wins at snapshot granularity.
Pushes replace the remote snapshot, pulls go through the normal import
path, so imported totals are recomputed like any other restore.

Mutation bursts (an edit followed by its settlement, a bulk restore) are
coalesced: each mutation restarts a short timer and only the last one
triggers a push.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from khata.audit import AuditLogger
from khata.config import get_settings
from khata.errors import LedgerError
from khata.ledger.codec import SnapshotCodec
from khata.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from khata.services.storage import KeyValueStore, StorageError

logger = structlog.get_logger(__name__)

CLOUD_KEY_PREFIX = "kirana_cloud_"


class SnapshotRemote(ABC):
    """Where snapshots are pushed to and pulled from."""

    @abstractmethod
    async def push(self, text: str) -> None:
        """Replace the remote snapshot."""
        pass

    @abstractmethod
    async def pull(self) -> Optional[str]:
        """Latest remote snapshot, or None if nothing was pushed yet."""
        pass


class KeyValueSnapshotRemote(SnapshotRemote):
    """Stores one snapshot per account in a key-value backend."""

    def __init__(self, kv: KeyValueStore, account: str):
        if not account:
            raise ValueError("A sync account is required")
        self._kv = kv
        self._key = f"{CLOUD_KEY_PREFIX}{account}"

    @property
    def key(self) -> str:
        return self._key

    async def push(self, text: str) -> None:
        await self._kv.set(self._key, text)

    async def pull(self) -> Optional[str]:
        return await self._kv.get(self._key)


class SyncService:
    """
    Debounced snapshot push plus explicit pull.

    Args:
        codec: Snapshot codec for export/import
        remote: Snapshot destination
        account: Account name used in logs and audit events
        debounce_seconds: Quiet period before a push
        audit_logger: Optional audit logger for push/pull events
    """

    def __init__(
        self,
        codec: SnapshotCodec,
        remote: SnapshotRemote,
        account: str,
        debounce_seconds: Optional[float] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._codec = codec
        self._remote = remote
        self._account = account
        if debounce_seconds is None:
            debounce_seconds = get_settings().app.sync_debounce_seconds
        self._debounce = debounce_seconds
        self._audit = audit_logger
        self._pending: Optional[asyncio.Task] = None

    @property
    def has_pending_push(self) -> bool:
        return self._pending is not None

    async def _audit_event(self, event: AuditEvent) -> None:
        if self._audit:
            await self._audit.log(event)

    async def on_mutation(self, event: AuditEvent) -> None:
        """Schedule a push after a ledger mutation."""
        if not event.is_mutation:
            return
        # A pull already matches the remote
        if (
            event.event_type == AuditEventType.DATA_IMPORTED
            and event.details.get("source") == "sync"
        ):
            return

        if self._pending is not None:
            self._pending.cancel()
        self._pending = asyncio.create_task(self._push_later())

    async def _push_later(self) -> None:
        await asyncio.sleep(self._debounce)
        # Past this point a new mutation schedules a fresh push instead of cancelling this one
        self._pending = None
        try:
            await self.push()
        except (StorageError, LedgerError) as e:
            logger.error("sync_push_failed", account=self._account, error=str(e))
            await self._audit_event(AuditEventBuilder.sync_failed(self._account, str(e)))
        except Exception as e:
            # Nothing awaits this task, so the error ends here
            logger.exception("sync_push_crashed", account=self._account)
            if self._audit:
                await self._audit.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"account": self._account, "operation": "sync_push"},
                )

    async def push(self) -> int:
        """
        Export and push a snapshot now.

        Returns:
            Size of the pushed snapshot in bytes
        """
        text = await self._codec.export(announce=False)
        await self._remote.push(text)

        size = len(text.encode("utf-8"))
        logger.info("sync_pushed", account=self._account, size_bytes=size)
        await self._audit_event(AuditEventBuilder.sync_pushed(self._account, size))
        return size

    async def flush(self) -> None:
        """Cancel any waiting push and push immediately."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        await self.push()

    async def pull(self) -> bool:
        """
        Import the remote snapshot.

        Returns:
            True if a snapshot was found and imported
        """
        text = await self._remote.pull()
        if text is None:
            logger.info("sync_pull_empty", account=self._account)
            return False

        imported = await self._codec.import_snapshot(text, source="sync")
        await self._audit_event(AuditEventBuilder.sync_pulled(self._account, imported))
        return imported

    async def close(self) -> None:
        """Drop a waiting push without running it."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
