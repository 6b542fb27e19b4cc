"""
Snapshot Import/Export

Serializes the whole dataset to a single JSON document and restores it.

Export format:
    {"customers": [...], "transactions": [...], "profile": {...},
     "exportDate": "<ISO-8601>"}

Import replaces each collection present in the payload and leaves the
others alone. A payload is decoded fully before anything is written, so a
rejected import never leaves storage half-replaced.
"""

import json
from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from khata.config import get_settings
from khata.errors import LedgerError, ValidationError
from khata.ledger.engine import LedgerEngine
from khata.models.audit import AuditEvent, AuditEventBuilder
from khata.models.ledger import (
    Customer,
    Snapshot,
    SnapshotPayload,
    StoreProfile,
    Transaction,
    utc_now,
)
from khata.services.storage import RecordStore, sort_newest_first
from khata.validation import coerce_amount

logger = structlog.get_logger(__name__)

SnapshotListener = Callable[[AuditEvent], Awaitable[Any]]


class FormatError(LedgerError):
    """A snapshot could not be decoded."""


def _decode_records(name: str, items: list, model: type) -> list:
    records = []
    for index, item in enumerate(items):
        try:
            records.append(model.model_validate(item))
        except PydanticValidationError as e:
            raise FormatError(f"Invalid record {index} in {name}: {e}") from e
    return records


class SnapshotCodec:
    """
    Export and import of the full dataset.

    Args:
        store: Record store to read from and write to
        engine: Ledger engine used to recompute imported totals
        recompute_on_import: Rebuild every customer's totals from the
            imported transactions instead of trusting the payload
        listeners: Coroutines notified after a successful import
    """

    def __init__(
        self,
        store: RecordStore,
        engine: Optional[LedgerEngine] = None,
        recompute_on_import: Optional[bool] = None,
        listeners: Iterable[SnapshotListener] = (),
        clock=utc_now,
    ):
        self._store = store
        self._engine = engine or LedgerEngine(store)
        if recompute_on_import is None:
            recompute_on_import = get_settings().app.recompute_on_import
        self._recompute = recompute_on_import
        self._listeners = list(listeners)
        self._clock = clock

    def subscribe(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    async def _publish(self, event: AuditEvent) -> None:
        for listener in self._listeners:
            try:
                await listener(event)
            except Exception:
                logger.exception("snapshot_listener_failed", event_type=event.event_type.value)

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    async def build_snapshot(self) -> Snapshot:
        return Snapshot(
            customers=await self._store.list_customers(),
            transactions=sort_newest_first(await self._store.list_transactions()),
            profile=await self._store.get_profile(),
            export_date=self._clock(),
        )

    async def export(self, announce: bool = True) -> str:
        """
        Serialize every customer, transaction and the profile.

        Args:
            announce: Publish a DATA_EXPORTED event (background sync
                pushes pass False)

        Returns:
            Indented UTF-8 JSON text
        """
        snapshot = await self.build_snapshot()
        text = json.dumps(snapshot.to_record(), indent=2, ensure_ascii=False)

        if announce:
            logger.info(
                "data_exported",
                customers=len(snapshot.customers),
                transactions=len(snapshot.transactions),
            )
            await self._publish(AuditEventBuilder.data_exported(
                customer_count=len(snapshot.customers),
                transaction_count=len(snapshot.transactions),
            ))
        return text

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    @staticmethod
    def decode(text: str) -> SnapshotPayload:
        """
        Parse snapshot text without touching storage.

        customers/transactions that are not arrays and a profile that is
        not an object are treated as absent.

        Raises:
            FormatError: Malformed JSON, a non-object top level or an
                invalid record
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise FormatError(f"Snapshot is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise FormatError("Snapshot must be a JSON object")

        payload = SnapshotPayload()

        customers = data.get("customers")
        if isinstance(customers, list):
            payload.customers = _decode_records("customers", customers, Customer)

        transactions = data.get("transactions")
        if isinstance(transactions, list):
            payload.transactions = _decode_records("transactions", transactions, Transaction)
            for transaction in payload.transactions:
                try:
                    coerce_amount(transaction.amount, f"amount of transaction {transaction.id}")
                except ValidationError as e:
                    raise FormatError(str(e)) from e

        profile = data.get("profile")
        if isinstance(profile, dict):
            try:
                payload.profile = StoreProfile.model_validate(profile)
            except PydanticValidationError as e:
                raise FormatError(f"Invalid profile: {e}") from e

        return payload

    async def import_snapshot(self, text: str, source: str = "restore") -> bool:
        """
        Replace stored collections with the ones present in a snapshot.

        Args:
            text: Snapshot JSON
            source: "restore" for a user file, "sync" for a remote pull

        Returns:
            False if the snapshot was rejected (nothing is written)

        Raises:
            StorageError: If the decoded snapshot could not be written
        """
        try:
            payload = self.decode(text)
        except FormatError as e:
            logger.warning("import_rejected", source=source, error=str(e))
            await self._publish(AuditEventBuilder.import_failed(str(e), source=source))
            return False

        customers = payload.customers
        transactions = payload.transactions
        recomputed = False

        if self._recompute and (customers is not None or transactions is not None):
            if customers is None:
                customers = await self._store.list_customers()
            if transactions is None:
                transactions = await self._store.list_transactions()
            customers = self._engine.recompute_collection(customers, transactions)
            recomputed = True

        await self._store.commit(
            customers=customers,
            transactions=transactions,
            profile=payload.profile,
        )

        collections = [
            name for name, value in (
                ("customers", payload.customers),
                ("transactions", payload.transactions),
                ("profile", payload.profile),
            )
            if value is not None
        ]
        logger.info("data_imported", source=source, collections=collections, recomputed=recomputed)
        await self._publish(AuditEventBuilder.data_imported(
            collections=collections,
            recomputed=recomputed,
            source=source,
        ))
        return True
