"""
Main Orchestrator for Khata

Wires the components into a working ledger:

    KeyValueStore -> RecordStore -> LedgerEngine
                                 -> TransactionLifecycleManager -> AuditLogger
                                 -> SnapshotCodec                -> SyncService
                                 -> ReportBuilder

DESIGN DECISION: Every mutation flows through the lifecycle manager or
the snapshot codec, and both publish their events to the same
subscribers. The audit trail and remote sync therefore see every change
without the ledger knowing about either.
"""

from typing import NamedTuple, Optional

import structlog

from khata.audit import AuditLogger, configure_logging
from khata.config import Settings, get_settings
from khata.ledger import LedgerEngine, SnapshotCodec, TransactionLifecycleManager
from khata.reports import ReportBuilder
from khata.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStore,
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    RecordStore,
)
from khata.sync import KeyValueSnapshotRemote, SnapshotRemote, SyncService
from khata.validation import LedgerValidator

logger = structlog.get_logger(__name__)


class AppComponents(NamedTuple):
    """Everything a front end needs to drive the ledger."""

    store: RecordStore
    ledger: TransactionLifecycleManager
    codec: SnapshotCodec
    reports: ReportBuilder
    audit_logger: AuditLogger
    sync: Optional[SyncService]


def _build_storage(
    settings: Settings,
) -> tuple[KeyValueStore, AuditStorageInterface]:
    backend = settings.app.storage_backend

    if backend == "google_sheets":
        client = GoogleSheetsClient(settings.google_sheets)
        return GoogleSheetsKeyValueStore(client), GoogleSheetsAuditStorage(client)

    if backend == "json":
        return JsonFileKeyValueStore(settings.app.data_file_path), InMemoryAuditStorage()

    return InMemoryKeyValueStore(), InMemoryAuditStorage()


def create_app_components(
    settings: Optional[Settings] = None,
    kv: Optional[KeyValueStore] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    remote: Optional[SnapshotRemote] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (defaults to get_settings())
        kv: Key-value backend overriding the configured one
        audit_storage: Audit backend overriding the configured one
        remote: Sync destination; when given, sync is enabled regardless
            of the sync_enabled setting

    Returns:
        AppComponents with the ledger, codec, reports and optional sync
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging("DEBUG" if app_settings.debug_mode else app_settings.log_level)

    if kv is None or audit_storage is None:
        default_kv, default_audit = _build_storage(settings)
        kv = kv or default_kv
        audit_storage = audit_storage or default_audit

    store = RecordStore(kv, default_profile=settings.store)
    engine = LedgerEngine(store)
    audit_logger = AuditLogger(audit_storage)

    ledger = TransactionLifecycleManager(
        store,
        engine=engine,
        validator=LedgerValidator(app_settings.future_date_tolerance_days),
        opening_balance_label=app_settings.opening_balance_label,
    )
    codec = SnapshotCodec(
        store,
        engine=engine,
        recompute_on_import=app_settings.recompute_on_import,
    )
    ledger.subscribe(audit_logger.log)
    codec.subscribe(audit_logger.log)

    sync = None
    if remote is None and app_settings.sync_enabled:
        remote = KeyValueSnapshotRemote(kv, app_settings.sync_account)
    if remote is not None:
        sync = SyncService(
            codec,
            remote,
            account=app_settings.sync_account,
            debounce_seconds=app_settings.sync_debounce_seconds,
            audit_logger=audit_logger,
        )
        ledger.subscribe(sync.on_mutation)
        codec.subscribe(sync.on_mutation)

    logger.info(
        "app_components_created",
        environment=app_settings.app_environment,
        storage_backend=app_settings.storage_backend,
        sync_enabled=sync is not None,
    )

    return AppComponents(
        store=store,
        ledger=ledger,
        codec=codec,
        reports=ReportBuilder(store, settings),
        audit_logger=audit_logger,
        sync=sync,
    )
