"""Tests for configuration and application wiring."""

import json
import logging
import warnings

import pytest

from conftest import make_customer, run
from khata.config import AppSettings, GoogleSheetsSettings, StoreProfileSettings, get_settings, validate_all_settings
from khata.models.ledger import TransactionType
from khata.orchestrator import create_app_components
from khata.services.storage import InMemoryAuditStorage, InMemoryKeyValueStore, JsonFileKeyValueStore


class TestSettings:
    """Tests for pydantic-settings configuration."""

    def test_app_defaults(self, monkeypatch):
        """Test documented defaults."""
        for name in ("STORAGE_BACKEND", "RECOMPUTE_ON_IMPORT", "OVERDUE_AFTER_DAYS", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        settings = AppSettings(_env_file=None)
        assert settings.storage_backend == "json"
        assert settings.recompute_on_import is True
        assert settings.overdue_after_days == 30
        assert settings.opening_balance_label == "Opening Balance"

    def test_environment_overrides(self, monkeypatch):
        """Test values are read from the environment."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("SYNC_DEBOUNCE_SECONDS", "0.5")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = AppSettings(_env_file=None)
        assert settings.storage_backend == "memory"
        assert settings.sync_debounce_seconds == 0.5
        assert settings.log_level == "DEBUG"

    def test_invalid_backend(self, monkeypatch):
        """Test an unknown storage backend is rejected."""
        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            AppSettings(_env_file=None)

    def test_store_profile_prefix(self, monkeypatch):
        """Test STORE_ variables fill the default profile."""
        monkeypatch.setenv("STORE_NAME", "Gupta Kirana")
        assert StoreProfileSettings().name == "Gupta Kirana"

    def test_missing_credentials_only_warn(self, tmp_path):
        """Test a missing credentials file is a warning, not an error."""
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            settings = GoogleSheetsSettings(
                credentials_path=str(tmp_path / "missing.json"),
                spreadsheet_id="sheet-id",
            )
        assert settings.ledger_sheet_name == "Ledger"
        assert caught

    def test_validate_all_settings(self, monkeypatch):
        """Test the startup check reports each section."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        get_settings.cache_clear()
        results = validate_all_settings()
        assert results["app"] is True
        assert results["store"] is True
        assert "google_sheets" in results


class TestCreateAppComponents:
    """Tests for the orchestrator factory."""

    def test_wiring_with_overrides(self):
        """Test the ledger, audit log and reports share one store."""
        audit = InMemoryAuditStorage()
        app = create_app_components(kv=InMemoryKeyValueStore(), audit_storage=audit)

        run(app.ledger.add_customer_with_opening_balance(make_customer(), opening_amount=250))
        run(app.ledger.record_transaction("c1", TransactionType.PAYMENT, 50))

        summary = run(app.reports.dashboard_summary())
        assert summary.total_outstanding == 200.0
        assert app.sync is None

        recent = run(audit.get_recent_events())
        assert len(recent) == 3

    def test_json_backend(self, monkeypatch, tmp_path):
        """Test the configured JSON backend is used."""
        monkeypatch.setenv("STORAGE_BACKEND", "json")
        monkeypatch.setenv("DATA_FILE_PATH", str(tmp_path / "ledger.json"))
        get_settings.cache_clear()
        try:
            app = create_app_components()
            assert isinstance(app.store.backend, JsonFileKeyValueStore)

            run(app.ledger.add_customer_with_opening_balance(make_customer()))
            stored = json.loads((tmp_path / "ledger.json").read_text(encoding="utf-8"))
            assert "khata_customers" in stored
        finally:
            get_settings.cache_clear()

    def test_sync_enabled(self, monkeypatch):
        """Test sync is wired when enabled in settings."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("SYNC_ENABLED", "true")
        monkeypatch.setenv("SYNC_ACCOUNT", "shop@example.com")
        monkeypatch.setenv("SYNC_DEBOUNCE_SECONDS", "0")
        get_settings.cache_clear()
        try:
            app = create_app_components()
            assert app.sync is not None

            run(app.ledger.add_customer_with_opening_balance(make_customer()))
            run(app.sync.flush())
            pushed = run(app.store.backend.get("kirana_cloud_shop@example.com"))
            assert json.loads(pushed)["customers"][0]["id"] == "c1"
        finally:
            get_settings.cache_clear()

    def test_debug_mode_lowers_log_level(self, monkeypatch):
        """Test DEBUG_MODE switches the log level to DEBUG."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("DEBUG_MODE", "true")
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        get_settings.cache_clear()
        root = logging.getLogger()
        previous = root.level
        try:
            create_app_components()
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)
            get_settings.cache_clear()
