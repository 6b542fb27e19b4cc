"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets can be used as the shared storage backend:
1. The shop owner can open the raw data from any device
2. No database setup required
3. Built-in backup (Google's infrastructure)

The ledger sheet is a key-value table:

    key | part | parts | value | updated_at

A JSON collection larger than one cell is split across several rows
(``part`` 0..``parts``-1). Every write rewrites the whole table with a
single update call, so collections written together by set_many land
together.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for one shop)
- Each write sends the full table
"""

import json
from collections import OrderedDict
from typing import Mapping, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from khata.config import GoogleSheetsSettings, get_settings
from khata.models.audit import AuditEvent, AuditEventType, AuditSeverity
from khata.models.ledger import utc_now
from khata.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    KeyValueStore,
    StorageError,
)

logger = structlog.get_logger(__name__)


LEDGER_COLUMNS = [
    "key",
    "part",
    "parts",
    "value",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Google Sheets rejects cells over 50,000 characters
CELL_CHUNK_SIZE = 40_000


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_ledger_sheet(self) -> gspread.Worksheet:
        """Get or create the Ledger worksheet."""
        return self._get_or_create_sheet(
            self._settings.ledger_sheet_name,
            LEDGER_COLUMNS,
            rows=100,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def _split_value(value: str) -> list[str]:
    if not value:
        return [""]
    return [
        value[i:i + CELL_CHUNK_SIZE]
        for i in range(0, len(value), CELL_CHUNK_SIZE)
    ]


class GoogleSheetsKeyValueStore(KeyValueStore):
    """
    Google Sheets implementation of the key-value persistence boundary.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read_table(self) -> tuple["OrderedDict[str, str]", int]:
        """
        Read every key from the sheet.

        Returns:
            (values_by_key, data_row_count)
        """
        sheet = self._client.get_ledger_sheet()
        all_rows = sheet.get_all_values()[1:]  # Skip header

        # key -> (expected part count, {part_index: text}); first row seen wins
        parts: "OrderedDict[str, tuple[int, dict[int, str]]]" = OrderedDict()
        for row in all_rows:
            if not row or not row[0]:
                continue
            padded = list(row) + [""] * (len(LEDGER_COLUMNS) - len(row))
            key, part, total, value = padded[0], padded[1], padded[2], padded[3]
            try:
                index, count = int(part), int(total)
            except ValueError as e:
                raise StorageError(f"Malformed ledger row for key {key!r}") from e

            expected, chunks = parts.setdefault(key, (count, {}))
            if count == expected:
                chunks.setdefault(index, value)

        values: "OrderedDict[str, str]" = OrderedDict()
        for key, (count, chunks) in parts.items():
            missing = [i for i in range(count) if i not in chunks]
            if missing:
                raise StorageError(f"Ledger value for {key!r} is missing parts {missing}")
            values[key] = "".join(chunks[i] for i in range(count))

        return values, len(all_rows)

    def _write_table(self, values: Mapping[str, str], previous_rows: int) -> None:
        sheet = self._client.get_ledger_sheet()
        timestamp = utc_now().isoformat()

        table = [list(LEDGER_COLUMNS)]
        for key, value in values.items():
            chunks = _split_value(value)
            for index, chunk in enumerate(chunks):
                table.append([key, str(index), str(len(chunks)), chunk, timestamp])

        end_col = chr(ord("A") + len(LEDGER_COLUMNS) - 1)
        sheet.update(
            range_name=f"A1:{end_col}{len(table)}",
            values=table,
            value_input_option="RAW",
        )

        # Rows left over from a longer previous table
        written_rows = len(table) - 1
        if previous_rows > written_rows:
            sheet.batch_clear([
                f"A{written_rows + 2}:{end_col}{previous_rows + 1}"
            ])

    async def get(self, key: str) -> Optional[str]:
        try:
            values, _ = self._read_table()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read key {key!r}: {e}") from e
        return values.get(key)

    async def set(self, key: str, value: str) -> None:
        await self.set_many({key: value})

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def set_many(self, values: Mapping[str, str]) -> None:
        try:
            current, row_count = self._read_table()
            current.update(values)
            self._write_table(current, row_count)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write ledger sheet: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            current, row_count = self._read_table()
            if key not in current:
                return
            del current[key]
            self._write_table(current, row_count)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to remove key {key!r}: {e}") from e

    async def keys(self) -> list[str]:
        try:
            values, _ = self._read_table()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list keys: {e}") from e
        return list(values)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=safe_get(0),
            timestamp=safe_get(1),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=safe_get(6) or None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        all_rows = sheet.get_all_values()[1:]

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, json.JSONDecodeError) as e:
                logger.warning("audit_row_skipped", event_id=row[0], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
