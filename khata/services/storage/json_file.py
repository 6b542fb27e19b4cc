"""
JSON File Storage

DESIGN DECISION: All keys live in a single UTF-8 JSON document.
Every write rewrites the document through a temporary file followed by
os.replace, so a crash leaves either the old or the new document on disk.
That gives set_many its all-or-nothing guarantee for free.

TRADEOFFS:
- The whole document is rewritten on each change (fine for one shop)
- Only one process should write the file at a time
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Mapping, Optional

import structlog

from khata.services.storage.interface import KeyValueStore, StorageError

logger = structlog.get_logger(__name__)


class JsonFileKeyValueStore(KeyValueStore):
    """Key-value store persisted to one JSON file."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._data: Optional[dict[str, str]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data

        if not self._path.exists():
            self._data = {}
            return self._data

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {self._path}: {e}") from e

        if not isinstance(raw, dict) or not all(
            isinstance(v, str) for v in raw.values()
        ):
            raise StorageError(f"Unexpected content in {self._path}")

        self._data = raw
        return self._data

    def _write(self, data: dict[str, str]) -> None:
        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to write {self._path}: {e}") from e

        self._data = data
        logger.debug("json_store_written", path=str(self._path), keys=len(data))

    async def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    async def set(self, key: str, value: str) -> None:
        await self.set_many({key: value})

    async def set_many(self, values: Mapping[str, str]) -> None:
        data = dict(self._load())
        data.update(values)
        self._write(data)

    async def remove(self, key: str) -> None:
        data = dict(self._load())
        if key in data:
            del data[key]
            self._write(data)

    async def keys(self) -> list[str]:
        return list(self._load())
