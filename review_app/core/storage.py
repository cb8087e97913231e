"""Snapshot persistence behind a swappable storage backend.

The whole application state is a single JSON document. ``SnapshotRepository``
owns the load/migrate/save cycle and delegates the actual bytes to a backend,
so tests can run against memory while the application writes to disk.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Protocol

from review_app.core.migrations import migrate
from review_app.core.models import AppData
from review_app.core.serialization import snapshot_from_dict, snapshot_to_dict

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    def read(self) -> str | None:
        """Return the stored document, or ``None`` when nothing was saved yet."""

    def write(self, document: str) -> None:
        """Replace the stored document."""


class InMemoryBackend:
    """Keeps the document in a string attribute."""

    def __init__(self, document: str | None = None) -> None:
        self.document = document

    def read(self) -> str | None:
        return self.document

    def write(self, document: str) -> None:
        self.document = document


class JsonFileBackend:
    """Stores the document in a UTF-8 file, replacing it atomically on write."""

    def __init__(self, file_path: Path) -> None:
        self._path = Path(file_path).expanduser().resolve()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> str | None:
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")

    def write(self, document: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".snapshot-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class SnapshotRepository:
    """Loads and saves ``AppData`` snapshots through a backend."""

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend

    def load(self) -> AppData | None:
        """Return the stored snapshot, or ``None`` when nothing usable is stored.

        Corrupt documents are logged and ignored so the app can still start.
        """
        document = self._backend.read()
        if not document:
            return None
        try:
            raw = json.loads(document)
        except json.JSONDecodeError:
            logger.exception("Stored snapshot is not valid JSON; starting from defaults")
            return None
        if not isinstance(raw, dict):
            logger.error("Stored snapshot has unexpected type %s; starting from defaults", type(raw).__name__)
            return None
        try:
            return snapshot_from_dict(migrate(raw))
        except (KeyError, TypeError, ValueError):
            logger.exception("Stored snapshot has missing or malformed fields; starting from defaults")
            return None

    def save(self, snapshot: AppData) -> None:
        document = json.dumps(snapshot_to_dict(snapshot), ensure_ascii=False, indent=2)
        self._backend.write(document)
