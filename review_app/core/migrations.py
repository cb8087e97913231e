"""Versioned migrations for persisted snapshots.

Each step upgrades a raw snapshot dict from version ``n`` to ``n + 1``. Data
written by the browser version of the app carries no version and is treated
as version 0. Migrations run once, at load time, before the dict is turned
into domain models.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable

from review_app.constants.storage_constants import CURRENT_SCHEMA_VERSION

logger = logging.getLogger(__name__)

Snapshot = dict[str, Any]


class SnapshotMigrationError(Exception):
    """Raised when a stored snapshot cannot be brought up to date."""


def _backfill_type_chapters(raw: Snapshot) -> Snapshot:
    """v0 -> v1: question types gained a parent chapter."""
    chapters = raw.get("chapters") or []
    fallback = str(chapters[0]["id"]) if chapters else ""
    types = raw.get("questionTypes") or []
    for question_type in types:
        if not question_type.get("chapterId"):
            question_type["chapterId"] = fallback
    raw["questionTypes"] = types
    return raw


_MIGRATIONS: dict[int, Callable[[Snapshot], Snapshot]] = {
    0: _backfill_type_chapters,
}


def schema_version(raw: Snapshot) -> int:
    version = raw.get("schemaVersion", 0)
    if not isinstance(version, int) or version < 0:
        raise SnapshotMigrationError(f"Invalid schema version: {version!r}")
    return version


def migrate(raw: Snapshot) -> Snapshot:
    """Return a copy of ``raw`` upgraded to ``CURRENT_SCHEMA_VERSION``."""
    version = schema_version(raw)
    if version > CURRENT_SCHEMA_VERSION:
        raise SnapshotMigrationError(
            f"Snapshot version {version} is newer than supported version {CURRENT_SCHEMA_VERSION}."
        )

    upgraded = copy.deepcopy(raw)
    while version < CURRENT_SCHEMA_VERSION:
        step = _MIGRATIONS.get(version)
        if step is None:
            raise SnapshotMigrationError(f"No migration registered for version {version}.")
        logger.info("Migrating snapshot from version %d to %d", version, version + 1)
        upgraded = step(upgraded)
        version += 1
        upgraded["schemaVersion"] = version
    return upgraded
