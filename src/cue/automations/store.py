"""Whole-list JSON store for automations.

Layout: ``{"version": 1, "automations": [<record>, ...]}``. Writes are atomic
(tempfile + fsync + replace) under a sibling file lock. Reads never raise:
missing or corrupt data degrades to an empty list so the application always
starts usable.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from cue.automations.types import AutomationRecord
from cue.config.paths import get_automations_path

logger = logging.getLogger(__name__)

STORE_VERSION = 1

# Seconds to wait for another process holding the store lock
_LOCK_TIMEOUT = 10.0


class AutomationStore:
    """Durable load/save of the full ordered list of automations."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or get_automations_path()
        self._lock = FileLock(str(self._path) + ".lock", timeout=_LOCK_TIMEOUT)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[AutomationRecord]:
        """Load all automations in stored order.

        Returns an empty list if the file is missing or unreadable. Entries
        that fail to parse are skipped.
        """
        if not self._path.exists():
            return []

        try:
            with self._lock:
                raw = self._read_raw()
        except (OSError, Timeout) as e:
            logger.warning(
                "automation_store_lock_failed",
                extra={"file.path": str(self._path), "error.message": str(e)},
            )
            return []

        if raw is None:
            return []

        records: list[AutomationRecord] = []
        seen: set[str] = set()
        for index, item in enumerate(raw):
            record = AutomationRecord.from_dict(item) if isinstance(item, dict) else None
            if record is None:
                logger.warning(
                    "automation_store_entry_skipped",
                    extra={"file.path": str(self._path), "store.index": index},
                )
                continue
            if record.id in seen:
                logger.warning(
                    "automation_store_duplicate_id",
                    extra={"file.path": str(self._path), "automation.id": record.id},
                )
                continue
            seen.add(record.id)
            records.append(record)
        return records

    def save(self, records: Iterable[AutomationRecord]) -> bool:
        """Persist the full list, replacing whatever was stored.

        Returns:
            True on success. Failures are logged and reported as False,
            never raised.
        """
        try:
            payload = {
                "version": STORE_VERSION,
                "automations": [record.to_dict() for record in records],
            }
            text = json.dumps(payload, indent=2, sort_keys=True) + "\n"
        except (TypeError, ValueError) as e:
            logger.error(
                "automation_store_encode_failed",
                extra={"file.path": str(self._path), "error.message": str(e)},
            )
            return False

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock:
                _write_text_atomic(self._path, text)
        except (OSError, Timeout) as e:
            logger.error(
                "automation_store_write_failed",
                extra={"file.path": str(self._path), "error.message": str(e)},
            )
            return False

        logger.debug(
            "automation_store_saved",
            extra={
                "file.path": str(self._path),
                "store.count": len(payload["automations"]),
            },
        )
        return True

    def _read_raw(self) -> list[Any] | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(
                "automation_store_read_failed",
                extra={"file.path": str(self._path), "error.message": str(e)},
            )
            return None

        automations = data.get("automations") if isinstance(data, dict) else data
        if not isinstance(automations, list):
            logger.warning(
                "automation_store_invalid_layout", extra={"file.path": str(self._path)}
            )
            return None
        return automations


def _write_text_atomic(path: Path, text: str) -> None:
    """Write text atomically via tempfile + fsync + os.replace()."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        Path(tmp).replace(path)
    except BaseException:
        try:
            Path(tmp).unlink()
        except OSError:
            pass
        raise
