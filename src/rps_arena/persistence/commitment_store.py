"""Durable commitment store — the only local state that must survive restarts.

Each entry maps an intent identifier to the move and blinding secret used
to build that intent's commitment digest. Losing an entry before reveal
makes the move unrevealable, so the file is written atomically and every
write is flushed before the call returns.

Layout: a single JSON object, one key per intent::

    {"rps_0xabc...": {"move": 1, "salt": "0x..."}}

Reading is tolerant. A missing file, unreadable JSON or a malformed entry
is treated as absent and logged, never raised.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional, Protocol


logger = logging.getLogger(__name__)

KEY_PREFIX = "rps_"


def storage_key(intent_id: str) -> str:
    """Fixed key-naming convention derived from the intent identifier."""
    return f"{KEY_PREFIX}{intent_id.lower()}"


class CommitmentStore(Protocol):
    """Narrow key-value interface keyed by intent identifier."""

    def get(self, intent_id: str) -> Optional[dict[str, Any]]: ...

    def put(self, intent_id: str, record: dict[str, Any]) -> None: ...

    def delete(self, intent_id: str) -> None: ...


class MemoryCommitmentStore:
    """In-process store. Nothing survives the process."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}

    def get(self, intent_id: str) -> Optional[dict[str, Any]]:
        record = self._entries.get(storage_key(intent_id))
        return dict(record) if record is not None else None

    def put(self, intent_id: str, record: dict[str, Any]) -> None:
        self._entries[storage_key(intent_id)] = dict(record)

    def delete(self, intent_id: str) -> None:
        self._entries.pop(storage_key(intent_id), None)

    def keys(self) -> list[str]:
        return sorted(self._entries)


class JsonFileCommitmentStore:
    """Commitment store persisted to a single JSON file.

    Writes are last-write-wins per key. The whole document is rewritten
    through a temporary file and ``os.replace`` so a crash never leaves a
    half-written file behind.
    """

    def __init__(self, storage_path: Path) -> None:
        self._path = storage_path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, intent_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            record = self._read().get(storage_key(intent_id))
        if record is None:
            return None
        if not isinstance(record, dict):
            logger.warning("Ignoring malformed commitment entry for %s", intent_id)
            return None
        return record

    def put(self, intent_id: str, record: dict[str, Any]) -> None:
        with self._lock:
            data = self._read()
            data[storage_key(intent_id)] = record
            self._write(data)

    def delete(self, intent_id: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(storage_key(intent_id), None) is not None:
                self._write(data)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._read())

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            raw = self._path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Commitment store %s is unreadable: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Commitment store %s is not a JSON object", self._path)
            return {}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self._path.parent), prefix=".commitments-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, sort_keys=True, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
