"""Whole-state persistence providers.

The laundry state is written as one document under one logical key and read
back in full at startup; there is no incremental persistence contract.
"""
from __future__ import annotations

import errno
import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, Optional

_CAPACITY_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class StorageError(RuntimeError):
    """Raised when the persistence layer fails for reasons other than capacity."""


class StorageQuotaExceededError(StorageError):
    """Raised when a write is refused because storage capacity is exhausted.

    Retrying will not help; freeing space will. ``user_message`` is safe to
    show to the operator as is.
    """

    user_message = (
        "Storage is full. Create a batch from the pending sheets, send it to "
        "free space, or clear old sheets."
    )

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{self.user_message} ({detail})" if detail else self.user_message)


def _encode(payload: Dict[str, Any], max_bytes: Optional[int]) -> str:
    encoded = json.dumps(payload, ensure_ascii=False)
    size = len(encoded.encode("utf-8"))
    if max_bytes is not None and size > max_bytes:
        raise StorageQuotaExceededError(f"{size} bytes exceeds the {max_bytes} byte limit")
    return encoded


class StateStore:
    """Interface for persisting the entity store under a single key."""

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def save(self, key: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError


class JSONStateStore(StateStore):
    """JSON-file-backed StateStore suitable for local runs."""

    def __init__(self, base_dir: str | Path = "data/state", max_bytes: Optional[int] = None) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.max_bytes = max_bytes

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{key}.json"

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StorageError(f"State file {path.name} is corrupt: {exc}") from exc

    def save(self, key: str, payload: Dict[str, Any]) -> None:
        encoded = _encode(payload, self.max_bytes)
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(encoded, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            if exc.errno in _CAPACITY_ERRNOS:
                raise StorageQuotaExceededError(str(exc)) from exc
            raise StorageError(f"Could not write state file {path.name}: {exc}") from exc

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True


class SQLiteStateStore(StateStore):
    """SQLite-backed state store for lightweight durability."""

    def __init__(self, db_path: str | Path = "data/laundry_state.db", max_bytes: Optional[int] = None) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_bytes = max_bytes
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS state_documents (
                    state_key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at REAL
                );
                """
            )

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM state_documents WHERE state_key = ?", (key,)
            ).fetchone()
        return json.loads(row["payload"]) if row else None

    def save(self, key: str, payload: Dict[str, Any]) -> None:
        encoded = _encode(payload, self.max_bytes)
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO state_documents(state_key, payload, updated_at) VALUES (?, ?, ?)\n"
                    "ON CONFLICT(state_key) DO UPDATE SET payload=excluded.payload, updated_at=excluded.updated_at",
                    (key, encoded, time.time()),
                )
        except sqlite3.OperationalError as exc:
            if "full" in str(exc).lower():
                raise StorageQuotaExceededError(str(exc)) from exc
            raise StorageError(f"Could not write state to {self.db_path.name}: {exc}") from exc

    def delete(self, key: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM state_documents WHERE state_key = ?", (key,))
            return cursor.rowcount > 0


__all__ = [
    "StorageError",
    "StorageQuotaExceededError",
    "StateStore",
    "JSONStateStore",
    "SQLiteStateStore",
]
