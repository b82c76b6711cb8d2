"""
Configuration store implementations.

A configuration store is a persisted key/value mapping of JSON-compatible
values. Any I/O failure surfaces as StoreError.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import duckdb

from ..exceptions import StoreError
from ..utils import DatabaseConnectionManager

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    """Persisted key/value store."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryConfigStore:
    """Process-local store; values are copied through JSON on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Value for '{key}' is not JSON serializable", key=key, original_exception=e) from e

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._data)


class DuckDBConfigStore:
    """Store backed by a single DuckDB table.

    Table:
        bootguard_options(key VARCHAR PRIMARY KEY, value VARCHAR, updated_at TIMESTAMP)
    """

    TABLE = "bootguard_options"

    def __init__(self, db_path: Path, *, retries: int = 3, backoff_seconds: float = 0.1):
        self.db_path = Path(db_path)
        self._db = DatabaseConnectionManager(self.db_path, retries=retries, backoff_seconds=backoff_seconds)
        self._schema_ready = False

    def _ensure_schema(self, conn: duckdb.DuckDBPyConnection) -> None:
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.TABLE} (
                key VARCHAR PRIMARY KEY,
                value VARCHAR NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _run(self, operation: str, key: Optional[str], fn):
        def _with_schema(conn: duckdb.DuckDBPyConnection):
            if not self._schema_ready:
                self._ensure_schema(conn)
            return fn(conn)

        try:
            result = self._db.execute_with_retry(_with_schema)
        except (duckdb.Error, OSError) as e:
            logger.error("Configuration store %s failed for %s: %s", operation, key, e)
            raise StoreError(
                f"Configuration store {operation} failed: {e}",
                key=key,
                original_exception=e,
            ) from e
        self._schema_ready = True
        return result

    def get(self, key: str) -> Optional[Any]:
        def _get(conn: duckdb.DuckDBPyConnection):
            return conn.execute(f"SELECT value FROM {self.TABLE} WHERE key = ?", [key]).fetchone()

        row = self._run("read", key, _get)
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as e:
            raise StoreError(f"Stored value for '{key}' is not valid JSON", key=key, original_exception=e) from e

    def set(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Value for '{key}' is not JSON serializable", key=key, original_exception=e) from e

        def _set(conn: duckdb.DuckDBPyConnection):
            conn.execute(
                f"INSERT OR REPLACE INTO {self.TABLE} (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)",
                [key, payload],
            )

        self._run("write", key, _set)

    def delete(self, key: str) -> None:
        def _delete(conn: duckdb.DuckDBPyConnection):
            conn.execute(f"DELETE FROM {self.TABLE} WHERE key = ?", [key])

        self._run("delete", key, _delete)

    def keys(self) -> List[str]:
        def _keys(conn: duckdb.DuckDBPyConnection):
            return [row[0] for row in conn.execute(f"SELECT key FROM {self.TABLE} ORDER BY key").fetchall()]

        return self._run("list", None, _keys)
