"""
Key-value backends for the persisted application document.

The application stores a single JSON document under one key, so the backend
only needs get/set/delete of strings.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

import duckdb

from ..exceptions import PersistenceError
from .connection import ConnectionHandler

logger = logging.getLogger(__name__)

KV_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key VARCHAR PRIMARY KEY,
        value VARCHAR NOT NULL,
        updated_at TIMESTAMP DEFAULT current_timestamp
    );
"""


class KeyValueStore(ABC):
    """Minimal string key-value interface."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class DuckDBKeyValueStore(KeyValueStore):
    """
    Stores documents in a single `kv_store` table of a DuckDB database.

    The table is created on first use. Any DuckDB failure is raised as a
    PersistenceError.
    """

    _UPSERT_SQL = """
        INSERT INTO kv_store (key, value, updated_at)
        VALUES ($1, $2, current_timestamp)
        ON CONFLICT (key) DO UPDATE SET
            value = EXCLUDED.value,
            updated_at = EXCLUDED.updated_at;
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_ready = False

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    def _connection(self) -> duckdb.DuckDBPyConnection:
        conn = self._handler.get_connection()
        if not self._schema_ready:
            if not self._handler.read_only:
                try:
                    conn.execute(KV_SCHEMA_SQL)
                except duckdb.Error as e:
                    raise PersistenceError(
                        f"Failed to initialize kv_store schema: {e}",
                        original_exception=e,
                    ) from e
                if self._handler.is_new_db:
                    logger.info(f"Created new database at {self.db_path_resolved}")
                logger.debug(
                    f"kv_store schema ready at {self.db_path_resolved}"
                )
            self._schema_ready = True
        return conn

    def get(self, key: str) -> Optional[str]:
        conn = self._connection()
        try:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = $1", [key]
            ).fetchone()
        except duckdb.CatalogException:
            # Read-only database that never had the table created.
            return None
        except duckdb.Error as e:
            raise PersistenceError(
                f"Failed to read key '{key}': {e}", original_exception=e
            ) from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        conn = self._connection()
        try:
            conn.execute(self._UPSERT_SQL, [key, value])
        except duckdb.Error as e:
            logger.error(f"Failed to write key '{key}': {e}")
            raise PersistenceError(
                f"Failed to write key '{key}': {e}", original_exception=e
            ) from e

    def delete(self, key: str) -> None:
        conn = self._connection()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = $1", [key])
        except duckdb.Error as e:
            raise PersistenceError(
                f"Failed to delete key '{key}': {e}", original_exception=e
            ) from e

    def close(self) -> None:
        self._handler.close_connection()
        self._schema_ready = False
