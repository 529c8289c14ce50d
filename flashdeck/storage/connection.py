import logging
from pathlib import Path
from typing import Optional, Union

import duckdb

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def resolve_db_path(db_path: Union[str, Path]) -> Path:
    """Absolute path of a database file, or Path(":memory:") for in-memory use."""
    if isinstance(db_path, str) and db_path.lower() == MEMORY_PATH:
        return Path(MEMORY_PATH)
    return Path(db_path).expanduser().resolve()


class ConnectionHandler:
    """
    Owns one lazily opened DuckDB connection.

    Closing drops the connection object so the next ``get_connection`` call
    opens a fresh one.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        self.db_path_resolved = resolve_db_path(db_path)
        self.read_only = read_only
        self.is_new_db = False
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        logger.debug(
            f"ConnectionHandler for {self.db_path_resolved} (read_only={read_only})"
        )

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_PATH

    def _open(self) -> duckdb.DuckDBPyConnection:
        if self.is_memory:
            self.is_new_db = True
        else:
            self.is_new_db = not self.db_path_resolved.exists()
            if not self.read_only:
                self.db_path_resolved.parent.mkdir(parents=True, exist_ok=True)
        return duckdb.connect(
            database=str(self.db_path_resolved), read_only=self.read_only
        )

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Return the open connection, connecting first if needed.

        Raises:
            PersistenceError: If DuckDB cannot open the database.
        """
        if self._connection is None:
            try:
                self._connection = self._open()
            except (duckdb.Error, OSError) as e:
                raise PersistenceError(
                    f"Failed to connect to database: {e}", original_exception=e
                ) from e
            logger.info(f"Connected to database at {self.db_path_resolved}.")
        return self._connection

    def close_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.close()
        except duckdb.Error as e:
            logger.error(f"Error closing the database connection: {e}")
        else:
            logger.info(f"Database connection to {self.db_path_resolved} closed.")
