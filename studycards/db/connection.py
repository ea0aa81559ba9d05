import duckdb
import logging
from pathlib import Path
from typing import Optional, Union

from ..exceptions import StorageConnectionError

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


def resolve_db_path(db_path: Union[str, Path]) -> Path:
    """Absolute path for a database file; ``:memory:`` is passed through."""
    if str(db_path).lower() == MEMORY_DB:
        return Path(MEMORY_DB)
    return Path(db_path).expanduser().resolve()


class ConnectionHandler:
    """
    Owns the single DuckDB connection of a storage instance.

    The connection is opened on first use and can be reopened after
    ``close_connection``.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path_resolved = resolve_db_path(db_path)
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        logger.debug(f"Connection handler for {self.db_path_resolved}")

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_DB

    def _open(self) -> duckdb.DuckDBPyConnection:
        if not self.is_memory:
            self.db_path_resolved.parent.mkdir(parents=True, exist_ok=True)
        return duckdb.connect(database=str(self.db_path_resolved))

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Return the open connection, opening it first if needed.

        Raises:
            StorageConnectionError: If the parent directory cannot be created
                or DuckDB refuses the file (locked by another process, not a
                database, unreadable).
        """
        if self._connection is not None:
            return self._connection
        try:
            self._connection = self._open()
        except (duckdb.Error, OSError) as e:
            raise StorageConnectionError(
                f"Failed to connect to database {self.db_path_resolved}: {e}",
                original_exception=e,
            ) from e
        logger.info(f"Opened DuckDB database at {self.db_path_resolved}")
        return self._connection

    def close_connection(self) -> None:
        if self._connection is None:
            return
        connection, self._connection = self._connection, None
        try:
            connection.close()
            logger.info(f"Closed DuckDB database at {self.db_path_resolved}")
        except duckdb.Error as e:
            logger.error(f"Error closing the database connection: {e}")
