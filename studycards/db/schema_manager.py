import duckdb
import logging

from .connection import ConnectionHandler
from . import schema
from ..exceptions import SchemaInitializationError

logger = logging.getLogger(__name__)


class SchemaManager:
    """Creates the collections on first use and their lookup indexes."""

    def __init__(self, handler: ConnectionHandler):
        """
        Initializes the SchemaManager with a connection handler.

        Args:
            handler: The ConnectionHandler instance for the database.
        """
        self._handler = handler

    def initialize_schema(self) -> None:
        """
        Creates any missing tables inside one transaction, then attempts the
        secondary indexes. Safe to call on an existing database.

        Raises:
            SchemaInitializationError: If the tables cannot be created.
        """
        conn = self._handler.get_connection()
        try:
            with conn.cursor() as cursor:
                self._create_tables(cursor)
            logger.info(f"Database schema at {self._handler.db_path_resolved} initialized successfully (or already exists).")
        except duckdb.Error as e:
            logger.error(f"Error initializing database schema at {self._handler.db_path_resolved}: {e}")
            raise SchemaInitializationError(f"Failed to initialize schema: {e}", original_exception=e) from e

        self.create_secondary_indexes()

    def _create_tables(self, cursor: duckdb.DuckDBPyConnection) -> None:
        """Executes the schema DDL atomically, rolling back on failure."""
        cursor.begin()
        try:
            cursor.execute(schema.DB_SCHEMA_SQL)
            cursor.commit()
        except duckdb.Error:
            try:
                cursor.rollback()
                logger.info("Transaction rolled back due to schema initialization error.")
            except duckdb.Error as rb_err:
                logger.error(f"Failed to rollback transaction: {rb_err}")
            raise

    def create_secondary_indexes(self) -> int:
        """
        Creates the lookup indexes. Failures are logged and skipped because the
        indexes only speed up filtered queries.

        Returns:
            int: Number of index statements that succeeded.
        """
        conn = self._handler.get_connection()
        created = 0
        for statement in schema.SECONDARY_INDEX_SQL:
            try:
                with conn.cursor() as cursor:
                    cursor.execute(statement)
                created += 1
            except duckdb.Error as e:
                logger.warning(f"Could not create index ({statement.strip()}): {e}")
        return created
