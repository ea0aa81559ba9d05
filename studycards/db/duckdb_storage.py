"""
Persistent storage on DuckDB.

Each collection is a table created on first connect (see ``schema``). Text
search uses DuckDB's ``fts`` extension; the BM25 index is built lazily and
rebuilt after writes, since DuckDB does not maintain it incrementally.
"""

import duckdb
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..constants import SEARCH_FIELDS
from ..exceptions import StorageError, TextIndexUnavailableError
from .connection import ConnectionHandler
from .schema import TABLE_COLUMNS
from .schema_manager import SchemaManager
from .storage import Document, Storage

logger = logging.getLogger(__name__)


# --- Helper Functions ---


def _to_db_value(value: Any) -> Any:
    """Aware datetimes are stored as naive UTC."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_value(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Document]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows:
        return []
    description = cursor.description
    if description is None:
        return []
    columns = [desc[0] for desc in description]
    return [
        {column: _from_db_value(value) for column, value in zip(columns, row, strict=True)}
        for row in rows
    ]


class DuckDBStorage(Storage):
    """
    Storage port implementation backed by a DuckDB file.

    Intended for use as a context manager, or call ``connect()`` explicitly and
    ``close()`` when done.
    """

    backend_name = "duckdb"

    def __init__(self, db_path: Union[str, Path]):
        self._handler = ConnectionHandler(db_path=db_path)
        self._schema_manager = SchemaManager(self._handler)
        # None until the fts extension has been tried.
        self._fts_available: Optional[bool] = None
        self._stale_text_indexes: Set[str] = set(SEARCH_FIELDS)

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    def connect(self) -> "DuckDBStorage":
        """
        Open the database and create any missing collections.

        Raises:
            StorageConnectionError: If the database cannot be opened.
            SchemaInitializationError: If the tables cannot be created.
        """
        self._handler.get_connection()
        self._schema_manager.initialize_schema()
        return self

    def close(self) -> None:
        self._handler.close_connection()

    def __enter__(self) -> "DuckDBStorage":
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- Internals ---

    def _columns(self, collection: str, fields: Sequence[str] = ()) -> Tuple[str, ...]:
        """Return the table's columns, rejecting unknown collections or fields."""
        try:
            columns = TABLE_COLUMNS[collection]
        except KeyError:
            raise StorageError(f"Unknown collection: {collection}") from None
        unknown = [field for field in fields if field not in columns]
        if unknown:
            raise StorageError(
                f"Unknown field(s) for '{collection}': {', '.join(unknown)}"
            )
        return columns

    def _where(self, collection: str, where: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
        if not where:
            return "", []
        self._columns(collection, list(where))
        clause = " AND ".join(f"{field} = ?" for field in where)
        return f" WHERE {clause}", [_to_db_value(v) for v in where.values()]

    def _execute(self, sql: str, params: Sequence[Any], action: str) -> List[Document]:
        """Run one statement on a fresh cursor and return its rows as dicts."""
        conn = self._handler.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(sql, list(params))
                return _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error during {action}: {e}")
            raise StorageError(f"Failed to {action}: {e}", original_exception=e) from e

    def _affected(self, rows: List[Document]) -> int:
        """DuckDB reports DML results as a single 'Count' row."""
        if not rows:
            return 0
        return int(next(iter(rows[0].values())))

    def _mark_written(self, collection: str) -> None:
        if collection in SEARCH_FIELDS:
            self._stale_text_indexes.add(collection)

    # --- Storage port ---

    def insert(self, collection: str, document: Mapping[str, Any]) -> Document:
        self._columns(collection, list(document))
        fields = list(document)
        placeholders = ", ".join("?" for _ in fields)
        sql = f"INSERT INTO {collection} ({', '.join(fields)}) VALUES ({placeholders});"
        self._execute(
            sql,
            [_to_db_value(document[field]) for field in fields],
            f"insert into {collection}",
        )
        self._mark_written(collection)
        stored = self.find_by_id(collection, document["id"])
        if stored is None:
            raise StorageError(
                f"Inserted document {document['id']} missing from '{collection}'."
            )
        return stored

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        rows = self.find(collection, {"id": doc_id})
        return rows[0] if rows else None

    def find(
        self, collection: str, where: Optional[Mapping[str, Any]] = None
    ) -> List[Document]:
        columns = self._columns(collection)
        clause, params = self._where(collection, where)
        sql = f"SELECT {', '.join(columns)} FROM {collection}{clause} ORDER BY seq;"
        return self._execute(sql, params, f"query {collection}")

    def update_by_id(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> bool:
        if not fields:
            return self.find_by_id(collection, doc_id) is not None
        self._columns(collection, list(fields))
        assignments = ", ".join(f"{field} = ?" for field in fields)
        params = [_to_db_value(v) for v in fields.values()] + [doc_id]
        rows = self._execute(
            f"UPDATE {collection} SET {assignments} WHERE id = ?;",
            params,
            f"update {collection}",
        )
        self._mark_written(collection)
        return self._affected(rows) > 0

    def delete_by_id(self, collection: str, doc_id: str) -> bool:
        return self.delete_many(collection, {"id": doc_id}) > 0

    def delete_many(self, collection: str, where: Mapping[str, Any]) -> int:
        self._columns(collection)
        clause, params = self._where(collection, where)
        rows = self._execute(
            f"DELETE FROM {collection}{clause};", params, f"delete from {collection}"
        )
        self._mark_written(collection)
        return self._affected(rows)

    def count(
        self, collection: str, where: Optional[Mapping[str, Any]] = None
    ) -> int:
        self._columns(collection)
        clause, params = self._where(collection, where)
        rows = self._execute(
            f"SELECT COUNT(*) AS n FROM {collection}{clause};",
            params,
            f"count {collection}",
        )
        return int(rows[0]["n"]) if rows else 0

    def match_substring(
        self, collection: str, fields: Sequence[str], query: str
    ) -> List[Document]:
        columns = self._columns(collection, fields)
        clause = " OR ".join(
            f"contains(lower(coalesce({field}, '')), lower(?))" for field in fields
        )
        sql = (
            f"SELECT {', '.join(columns)} FROM {collection} "
            f"WHERE {clause} ORDER BY seq;"
        )
        return self._execute(sql, [query] * len(fields), f"scan {collection}")

    def text_search(
        self, collection: str, fields: Sequence[str], query: str
    ) -> List[Document]:
        columns = self._columns(collection, fields)
        self._ensure_text_index(collection, fields)
        # match_bm25 is a macro; the query goes in as an escaped literal.
        literal = "'" + query.replace("'", "''") + "'"
        sql = f"""
            SELECT {', '.join(columns)}
            FROM (
                SELECT *, fts_main_{collection}.match_bm25(id, {literal}) AS score
                FROM {collection}
            ) AS matched
            WHERE score IS NOT NULL
            ORDER BY seq;
        """
        return self._execute(sql, [], f"text search {collection}")

    # --- Text index ---

    def _load_fts_extension(self) -> None:
        """
        Installs and loads the fts extension once per storage instance.

        Raises:
            TextIndexUnavailableError: If the extension cannot be installed or
                loaded (offline machine, restricted build). Remembered, so later
                searches skip straight to the fallback.
        """
        if self._fts_available:
            return
        if self._fts_available is False:
            raise TextIndexUnavailableError("The fts extension is unavailable.")
        conn = self._handler.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute("INSTALL fts;")
                cursor.execute("LOAD fts;")
        except duckdb.Error as e:
            self._fts_available = False
            logger.warning(f"Full-text search unavailable; using substring matching instead: {e}")
            raise TextIndexUnavailableError(
                f"Could not load the fts extension: {e}", original_exception=e
            ) from e
        self._fts_available = True
        logger.info("Loaded the DuckDB fts extension.")

    def _ensure_text_index(self, collection: str, fields: Sequence[str]) -> None:
        """(Re)build the BM25 index for ``collection`` if writes made it stale."""
        self._load_fts_extension()
        if collection not in self._stale_text_indexes:
            return
        field_list = ", ".join(f"'{field}'" for field in fields)
        conn = self._handler.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(
                    f"PRAGMA create_fts_index('{collection}', 'id', {field_list}, overwrite=1);"
                )
        except duckdb.Error as e:
            logger.warning(f"Could not build text index for '{collection}': {e}")
            raise TextIndexUnavailableError(
                f"No text index for '{collection}': {e}", original_exception=e
            ) from e
        self._stale_text_indexes.discard(collection)
        logger.debug(f"Rebuilt text index for '{collection}'.")
