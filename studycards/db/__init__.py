"""Storage package for studycards.

Exposes the storage port and its two implementations. Backend selection
lives in ``studycards.db.bootstrap``.
"""

from .storage import Storage
from .memory import InMemoryStorage
from .duckdb_storage import DuckDBStorage

__all__ = ["Storage", "InMemoryStorage", "DuckDBStorage"]
