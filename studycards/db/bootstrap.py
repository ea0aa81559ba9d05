"""
One-time storage selection at process startup.

The persistent backend gets ``connect_timeout`` seconds to open. If it fails
or times out, the process degrades to a seeded in-memory store and keeps
serving; the choice is never revisited while the process runs.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Union

from ..config import Settings
from ..exceptions import StorageConnectionError, StorageError
from ..repository import StudyRepository
from ..seed import seed_example_data, seed_if_empty
from .duckdb_storage import DuckDBStorage
from .memory import InMemoryStorage
from .storage import Storage

logger = logging.getLogger(__name__)


def connect_persistent(db_path: Union[str, Path], timeout: float) -> DuckDBStorage:
    """
    Open a DuckDBStorage, giving up after ``timeout`` seconds.

    Raises:
        StorageConnectionError: On timeout or when the database cannot be opened.
        SchemaInitializationError: If the collections cannot be created.
    """
    storage = DuckDBStorage(db_path)
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="storage-connect")
    future = executor.submit(storage.connect)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        # A late connect must not keep the file locked.
        future.add_done_callback(lambda _: storage.close())
        raise StorageConnectionError(
            f"Timed out after {timeout}s connecting to {db_path}",
            original_exception=e,
        ) from e
    finally:
        executor.shutdown(wait=False)


def open_storage(settings: Settings) -> Storage:
    """
    Select the storage backend for this process.

    Returns:
        Storage: A connected DuckDBStorage, or a seeded InMemoryStorage if the
        persistent backend is unreachable.
    """
    try:
        storage = connect_persistent(settings.db_path, settings.connect_timeout)
    except StorageError as e:
        logger.warning(
            f"Persistent storage at {settings.db_path} is unavailable ({e}). "
            "Serving from in-memory storage; changes will be lost on restart."
        )
        memory = InMemoryStorage()
        seed_example_data(StudyRepository(memory))
        return memory

    logger.info(f"Using DuckDB storage at {storage.db_path_resolved}")
    if settings.seed_example_data and seed_if_empty(StudyRepository(storage)):
        logger.info("Seeded empty database with example data.")
    return storage
