import sys
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from studycards.api import create_app
from studycards.config import Settings
from studycards.db import DuckDBStorage, InMemoryStorage, Storage
from studycards.repository import StudyRepository
from studycards.search import SearchService
from studycards.seed import seed_example_data


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(request, monkeypatch):
    """
    Run each test inside its own tmpdir so a stray ``.env`` in the repo root
    cannot leak settings into the test, and drop any STUDYCARDS_* variables
    inherited from the shell.
    """
    tmpdir = request.getfixturevalue("tmpdir")
    for name in ("STUDYCARDS_DB_PATH", "STUDYCARDS_CONNECT_TIMEOUT", "STUDYCARDS_SEED_EXAMPLE_DATA"):
        monkeypatch.delenv(name, raising=False)
    sys.path.insert(0, str(tmpdir))
    with tmpdir.as_cwd():
        yield


# --- Storage Fixtures ---


@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    """Path to a fresh DuckDB file inside the test's tmp_path."""
    return tmp_path / "test_studycards.db"


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def duckdb_storage(db_path_file: Path) -> Generator[DuckDBStorage, None, None]:
    """A connected, file-backed DuckDBStorage; closed on teardown."""
    storage = DuckDBStorage(db_path_file).connect()
    try:
        yield storage
    finally:
        storage.close()


@pytest.fixture(params=["memory", "duckdb"])
def storage(request) -> Storage:
    """
    Each storage implementation in turn, so repository and search tests hold
    for both backends behind the port.
    """
    if request.param == "memory":
        return request.getfixturevalue("memory_storage")
    return request.getfixturevalue("duckdb_storage")


@pytest.fixture
def repo(storage: Storage) -> StudyRepository:
    return StudyRepository(storage)


@pytest.fixture
def seeded_repo(repo: StudyRepository) -> StudyRepository:
    """Repository over the example dataset."""
    seed_example_data(repo)
    return repo


@pytest.fixture
def search_service(storage: Storage) -> SearchService:
    return SearchService(storage)


# --- Entity Fixtures ---


@pytest.fixture
def math_folder(repo: StudyRepository):
    return repo.create_folder({"name": "Math"})


@pytest.fixture
def algebra_deck(repo: StudyRepository, math_folder):
    return repo.create_deck({"name": "Algebra", "folder_id": math_folder.id})


# --- API Fixtures ---


@pytest.fixture
def api_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def client(api_storage: InMemoryStorage) -> TestClient:
    """TestClient over an app serving an empty in-memory store."""
    app = create_app(settings=Settings(), storage=api_storage)
    return TestClient(app)
