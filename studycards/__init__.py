"""Studycards - folders, decks and flashcards behind a small REST API."""

from .models import Card, Deck, Folder, SearchResult
from .repository import StudyRepository
from .search import SearchService
from .db import Storage, InMemoryStorage, DuckDBStorage

__all__ = [
    "Card",
    "Deck",
    "Folder",
    "SearchResult",
    "StudyRepository",
    "SearchService",
    "Storage",
    "InMemoryStorage",
    "DuckDBStorage",
]
