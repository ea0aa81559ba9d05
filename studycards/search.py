"""
Search over deck names/descriptions and card fronts/backs.
"""

import logging
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel

from .constants import CARDS, DECKS, SEARCH_FIELDS
from .db.marshalling import document_to_model
from .db.storage import Document, Storage
from .exceptions import TextIndexUnavailableError
from .models import Card, Deck, SearchResult

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class SearchService:
    """
    Runs the indexed text search and falls back to a case-insensitive
    substring scan when the backend reports no text index.

    Only ``TextIndexUnavailableError`` triggers the fallback; any other
    storage failure propagates to the caller.
    """

    def __init__(self, storage: Storage):
        self._storage = storage

    def search(self, query: Optional[str]) -> SearchResult:
        if not query or not query.strip():
            return SearchResult()
        query = query.strip()
        return SearchResult(
            decks=self._search_collection(DECKS, Deck, query),
            cards=self._search_collection(CARDS, Card, query),
        )

    def _search_collection(
        self, collection: str, model_cls: Type[ModelT], query: str
    ) -> List[ModelT]:
        fields = SEARCH_FIELDS[collection]
        try:
            documents: List[Document] = self._storage.text_search(collection, fields, query)
        except TextIndexUnavailableError as e:
            logger.debug(f"Text index unavailable for '{collection}' ({e}); scanning instead.")
            documents = self._storage.match_substring(collection, fields, query)
        return [document_to_model(model_cls, doc) for doc in documents]
