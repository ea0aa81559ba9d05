"""
Volatile in-memory storage, used when the persistent backend is unreachable
and as the default store in tests.
"""

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..constants import COLLECTIONS
from ..exceptions import StorageError, TextIndexUnavailableError
from .storage import Document, Storage

logger = logging.getLogger(__name__)


def _matches(document: Mapping[str, Any], where: Optional[Mapping[str, Any]]) -> bool:
    if not where:
        return True
    return all(document.get(key) == value for key, value in where.items())


class InMemoryStorage(Storage):
    """
    Process-local store backed by insertion-ordered dicts.

    Each instance owns its own state, so tests and the app never share
    documents by accident. Documents are copied on the way in and out.
    """

    backend_name = "memory"

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Document]] = {
            name: {} for name in COLLECTIONS
        }
        logger.info("Using in-memory storage; data will not survive a restart.")

    def _collection(self, collection: str) -> Dict[str, Document]:
        try:
            return self._collections[collection]
        except KeyError:
            raise StorageError(f"Unknown collection: {collection}") from None

    def insert(self, collection: str, document: Mapping[str, Any]) -> Document:
        docs = self._collection(collection)
        doc_id = document.get("id")
        if not doc_id:
            raise StorageError(f"Document for '{collection}' has no id.")
        if doc_id in docs:
            raise StorageError(
                f"Duplicate id '{doc_id}' in collection '{collection}'."
            )
        docs[doc_id] = copy.deepcopy(dict(document))
        return copy.deepcopy(docs[doc_id])

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        document = self._collection(collection).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    def find(
        self, collection: str, where: Optional[Mapping[str, Any]] = None
    ) -> List[Document]:
        return [
            copy.deepcopy(doc)
            for doc in list(self._collection(collection).values())
            if _matches(doc, where)
        ]

    def update_by_id(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> bool:
        document = self._collection(collection).get(doc_id)
        if document is None:
            return False
        document.update(copy.deepcopy(dict(fields)))
        return True

    def delete_by_id(self, collection: str, doc_id: str) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    def delete_many(self, collection: str, where: Mapping[str, Any]) -> int:
        docs = self._collection(collection)
        doomed = [doc_id for doc_id, doc in docs.items() if _matches(doc, where)]
        for doc_id in doomed:
            del docs[doc_id]
        return len(doomed)

    def count(
        self, collection: str, where: Optional[Mapping[str, Any]] = None
    ) -> int:
        return sum(
            1
            for doc in list(self._collection(collection).values())
            if _matches(doc, where)
        )

    def text_search(
        self, collection: str, fields: Sequence[str], query: str
    ) -> List[Document]:
        raise TextIndexUnavailableError(
            "In-memory storage has no text index."
        )

    def match_substring(
        self, collection: str, fields: Sequence[str], query: str
    ) -> List[Document]:
        needle = query.lower()
        results = []
        for doc in list(self._collection(collection).values()):
            for field in fields:
                value = doc.get(field)
                if isinstance(value, str) and needle in value.lower():
                    results.append(copy.deepcopy(doc))
                    break
        return results
