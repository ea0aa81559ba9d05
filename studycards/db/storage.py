"""
The storage port: the persistence contract the repository and the search
service depend on.

Collections hold plain dict documents keyed by their ``id`` field. Every
backend returns documents in insertion order so listings and search results
stay deterministic for a fixed dataset.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

Document = Dict[str, Any]


class Storage(ABC):
    """Abstract keyed-collection store for folders, decks and cards."""

    #: Short name reported by the health endpoint and the CLI.
    backend_name: str = "abstract"

    @abstractmethod
    def insert(self, collection: str, document: Mapping[str, Any]) -> Document:
        """
        Insert a document; its ``id`` must be unique within the collection.

        Returns:
            Document: A copy of the stored document.
        """

    @abstractmethod
    def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        """Return the document with the given id, or None."""

    @abstractmethod
    def find(
        self, collection: str, where: Optional[Mapping[str, Any]] = None
    ) -> List[Document]:
        """
        Return documents whose fields equal every value in ``where``.

        An empty or missing filter returns the whole collection.
        """

    @abstractmethod
    def update_by_id(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> bool:
        """
        Set ``fields`` on one document in a single write.

        Returns:
            bool: True if a document matched ``doc_id``.
        """

    @abstractmethod
    def delete_by_id(self, collection: str, doc_id: str) -> bool:
        """Delete one document. Returns True if it existed."""

    @abstractmethod
    def delete_many(self, collection: str, where: Mapping[str, Any]) -> int:
        """Delete every document matching ``where``; returns the number removed."""

    @abstractmethod
    def count(
        self, collection: str, where: Optional[Mapping[str, Any]] = None
    ) -> int:
        """Count documents matching ``where``."""

    @abstractmethod
    def text_search(
        self, collection: str, fields: Sequence[str], query: str
    ) -> List[Document]:
        """
        Indexed text search over ``fields``.

        Raises:
            TextIndexUnavailableError: If this backend cannot serve indexed
                search. Any other exception is a genuine failure.
        """

    @abstractmethod
    def match_substring(
        self, collection: str, fields: Sequence[str], query: str
    ) -> List[Document]:
        """Case-insensitive substring match of ``query`` against ``fields``."""

    def close(self) -> None:
        """Release backend resources. The default is a no-op."""
