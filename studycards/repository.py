"""
CRUD operations for folders, decks and cards over the storage port.

The repository owns the data model invariants:

* a deck's ``folder_id`` and a card's ``deck_id`` must reference an existing
  parent when the child is created;
* a folder that still owns decks cannot be deleted;
* deleting a deck deletes its cards first;
* ``Deck.card_count`` is recomputed from the cards collection and persisted
  after every card insert or delete (recompute-on-write).
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .constants import CARDS, DECKS, DEFAULT_DECK_COLOR, FOLDERS
from .db.marshalling import document_to_model, model_to_document
from .db.storage import Storage
from .exceptions import ConflictError, StorageError, ValidationError
from .models import (
    Card,
    CardCreate,
    CardUpdate,
    Deck,
    DeckCreate,
    DeckUpdate,
    Folder,
    FolderCreate,
    utc_now,
)

logger = logging.getLogger(__name__)

# Recount tries after a card write before leaving the cached count stale.
RECOUNT_ATTEMPTS = 3

PayloadT = TypeVar("PayloadT", bound=BaseModel)
Payload = Union[Mapping[str, Any], BaseModel, None]


def _describe_validation_error(error: PydanticValidationError) -> str:
    """Flatten pydantic errors into one client-facing message."""
    problems = []
    reported = set()
    for item in error.errors():
        # Union fields report once per member; keep the first.
        field = str(item["loc"][0]) if item["loc"] else "body"
        if field in reported:
            continue
        reported.add(field)
        if item["type"] == "missing":
            problems.append(f"{field} is required")
        elif item["type"] == "string_too_short":
            problems.append(f"{field} must not be empty")
        else:
            problems.append(f"{field}: {item['msg']}")
    return "; ".join(problems)


class StudyRepository:
    """Entity repository for folders, decks and cards."""

    def __init__(self, storage: Storage):
        self._storage = storage

    @property
    def storage(self) -> Storage:
        return self._storage

    @staticmethod
    def _parse(payload_cls: Type[PayloadT], payload: Payload) -> PayloadT:
        """
        Validate an incoming payload.

        Raises:
            ValidationError: If the payload is not a mapping or a required field
                is missing, empty or of the wrong type.
        """
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(exclude_unset=True)
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValidationError("Request body must be a JSON object.")
        try:
            return payload_cls.model_validate(dict(payload))
        except PydanticValidationError as e:
            raise ValidationError(_describe_validation_error(e)) from e

    # --- Folder Operations ---

    def list_folders(self) -> List[Folder]:
        return [document_to_model(Folder, doc) for doc in self._storage.find(FOLDERS)]

    def get_folder(self, folder_id: str) -> Optional[Folder]:
        doc = self._storage.find_by_id(FOLDERS, folder_id)
        return document_to_model(Folder, doc) if doc is not None else None

    def create_folder(self, payload: Payload) -> Folder:
        """
        Create an empty folder.

        Raises:
            ValidationError: If ``name`` is missing or empty.
        """
        data = self._parse(FolderCreate, payload)
        folder = Folder(name=data.name)
        stored = self._storage.insert(FOLDERS, model_to_document(folder))
        logger.info(f"Created folder {folder.id} ({folder.name!r})")
        return document_to_model(Folder, stored)

    def delete_folder(self, folder_id: str) -> bool:
        """
        Delete an empty folder.

        Returns:
            bool: False if the folder does not exist.

        Raises:
            ConflictError: If the folder still owns at least one deck. Decks are
                never deleted on the folder's behalf.
        """
        if self._storage.find_by_id(FOLDERS, folder_id) is None:
            return False
        deck_count = self._storage.count(DECKS, {"folder_id": folder_id})
        if deck_count > 0:
            raise ConflictError(
                f"Cannot delete folder with decks ({deck_count} remaining)"
            )
        deleted = self._storage.delete_by_id(FOLDERS, folder_id)
        if deleted:
            logger.info(f"Deleted folder {folder_id}")
        return deleted

    # --- Deck Operations ---

    def list_decks(self, folder_id: Optional[str] = None) -> List[Deck]:
        where = {"folder_id": folder_id} if folder_id else None
        return [document_to_model(Deck, doc) for doc in self._storage.find(DECKS, where)]

    def get_deck(self, deck_id: str) -> Optional[Deck]:
        doc = self._storage.find_by_id(DECKS, deck_id)
        return document_to_model(Deck, doc) if doc is not None else None

    def create_deck(self, payload: Payload) -> Deck:
        """
        Create a deck under an existing folder with ``card_count`` 0.

        ``description`` defaults to an empty string and ``color`` to the
        default palette color.

        Raises:
            ValidationError: If ``name`` or ``folder_id`` is missing, or the
                folder does not exist.
        """
        data = self._parse(DeckCreate, payload)
        if self._storage.find_by_id(FOLDERS, data.folder_id) is None:
            raise ValidationError(f"Folder '{data.folder_id}' does not exist")
        deck = Deck(
            name=data.name,
            folder_id=data.folder_id,
            description=data.description or "",
            color=data.color or DEFAULT_DECK_COLOR,
        )
        stored = self._storage.insert(DECKS, model_to_document(deck))
        logger.info(f"Created deck {deck.id} ({deck.name!r}) in folder {deck.folder_id}")
        return document_to_model(Deck, stored)

    def update_deck(self, deck_id: str, payload: Payload) -> Optional[Deck]:
        """
        Apply a partial update; fields that are absent or null keep their value.

        Returns:
            Deck | None: The updated deck, or None if it does not exist.
        """
        data = self._parse(DeckUpdate, payload)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if self._storage.find_by_id(DECKS, deck_id) is None:
            return None
        if changes and not self._storage.update_by_id(DECKS, deck_id, changes):
            return None
        return self.get_deck(deck_id)

    def delete_deck(self, deck_id: str) -> bool:
        """
        Delete a deck and, before it, every card it owns.

        Returns:
            bool: False if the deck does not exist.
        """
        if self._storage.find_by_id(DECKS, deck_id) is None:
            return False
        removed_cards = self._storage.delete_many(CARDS, {"deck_id": deck_id})
        deleted = self._storage.delete_by_id(DECKS, deck_id)
        logger.info(f"Deleted deck {deck_id} and {removed_cards} card(s)")
        return deleted

    def recount_deck_cards(self, deck_id: str) -> int:
        """Recompute a deck's ``card_count`` from the cards collection and persist it."""
        card_count = self._storage.count(CARDS, {"deck_id": deck_id})
        self._storage.update_by_id(DECKS, deck_id, {"card_count": card_count})
        logger.debug(f"Deck {deck_id} card_count = {card_count}")
        return card_count

    def recount_all_decks(self) -> Dict[str, int]:
        """Repair every deck's cached ``card_count``."""
        return {deck.id: self.recount_deck_cards(deck.id) for deck in self.list_decks()}

    def _refresh_card_count(self, deck_id: str) -> Optional[int]:
        """
        Recount after a committed card insert or delete.

        Concurrent writers on one deck can make the count update conflict. The
        card write already succeeded, so failures are retried, then logged and
        the cached count is left for the next write or `recount` to repair.
        """
        for attempt in range(1, RECOUNT_ATTEMPTS + 1):
            try:
                return self.recount_deck_cards(deck_id)
            except StorageError as e:
                logger.warning(
                    f"Recount of deck {deck_id} failed (attempt {attempt}/{RECOUNT_ATTEMPTS}): {e}"
                )
        return None

    # --- Card Operations ---

    def list_cards(self, deck_id: Optional[str] = None) -> List[Card]:
        where = {"deck_id": deck_id} if deck_id else None
        return [document_to_model(Card, doc) for doc in self._storage.find(CARDS, where)]

    def get_card(self, card_id: str) -> Optional[Card]:
        doc = self._storage.find_by_id(CARDS, card_id)
        return document_to_model(Card, doc) if doc is not None else None

    def create_card(self, payload: Payload) -> Card:
        """
        Create a card and refresh its deck's ``card_count``.

        Raises:
            ValidationError: If ``deck_id``, ``front`` or ``back`` is missing,
                or the deck does not exist. Nothing is written in that case.
        """
        data = self._parse(CardCreate, payload)
        if self._storage.find_by_id(DECKS, data.deck_id) is None:
            raise ValidationError(f"Deck '{data.deck_id}' does not exist")
        card = Card(deck_id=data.deck_id, front=data.front, back=data.back)
        stored = self._storage.insert(CARDS, model_to_document(card))
        self._refresh_card_count(card.deck_id)
        logger.info(f"Created card {card.id} in deck {card.deck_id}")
        return document_to_model(Card, stored)

    def update_card(self, card_id: str, payload: Payload) -> Optional[Card]:
        """
        Apply a partial update to a card.

        Setting ``difficulty`` also stamps ``last_studied`` with the current
        time, in the same write. Updates without ``difficulty`` leave both
        untouched.

        Returns:
            Card | None: The updated card, or None if it does not exist.
        """
        data = self._parse(CardUpdate, payload)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "difficulty" in changes:
            changes["last_studied"] = utc_now()
        if self._storage.find_by_id(CARDS, card_id) is None:
            return None
        if changes and not self._storage.update_by_id(CARDS, card_id, changes):
            return None
        return self.get_card(card_id)

    def delete_card(self, card_id: str) -> bool:
        """
        Delete a card and refresh its deck's ``card_count``.

        Returns:
            bool: False if the card does not exist.
        """
        doc = self._storage.find_by_id(CARDS, card_id)
        if doc is None:
            return False
        deleted = self._storage.delete_by_id(CARDS, card_id)
        self._refresh_card_count(doc["deck_id"])
        logger.info(f"Deleted card {card_id} from deck {doc['deck_id']}")
        return deleted
