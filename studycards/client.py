"""
Client-side store mirroring server entities.

``StudyStore`` keeps local lists of folders, decks and cards, refreshed by
fetch actions and patched by mutating actions. Card creation and deletion
adjust the cached deck's ``card_count`` optimistically instead of refetching.
"""

import logging
from typing import Any, List, Mapping, Optional

import httpx

from .exceptions import StoreError
from .models import Card, Deck, Folder, SearchResult

logger = logging.getLogger(__name__)

API_BASE = "/api"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.reason_phrase


class StudyStore:
    """
    State cache plus actions over the studycards HTTP API.

    Fetch actions record failures in ``error`` and leave the cache as it was.
    Mutating actions record the failure and raise ``StoreError``.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        base_url: str = "http://localhost:8000",
    ):
        self._client = client or httpx.Client(base_url=base_url, timeout=10.0)
        self.folders: List[Folder] = []
        self.decks: List[Deck] = []
        self.cards: List[Card] = []
        self.current_deck: Optional[Deck] = None
        self.loading: bool = False
        self.error: Optional[str] = None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "StudyStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- Getters ---

    def get_decks_by_folder(self, folder_id: str) -> List[Deck]:
        return [deck for deck in self.decks if deck.folder_id == folder_id]

    def get_cards_by_deck(self, deck_id: str) -> List[Card]:
        return [card for card in self.cards if card.deck_id == deck_id]

    def get_folder_by_id(self, folder_id: str) -> Optional[Folder]:
        return next((f for f in self.folders if f.id == folder_id), None)

    def get_deck_by_id(self, deck_id: str) -> Optional[Deck]:
        return next((d for d in self.decks if d.id == deck_id), None)

    # --- Internals ---

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, f"{API_BASE}{path}", **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"Failed to {action}: {e}") from e
        if response.is_error:
            raise StoreError(
                f"Failed to {action}: {_error_message(response)}",
                status_code=response.status_code,
            )
        return response

    def _act(self, method: str, path: str, action: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._request(method, path, action, **kwargs)
        except StoreError as e:
            self.error = str(e)
            raise

    # --- Fetch actions ---

    def fetch_folders(self) -> List[Folder]:
        self.loading = True
        try:
            response = self._request("GET", "/folders", "fetch folders")
            self.folders = [Folder.model_validate(item) for item in response.json()]
        except StoreError as e:
            self.error = str(e)
            logger.error(f"Error fetching folders: {e}")
        finally:
            self.loading = False
        return self.folders

    def fetch_decks(self, folder_id: Optional[str] = None) -> List[Deck]:
        self.loading = True
        params = {"folder_id": folder_id} if folder_id else None
        try:
            response = self._request("GET", "/decks", "fetch decks", params=params)
            self.decks = [Deck.model_validate(item) for item in response.json()]
        except StoreError as e:
            self.error = str(e)
            logger.error(f"Error fetching decks: {e}")
        finally:
            self.loading = False
        return self.decks

    def fetch_deck(self, deck_id: str) -> Optional[Deck]:
        """Load one deck into ``current_deck``."""
        self.loading = True
        try:
            response = self._request("GET", f"/decks/{deck_id}", "fetch deck")
            self.current_deck = Deck.model_validate(response.json())
        except StoreError as e:
            self.error = str(e)
            logger.error(f"Error fetching deck {deck_id}: {e}")
        finally:
            self.loading = False
        return self.current_deck

    def fetch_cards(self, deck_id: str) -> List[Card]:
        self.loading = True
        try:
            response = self._request(
                "GET", "/cards", "fetch cards", params={"deck_id": deck_id}
            )
            self.cards = [Card.model_validate(item) for item in response.json()]
        except StoreError as e:
            self.error = str(e)
            logger.error(f"Error fetching cards: {e}")
        finally:
            self.loading = False
        return self.cards

    # --- Mutating actions ---

    def create_folder(self, name: str) -> Folder:
        response = self._act("POST", "/folders", "create folder", json={"name": name})
        folder = Folder.model_validate(response.json())
        self.folders.append(folder)
        return folder

    def delete_folder(self, folder_id: str) -> None:
        self._act("DELETE", f"/folders/{folder_id}", "delete folder")
        self.folders = [f for f in self.folders if f.id != folder_id]

    def create_deck(self, deck_data: Mapping[str, Any]) -> Deck:
        response = self._act("POST", "/decks", "create deck", json=dict(deck_data))
        deck = Deck.model_validate(response.json())
        self.decks.append(deck)
        return deck

    def update_deck(self, deck_id: str, updates: Mapping[str, Any]) -> Deck:
        response = self._act(
            "PUT", f"/decks/{deck_id}", "update deck", json=dict(updates)
        )
        updated = Deck.model_validate(response.json())
        self.decks = [updated if d.id == deck_id else d for d in self.decks]
        if self.current_deck is not None and self.current_deck.id == deck_id:
            self.current_deck = updated
        return updated

    def delete_deck(self, deck_id: str) -> None:
        self._act("DELETE", f"/decks/{deck_id}", "delete deck")
        self.decks = [d for d in self.decks if d.id != deck_id]
        self.cards = [c for c in self.cards if c.deck_id != deck_id]
        if self.current_deck is not None and self.current_deck.id == deck_id:
            self.current_deck = None

    def create_card(self, card_data: Mapping[str, Any]) -> Card:
        response = self._act("POST", "/cards", "create card", json=dict(card_data))
        card = Card.model_validate(response.json())
        self.cards.append(card)
        deck = self.get_deck_by_id(card.deck_id)
        if deck is not None:
            deck.card_count += 1
        return card

    def update_card(self, card_id: str, updates: Mapping[str, Any]) -> Card:
        response = self._act(
            "PUT", f"/cards/{card_id}", "update card", json=dict(updates)
        )
        updated = Card.model_validate(response.json())
        self.cards = [updated if c.id == card_id else c for c in self.cards]
        return updated

    def delete_card(self, card_id: str) -> None:
        self._act("DELETE", f"/cards/{card_id}", "delete card")
        card = next((c for c in self.cards if c.id == card_id), None)
        if card is None:
            return
        self.cards = [c for c in self.cards if c.id != card_id]
        deck = self.get_deck_by_id(card.deck_id)
        if deck is not None:
            deck.card_count = max(deck.card_count - 1, 0)

    def search_content(self, query: str) -> SearchResult:
        response = self._act("GET", "/search", "search", params={"q": query})
        return SearchResult.model_validate(response.json())

    def clear_error(self) -> None:
        self.error = None

