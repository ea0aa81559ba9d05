"""
Static constants for studycards.

No runtime configuration here, see ``studycards.config`` for that.
"""
from typing import Dict, Tuple

# Collection names shared by every storage backend.
FOLDERS = "folders"
DECKS = "decks"
CARDS = "cards"

COLLECTIONS: Tuple[str, ...] = (FOLDERS, DECKS, CARDS)

# Fields covered by search, per collection.
SEARCH_FIELDS: Dict[str, Tuple[str, ...]] = {
    DECKS: ("name", "description"),
    CARDS: ("front", "back"),
}

# Default deck color from the frontend palette.
DEFAULT_DECK_COLOR: str = "#E3F2FD"

# Seconds to wait for the persistent backend before falling back to memory.
DEFAULT_CONNECT_TIMEOUT: float = 5.0
