"""
Defines the database schema for studycards using SQL string constants.
This keeps the schema definition separate from the database connection and
operation logic.

Every table carries a ``seq`` column fed by a sequence so documents come back
in insertion order. Timestamps are stored as naive UTC.
"""

from typing import Dict, Tuple

from ..constants import CARDS, DECKS, FOLDERS

DB_SCHEMA_SQL = """
    CREATE SEQUENCE IF NOT EXISTS folders_seq;
    CREATE SEQUENCE IF NOT EXISTS decks_seq;
    CREATE SEQUENCE IF NOT EXISTS cards_seq;

    CREATE TABLE IF NOT EXISTS folders (
        id VARCHAR PRIMARY KEY,
        seq BIGINT NOT NULL DEFAULT nextval('folders_seq'),
        name VARCHAR NOT NULL,
        created_at TIMESTAMP NOT NULL
    );

    CREATE TABLE IF NOT EXISTS decks (
        id VARCHAR PRIMARY KEY,
        seq BIGINT NOT NULL DEFAULT nextval('decks_seq'),
        name VARCHAR NOT NULL,
        description VARCHAR NOT NULL DEFAULT '',
        folder_id VARCHAR NOT NULL,
        color VARCHAR NOT NULL,
        created_at TIMESTAMP NOT NULL,
        card_count INTEGER NOT NULL DEFAULT 0
    );

    CREATE TABLE IF NOT EXISTS cards (
        id VARCHAR PRIMARY KEY,
        seq BIGINT NOT NULL DEFAULT nextval('cards_seq'),
        deck_id VARCHAR NOT NULL,
        front VARCHAR NOT NULL,
        back VARCHAR NOT NULL,
        created_at TIMESTAMP NOT NULL,
        last_studied TIMESTAMP,
        difficulty DOUBLE NOT NULL DEFAULT 0
    );
"""

# Lookup indexes; only needed for speed, never for correctness.
SECONDARY_INDEX_SQL: Tuple[str, ...] = (
    "CREATE INDEX IF NOT EXISTS idx_decks_folder_id ON decks (folder_id);",
    "CREATE INDEX IF NOT EXISTS idx_cards_deck_id ON cards (deck_id);",
)

# Document fields per table, in column order. ``seq`` is internal.
TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    FOLDERS: ("id", "name", "created_at"),
    DECKS: (
        "id",
        "name",
        "description",
        "folder_id",
        "color",
        "created_at",
        "card_count",
    ),
    CARDS: (
        "id",
        "deck_id",
        "front",
        "back",
        "created_at",
        "last_studied",
        "difficulty",
    ),
}
