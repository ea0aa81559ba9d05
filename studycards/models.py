"""
Pydantic models for folders, decks and cards, plus the payloads accepted
when creating or updating them.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import DEFAULT_DECK_COLOR


def new_id() -> str:
    """Generate an opaque identifier for a new entity."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# --- Entities ---


class Folder(BaseModel):
    """Top-level grouping of decks."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utc_now)


class Deck(BaseModel):
    """
    Named collection of cards belonging to one folder.

    ``card_count`` is a denormalized cache of the number of cards whose
    ``deck_id`` equals this deck's id. The repository recomputes it after
    every card insert or delete.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    description: str = ""
    folder_id: str = Field(..., min_length=1)
    color: str = DEFAULT_DECK_COLOR
    created_at: datetime = Field(default_factory=utc_now)
    card_count: int = Field(default=0, ge=0)


class Card(BaseModel):
    """
    Front/back study item belonging to one deck.

    ``last_studied`` stays None until ``difficulty`` is first updated.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: str = Field(default_factory=new_id)
    deck_id: str = Field(..., min_length=1)
    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utc_now)
    last_studied: Optional[datetime] = None
    difficulty: Union[int, float] = 0

    @field_validator("difficulty")
    @classmethod
    def whole_difficulty_as_int(cls, v: Union[int, float]) -> Union[int, float]:
        """Stored as DOUBLE, so a 3 comes back as 3.0; hand it out as 3."""
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v


class SearchResult(BaseModel):
    decks: List[Deck] = Field(default_factory=list)
    cards: List[Card] = Field(default_factory=list)


# --- Payloads ---
# Payloads ignore unknown keys so clients can send whole entities back.


class FolderCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)


class DeckCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    folder_id: str = Field(..., min_length=1)
    description: Optional[str] = None
    color: Optional[str] = None


class DeckUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, min_length=1)


class CardCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    deck_id: str = Field(..., min_length=1)
    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)


class CardUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    front: Optional[str] = Field(default=None, min_length=1)
    back: Optional[str] = Field(default=None, min_length=1)
    difficulty: Optional[Union[int, float]] = None
