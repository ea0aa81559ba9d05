"""
REST endpoints for folders, decks, cards and search. Mounted under ``/api``.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response

from ..exceptions import NotFoundError
from ..models import Card, Deck, Folder, SearchResult
from ..repository import StudyRepository
from ..search import SearchService
from .deps import get_repository, get_search_service

router = APIRouter()


# --- Folders ---


@router.get("/folders", response_model=List[Folder])
def list_folders(repo: StudyRepository = Depends(get_repository)):
    return repo.list_folders()


@router.post("/folders", response_model=Folder, status_code=201)
def create_folder(
    payload: Any = Body(None), repo: StudyRepository = Depends(get_repository)
):
    return repo.create_folder(payload)


@router.delete("/folders/{folder_id}", status_code=204, response_class=Response)
def delete_folder(folder_id: str, repo: StudyRepository = Depends(get_repository)):
    if not repo.delete_folder(folder_id):
        raise NotFoundError("Folder not found")
    return Response(status_code=204)


# --- Decks ---


@router.get("/decks", response_model=List[Deck])
def list_decks(
    folder_id: Optional[str] = Query(None),
    repo: StudyRepository = Depends(get_repository),
):
    return repo.list_decks(folder_id)


@router.get("/decks/{deck_id}", response_model=Deck)
def get_deck(deck_id: str, repo: StudyRepository = Depends(get_repository)):
    deck = repo.get_deck(deck_id)
    if deck is None:
        raise NotFoundError("Deck not found")
    return deck


@router.post("/decks", response_model=Deck, status_code=201)
def create_deck(
    payload: Any = Body(None), repo: StudyRepository = Depends(get_repository)
):
    return repo.create_deck(payload)


@router.put("/decks/{deck_id}", response_model=Deck)
def update_deck(
    deck_id: str,
    payload: Any = Body(None),
    repo: StudyRepository = Depends(get_repository),
):
    deck = repo.update_deck(deck_id, payload)
    if deck is None:
        raise NotFoundError("Deck not found")
    return deck


@router.delete("/decks/{deck_id}", status_code=204, response_class=Response)
def delete_deck(deck_id: str, repo: StudyRepository = Depends(get_repository)):
    if not repo.delete_deck(deck_id):
        raise NotFoundError("Deck not found")
    return Response(status_code=204)


# --- Cards ---


@router.get("/cards", response_model=List[Card])
def list_cards(
    deck_id: Optional[str] = Query(None),
    repo: StudyRepository = Depends(get_repository),
):
    return repo.list_cards(deck_id)


@router.get("/cards/{card_id}", response_model=Card)
def get_card(card_id: str, repo: StudyRepository = Depends(get_repository)):
    card = repo.get_card(card_id)
    if card is None:
        raise NotFoundError("Card not found")
    return card


@router.post("/cards", response_model=Card, status_code=201)
def create_card(
    payload: Any = Body(None), repo: StudyRepository = Depends(get_repository)
):
    return repo.create_card(payload)


@router.put("/cards/{card_id}", response_model=Card)
def update_card(
    card_id: str,
    payload: Any = Body(None),
    repo: StudyRepository = Depends(get_repository),
):
    card = repo.update_card(card_id, payload)
    if card is None:
        raise NotFoundError("Card not found")
    return card


@router.delete("/cards/{card_id}", status_code=204, response_class=Response)
def delete_card(card_id: str, repo: StudyRepository = Depends(get_repository)):
    if not repo.delete_card(card_id):
        raise NotFoundError("Card not found")
    return Response(status_code=204)


# --- Search & health ---


@router.get("/search", response_model=SearchResult)
def search(
    q: Optional[str] = Query(None),
    service: SearchService = Depends(get_search_service),
):
    return service.search(q)


@router.get("/health")
def health(repo: StudyRepository = Depends(get_repository)) -> Dict[str, str]:
    return {"status": "ok", "storage": repo.storage.backend_name}
