"""
Example dataset loaded into the in-memory fallback store and into a fresh,
empty persistent store.
"""

import logging
from typing import Dict, List

from .constants import FOLDERS
from .repository import StudyRepository

logger = logging.getLogger(__name__)

# Folder name -> decks; each deck lists its (front, back) cards.
EXAMPLE_DATA: List[Dict] = [
    {
        "name": "Programação",
        "decks": [
            {
                "name": "JavaScript Básico",
                "description": "Conceitos fundamentais do JavaScript",
                "color": "#E3F2FD",
                "cards": [
                    (
                        "O que é uma variável em JavaScript?",
                        "Uma variável é um container que armazena dados. "
                        "Pode ser declarada com var, let ou const.",
                    ),
                    (
                        "Qual a diferença entre let e const?",
                        "let permite reatribuição de valor, const não permite. "
                        "Ambas têm escopo de bloco.",
                    ),
                ],
            }
        ],
    },
    {
        "name": "Matemática",
        "decks": [
            {
                "name": "Álgebra Linear",
                "description": "Matrizes e vetores",
                "color": "#F3E5F5",
                "cards": [
                    (
                        "O que é uma matriz identidade?",
                        "É uma matriz quadrada onde os elementos da diagonal "
                        "principal são 1 e os demais são 0.",
                    ),
                ],
            }
        ],
    },
]


def seed_example_data(repo: StudyRepository) -> int:
    """
    Insert the example folders, decks and cards through the repository, so
    every deck ends up with a correct ``card_count``.

    Returns:
        int: Number of cards created.
    """
    created_cards = 0
    for folder_data in EXAMPLE_DATA:
        folder = repo.create_folder({"name": folder_data["name"]})
        for deck_data in folder_data["decks"]:
            deck = repo.create_deck(
                {
                    "name": deck_data["name"],
                    "description": deck_data["description"],
                    "color": deck_data["color"],
                    "folder_id": folder.id,
                }
            )
            for front, back in deck_data["cards"]:
                repo.create_card({"deck_id": deck.id, "front": front, "back": back})
                created_cards += 1
    logger.info(f"Seeded example data: {len(EXAMPLE_DATA)} folders, {created_cards} cards.")
    return created_cards


def seed_if_empty(repo: StudyRepository) -> bool:
    """Seed only when the store has no folders yet. Returns True if it seeded."""
    if repo.storage.count(FOLDERS) > 0:
        return False
    seed_example_data(repo)
    return True
