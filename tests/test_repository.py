"""
Tests for StudyRepository: CRUD, referential checks, the card_count cache and
cascading deletes. Every test runs against both storage backends.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from studycards.constants import CARDS, DECKS, DEFAULT_DECK_COLOR, FOLDERS
from studycards.exceptions import ConflictError, StorageError, ValidationError
from studycards.models import DeckUpdate
from studycards.repository import StudyRepository


def _actual_card_count(repo, deck_id: str) -> int:
    return repo.storage.count(CARDS, {"deck_id": deck_id})


# --- Folders ---


def test_create_and_list_folders(repo):
    first = repo.create_folder({"name": "Languages"})
    second = repo.create_folder({"name": "Science"})

    folders = repo.list_folders()

    assert [f.id for f in folders] == [first.id, second.id]
    assert folders[0].name == "Languages"
    assert folders[0].created_at.tzinfo is not None


@pytest.mark.parametrize("payload", [{}, {"name": ""}, {"name": None}, None])
def test_create_folder_requires_name(repo, payload):
    with pytest.raises(ValidationError, match="name"):
        repo.create_folder(payload)
    assert repo.list_folders() == []


def test_create_folder_rejects_non_mapping_payload(repo):
    with pytest.raises(ValidationError, match="JSON object"):
        repo.create_folder(["Math"])


def test_get_folder(repo, math_folder):
    assert repo.get_folder(math_folder.id) == math_folder
    assert repo.get_folder("missing") is None


def test_delete_empty_folder(repo, math_folder):
    assert repo.delete_folder(math_folder.id) is True
    assert repo.get_folder(math_folder.id) is None


def test_delete_missing_folder_returns_false(repo):
    assert repo.delete_folder("no-such-folder") is False


def test_delete_folder_with_decks_is_rejected(repo, math_folder, algebra_deck):
    with pytest.raises(ConflictError, match="Cannot delete folder with decks"):
        repo.delete_folder(math_folder.id)

    assert repo.get_folder(math_folder.id) is not None
    assert repo.get_deck(algebra_deck.id) is not None


# --- Decks ---


def test_create_deck_defaults(repo, math_folder):
    deck = repo.create_deck({"name": "Algebra", "folder_id": math_folder.id})

    assert deck.description == ""
    assert deck.color == DEFAULT_DECK_COLOR
    assert deck.card_count == 0
    assert deck.folder_id == math_folder.id
    assert repo.get_deck(deck.id) == deck


def test_create_deck_keeps_optional_fields(repo, math_folder):
    deck = repo.create_deck(
        {
            "name": "Geometry",
            "folder_id": math_folder.id,
            "description": "Shapes",
            "color": "#F3E5F5",
        }
    )
    assert deck.description == "Shapes"
    assert deck.color == "#F3E5F5"


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"folder_id": "x"}, "name"),
        ({"name": "Algebra"}, "folder_id"),
        ({"name": "", "folder_id": "x"}, "name"),
    ],
)
def test_create_deck_requires_name_and_folder(repo, math_folder, payload, field):
    if payload.get("folder_id") == "x":
        payload = {**payload, "folder_id": math_folder.id}
    with pytest.raises(ValidationError, match=field):
        repo.create_deck(payload)
    assert repo.list_decks() == []


def test_create_deck_in_unknown_folder_is_rejected(repo):
    with pytest.raises(ValidationError, match="does not exist"):
        repo.create_deck({"name": "Orphan", "folder_id": "missing"})
    assert repo.storage.count(DECKS) == 0


def test_list_decks_filters_by_folder(repo, math_folder, algebra_deck):
    other = repo.create_folder({"name": "Languages"})
    spanish = repo.create_deck({"name": "Spanish", "folder_id": other.id})

    assert [d.id for d in repo.list_decks()] == [algebra_deck.id, spanish.id]
    assert [d.id for d in repo.list_decks(math_folder.id)] == [algebra_deck.id]
    assert [d.id for d in repo.list_decks(other.id)] == [spanish.id]
    assert repo.list_decks("unknown") == []


def test_update_deck_changes_only_given_fields(repo, algebra_deck):
    updated = repo.update_deck(algebra_deck.id, {"description": "Linear maps"})

    assert updated.description == "Linear maps"
    assert updated.name == algebra_deck.name
    assert updated.color == algebra_deck.color
    assert updated.card_count == algebra_deck.card_count


def test_update_deck_ignores_nulls_and_unknown_fields(repo, algebra_deck):
    updated = repo.update_deck(
        algebra_deck.id, {"name": None, "color": "#FFFFFF", "card_count": 99}
    )
    assert updated.name == "Algebra"
    assert updated.color == "#FFFFFF"
    assert updated.card_count == 0


def test_update_deck_accepts_payload_model(repo, algebra_deck):
    updated = repo.update_deck(algebra_deck.id, DeckUpdate(name="Linear Algebra"))
    assert updated.name == "Linear Algebra"


def test_update_deck_allows_clearing_description(repo, math_folder):
    deck = repo.create_deck(
        {"name": "Calc", "folder_id": math_folder.id, "description": "Limits"}
    )
    assert repo.update_deck(deck.id, {"description": ""}).description == ""


def test_update_missing_deck_returns_none(repo):
    assert repo.update_deck("missing", {"name": "x"}) is None


def test_update_deck_rejects_empty_name(repo, algebra_deck):
    with pytest.raises(ValidationError, match="name must not be empty"):
        repo.update_deck(algebra_deck.id, {"name": ""})


def test_delete_deck_cascades_to_cards(repo, math_folder, algebra_deck):
    for i in range(3):
        repo.create_card({"deck_id": algebra_deck.id, "front": f"q{i}", "back": f"a{i}"})
    other = repo.create_deck({"name": "Calculus", "folder_id": math_folder.id})
    survivor = repo.create_card({"deck_id": other.id, "front": "d/dx x", "back": "1"})

    assert repo.delete_deck(algebra_deck.id) is True

    assert repo.get_deck(algebra_deck.id) is None
    assert _actual_card_count(repo, algebra_deck.id) == 0
    assert repo.list_cards() == [survivor]
    assert repo.get_deck(other.id).card_count == 1


def test_delete_missing_deck_returns_false(repo):
    assert repo.delete_deck("missing") is False


# --- Cards ---


def test_card_count_scenario(repo):
    math = repo.create_folder({"name": "Math"})
    algebra = repo.create_deck({"name": "Algebra", "folder_id": math.id})
    assert algebra.card_count == 0

    card = repo.create_card({"deck_id": algebra.id, "front": "2+2", "back": "4"})
    assert repo.get_deck(algebra.id).card_count == 1

    assert repo.delete_card(card.id) is True
    assert repo.get_deck(algebra.id).card_count == 0


def test_card_count_matches_cards_after_every_mutation(repo, math_folder, algebra_deck):
    other = repo.create_deck({"name": "Calculus", "folder_id": math_folder.id})
    created = []
    for i in range(4):
        deck_id = algebra_deck.id if i % 2 == 0 else other.id
        created.append(repo.create_card({"deck_id": deck_id, "front": f"q{i}", "back": "a"}))
        for deck in repo.list_decks():
            assert deck.card_count == _actual_card_count(repo, deck.id)

    for card in created:
        repo.delete_card(card.id)
        for deck in repo.list_decks():
            assert deck.card_count == _actual_card_count(repo, deck.id)


def test_create_card_defaults(repo, algebra_deck):
    card = repo.create_card({"deck_id": algebra_deck.id, "front": "2+2", "back": "4"})

    assert card.difficulty == 0
    assert card.last_studied is None
    assert repo.get_card(card.id) == card


@pytest.mark.parametrize("missing", ["deck_id", "front", "back"])
def test_create_card_with_missing_field_mutates_nothing(repo, algebra_deck, missing):
    payload = {"deck_id": algebra_deck.id, "front": "2+2", "back": "4"}
    del payload[missing]
    folders_before = repo.list_folders()
    decks_before = repo.list_decks()

    with pytest.raises(ValidationError, match=missing):
        repo.create_card(payload)

    assert repo.list_cards() == []
    assert repo.list_folders() == folders_before
    assert repo.list_decks() == decks_before


def test_create_card_in_unknown_deck_is_rejected(repo):
    with pytest.raises(ValidationError, match="does not exist"):
        repo.create_card({"deck_id": "missing", "front": "q", "back": "a"})
    assert repo.storage.count(CARDS) == 0


def test_list_cards_filters_by_deck(repo, math_folder, algebra_deck):
    other = repo.create_deck({"name": "Calculus", "folder_id": math_folder.id})
    a = repo.create_card({"deck_id": algebra_deck.id, "front": "q1", "back": "a1"})
    b = repo.create_card({"deck_id": other.id, "front": "q2", "back": "a2"})

    assert repo.list_cards() == [a, b]
    assert repo.list_cards(algebra_deck.id) == [a]
    assert repo.list_cards(other.id) == [b]


def test_update_card_difficulty_sets_last_studied(repo, algebra_deck):
    card = repo.create_card({"deck_id": algebra_deck.id, "front": "2+2", "back": "4"})
    before = datetime.now(timezone.utc)

    updated = repo.update_card(card.id, {"difficulty": 3})

    assert updated.difficulty == 3
    assert updated.last_studied is not None
    assert updated.last_studied >= before
    assert updated.front == "2+2"


def test_update_card_text_leaves_study_fields(repo, algebra_deck):
    card = repo.create_card({"deck_id": algebra_deck.id, "front": "2+2", "back": "4"})
    studied = repo.update_card(card.id, {"difficulty": 2})

    updated = repo.update_card(card.id, {"front": "x"})

    assert updated.front == "x"
    assert updated.back == "4"
    assert updated.difficulty == studied.difficulty
    assert updated.last_studied == studied.last_studied


def test_update_card_zero_difficulty_still_counts_as_studied(repo, algebra_deck):
    card = repo.create_card({"deck_id": algebra_deck.id, "front": "q", "back": "a"})
    updated = repo.update_card(card.id, {"difficulty": 0})
    assert updated.difficulty == 0
    assert updated.last_studied is not None


def test_update_card_does_not_touch_deck_count(repo, algebra_deck):
    card = repo.create_card({"deck_id": algebra_deck.id, "front": "q", "back": "a"})
    repo.update_card(card.id, {"back": "b", "difficulty": 1.5})
    assert repo.get_deck(algebra_deck.id).card_count == 1


def test_update_card_rejects_non_numeric_difficulty(repo, algebra_deck):
    card = repo.create_card({"deck_id": algebra_deck.id, "front": "q", "back": "a"})
    with pytest.raises(ValidationError, match="difficulty"):
        repo.update_card(card.id, {"difficulty": "hard"})
    assert repo.get_card(card.id).last_studied is None


def test_update_missing_card_returns_none(repo):
    assert repo.update_card("missing", {"difficulty": 1}) is None


def test_delete_missing_card_returns_false(repo):
    assert repo.delete_card("missing") is False


# --- Scenarios & maintenance ---


def test_folder_delete_scenario(repo):
    math = repo.create_folder({"name": "Math"})
    algebra = repo.create_deck({"name": "Algebra", "folder_id": math.id})

    with pytest.raises(ConflictError):
        repo.delete_folder(math.id)

    assert repo.delete_deck(algebra.id) is True
    assert repo.delete_folder(math.id) is True
    assert repo.storage.count(FOLDERS) == 0


def test_recount_repairs_stale_counts(repo, algebra_deck):
    repo.create_card({"deck_id": algebra_deck.id, "front": "q", "back": "a"})
    repo.storage.update_by_id(DECKS, algebra_deck.id, {"card_count": 42})

    assert repo.recount_all_decks() == {algebra_deck.id: 1}
    assert repo.get_deck(algebra_deck.id).card_count == 1


def test_seeded_counts_are_consistent(seeded_repo):
    decks = seeded_repo.list_decks()
    assert len(seeded_repo.list_folders()) == 2
    assert len(decks) == 2
    for deck in decks:
        assert deck.card_count == _actual_card_count(seeded_repo, deck.id)
    assert sorted(d.card_count for d in decks) == [1, 2]


# --- Card writes under contention ---


def test_card_write_survives_failed_recount(repo, algebra_deck):
    with patch.object(
        repo.storage, "update_by_id", side_effect=StorageError("Conflict on update!")
    ) as failing_update:
        card = repo.create_card({"deck_id": algebra_deck.id, "front": "q", "back": "a"})
        assert failing_update.call_count == 3

    assert repo.get_card(card.id) == card
    # Left stale, repaired by the next recount.
    assert repo.get_deck(algebra_deck.id).card_count == 0
    assert repo.recount_all_decks() == {algebra_deck.id: 1}

    with patch.object(
        repo.storage, "update_by_id", side_effect=StorageError("Conflict on update!")
    ):
        assert repo.delete_card(card.id) is True
    assert repo.get_card(card.id) is None


def test_recount_retries_before_giving_up(repo, algebra_deck):
    real_update = repo.storage.update_by_id
    outcomes = [StorageError("Conflict on update!"), None]

    def flaky_update(collection, doc_id, fields):
        outcome = outcomes.pop(0) if outcomes else None
        if outcome is not None:
            raise outcome
        return real_update(collection, doc_id, fields)

    with patch.object(repo.storage, "update_by_id", side_effect=flaky_update):
        repo.create_card({"deck_id": algebra_deck.id, "front": "q", "back": "a"})

    assert repo.get_deck(algebra_deck.id).card_count == 1


def test_concurrent_card_creates_on_one_deck(duckdb_storage):
    repo = StudyRepository(duckdb_storage)
    folder = repo.create_folder({"name": "Math"})
    deck = repo.create_deck({"name": "Algebra", "folder_id": folder.id})

    def create(i):
        return repo.create_card({"deck_id": deck.id, "front": f"q{i}", "back": "a"})

    with ThreadPoolExecutor(max_workers=8) as executor:
        cards = list(executor.map(create, range(64)))

    assert len({card.id for card in cards}) == 64
    assert _actual_card_count(repo, deck.id) == 64
    assert repo.recount_all_decks() == {deck.id: 64}
    assert repo.get_deck(deck.id).card_count == 64


@pytest.mark.parametrize("difficulty", [3, 2.5, 0])
def test_update_card_returns_difficulty_as_sent(repo, algebra_deck, difficulty):
    card = repo.create_card({"deck_id": algebra_deck.id, "front": "q", "back": "a"})

    updated = repo.update_card(card.id, {"difficulty": difficulty})

    assert updated.difficulty == difficulty
    assert type(updated.difficulty) is type(difficulty)
    assert type(repo.get_card(card.id).difficulty) is type(difficulty)


def test_non_numeric_difficulty_reported_once(repo, algebra_deck):
    card = repo.create_card({"deck_id": algebra_deck.id, "front": "q", "back": "a"})
    with pytest.raises(ValidationError) as exc_info:
        repo.update_card(card.id, {"difficulty": "hard"})
    assert str(exc_info.value).count("difficulty") == 1
