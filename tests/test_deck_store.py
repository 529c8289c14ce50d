"""
Tests for DeckStore: deck and card operations, notifications and persistence.
"""

import json
from unittest.mock import MagicMock

import pytest

from flashdeck.constants import ONE_DAY_MS
from flashdeck.deck_store import DeckStore, EventKind
from flashdeck.exceptions import (
    CardNotFoundError,
    DeckNotFoundError,
    InvalidRatingError,
    PersistenceError,
    ValidationError,
)
from flashdeck.models import Rating
from flashdeck.scheduler import LeitnerScheduler, LeitnerSchedulerConfig
from flashdeck.storage import MemoryKeyValueStore, StatePersistence

# Start time of the clock fixture.
FIXED_NOW_MS = 1_704_067_200_000


# --- Decks ---


def test_create_deck_trims_name_and_activates(store: DeckStore, events):
    deck_id = store.create_deck("  Spanish  ")

    deck = store.get_deck(deck_id)
    assert deck.name == "Spanish"
    assert deck.created_at == FIXED_NOW_MS
    assert store.active_deck_id == deck_id
    assert store.get_cards(deck_id) == []
    assert events[-1].kind is EventKind.DeckCreated
    assert events[-1].active_deck_changed


@pytest.mark.parametrize("name", ["", "   ", None])
def test_create_deck_rejects_blank_name(store: DeckStore, events, name):
    with pytest.raises(ValidationError):
        store.create_deck(name)
    assert store.decks == []
    assert events == []


def test_decks_keep_insertion_order(store: DeckStore):
    ids = [store.create_deck(name) for name in ("A", "B", "C")]
    assert [d.id for d in store.decks] == ids


def test_rename_deck(store: DeckStore, events):
    deck_id = store.create_deck("Old")
    store.rename_deck(deck_id, " New ")
    assert store.get_deck(deck_id).name == "New"
    assert events[-1].kind is EventKind.DeckRenamed
    assert not events[-1].active_deck_changed


def test_rename_unknown_deck(store: DeckStore):
    with pytest.raises(DeckNotFoundError):
        store.rename_deck("missing", "Name")


def test_rename_to_blank_leaves_name(store: DeckStore):
    deck_id = store.create_deck("Keep")
    with pytest.raises(ValidationError):
        store.rename_deck(deck_id, "  ")
    assert store.get_deck(deck_id).name == "Keep"


def test_delete_active_deck_clears_selection(store: DeckStore, deck_with_cards, events):
    store.delete_deck(deck_with_cards)

    assert store.decks == []
    assert store.get_cards(deck_with_cards) == []
    assert store.active_deck_id is None
    assert events[-1].kind is EventKind.DeckDeleted
    assert events[-1].active_deck_changed


def test_delete_inactive_deck_keeps_selection(store: DeckStore):
    first = store.create_deck("First")
    second = store.create_deck("Second")
    store.delete_deck(first)
    assert store.active_deck_id == second


def test_delete_unknown_deck_is_noop(store: DeckStore, deck_with_cards, events):
    store.delete_deck("missing")
    assert len(store.decks) == 1
    assert events == []


def test_set_active_deck(store: DeckStore, events):
    first = store.create_deck("First")
    store.create_deck("Second")
    store.set_active_deck(first)
    assert store.active_deck.name == "First"
    assert events[-1].kind is EventKind.ActiveDeckChanged

    store.set_active_deck(None)
    assert store.active_deck is None


def test_set_active_unknown_deck(store: DeckStore):
    with pytest.raises(DeckNotFoundError):
        store.set_active_deck("missing")


def test_find_deck_by_name(store: DeckStore):
    deck_id = store.create_deck("Biology")
    assert store.find_deck_by_name("Biology").id == deck_id
    assert store.find_deck_by_name("biology") is None


# --- Cards ---


def test_create_card_appends_new_card(store: DeckStore, deck_with_cards, events):
    card_id = store.create_card(deck_with_cards, " Q4 ", " A4 ")

    cards = store.get_cards(deck_with_cards)
    assert [c.front for c in cards] == ["Q1", "Q2", "Q3", "Q4"]
    card = cards[-1]
    assert card.id == card_id
    assert (card.front, card.back) == ("Q4", "A4")
    assert card.box == 0
    assert card.next_review is None
    assert events[-1].kind is EventKind.CardCreated
    assert events[-1].card_id == card_id


def test_create_card_without_deck(store: DeckStore):
    with pytest.raises(ValidationError):
        store.create_card(None, "Q", "A")


def test_create_card_in_unknown_deck(store: DeckStore):
    with pytest.raises(DeckNotFoundError):
        store.create_card("missing", "Q", "A")


@pytest.mark.parametrize("front, back", [("", "A"), ("Q", "  "), (" ", " ")])
def test_create_card_rejects_blank_sides(store: DeckStore, deck_with_cards, front, back):
    with pytest.raises(ValidationError):
        store.create_card(deck_with_cards, front, back)
    assert len(store.get_cards(deck_with_cards)) == 3


def test_update_card_keeps_schedule(store: DeckStore, deck_with_cards, clock):
    card = store.get_cards(deck_with_cards)[0]
    store.rate_card(deck_with_cards, card.id, Rating.Good)
    clock.advance_days(1)

    updated = store.update_card(deck_with_cards, card.id, "New Q", "New A")

    assert (updated.front, updated.back) == ("New Q", "New A")
    assert updated.box == 1
    assert updated.next_review == FIXED_NOW_MS + 3 * ONE_DAY_MS
    assert updated.updated_at == clock.now


def test_update_missing_card(store: DeckStore, deck_with_cards):
    with pytest.raises(CardNotFoundError):
        store.update_card(deck_with_cards, "missing", "Q", "A")


def test_delete_card(store: DeckStore, deck_with_cards, events):
    card = store.get_cards(deck_with_cards)[1]
    store.delete_card(deck_with_cards, card.id)
    assert [c.front for c in store.get_cards(deck_with_cards)] == ["Q1", "Q3"]
    assert events[-1].kind is EventKind.CardDeleted


def test_delete_missing_card_is_noop(store: DeckStore, deck_with_cards, events):
    store.delete_card(deck_with_cards, "missing")
    store.delete_card("missing-deck", "missing")
    assert len(store.get_cards(deck_with_cards)) == 3
    assert events == []


def test_rate_card(store: DeckStore, deck_with_cards, events):
    card = store.get_cards(deck_with_cards)[0]

    updated = store.rate_card(deck_with_cards, card.id, "easy")

    assert updated.box == 2
    assert updated.next_review == FIXED_NOW_MS + 7 * ONE_DAY_MS
    assert updated.updated_at == FIXED_NOW_MS
    assert events[-1].kind is EventKind.CardRated


def test_rate_card_invalid_rating_changes_nothing(store: DeckStore, deck_with_cards, events):
    card = store.get_cards(deck_with_cards)[0]
    with pytest.raises(InvalidRatingError):
        store.rate_card(deck_with_cards, card.id, "hard")
    assert card.box == 0
    assert card.next_review is None
    assert events == []


def test_rate_missing_card(store: DeckStore, deck_with_cards):
    with pytest.raises(CardNotFoundError):
        store.rate_card(deck_with_cards, "missing", Rating.Good)


def test_get_cards_for_unknown_or_no_deck(store: DeckStore):
    assert store.get_cards(None) == []
    assert store.get_cards("missing") == []


def test_due_count_and_box_distribution(store: DeckStore, deck_with_cards, clock):
    cards = store.get_cards(deck_with_cards)
    store.rate_card(deck_with_cards, cards[0].id, Rating.Good)
    store.rate_card(deck_with_cards, cards[1].id, Rating.Easy)

    assert store.due_count(deck_with_cards) == 1
    assert store.box_distribution(deck_with_cards) == [1, 1, 1, 0, 0]

    clock.advance_days(3)
    assert store.due_count(deck_with_cards) == 2
    assert store.counts() == (1, 3)


# --- Notification ---


def test_unsubscribe_stops_events(store: DeckStore):
    received = []
    unsubscribe = store.subscribe(received.append)
    store.create_deck("One")
    unsubscribe()
    unsubscribe()
    store.create_deck("Two")
    assert len(received) == 1


def test_event_is_emitted_after_persisting(memory_kv, clock):
    persistence = StatePersistence(memory_kv)
    store = DeckStore.load(persistence, clock=clock)
    seen = []

    def listener(event):
        document = json.loads(memory_kv.get(persistence.key))
        seen.append([d["name"] for d in document["decks"]])

    store.subscribe(listener)
    store.create_deck("Persisted")
    assert seen == [["Persisted"]]


# --- Persistence ---


def test_mutations_round_trip_through_persistence(memory_kv, clock):
    persistence = StatePersistence(memory_kv)
    store = DeckStore.load(persistence, clock=clock)
    deck_id = store.create_deck("Geo")
    card_id = store.create_card(deck_id, "Capital of France?", "Paris")
    store.rate_card(deck_id, card_id, Rating.Good)

    reloaded = DeckStore.load(StatePersistence(memory_kv), clock=clock)

    assert reloaded.active_deck_id == deck_id
    card = reloaded.get_card(deck_id, card_id)
    assert card.box == 1
    assert card.next_review == FIXED_NOW_MS + 3 * ONE_DAY_MS


def test_persistence_failure_keeps_mutation_and_reports(clock):
    failing = MagicMock(spec=StatePersistence)
    failing.load.return_value = None
    failing.save.side_effect = PersistenceError("disk full")
    store = DeckStore(persistence=failing, clock=clock)
    events = []
    store.subscribe(events.append)

    deck_id = store.create_deck("Unsaved")

    assert store.get_deck(deck_id) is not None
    assert isinstance(events[-1].persistence_error, PersistenceError)
    assert store.last_persistence_error is events[-1].persistence_error


def test_persistence_recovers_after_failure(clock):
    kv = MemoryKeyValueStore()
    persistence = StatePersistence(kv)
    store = DeckStore(persistence=persistence, clock=clock)
    original_set = kv.set
    kv.set = MagicMock(side_effect=OSError("read-only"))

    store.create_deck("First")
    assert isinstance(store.last_persistence_error, PersistenceError)

    kv.set = original_set
    store.create_deck("Second")
    assert store.last_persistence_error is None
    assert "Second" in kv.get(persistence.key)


def test_upper_boxes_survive_reload_with_longer_interval_table(memory_kv, clock):
    scheduler = LeitnerScheduler(LeitnerSchedulerConfig(intervals=(1, 2, 3, 4, 5, 6, 7)))
    store = DeckStore.load(StatePersistence(memory_kv), scheduler=scheduler, clock=clock)
    deck_id = store.create_deck("Long")
    card_id = store.create_card(deck_id, "Q", "A")
    for _ in range(3):
        store.rate_card(deck_id, card_id, Rating.Easy)
    assert store.get_card(deck_id, card_id).box == 6

    reloaded = DeckStore.load(StatePersistence(memory_kv), scheduler=scheduler, clock=clock)
    assert reloaded.get_card(deck_id, card_id).box == 6
    assert reloaded.box_distribution(deck_id) == [0, 0, 0, 0, 0, 0, 1]

    default = DeckStore.load(StatePersistence(memory_kv), clock=clock)
    assert default.get_card(deck_id, card_id).box == 4
