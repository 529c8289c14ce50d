"""
Unit tests for the flashdeck.cli.study_ui module.
"""

from unittest.mock import MagicMock, patch

import pytest

from flashdeck.cli.study_ui import handle_command, start_study_flow
from flashdeck.deck_store import DeckStore
from flashdeck.exceptions import PersistenceError
from flashdeck.session import SessionController
from flashdeck.storage import StatePersistence


@pytest.fixture
def session(store: DeckStore, deck_with_cards: str, rng) -> SessionController:
    return SessionController(store, rng=rng)


def test_start_study_flow_no_deck(store: DeckStore, capsys):
    """Tests the study flow when no deck is selected."""
    session = SessionController(store)

    with patch("rich.console.Console.input", side_effect=["q"]):
        start_study_flow(session)

    captured = capsys.readouterr()
    assert "Create or select a deck to begin." in captured.out
    assert "Study session finished." in captured.out


def test_start_study_flow_rates_card(session: SessionController, store: DeckStore, capsys):
    """Tests flipping, rating and quitting."""
    with patch("rich.console.Console.input", side_effect=["", "2", "q"]):
        start_study_flow(session)

    captured = capsys.readouterr()
    assert "Studying Spanish..." in captured.out
    assert "Card 1 of 3" in captured.out
    assert "A1" in captured.out
    assert "Box 1" in captured.out
    assert "Card 2 of 3" in captured.out
    assert store.get_cards(session.deck_id)[0].box == 1


def test_start_study_flow_ends_on_eof(session: SessionController, capsys):
    with patch("rich.console.Console.input", side_effect=EOFError):
        start_study_flow(session)
    assert "Study session finished." in capsys.readouterr().out


def test_start_study_flow_due_only_all_caught_up(session: SessionController, capsys):
    for _ in range(3):
        session.rate("easy")

    with patch("rich.console.Console.input", side_effect=["q"]):
        start_study_flow(session, due_only=True)

    assert "You are all caught up!" in capsys.readouterr().out


def test_start_study_flow_with_search(session: SessionController, capsys):
    with patch("rich.console.Console.input", side_effect=["q"]):
        start_study_flow(session, search="q2")

    out = capsys.readouterr().out
    assert "Card 1 of 1" in out
    assert "search: q2" in out


def test_rating_requires_reveal(session: SessionController, capsys):
    assert handle_command(session, "1") is True
    assert "Reveal the answer before rating." in capsys.readouterr().out
    assert session.current_card.front == "Q1"
    assert session.current_card.next_review is None


@pytest.mark.parametrize("command, expected_front", [("n", "Q2"), ("p", "Q3"), ("next", "Q2")])
def test_navigation_commands(session: SessionController, command, expected_front):
    handle_command(session, command)
    assert session.current_card.front == expected_front


def test_search_and_due_commands(session: SessionController, capsys):
    handle_command(session, "/a3")
    assert [c.front for c in session.working_set] == ["Q3"]

    handle_command(session, "d")
    assert session.due_filter_active
    assert session.search_query == ""
    assert "Due filter on." in capsys.readouterr().out


def test_quit_and_unknown_commands(session: SessionController, capsys):
    assert handle_command(session, "Q") is False
    assert handle_command(session, "xyz") is True
    assert "Unknown command 'xyz'" in capsys.readouterr().out


def test_shuffle_command(session: SessionController):
    session.next()
    handle_command(session, "s")
    assert session.active_index == 0
    assert sorted(c.front for c in session.working_set) == ["Q1", "Q2", "Q3"]


def test_persistence_warning_is_shown(clock, capsys):
    failing = MagicMock(spec=StatePersistence)
    failing.save.side_effect = PersistenceError("disk full")
    store = DeckStore(persistence=failing, clock=clock)
    deck_id = store.create_deck("Unsaved")
    store.create_card(deck_id, "Q", "A")
    session = SessionController(store)

    with patch("rich.console.Console.input", side_effect=["f", "good", "q"]):
        start_study_flow(session)

    out = capsys.readouterr().out
    assert "changes could not be saved" in out
    assert store.get_cards(deck_id)[0].box == 1
