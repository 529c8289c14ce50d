import random
from pathlib import Path
from typing import Generator, List

import pytest

from flashdeck.deck_store import DeckStore, StoreEvent
from flashdeck.scheduler import LeitnerScheduler
from flashdeck.storage import (
    DuckDBKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    StatePersistence,
)

# 2024-01-01T00:00:00Z
FIXED_NOW_MS = 1_704_067_200_000


class FakeClock:
    """A settable millisecond clock."""

    def __init__(self, now: int = FIXED_NOW_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance_days(self, days: float) -> None:
        self.now += int(days * 86_400_000)


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """
    Run each test from its own temp dir so a stray .env or default database
    never leaks in.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for var in ("FLASHDECK_DB_PATH", "FLASHDECK_GEMINI_API_KEY", "FLASHDECK_STORAGE_KEY"):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


# --- Storage Fixtures ---
@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    """Path to a temporary DuckDB file named test_flashdeck.db."""
    return tmp_path / "test_flashdeck.db"


@pytest.fixture(params=["memory", "duckdb-memory", "duckdb-file"])
def kv_store(request, db_path_file: Path) -> Generator[KeyValueStore, None, None]:
    """
    Provide each KeyValueStore backend in turn and close it on teardown.
    """
    if request.param == "memory":
        store: KeyValueStore = MemoryKeyValueStore()
    elif request.param == "duckdb-memory":
        store = DuckDBKeyValueStore(":memory:")
    else:
        store = DuckDBKeyValueStore(db_path_file)
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def memory_kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def persistence(memory_kv: MemoryKeyValueStore) -> StatePersistence:
    return StatePersistence(memory_kv)


@pytest.fixture
def store(persistence: StatePersistence, clock: FakeClock) -> DeckStore:
    """An empty, persisted DeckStore driven by the fake clock."""
    return DeckStore.load(persistence, scheduler=LeitnerScheduler(), clock=clock)


@pytest.fixture
def events(store: DeckStore) -> List[StoreEvent]:
    """Every event the store emits during the test, in order."""
    received: List[StoreEvent] = []
    store.subscribe(received.append)
    return received


@pytest.fixture
def deck_with_cards(store: DeckStore) -> str:
    """A deck holding three new cards: Q1/A1, Q2/A2, Q3/A3."""
    deck_id = store.create_deck("Spanish")
    for i in range(1, 4):
        store.create_card(deck_id, f"Q{i}", f"A{i}")
    return deck_id
