"""Tests for the SQLite state store using a temporary database."""

import json
import sqlite3

import pytest

from grindtime.budget import BudgetState
from grindtime.engine import BudgetEngine
from grindtime.store import STATE_ROW_ID, MemoryStore, StateStore, StateStoreError


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "grindtime.db"


def write_raw(db_path, blob: str) -> None:
    """Put an arbitrary blob into the state row."""
    StateStore(db_path).save(BudgetState())  # creates the table
    conn = sqlite3.connect(db_path)
    conn.execute("UPDATE budget_state SET state_json = ? WHERE id = ?", (blob, STATE_ROW_ID))
    conn.commit()
    conn.close()


class TestStateStore:
    def test_first_run_returns_defaults(self, db_path):
        assert StateStore(db_path).load() == BudgetState()

    def test_save_then_load(self, db_path):
        state = BudgetState(
            date="2026-02-11",
            study_running=True,
            study_start_ms=1_700_000_000_000,
            study_accumulated_seconds=300,
            game_awarded_bonus_seconds=1800,
        )
        StateStore(db_path).save(state)
        assert StateStore(db_path).load() == state

    def test_single_row(self, db_path):
        store = StateStore(db_path)
        store.save(BudgetState(study_accumulated_seconds=1))
        store.save(BudgetState(study_accumulated_seconds=2))
        conn = sqlite3.connect(db_path)
        rows = conn.execute("SELECT id, state_json FROM budget_state").fetchall()
        conn.close()
        assert len(rows) == 1
        assert json.loads(rows[0][1])["study_accumulated_seconds"] == 2

    def test_creates_parent_directory(self, tmp_path):
        store = StateStore(tmp_path / "nested" / "dir" / "g.db")
        store.save(BudgetState(date="2026-02-11"))
        assert store.load().date == "2026-02-11"

    def test_corrupt_blob_is_a_cache_miss(self, db_path):
        write_raw(db_path, "{not json")
        assert StateStore(db_path).load() == BudgetState()

    def test_partial_blob_keeps_known_fields(self, db_path):
        write_raw(db_path, json.dumps({"date": "2026-02-11", "game_awarded_bonus_seconds": 3600}))
        state = StateStore(db_path).load()
        assert state.date == "2026-02-11"
        assert state.game_awarded_bonus_seconds == 3600
        assert state.study_accumulated_seconds == 0

    def test_unreadable_database_returns_defaults(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        assert StateStore(blocker / "g.db").load() == BudgetState()

    def test_unwritable_database_raises_store_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        with pytest.raises(StateStoreError):
            StateStore(blocker / "g.db").save(BudgetState())


class TestUpdate:
    def test_reads_changes_and_writes(self, db_path):
        store = StateStore(db_path)
        store.save(BudgetState(game_awarded_bonus_seconds=1800))

        def add_life(state):
            state.game_awarded_bonus_seconds += 1800
            return state

        assert store.update(add_life).game_awarded_bonus_seconds == 3600
        assert StateStore(db_path).load().game_awarded_bonus_seconds == 3600

    def test_first_run_starts_from_defaults(self, db_path):
        seen = []
        StateStore(db_path).update(lambda state: seen.append(state) or state)
        assert seen == [BudgetState()]

    def test_failing_callback_writes_nothing(self, db_path):
        store = StateStore(db_path)
        store.save(BudgetState(study_accumulated_seconds=5))

        def explode(state):
            state.study_accumulated_seconds = 99
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.update(explode)
        assert store.load().study_accumulated_seconds == 5

    def test_unopenable_database_raises_store_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        with pytest.raises(StateStoreError):
            StateStore(blocker / "g.db").update(lambda state: state)

    def test_engines_sharing_a_database(self, db_path):
        """A ticking host and a one-shot command on the same file keep both writes."""
        day = "2026-02-11"
        host = BudgetEngine(StateStore(db_path))
        host.on_tick(0, day)

        command = BudgetEngine(StateStore(db_path))
        assert command.award_bonus(1000, day).persisted

        host.on_tick(2000, day)
        assert StateStore(db_path).load().game_awarded_bonus_seconds == 1800


class TestMemoryStore:
    def test_defaults_when_empty(self):
        assert MemoryStore().load() == BudgetState()

    def test_garbage_blob(self):
        assert MemoryStore("[1, 2, 3]").load() == BudgetState()

    def test_counts_saves(self):
        store = MemoryStore()
        store.save(BudgetState(study_accumulated_seconds=9))
        assert store.save_count == 1
        assert store.load().study_accumulated_seconds == 9
