"""Persistence for the budget state.

One JSON blob under a fixed key. Loading never fails: a missing row or a
corrupt blob yields the zero-valued default state.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from .budget import BudgetState

logger = logging.getLogger("grindtime")

STATE_ROW_ID = 1


class StateStoreError(Exception):
    """Raised when the state could not be written."""


class StateStore:
    """SQLite-backed store, one row in the budget_state table."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        # WAL so a status read never blocks the ticking writer
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS budget_state (
                id INTEGER PRIMARY KEY,
                state_json TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        return conn

    def load(self) -> BudgetState:
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT state_json FROM budget_state WHERE id = ?", (STATE_ROW_ID,)
                ).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Could not read budget state from {self.db_path}: {e}")
            return BudgetState()

        if row is None:
            return BudgetState()
        return decode_state(row[0])

    def save(self, state: BudgetState) -> None:
        try:
            conn = self._connect()
            try:
                _write_row(conn, state)
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StateStoreError(f"Could not write budget state to {self.db_path}: {e}") from e

    def update(self, fn) -> BudgetState:
        """Read, change and write the state in one write transaction.

        fn receives the stored state and returns the state to write. Other
        processes sharing the database wait on the busy timeout meanwhile,
        so a write made between our read and our save cannot be lost.
        """
        try:
            conn = self._connect()
        except (sqlite3.Error, OSError) as e:
            raise StateStoreError(f"Could not open budget state at {self.db_path}: {e}") from e

        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT state_json FROM budget_state WHERE id = ?", (STATE_ROW_ID,)
            ).fetchone()
            state = fn(BudgetState() if row is None else decode_state(row[0]))
            _write_row(conn, state)
            conn.commit()
            return state
        except sqlite3.Error as e:
            raise StateStoreError(f"Could not update budget state in {self.db_path}: {e}") from e
        finally:
            # Closing with the transaction still open rolls it back.
            conn.close()


class MemoryStore:
    """In-process store holding the serialized blob."""

    def __init__(self, blob: str | None = None):
        self.blob = blob
        self.save_count = 0

    def load(self) -> BudgetState:
        if self.blob is None:
            return BudgetState()
        return decode_state(self.blob)

    def save(self, state: BudgetState) -> None:
        self.blob = encode_state(state)
        self.save_count += 1

    def update(self, fn) -> BudgetState:
        state = fn(self.load())
        self.save(state)
        return state


def _write_row(conn: sqlite3.Connection, state: BudgetState) -> None:
    conn.execute(
        """INSERT INTO budget_state (id, state_json, updated_at)
           VALUES (?, ?, ?)
           ON CONFLICT(id) DO UPDATE SET
               state_json = excluded.state_json,
               updated_at = excluded.updated_at""",
        (STATE_ROW_ID, encode_state(state), datetime.now().isoformat()),
    )


def encode_state(state: BudgetState) -> str:
    return json.dumps(state.to_dict())


def decode_state(blob) -> BudgetState:
    try:
        data = json.loads(blob)
    except (TypeError, ValueError):
        logger.warning("Stored budget state is corrupt, starting from defaults")
        return BudgetState()
    return BudgetState.from_dict(data)
