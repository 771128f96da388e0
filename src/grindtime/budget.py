"""Budget state and time accounting. Pure logic, no I/O.

Timestamps are integer epoch milliseconds. Every derived value is
recomputed from the absolute start timestamps, never incremented per
tick, so late or missed ticks cannot introduce drift.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any


STUDY_TO_GAME_RATIO = 4  # 4s of study buy 1s of game
SECONDS_PER_LIFE = 30 * 60  # one task bonus
MAX_CONTINUOUS_GAME_SECONDS = 2 * 60 * 60


@dataclass
class BudgetState:
    """The single persisted record. Mutated only by grindtime.engine."""

    date: str | None = None
    study_running: bool = False
    study_start_ms: int | None = None
    study_accumulated_seconds: int = 0
    game_running: bool = False
    game_start_ms: int | None = None
    game_consumed_accumulated_seconds: int = 0
    game_awarded_bonus_seconds: int = 0
    continuous_game_start_ms: int | None = None

    def to_dict(self) -> dict:
        """Serialize for persistence (snake_case keys)."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Any) -> "BudgetState":
        """Restore from a persisted blob.

        Tolerates partial or corrupt input: anything that is missing or has
        the wrong type keeps its default, unknown keys are ignored.
        """
        state = cls()
        if not isinstance(data, dict):
            return state

        date = data.get("date")
        if isinstance(date, str):
            state.date = date

        for name in ("study_running", "game_running"):
            value = data.get(name)
            if isinstance(value, bool):
                setattr(state, name, value)

        for name in (
            "study_accumulated_seconds",
            "game_consumed_accumulated_seconds",
            "game_awarded_bonus_seconds",
        ):
            value = _as_int(data.get(name))
            if value is not None and value >= 0:
                setattr(state, name, value)

        for name in ("study_start_ms", "game_start_ms", "continuous_game_start_ms"):
            setattr(state, name, _as_int(data.get(name)))

        # A running flag without its start timestamp cannot be timed.
        if state.study_running and state.study_start_ms is None:
            state.study_running = False
        if not state.study_running:
            state.study_start_ms = None
        if state.game_running and state.game_start_ms is None:
            state.game_running = False
        if not state.game_running:
            state.game_start_ms = None
            state.continuous_game_start_ms = None
        elif state.continuous_game_start_ms is None:
            state.continuous_game_start_ms = state.game_start_ms
        if state.study_running and state.game_running:
            # Keep the most recently started clock.
            if state.study_start_ms > state.game_start_ms:
                state.game_running = False
                state.game_start_ms = None
                state.continuous_game_start_ms = None
            else:
                state.study_running = False
                state.study_start_ms = None

        return state


def _as_int(value: Any) -> int | None:
    # bool is an int subclass; a flag is never a valid timestamp or count
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def elapsed_seconds(start_ms: int | None, now_ms: int) -> int:
    """Whole seconds between start_ms and now_ms, floored at zero.

    A clock moved backwards yields 0 rather than a negative delta.
    """
    if start_ms is None:
        return 0
    return max(0, (now_ms - start_ms) // 1000)


# ---- Derived values ----

def current_study_seconds(state: BudgetState, now_ms: int) -> int:
    total = state.study_accumulated_seconds
    if state.study_running:
        total += elapsed_seconds(state.study_start_ms, now_ms)
    return total


def current_game_consumed_seconds(state: BudgetState, now_ms: int) -> int:
    total = state.game_consumed_accumulated_seconds
    if state.game_running:
        total += elapsed_seconds(state.game_start_ms, now_ms)
    return total


def total_earned_game_seconds(state: BudgetState, now_ms: int) -> int:
    """Game seconds bought by study so far plus awarded bonuses."""
    earned = current_study_seconds(state, now_ms) // STUDY_TO_GAME_RATIO
    return earned + state.game_awarded_bonus_seconds


def available_game_seconds(state: BudgetState, now_ms: int) -> int:
    """Spendable game seconds, never negative."""
    earned = total_earned_game_seconds(state, now_ms)
    return max(0, earned - current_game_consumed_seconds(state, now_ms))


def continuous_game_seconds(state: BudgetState, now_ms: int) -> int:
    return elapsed_seconds(state.continuous_game_start_ms, now_ms)


def lives(available_seconds: int) -> float:
    """Available game time expressed in bonus units (may be fractional)."""
    return available_seconds / SECONDS_PER_LIFE
