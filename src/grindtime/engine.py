"""Budget engine: clock transitions, guards and the composition root.

The module-level functions mutate a BudgetState passed in by the caller and
report what happened in a TickResult; they never read the clock or touch
storage. BudgetEngine owns one state plus a store and runs each public
operation as load -> rollover check -> transition -> guards -> save.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum

from .budget import (
    MAX_CONTINUOUS_GAME_SECONDS,
    SECONDS_PER_LIFE,
    BudgetState,
    available_game_seconds,
    continuous_game_seconds,
    current_game_consumed_seconds,
    current_study_seconds,
    elapsed_seconds,
    lives,
    total_earned_game_seconds,
)
from .store import StateStoreError

logger = logging.getLogger("grindtime")


class BudgetEvent(Enum):
    GAME_TIME_EXHAUSTED = "game_time_exhausted"
    CONTINUOUS_LIMIT_REACHED = "continuous_limit_reached"
    NO_GAME_TIME = "no_game_time"
    DAILY_RESET = "daily_reset"


@dataclass(frozen=True)
class BudgetSnapshot:
    """Read-only view of the derived values for rendering."""

    study_elapsed: int
    game_available: int
    game_total_earned: int
    game_consumed: int
    continuous_game: int
    study_running: bool
    game_running: bool
    lives: float
    date: str | None

    def to_export_dict(self) -> dict:
        """CamelCase dict for JSON export."""
        return {
            "studyElapsed": self.study_elapsed,
            "gameAvailable": self.game_available,
            "gameTotalEarned": self.game_total_earned,
            "gameConsumed": self.game_consumed,
            "continuousGame": self.continuous_game,
            "studyRunning": self.study_running,
            "gameRunning": self.game_running,
            "lives": round(self.lives, 2),
            "date": self.date,
        }


@dataclass
class TickResult:
    changed: bool = False
    events: list[BudgetEvent] = field(default_factory=list)
    persisted: bool = True
    reset_date: str | None = None
    snapshot: BudgetSnapshot | None = None

    @property
    def rejected(self) -> bool:
        return BudgetEvent.NO_GAME_TIME in self.events

    def merge(self, other: "TickResult") -> "TickResult":
        self.changed = self.changed or other.changed
        self.events.extend(other.events)
        if other.reset_date is not None:
            self.reset_date = other.reset_date
        return self


def take_snapshot(state: BudgetState, now_ms: int) -> BudgetSnapshot:
    available = available_game_seconds(state, now_ms)
    return BudgetSnapshot(
        study_elapsed=current_study_seconds(state, now_ms),
        game_available=available,
        game_total_earned=total_earned_game_seconds(state, now_ms),
        game_consumed=current_game_consumed_seconds(state, now_ms),
        continuous_game=continuous_game_seconds(state, now_ms),
        study_running=state.study_running,
        game_running=state.game_running,
        lives=lives(available),
        date=state.date,
    )


def local_date(now_ms: int) -> str:
    """Local calendar day (YYYY-MM-DD) of an epoch-ms timestamp."""
    return datetime.fromtimestamp(now_ms / 1000).strftime("%Y-%m-%d")


# ---- Clock transitions ----

def stop_study(state: BudgetState, now_ms: int) -> TickResult:
    if not state.study_running:
        return TickResult()
    state.study_accumulated_seconds += elapsed_seconds(state.study_start_ms, now_ms)
    state.study_running = False
    state.study_start_ms = None
    return TickResult(changed=True)


def stop_game(state: BudgetState, now_ms: int) -> TickResult:
    """Commit consumed game time and end the continuous run."""
    if not state.game_running:
        return TickResult()
    state.game_consumed_accumulated_seconds += elapsed_seconds(state.game_start_ms, now_ms)
    state.game_running = False
    state.game_start_ms = None
    state.continuous_game_start_ms = None
    return TickResult(changed=True)


def start_study(state: BudgetState, now_ms: int) -> TickResult:
    if state.study_running:
        return TickResult()
    result = stop_game(state, now_ms)
    state.study_running = True
    state.study_start_ms = now_ms
    result.changed = True
    return result


def start_game(state: BudgetState, now_ms: int) -> TickResult:
    """Start the game clock, pausing study first.

    Rejected without side effects (NO_GAME_TIME) when nothing is available.
    """
    if state.game_running:
        return TickResult()
    if available_game_seconds(state, now_ms) <= 0:
        return TickResult(events=[BudgetEvent.NO_GAME_TIME])
    result = stop_study(state, now_ms)
    state.game_running = True
    state.game_start_ms = now_ms
    state.continuous_game_start_ms = now_ms
    result.changed = True
    return result


# ---- Awards, resets and guards ----

def award_bonus(state: BudgetState, amount: int = SECONDS_PER_LIFE) -> TickResult:
    state.game_awarded_bonus_seconds += amount
    return TickResult(changed=True)


def reset_budget(state: BudgetState) -> TickResult:
    """Zero every accumulator and stop both clocks. The date is kept."""
    defaults = BudgetState(date=state.date)
    for f in fields(state):
        setattr(state, f.name, getattr(defaults, f.name))
    return TickResult(changed=True)


def check_rollover(state: BudgetState, today: str) -> TickResult:
    """Reset the budget when the calendar day differs from the saved one."""
    result = TickResult()
    if state.date is not None and state.date != today:
        result = reset_budget(state)
        result.events.append(BudgetEvent.DAILY_RESET)
        result.reset_date = state.date
    if state.date != today:
        state.date = today
        result.changed = True
    return result


def check_game_exhausted(state: BudgetState, now_ms: int) -> TickResult:
    if state.game_running and available_game_seconds(state, now_ms) <= 0:
        result = stop_game(state, now_ms)
        result.events.append(BudgetEvent.GAME_TIME_EXHAUSTED)
        return result
    return TickResult()


def check_continuous_limit(
    state: BudgetState, now_ms: int, ceiling_seconds: int = MAX_CONTINUOUS_GAME_SECONDS
) -> TickResult:
    """Force the game clock off once an unbroken run reaches the ceiling."""
    if state.game_running and continuous_game_seconds(state, now_ms) >= ceiling_seconds:
        result = stop_game(state, now_ms)
        result.events.append(BudgetEvent.CONTINUOUS_LIMIT_REACHED)
        return result
    return TickResult()


# ---- Composition root ----

def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class BudgetEngine:
    """Owns one BudgetState and its store; the command surface for hosts.

    Every public method takes an optional now_ms (epoch milliseconds) and
    today (YYYY-MM-DD); both default to the wall clock. Each call runs
    under one lock covering load, rollover, transition, guards and save, so
    sync HTTP handlers and a scheduler tick can share an engine.
    """

    def __init__(self, store, continuous_limit_seconds: int = MAX_CONTINUOUS_GAME_SECONDS):
        self._store = store
        self._state: BudgetState = store.load()
        self._continuous_limit_seconds = continuous_limit_seconds
        self._reset_pending = False
        self._unsaved = False
        self._lock = threading.Lock()

    # ---- Read-only properties ----

    @property
    def state(self) -> BudgetState:
        return self._state

    @property
    def reset_pending(self) -> bool:
        return self._reset_pending

    @property
    def continuous_limit_seconds(self) -> int:
        return self._continuous_limit_seconds

    # ---- Command surface ----

    def toggle_study(self, now_ms: int | None = None, today: str | None = None) -> TickResult:
        """startOrToggleStudy: pause a running study clock, otherwise start it."""
        def op(state, now):
            if state.study_running:
                return stop_study(state, now)
            return start_study(state, now)

        return self._run(op, now_ms, today)

    def toggle_game(self, now_ms: int | None = None, today: str | None = None) -> TickResult:
        """startOrToggleGame: pause a running game clock, otherwise try to start it."""
        def op(state, now):
            if state.game_running:
                return stop_game(state, now)
            return start_game(state, now)

        return self._run(op, now_ms, today)

    def start_study(self, now_ms: int | None = None, today: str | None = None) -> TickResult:
        return self._run(start_study, now_ms, today)

    def stop_study(self, now_ms: int | None = None, today: str | None = None) -> TickResult:
        return self._run(stop_study, now_ms, today)

    def start_game(self, now_ms: int | None = None, today: str | None = None) -> TickResult:
        return self._run(start_game, now_ms, today)

    def stop_game(self, now_ms: int | None = None, today: str | None = None) -> TickResult:
        return self._run(stop_game, now_ms, today)

    def award_bonus(self, now_ms: int | None = None, today: str | None = None) -> TickResult:
        return self._run(lambda state, now: award_bonus(state), now_ms, today)

    def request_reset(self) -> None:
        self._reset_pending = True

    def cancel_reset(self) -> None:
        self._reset_pending = False

    def confirm_reset(self, now_ms: int | None = None, today: str | None = None) -> TickResult:
        """Zero today's budget. Works with or without a prior request_reset()."""
        self._reset_pending = False
        result = self._run(lambda state, now: reset_budget(state), now_ms, today)
        logger.info("Budget reset by user")
        return result

    def on_tick(self, now_ms: int | None = None, today: str | None = None) -> TickResult:
        """Periodic re-evaluation; safe at any interval."""
        return self._run(None, now_ms, today)

    def snapshot(self, now_ms: int | None = None) -> BudgetSnapshot:
        """Derived values of the state as of the last operation."""
        with self._lock:
            return take_snapshot(self._state, _wall_clock_ms() if now_ms is None else now_ms)

    # ---- Internal ----

    def _run(self, op, now_ms: int | None, today: str | None) -> TickResult:
        """One pass: read stored state, rollover, op, guards, write back.

        The read and the write share one store transaction, so other
        engines on the same database (CLI commands next to `serve` or
        `watch`) never overwrite each other.
        """
        with self._lock:
            now = _wall_clock_ms() if now_ms is None else now_ms
            day = today or local_date(now)
            results = []

            def apply(stored: BudgetState) -> BudgetState:
                # After a failed write the in-memory copy is newer than the store.
                state = self._state if self._unsaved else stored
                self._state = state
                results.append(self._apply(state, op, now, day))
                return state

            try:
                self._store.update(apply)
                self._unsaved = False
            except StateStoreError as e:
                logger.warning(f"Budget state not saved, kept in memory only: {e}")
                if not results:
                    apply(self._state)
                self._unsaved = True

            result = results[-1]
            result.persisted = not self._unsaved
            for event in result.events:
                logger.info(f"Budget event: {event.value}")
            result.snapshot = take_snapshot(self._state, now)
            return result

    def _apply(self, state: BudgetState, op, now: int, today: str) -> TickResult:
        result = check_rollover(state, today)
        if result.reset_date is not None:
            logger.info(f"Daily rollover: cleared budget of {result.reset_date}")
        if op is not None:
            result.merge(op(state, now))
        result.merge(check_game_exhausted(state, now))
        result.merge(check_continuous_limit(state, now, self._continuous_limit_seconds))
        return result
