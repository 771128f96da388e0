"""Study/game time budget: earn game time by studying."""

from .budget import (
    MAX_CONTINUOUS_GAME_SECONDS,
    SECONDS_PER_LIFE,
    STUDY_TO_GAME_RATIO,
    BudgetState,
    available_game_seconds,
    continuous_game_seconds,
    current_game_consumed_seconds,
    current_study_seconds,
    total_earned_game_seconds,
)
from .engine import BudgetEngine, BudgetEvent, BudgetSnapshot, TickResult
from .store import MemoryStore, StateStore, StateStoreError

__all__ = [
    "MAX_CONTINUOUS_GAME_SECONDS",
    "SECONDS_PER_LIFE",
    "STUDY_TO_GAME_RATIO",
    "BudgetEngine",
    "BudgetEvent",
    "BudgetSnapshot",
    "BudgetState",
    "MemoryStore",
    "StateStore",
    "StateStoreError",
    "TickResult",
    "available_game_seconds",
    "continuous_game_seconds",
    "current_game_consumed_seconds",
    "current_study_seconds",
    "total_earned_game_seconds",
]
