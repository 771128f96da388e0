"""
GrindTime API: local FastAPI server for the study/game budget

This server provides:
- The command surface (toggle study/game, bonus, reset)
- A read-only budget snapshot for dashboards
- A 1 Hz scheduler tick that enforces rollover and game-time limits
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .engine import BudgetEngine, BudgetEvent, TickResult
from .notify import Notifier

logger = logging.getLogger("grindtime")

TICK_JOB_ID = "budget_tick"


# Pydantic Models
class BudgetResponse(BaseModel):
    study_elapsed: int
    game_available: int
    game_total_earned: int
    game_consumed: int
    continuous_game: int
    study_running: bool
    game_running: bool
    lives: float
    date: Optional[str] = None
    reset_pending: bool = False


class CommandResponse(BaseModel):
    changed: bool
    events: List[str] = Field(default_factory=list)
    persisted: bool = True
    budget: BudgetResponse


class ResetConfirmRequest(BaseModel):
    confirm: bool = False


def create_app(
    engine: BudgetEngine,
    notifier: Notifier | None = None,
    tick_seconds: int = 1,
) -> FastAPI:
    """Build the app around one engine. The tick runs only inside the lifespan."""
    notifier = notifier or Notifier(mode="off")
    scheduler = AsyncIOScheduler()

    def deliver(result: TickResult) -> None:
        for event in result.events:
            if event != BudgetEvent.NO_GAME_TIME:
                notifier.notify(event)

    def run_tick() -> None:
        try:
            deliver(engine.on_tick())
        except Exception as e:
            logger.error(f"Tick failed: {e}")

    async def tick() -> None:
        # Engine passes and notifications block; keep them off the event loop.
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, run_tick)

    scheduler.add_job(
        tick,
        trigger=IntervalTrigger(seconds=tick_seconds),
        id=TICK_JOB_ID,
        replace_existing=True,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler.start()
        logger.info("Tick scheduler started")
        yield
        scheduler.shutdown(wait=False)
        logger.info("Tick scheduler stopped")

    app = FastAPI(
        title="GrindTime",
        description="Local server for the study/game time budget",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.scheduler = scheduler

    def budget_response(snapshot) -> BudgetResponse:
        return BudgetResponse(
            study_elapsed=snapshot.study_elapsed,
            game_available=snapshot.game_available,
            game_total_earned=snapshot.game_total_earned,
            game_consumed=snapshot.game_consumed,
            continuous_game=snapshot.continuous_game,
            study_running=snapshot.study_running,
            game_running=snapshot.game_running,
            lives=round(snapshot.lives, 2),
            date=snapshot.date,
            reset_pending=engine.reset_pending,
        )

    def command_response(result: TickResult) -> CommandResponse:
        deliver(result)
        if not result.persisted:
            logger.warning("Command applied in memory only")
        return CommandResponse(
            changed=result.changed,
            events=[e.value for e in result.events],
            persisted=result.persisted,
            budget=budget_response(result.snapshot),
        )

    @app.get("/api/budget", response_model=BudgetResponse)
    def get_budget():
        """Current derived budget values (runs the rollover/limit checks first)."""
        result = engine.on_tick()
        deliver(result)
        return budget_response(result.snapshot)

    @app.post("/api/study/toggle", response_model=CommandResponse)
    def toggle_study():
        """Start the study clock, or pause it if running."""
        result = engine.toggle_study()
        logger.info(f"Study clock {'running' if result.snapshot.study_running else 'paused'}")
        return command_response(result)

    @app.post("/api/game/toggle", response_model=CommandResponse)
    def toggle_game():
        """Start the game clock, or pause it if running. 409 when no game time is left."""
        result = engine.toggle_game()
        if result.rejected:
            raise HTTPException(status_code=409, detail="No game time available")
        logger.info(f"Game clock {'running' if result.snapshot.game_running else 'paused'}")
        return command_response(result)

    @app.post("/api/bonus", response_model=CommandResponse)
    def award_bonus():
        """Award one task bonus (a life)."""
        result = engine.award_bonus()
        logger.info(f"Bonus awarded, {result.snapshot.game_available}s available")
        return command_response(result)

    @app.post("/api/reset/request", response_model=BudgetResponse)
    def request_reset():
        engine.request_reset()
        return budget_response(engine.snapshot())

    @app.post("/api/reset/cancel", response_model=BudgetResponse)
    def cancel_reset():
        engine.cancel_reset()
        return budget_response(engine.snapshot())

    @app.post("/api/reset/confirm", response_model=CommandResponse)
    def confirm_reset(request: Optional[ResetConfirmRequest] = None):
        """Zero today's budget. Requires a pending request or confirm=true."""
        if not (engine.reset_pending or (request is not None and request.confirm)):
            raise HTTPException(status_code=409, detail="No reset requested")
        return command_response(engine.confirm_reset())

    return app
