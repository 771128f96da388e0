#!/usr/bin/env python3
"""
GrindTime CLI

Earn game time by studying: every 4 seconds of study buy 1 second of game.

Usage:
    grindtime status
    grindtime study          # start / pause the study clock
    grindtime game           # start / pause the game clock
    grindtime bonus          # task done: +1 life (30 min of game time)
    grindtime reset
    grindtime watch          # live dashboard, enforces the limits every second
    grindtime serve          # local HTTP API on $GRINDTIME_PORT
"""

from __future__ import annotations

import json
import logging
import time

import click
from rich.console import Console
from rich.live import Live

from .config import configure_logging, db_option, get_config, verbose_option
from .dashboard import create_budget_panel, format_time_readable
from .engine import BudgetEngine, TickResult
from .notify import Notifier
from .store import StateStore

console = Console()
logger = logging.getLogger("grindtime")


def _engine(ctx) -> BudgetEngine:
    config = ctx.obj["config"]
    return BudgetEngine(
        StateStore(config.db_path),
        continuous_limit_seconds=config.continuous_limit_seconds,
    )


def _notifier(ctx) -> Notifier:
    config = ctx.obj["config"]
    return Notifier(
        mode=config.notify,
        console=console,
        continuous_limit_seconds=config.continuous_limit_seconds,
    )


def _report(ctx, result: TickResult) -> None:
    """Deliver events and print the budget after a command."""
    config = ctx.obj["config"]
    _notifier(ctx).notify_all(result.events)
    if not result.persisted:
        console.print("[yellow]Warning: state could not be saved; it only lives in this process.[/yellow]")
    console.print(create_budget_panel(result.snapshot, config.continuous_limit_seconds))


@click.group()
@db_option
@verbose_option
@click.pass_context
def cli(ctx, db_path, verbose):
    """GrindTime - study to earn game time."""
    config = get_config(db_path=db_path, verbose=verbose)
    configure_logging(config)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config

    if config.verbose:
        click.echo(f"Using database: {config.db_path}", err=True)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON")
@click.pass_context
def status(ctx, as_json):
    """Show today's budget."""
    result = _engine(ctx).on_tick()
    if as_json:
        click.echo(json.dumps(result.snapshot.to_export_dict(), indent=2))
        return
    _report(ctx, result)


@cli.command()
@click.pass_context
def study(ctx):
    """Start the study clock, or pause it if running."""
    result = _engine(ctx).toggle_study()
    _report(ctx, result)


@cli.command()
@click.pass_context
def game(ctx):
    """Start the game clock, or pause it if running."""
    result = _engine(ctx).toggle_game()
    if result.rejected:
        console.print("[red]No game time available.[/red] Study to earn more, or complete a task with `grindtime bonus`.")
        ctx.exit(1)
    _report(ctx, result)


@cli.command()
@click.pass_context
def bonus(ctx):
    """Task completed: award one life of game time."""
    result = _engine(ctx).award_bonus()
    console.print("[green]+1 life![/green]")
    _report(ctx, result)


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def reset(ctx, yes):
    """Zero today's study and game time."""
    engine = _engine(ctx)
    engine.request_reset()
    if not yes and not click.confirm("Reset all of today's study and game time?", default=False):
        engine.cancel_reset()
        click.echo("Reset cancelled.")
        return
    result = engine.confirm_reset()
    click.echo("Budget reset.")
    _report(ctx, result)


@cli.command()
@click.option("--interval", default=1.0, show_default=True, help="Seconds between ticks")
@click.pass_context
def watch(ctx, interval):
    """Live dashboard. Enforces game-time limits until Ctrl-C."""
    config = ctx.obj["config"]
    engine = _engine(ctx)
    notifier = _notifier(ctx)

    result = engine.on_tick()
    try:
        with Live(
            create_budget_panel(result.snapshot, config.continuous_limit_seconds),
            console=console,
            refresh_per_second=4,
        ) as live:
            while True:
                result = engine.on_tick()
                notifier.notify_all(result.events)
                if not result.persisted:
                    logger.warning("Watch tick not persisted")
                live.update(create_budget_panel(result.snapshot, config.continuous_limit_seconds))
                time.sleep(interval)
    except KeyboardInterrupt:
        pass

    snapshot = engine.snapshot()
    click.echo(
        f"Stopped watching. Studied {format_time_readable(snapshot.study_elapsed)}, "
        f"{format_time_readable(snapshot.game_available)} of game time left."
    )


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=None, help="Port (default: $GRINDTIME_PORT or 7778)")
@click.pass_context
def serve(ctx, host, port):
    """Run the local HTTP API with a 1-second tick."""
    import uvicorn

    from .api import create_app

    config = ctx.obj["config"]
    app = create_app(_engine(ctx), notifier=_notifier(ctx))
    uvicorn.run(app, host=host, port=port or config.port)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
