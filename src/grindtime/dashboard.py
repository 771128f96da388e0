"""Rendering helpers: time formatting, lives bar and the rich budget panel."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .budget import SECONDS_PER_LIFE


def format_time(seconds: int) -> str:
    """Format seconds as 'HH:MM:SS'."""
    seconds = max(0, seconds)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours:02d}:{minutes:02d}:{seconds % 60:02d}"


def format_time_readable(seconds: int) -> str:
    """Format seconds as 'Xh Ym', or 'Ym' under an hour."""
    seconds = max(0, seconds)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def make_lives_bar(available_seconds: int) -> str:
    """One heart per full life, a dim heart plus percentage for the remainder."""
    full, partial = divmod(max(0, available_seconds), SECONDS_PER_LIFE)
    if full == 0 and partial == 0:
        return "[dim]no lives[/dim]"

    bar = "[red]" + "♥" * full + "[/red]"
    if partial:
        bar += f"[dim red]♡[/dim red][dim]{partial * 100 // SECONDS_PER_LIFE}%[/dim]"
    return bar


def format_lives(available_seconds: int) -> str:
    """'1.5 lives (45 min)' style summary."""
    lives = max(0, available_seconds) / SECONDS_PER_LIFE
    return f"{lives:.1f} lives ({available_seconds // 60} min)"


def _clock_status(running: bool, blocked: bool) -> str:
    if running:
        return "[green]● running[/green]"
    if blocked:
        return "[dim]locked[/dim]"
    return "[yellow]‖ paused[/yellow]"


def create_budget_panel(snapshot, continuous_limit_seconds: int | None = None) -> Panel:
    """Create the panel shown by `status` and `watch`."""
    table = Table(show_header=True, header_style="bold cyan", border_style="blue", expand=False)
    table.add_column("Clock", style="bold", width=7)
    table.add_column("Time", width=10, justify="right")
    table.add_column("Today", width=9, justify="right")
    table.add_column("State", width=12)

    # The idle clock is locked while the other one runs.
    table.add_row(
        "Study",
        format_time(snapshot.study_elapsed),
        format_time_readable(snapshot.study_elapsed),
        _clock_status(snapshot.study_running, snapshot.game_running),
    )
    table.add_row(
        "Game",
        format_time(snapshot.game_available),
        format_time_readable(snapshot.game_total_earned),
        _clock_status(snapshot.game_running, snapshot.study_running),
    )

    lines = Text()
    lines.append_text(Text.from_markup(f"[bold]Lives[/bold]  {make_lives_bar(snapshot.game_available)}"))
    lines.append("\n")
    lines.append_text(Text.from_markup(f"[dim]{format_lives(snapshot.game_available)}[/dim]"))
    if snapshot.game_running and continuous_limit_seconds:
        left = max(0, continuous_limit_seconds - snapshot.continuous_game)
        lines.append("\n")
        lines.append_text(Text.from_markup(
            f"[bold]Session[/bold] {format_time_readable(snapshot.continuous_game)}"
            f" [dim](break in {format_time_readable(left)})[/dim]"
        ))

    grid = Table.grid()
    grid.add_row(table)
    grid.add_row(lines)
    title = f"GrindTime · {snapshot.date}" if snapshot.date else "GrindTime"
    return Panel(grid, title=title, border_style="magenta")
