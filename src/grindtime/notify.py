"""Turn engine events into user-facing notifications."""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess

from rich.console import Console

from .budget import MAX_CONTINUOUS_GAME_SECONDS
from .dashboard import format_time_readable
from .engine import BudgetEvent

logger = logging.getLogger("grindtime")

NOTIFICATION_TAG = "grindtime-notification"


def event_message(
    event: BudgetEvent, continuous_limit_seconds: int = MAX_CONTINUOUS_GAME_SECONDS
) -> tuple[str, str]:
    """Return (title, body) for an event."""
    if event == BudgetEvent.GAME_TIME_EXHAUSTED:
        return (
            "Game Time Over! ⏰",
            "Your game time has ended. Time to get back to studying!",
        )
    if event == BudgetEvent.CONTINUOUS_LIMIT_REACHED:
        hours, rest = divmod(continuous_limit_seconds, 3600)
        if hours and not rest:
            label = f"{hours} Hour"
            span = f"{hours} hour" if hours == 1 else f"{hours} hours"
        else:
            label = span = format_time_readable(continuous_limit_seconds)
        return (
            f"{label} Limit Reached! 🎮",
            f"You have gamed for {span} straight. Time to take a break and study!",
        )
    if event == BudgetEvent.NO_GAME_TIME:
        return (
            "No Game Time",
            "You have no game time left. Study to earn more, or complete a task for a bonus life.",
        )
    return ("New Day", "Yesterday's budget was cleared. Fresh start!")


def send_desktop_notification(title: str, body: str) -> dict:
    """Show an OS notification (osascript on macOS, notify-send elsewhere)."""
    if platform.system() == "Darwin":
        script = f'display notification "{_escape(body)}" with title "{_escape(title)}"'
        cmd = ["osascript", "-e", script]
    else:
        if shutil.which("notify-send") is None:
            return {"success": False, "error": "notify-send not found"}
        cmd = [
            "notify-send",
            "--app-name=GrindTime",
            f"--hint=string:x-canonical-private-synchronous:{NOTIFICATION_TAG}",
            title,
            body,
        ]

    try:
        result = subprocess.run(cmd, capture_output=True, timeout=10)
        if result.returncode == 0:
            return {"success": True, "method": cmd[0]}
        return {"success": False, "error": f"{cmd[0]} failed: {result.stderr.decode()[:100]}"}
    except subprocess.TimeoutExpired:
        return {"success": False, "error": "Notification timed out"}
    except OSError as e:
        return {"success": False, "error": str(e)}


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


class Notifier:
    """Delivers events in one of the configured modes: desktop, console, off."""

    def __init__(
        self,
        mode: str = "desktop",
        console: Console | None = None,
        continuous_limit_seconds: int = MAX_CONTINUOUS_GAME_SECONDS,
    ):
        self.mode = mode
        self.console = console or Console(stderr=True)
        self.continuous_limit_seconds = continuous_limit_seconds

    def notify(self, event: BudgetEvent) -> dict:
        title, body = event_message(event, self.continuous_limit_seconds)
        if self.mode == "off":
            return {"success": True, "method": "off"}
        if self.mode == "desktop":
            result = send_desktop_notification(title, body)
            if result["success"]:
                return result
            logger.warning(f"Desktop notification failed: {result['error']}")
        self.console.print(f"[bold yellow]{title}[/bold yellow] {body}")
        return {"success": True, "method": "console"}

    def notify_all(self, events) -> list[dict]:
        return [self.notify(event) for event in events]
