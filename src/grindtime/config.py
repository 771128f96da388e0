"""Configuration management for GrindTime."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

import click

from .budget import MAX_CONTINUOUS_GAME_SECONDS

DEFAULT_HOME = Path.home() / ".grindtime"
DEFAULT_PORT = 7778
NOTIFY_CHOICES = ("desktop", "console", "off")


@dataclass
class GrindTimeConfig:
    """Settings resolved from the environment."""

    home: Path
    db_path: Path
    log_path: Path
    continuous_limit_seconds: int = MAX_CONTINUOUS_GAME_SECONDS
    port: int = DEFAULT_PORT
    notify: str = "desktop"
    verbose: bool = False

    def validate(self) -> None:
        """Validate configuration."""
        if self.continuous_limit_seconds <= 0:
            raise click.ClickException(
                f"Invalid continuous limit '{self.continuous_limit_seconds}'. "
                "Must be a positive number of seconds."
            )
        if not 0 < self.port < 65536:
            raise click.ClickException(f"Invalid port '{self.port}'.")
        if self.notify not in NOTIFY_CHOICES:
            valid = ", ".join(NOTIFY_CHOICES)
            raise click.ClickException(
                f"Invalid notify mode '{self.notify}'. Valid options: {valid}"
            )


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise click.ClickException(f"{name} must be an integer, got '{raw}'")


def get_config(db_path: str | None = None, verbose: bool = False) -> GrindTimeConfig:
    """Build and validate config; explicit arguments win over env vars."""
    home = Path(os.environ.get("GRINDTIME_HOME", DEFAULT_HOME)).expanduser()
    db = db_path or os.environ.get("GRINDTIME_DB") or home / "grindtime.db"
    verbose = verbose or os.environ.get("GRINDTIME_VERBOSE", "false").lower() == "true"

    config = GrindTimeConfig(
        home=home,
        db_path=Path(db).expanduser(),
        log_path=home / "grindtime.log",
        continuous_limit_seconds=_int_env(
            "GRINDTIME_CONTINUOUS_LIMIT", MAX_CONTINUOUS_GAME_SECONDS
        ),
        port=_int_env("GRINDTIME_PORT", DEFAULT_PORT),
        notify=os.environ.get("GRINDTIME_NOTIFY", "desktop").lower(),
        verbose=verbose,
    )
    config.validate()
    return config


def configure_logging(config: GrindTimeConfig) -> logging.Logger:
    """Attach file (and, if verbose, stderr) handlers to the grindtime logger."""
    logger = logging.getLogger("grindtime")
    logger.setLevel(logging.DEBUG if config.verbose else logging.INFO)
    if logger.handlers:
        return logger

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%Y-%m-%d %H:%M:%S")
    try:
        config.log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        print(f"Warning: cannot open log file {config.log_path}: {e}", file=sys.stderr)

    if config.verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(stream_handler)
    return logger


def db_option(f):
    """Decorator to add the database path option to commands."""
    return click.option(
        "--db",
        "db_path",
        type=click.Path(dir_okay=False),
        default=None,
        help="State database (default: $GRINDTIME_DB or ~/.grindtime/grindtime.db)",
    )(f)


def verbose_option(f):
    """Decorator to add verbose option to commands."""
    return click.option(
        "--verbose", "-v",
        is_flag=True,
        help="Enable verbose output",
    )(f)
