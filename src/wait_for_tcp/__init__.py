"""CLI entry point for the wait-for-tcp readiness probe."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Optional

import click
from dotenv import dotenv_values

from .__about__ import __version__
from .config import ConfigError
from .durations import DurationError, parse_duration
from .poller import DeadlineExceededError
from .reporting import JsonFormatter, LogfmtFormatter, LoggingReporter
from .runner import run

logger = logging.getLogger("wait-for-tcp")

_FORMATTERS = {
    "text": LogfmtFormatter,
    "json": JsonFormatter,
}


def _configure_logging(log_format: str, debug: bool) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_FORMATTERS[log_format]())
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False


def _load_env_file(env_file: Optional[str]) -> Dict[str, str]:
    if env_file:
        path = Path(env_file)
        if not path.exists():
            raise click.BadParameter(f"Environment file not found: {env_file}")
    else:
        path = Path.cwd() / ".env"
        if not path.exists():
            return {}
    return {key: value for key, value in dotenv_values(path).items() if value is not None}


def _parse_timeout(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        seconds = parse_duration(value)
    except DurationError as exc:
        raise click.BadParameter(str(exc)) from exc
    if seconds < 0:
        raise click.BadParameter("timeout cannot be negative")
    return seconds


@click.group(invoke_without_command=True)
@click.option("--env-file", type=str, help="Path to a .env file with probe settings")
@click.option(
    "--timeout",
    envvar="WAIT_TIMEOUT",
    callback=_parse_timeout,
    help="Give up after this duration (e.g. 30s, 2m). Waits forever by default.",
)
@click.option("--log-format", type=click.Choice(["text", "json"]), default="text", show_default=True)
@click.option("--debug", is_flag=True, help="Emit internal diagnostics")
@click.pass_context
def cli(
    ctx: click.Context,
    env_file: Optional[str],
    timeout: Optional[float],
    log_format: str,
    debug: bool,
) -> None:
    """Wait until TARGET_ADDRESS accepts TCP connections."""

    if ctx.invoked_subcommand is not None:
        return

    _configure_logging(log_format, debug)
    file_values = _load_env_file(env_file)

    def _lookup(key: str) -> Optional[str]:
        return os.environ.get(key) or file_values.get(key)

    try:
        asyncio.run(run(_lookup, LoggingReporter(), timeout=timeout))
    except (ConfigError, DeadlineExceededError) as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("version")
def show_version() -> None:
    """Show the installed wait-for-tcp release and exit."""

    click.echo(f"wait-for-tcp {__version__}")


__all__ = ["cli", "__version__"]
