"""CLI entry point for sleeptimer.

Uses Click to expose the ``sleeptimer`` command group: ``serve`` runs the
HTTP API, ``run`` counts down in the foreground.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Callable, TypeVar

import click
import uvicorn

import sleeptimer
from sleeptimer.api.app import create_app
from sleeptimer.core.platform import (
    MediaController,
    NullMediaController,
    NullPowerController,
    PowerController,
)
from sleeptimer.core.timer import (
    InvalidDurationError,
    TimerEngine,
    format_remaining,
    validate_minutes,
)

T = TypeVar("T")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr, at DEBUG when *verbose*."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO, format=_LOG_FORMAT, force=True
    )


def _build_engine(dry_run: bool) -> TimerEngine:
    if dry_run:
        return TimerEngine(NullMediaController(), NullPowerController())
    return TimerEngine(MediaController(), PowerController())


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting ``InvalidDurationError`` to a CLI error.

    On ``InvalidDurationError`` the message is printed to stderr and the
    process exits with code 1.
    """
    try:
        return action()
    except InvalidDurationError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


async def _countdown(engine: TimerEngine, minutes: float) -> None:
    """Run one countdown, echoing the remaining time, until expiry completes."""
    state = engine.start(minutes)
    click.echo(f"Timer started: {format_remaining(state.total_seconds)}")
    try:
        while engine.get_state().is_running:
            await asyncio.sleep(engine.tick_interval)
            remaining = engine.get_state().remaining_seconds
            if remaining:
                click.echo(f"{format_remaining(remaining)} remaining")
    except asyncio.CancelledError:
        engine.cancel()
        raise
    click.echo("Time's up. Pausing media and going to sleep...")
    await engine.close()


@click.group()
@click.version_option(version=sleeptimer.__version__, prog_name="sleeptimer")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level.")
def cli(verbose: bool) -> None:
    """sleeptimer: pause your media and suspend the machine after a countdown."""
    configure_logging(verbose)


@cli.command()
@click.option("--host", default=DEFAULT_HOST, envvar="SLEEPTIMER_HOST", show_default=True)
@click.option("--port", default=DEFAULT_PORT, envvar="PORT", type=int, show_default=True)
@click.option("--dry-run", is_flag=True, help="Log instead of pausing media or suspending.")
def serve(host: str, port: int, dry_run: bool) -> None:
    """Serve the timer API over HTTP."""
    app = create_app(_build_engine(dry_run))
    click.echo(f"Sleep timer running at http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_config=None)


@cli.command()
@click.argument("minutes", type=float)
@click.option("--dry-run", is_flag=True, help="Log instead of pausing media or suspending.")
def run(minutes: float, dry_run: bool) -> None:
    """Count down MINUTES minutes, then pause media and suspend."""
    minutes = _run(lambda: validate_minutes(minutes))
    engine = _build_engine(dry_run)
    try:
        asyncio.run(_countdown(engine, minutes))
    except KeyboardInterrupt:
        click.echo("Timer cancelled", err=True)
        sys.exit(1)
