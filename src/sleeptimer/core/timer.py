"""Timer core -- a single countdown driven by an asyncio tick task.

The engine owns exactly one :class:`TimerState`.  A recurring tick task
decrements it once per ``tick_interval``; when it reaches zero the engine
runs the expiry pipeline: registered callbacks, then pause media, then a
settle delay, then suspend the machine.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Callable, Protocol

from sleeptimer.core.platform import ControlResult, MediaController, PowerController

logger = logging.getLogger(__name__)

MIN_MINUTES = 1
MAX_MINUTES = 480
DEFAULT_MINUTES = 30

TICK_INTERVAL_SECONDS = 1.0
SETTLE_DELAY_SECONDS = 1.0

ExpireCallback = Callable[[], None]


class InvalidDurationError(ValueError):
    """Raised when a requested duration is outside the accepted range."""


class MediaPauser(Protocol):
    def pause(self) -> ControlResult: ...


class SystemSuspender(Protocol):
    def suspend(self) -> ControlResult: ...


@dataclass(frozen=True)
class TimerState:
    """Immutable snapshot of the countdown."""

    is_running: bool = False
    remaining_seconds: int = 0
    total_seconds: int = 0
    started_at: float | None = None  # wall-clock (time.time)

    @property
    def elapsed_seconds(self) -> int:
        return self.total_seconds - self.remaining_seconds

    @property
    def progress(self) -> float:
        """Fraction of the run that has elapsed, from 0.0 to 1.0."""
        if self.total_seconds <= 0:
            return 0.0
        return self.elapsed_seconds / self.total_seconds

    def to_dict(self) -> dict[str, object]:
        """Return the JSON shape served to API clients."""
        return {
            "isRunning": self.is_running,
            "remainingSeconds": self.remaining_seconds,
            "totalSeconds": self.total_seconds,
            "startedAt": None if self.started_at is None else int(self.started_at * 1000),
        }


IDLE_STATE = TimerState()


def format_remaining(seconds: int) -> str:
    """Format *seconds* as ``HH:MM:SS``."""
    seconds = max(int(seconds), 0)
    return f"{seconds // 3600:02d}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"


def validate_minutes(minutes: float) -> float:
    """Return *minutes* if it lies within ``MIN_MINUTES``..``MAX_MINUTES``.

    The engine itself accepts any number; callers at the boundary (HTTP,
    CLI) use this to reject bad input before calling :meth:`TimerEngine.start`.
    """
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
        raise InvalidDurationError(f"Duration must be a number, got {type(minutes).__name__}")
    if not (MIN_MINUTES <= minutes <= MAX_MINUTES):
        raise InvalidDurationError(
            f"Duration must be between {MIN_MINUTES} and {MAX_MINUTES} minutes"
        )
    return minutes


class TimerEngine:
    """One countdown per process, plus the shutdown sequence it triggers.

    All public methods must be called from the event loop that runs the
    engine.  State is only ever replaced, never mutated, so snapshots
    returned to callers stay valid.
    """

    def __init__(
        self,
        media: MediaPauser | None = None,
        power: SystemSuspender | None = None,
        *,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        settle_delay: float = SETTLE_DELAY_SECONDS,
    ) -> None:
        self._media: MediaPauser = media if media is not None else MediaController()
        self._power: SystemSuspender = power if power is not None else PowerController()
        self._tick_interval = tick_interval
        self._settle_delay = settle_delay
        self._state: TimerState = IDLE_STATE
        self._tick_task: asyncio.Task[None] | None = None
        self._expiry_tasks: set[asyncio.Task[None]] = set()
        self._callbacks: list[ExpireCallback] = []

    # -- public interface ----------------------------------------------------

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    @property
    def expiring(self) -> bool:
        """True while a previous run's pause/suspend pipeline is in flight."""
        return bool(self._expiry_tasks)

    def start(self, minutes: float) -> TimerState:
        """Start a countdown of *minutes*, replacing any countdown in flight."""
        loop = asyncio.get_running_loop()
        self._stop_ticking()

        total_seconds = math.floor(minutes * 60)
        self._state = TimerState(
            is_running=True,
            remaining_seconds=total_seconds,
            total_seconds=total_seconds,
            started_at=time.time(),
        )
        self._tick_task = loop.create_task(self._run_ticks())
        logger.info("Timer started: %s minutes (%d seconds)", minutes, total_seconds)
        return self._state

    def cancel(self) -> TimerState:
        """Stop the countdown and return to idle.  Safe to call when idle."""
        self._stop_ticking()
        self._state = IDLE_STATE
        logger.info("Timer cancelled")
        return self._state

    def get_state(self) -> TimerState:
        return self._state

    def on_expire(self, callback: ExpireCallback) -> None:
        """Register *callback* to run at every future expiry."""
        self._callbacks.append(callback)

    async def close(self) -> None:
        """Stop ticking and wait for any in-flight expiry pipelines."""
        task = self._tick_task
        self._stop_ticking()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        if self._expiry_tasks:
            await asyncio.gather(*self._expiry_tasks, return_exceptions=True)

    # -- private helpers -----------------------------------------------------

    def _stop_ticking(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    async def _run_ticks(self) -> None:
        # Sleep to fixed deadlines so per-tick overhead does not accumulate.
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while True:
            next_at += self._tick_interval
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            self._tick()

    def _tick(self) -> None:
        # A tick scheduled before cancel() may still fire.
        if not self._state.is_running:
            return
        self._state = replace(self._state, remaining_seconds=self._state.remaining_seconds - 1)
        if self._state.remaining_seconds <= 0:
            self._expire()

    def _expire(self) -> None:
        logger.info("Timer expired! Pausing media and suspending...")
        self._stop_ticking()

        finished = replace(self._state, is_running=False, remaining_seconds=0)
        self._state = finished
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception:
                logger.exception("Expiry callback %r failed", callback)

        # A callback may already have started a new run.
        if self._state is finished:
            self._state = IDLE_STATE

        task = asyncio.get_running_loop().create_task(self._run_shutdown())
        self._expiry_tasks.add(task)
        task.add_done_callback(self._shutdown_done)

    def _shutdown_done(self, task: asyncio.Task[None]) -> None:
        self._expiry_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Expiry pipeline failed", exc_info=exc)

    async def _run_shutdown(self) -> None:
        # Touches no engine state: a new run may start while this is pending.
        result = await self._call(self._media.pause, "Pause media")
        _log_result("Pause media", result)

        await asyncio.sleep(self._settle_delay)

        result = await self._call(self._power.suspend, "Suspend")
        _log_result("Suspend", result)

    async def _call(self, action: Callable[[], ControlResult], label: str) -> ControlResult:
        """Run a blocking collaborator call off the event loop."""
        try:
            return await asyncio.to_thread(action)
        except Exception as exc:
            logger.exception("%s raised instead of reporting failure", label)
            return ControlResult(success=False, message=f"{label} failed: {exc}")


def _log_result(label: str, result: ControlResult) -> None:
    if result.success:
        logger.info("%s: %s", label, result.message)
    else:
        logger.warning("%s failed: %s", label, result.message)
