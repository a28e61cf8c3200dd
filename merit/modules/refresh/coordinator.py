"""
Client-side refresh coordination.

Purpose
-------
Decides when a view of engine data (a leaderboard, a review queue, a
member's ledger) should reload: on a fixed polling interval while the
view is visible, immediately when it becomes visible again or regains
focus, and never more often than a minimum interval.

Rules
-----
- Poll ticks refresh only while visible
- Hidden -> visible and focus trigger an immediate refresh
- Any trigger within ``min_interval_seconds`` of the last accepted
  refresh is dropped
- A refresh still running when ``stop()`` is called finishes, but its
  result is discarded
- Loader failures are logged; polling continues

Usage
-----
>>> coordinator = RefreshCoordinator(load_fn=fetch_leaderboard, on_result=render)
>>> await coordinator.start()
>>> coordinator.set_visibility(False)
>>> coordinator.notify_focus()
>>> await coordinator.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, Set, TypeVar

from merit.core.config.manager import ConfigManager
from merit.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

LoadFn = Callable[[], Awaitable[T]]
ResultCallback = Callable[[T], Any]


# ============================================================================
# Configuration
# ============================================================================


@dataclass(frozen=True)
class RefreshSettings:
    """
    Attributes
    ----------
    interval_seconds : float
        Time between poll ticks.
    min_interval_seconds : float
        Minimum spacing between two accepted refreshes.
    """

    interval_seconds: float = 30.0
    min_interval_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {self.interval_seconds}")
        if self.min_interval_seconds < 0:
            raise ValueError(
                f"min_interval_seconds cannot be negative, got {self.min_interval_seconds}"
            )

    @classmethod
    def from_config(cls, config_manager: Any = ConfigManager) -> RefreshSettings:
        """
        Configuration Keys
        ------------------
        - refresh.interval_seconds (default: 30)
        - refresh.min_interval_seconds (default: 5)
        """
        return cls(
            interval_seconds=float(config_manager.get("refresh.interval_seconds", 30)),
            min_interval_seconds=float(config_manager.get("refresh.min_interval_seconds", 5)),
        )


# ============================================================================
# Coordinator
# ============================================================================


class RefreshCoordinator(Generic[T]):
    """
    Owns one polling task and the refreshes it launches.

    ``clock`` must be monotonic; tests pass a fake one to drive the
    debounce window deterministically.
    """

    def __init__(
        self,
        load_fn: LoadFn,
        on_result: Optional[ResultCallback] = None,
        *,
        interval: float = 30.0,
        min_interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = RefreshSettings(interval_seconds=interval, min_interval_seconds=min_interval)
        self._load_fn = load_fn
        self._on_result = on_result
        self._clock = clock

        self._visible = True
        self._running = False
        self._generation = 0
        self._last_refresh_at: Optional[float] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._poll_task: Optional[asyncio.Task[None]] = None
        self._in_flight: Set[asyncio.Task[None]] = set()

        self.last_result: Optional[T] = None
        self.refresh_count = 0
        self.failure_count = 0
        self.discarded_count = 0

    @classmethod
    def from_config(
        cls,
        load_fn: LoadFn,
        on_result: Optional[ResultCallback] = None,
        config_manager: Any = ConfigManager,
        clock: Callable[[], float] = time.monotonic,
    ) -> RefreshCoordinator[T]:
        settings = RefreshSettings.from_config(config_manager)
        return cls(
            load_fn,
            on_result,
            interval=settings.interval_seconds,
            min_interval=settings.min_interval_seconds,
            clock=clock,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_visible(self) -> bool:
        return self._visible

    @property
    def settings(self) -> RefreshSettings:
        return self._settings

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self) -> None:
        """Begin polling and load once immediately."""
        if self._running:
            logger.warning("RefreshCoordinator already running")
            return

        self._running = True
        self._generation += 1
        self._stop_event = asyncio.Event()
        self._poll_task = asyncio.create_task(self._poll_loop(self._stop_event))
        self.request_refresh("start")

        logger.debug(
            "RefreshCoordinator started",
            extra={
                "interval_seconds": self._settings.interval_seconds,
                "min_interval_seconds": self._settings.min_interval_seconds,
            },
        )

    async def stop(self) -> None:
        """
        Stop polling. Refreshes already running are allowed to finish so the
        loader is never cancelled mid-request; their results are dropped.
        """
        if not self._running:
            return

        self._running = False
        self._generation += 1

        if self._stop_event is not None:
            self._stop_event.set()
        if self._poll_task is not None:
            await self._poll_task
            self._poll_task = None

        logger.debug(
            "RefreshCoordinator stopped",
            extra={"in_flight": len(self._in_flight), "refresh_count": self.refresh_count},
        )

    async def wait_idle(self) -> None:
        """Wait for every refresh launched so far to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight))

    # ========================================================================
    # Triggers
    # ========================================================================

    def set_visibility(self, visible: bool) -> bool:
        """
        Record visibility. Becoming visible after being hidden requests a
        refresh; returns whether one was started.
        """
        was_visible = self._visible
        self._visible = bool(visible)
        if self._visible and not was_visible:
            return self.request_refresh("visible")
        return False

    def notify_focus(self) -> bool:
        return self.request_refresh("focus")

    def request_refresh(self, reason: str = "manual") -> bool:
        """
        Start a refresh unless stopped or inside the debounce window.

        Returns True when a refresh was launched.
        """
        if not self._running:
            return False

        now = self._clock()
        if (
            self._last_refresh_at is not None
            and now - self._last_refresh_at < self._settings.min_interval_seconds
        ):
            logger.debug(
                "Refresh debounced",
                extra={"reason": reason, "since_last": now - self._last_refresh_at},
            )
            return False

        self._last_refresh_at = now
        task = asyncio.create_task(self._run_refresh(self._generation, reason))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return True

    async def tick(self) -> bool:
        """One poll step: refresh if visible. Returns whether a refresh started."""
        if not self._visible:
            return False
        return self.request_refresh("poll")

    # ========================================================================
    # Internals
    # ========================================================================

    async def _poll_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(
                    stop_event.wait(),
                    timeout=self._settings.interval_seconds,
                )
            except asyncio.TimeoutError:
                await self.tick()

    async def _run_refresh(self, generation: int, reason: str) -> None:
        try:
            result = await self._load_fn()
        except Exception as exc:
            self.failure_count += 1
            logger.error(
                "Refresh failed",
                extra={
                    "reason": reason,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return

        if generation != self._generation:
            self.discarded_count += 1
            logger.debug("Discarding refresh result after stop", extra={"reason": reason})
            return

        self.last_result = result
        self.refresh_count += 1

        if self._on_result is None:
            return
        try:
            outcome = self._on_result(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            logger.error(
                "Refresh result handler failed",
                extra={"reason": reason, "error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
