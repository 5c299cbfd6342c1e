"""
Minute-aligned schedule that hands the device over to the sleep script.

Once per wall-clock minute the scheduler asks the engine whether the persisted
sleeping time has been reached. The engine reads the window, compares it with
the host clock's current HH:MM in the host zone and fires the sleep trigger.
The scheduler's own clock only aligns ticks to minute boundaries.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ...core.contracts import BaseModule, HealthStatus, ModuleConfig

if TYPE_CHECKING:
    from ...core.engine import ReconciliationEngine

logger = logging.getLogger(__name__)


def seconds_until_next_minute(now: dt.datetime) -> float:
    """Seconds from ``now`` until the start of the next wall-clock minute."""
    next_minute = now.replace(second=0, microsecond=0) + dt.timedelta(minutes=1)
    return max((next_minute - now).total_seconds(), 0.0)


class SleepScheduler(BaseModule):
    """Background task that triggers the scheduled sleep."""

    name = "modules.system.sleep_scheduler"

    def __init__(
        self,
        engine: ReconciliationEngine,
        *,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        super().__init__()
        self._engine = engine
        self._clock = clock or (lambda: dt.datetime.now(dt.UTC))
        self._enabled = True
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._last_tick: dt.datetime | None = None
        self._last_error: str | None = None
        self._sleeps_triggered = 0

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        self._enabled = config.enabled

    async def start(self) -> None:
        if not self._enabled:
            logger.info("SleepScheduler disabled; the device will not go to sleep on schedule.")
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="sleep-scheduler")
        logger.info("SleepScheduler started.")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
        logger.info("SleepScheduler stopped.")

    async def health(self) -> HealthStatus:
        details: dict[str, Any] = {
            "enabled": self._enabled,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "sleeps_triggered": self._sleeps_triggered,
        }
        if self._last_error:
            details["last_error"] = self._last_error
        if not self._enabled:
            status = "healthy"
        elif self._task is None or self._last_error:
            status = "degraded"
        else:
            status = "healthy"
        return HealthStatus(status=status, details=details)

    async def tick(self, now: dt.datetime | None = None) -> bool:
        """Run one schedule check; errors are logged and reported through ``health``."""
        self._last_tick = now or self._clock()
        try:
            slept = await self._engine.sleep_when_scheduled(now)
        except Exception as exc:
            self._last_error = str(exc)
            logger.exception("Scheduled sleep check failed.")
            return False
        self._last_error = None
        if slept:
            self._sleeps_triggered += 1
        return slept

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            await self._wait_with_cancel(seconds_until_next_minute(self._clock()))
            if self._stop_event.is_set():
                break
            await self.tick()

    async def _wait_with_cancel(self, interval: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
        except TimeoutError:
            return


__all__ = ["SleepScheduler", "seconds_until_next_minute"]
