"""
ExpirySweeper — async context manager that runs a sweep on an interval.

Schedulers never start background work; leases are scores and expiry is only
acted on when somebody sweeps. A recovery process that wants a simple loop can
wrap its lifetime in ExpirySweeper.

Usage
-----
    scheduler = DelayedScheduler(store, prefix="app:")

    async with ExpirySweeper(
        lambda: scheduler.requeue_expired("emails"),
        interval=timedelta(seconds=1),
    ) as sweeper:
        await shutdown_requested.wait()

    print(sweeper.swept)

A sweep that fails with a TubeqError (for example a StoreError while the
store is unreachable) is logged and retried on the next tick. Any other
exception is logged at error level, ends the loop and is re-raised on exit.
"""
from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable
from datetime import timedelta
from types import TracebackType
from typing import TYPE_CHECKING

import structlog

from tubeq.domain.errors import TubeqError
from tubeq.domain.models import JobInfo

if TYPE_CHECKING:
    from tubeq.config import TubeqSettings

logger = structlog.get_logger(__name__)

SweepFn = Callable[[], Awaitable[list[JobInfo]]]


@dataclasses.dataclass
class ExpirySweeper:
    """
    Calls sweep() every interval until the context exits.

    Parameters
    ----------
    sweep    : zero-argument coroutine function returning the swept records
    interval : time between sweeps (default 1 second); the first sweep runs immediately
    """

    sweep: SweepFn
    interval: timedelta = timedelta(seconds=1)

    swept: int = dataclasses.field(default=0, init=False)
    _task: asyncio.Task[None] | None = dataclasses.field(
        default=None, init=False, repr=False
    )

    @classmethod
    def from_settings(
        cls, sweep: SweepFn, settings: TubeqSettings | None = None
    ) -> ExpirySweeper:
        """Build a sweeper ticking every TUBEQ_SWEEP_INTERVAL_MILLIS."""
        if settings is None:
            from tubeq.config import get_settings

            settings = get_settings()
        return cls(sweep, interval=timedelta(milliseconds=settings.sweep_interval_millis))

    async def __aenter__(self) -> ExpirySweeper:
        self._task = asyncio.create_task(self._loop(), name="tubeq-expiry-sweeper")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._task is not None:
            task, self._task = self._task, None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _loop(self) -> None:
        while True:
            try:
                recovered = await self.sweep()
            except TubeqError as exc:
                logger.warning("sweep_failed", error=str(exc))
            except Exception:
                logger.exception("sweeper_stopped")
                raise
            else:
                self.swept += len(recovered)
            await asyncio.sleep(self.interval.total_seconds())
