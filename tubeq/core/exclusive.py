"""
ExclusiveScheduler — at most one live instance of each payload per tube.

A payload can be scheduled only while it is neither pending nor leased, so a
job never runs concurrently with itself. Workers acknowledge with
delete_job(); leases that run out are discarded by remove_expired_jobs()
rather than retried — re-schedule the payload if it should run again.

A tube can be paused. While paused, reserve_multi() returns nothing and
leaves both queues untouched; scheduling still works.

The design follows beanstalkd's reserve/delete protocol:
https://github.com/kr/beanstalkd/blob/master/doc/protocol.txt
"""
from __future__ import annotations

import dataclasses

import structlog

from tubeq.core.clock import Clock, system_clock
from tubeq.core.keys import TubeKeys
from tubeq.core.protocol import EXCLUSIVE_POLICY, LeaseProtocol
from tubeq.domain.models import JobInfo, ScoreWindow
from tubeq.ports.store import SortedSetStorePort

logger = structlog.get_logger(__name__)


@dataclasses.dataclass
class ExclusiveScheduler:
    """
    Parameters
    ----------
    store  : any SortedSetStorePort implementation
    prefix : prepended to every key this scheduler touches
    clock  : epoch-millisecond clock used for due times, leases and pauses
    """

    store: SortedSetStorePort
    prefix: str = ""
    clock: Clock = system_clock

    _protocol: LeaseProtocol = dataclasses.field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._protocol = LeaseProtocol(
            store=self.store,
            keys=TubeKeys(self.prefix),
            policy=EXCLUSIVE_POLICY,
            clock=self.clock,
        )

    @property
    def keys(self) -> TubeKeys:
        return self._protocol.keys

    async def schedule(self, tube: str, payload: str, become_ready_in_millis: int) -> bool:
        """Add payload unless it is already pending or leased. True if added."""
        return await self.store.schedule_exclusive(
            self.keys.ready(tube),
            self.keys.running(tube),
            payload,
            self.clock() + become_ready_in_millis,
        )

    async def reserve_multi(
        self,
        tube: str,
        lease_millis: int,
        max_jobs: int,
    ) -> list[JobInfo]:
        """Lease up to max_jobs due jobs. Always [] while the tube is paused."""
        return await self._protocol.reserve(tube, lease_millis, max_jobs)

    async def delete_job(self, tube: str, payload: str) -> bool:
        """Complete or cancel a job, whether pending or leased."""
        return await self._protocol.delete(tube, payload)

    async def remove_expired_jobs(self, tube: str) -> list[JobInfo]:
        """Discard jobs whose lease has run out and return them."""
        return await self._protocol.sweep_expired(tube)

    async def remove_expired_ready_jobs(
        self,
        tube: str,
        max_age_millis: int,
    ) -> list[JobInfo]:
        """
        Discard pending jobs that have been due for at least max_age_millis.

        These are jobs nobody reserved in time; they are removed from the
        scheduler and returned to the caller.
        """
        return await self._protocol.sweep_ready(tube, self.clock() - max_age_millis)

    # ------------------------------------------------------------------ #
    # Pause control                                                        #
    # ------------------------------------------------------------------ #

    async def pause(self, tube: str) -> None:
        """Stop handing out jobs from tube. Pausing a paused tube restarts its pause clock."""
        now = self.clock()
        await self.store.set_marker(self.keys.paused(tube), now)
        logger.info("tube_paused", tube=tube, paused_at=now)

    async def resume(self, tube: str) -> bool:
        """Lift a pause. True if the tube was paused."""
        was_paused = await self.store.clear_marker(self.keys.paused(tube))
        if was_paused:
            logger.info("tube_resumed", tube=tube)
        return was_paused

    async def is_paused(self, tube: str) -> bool:
        return await self.paused_since(tube) is not None

    async def paused_since(self, tube: str) -> int | None:
        """Epoch milliseconds at which the current pause began, or None."""
        return await self.store.get_marker(self.keys.paused(tube))

    # ------------------------------------------------------------------ #
    # Inspection                                                           #
    # ------------------------------------------------------------------ #

    async def ready_size(self, tube: str) -> int:
        return await self._protocol.ready_size(tube)

    async def running_size(self, tube: str) -> int:
        return await self._protocol.running_size(tube)

    async def peek_ready(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        return await self._protocol.peek(
            self.keys.ready(tube), ScoreWindow.due_by(self.clock()), offset, count
        )

    async def peek_delayed(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        return await self._protocol.peek(
            self.keys.ready(tube), ScoreWindow.after(self.clock()), offset, count
        )

    async def peek_running(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        return await self._protocol.peek(
            self.keys.running(tube), ScoreWindow.after(self.clock()), offset, count
        )

    async def peek_expired(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        return await self._protocol.peek(
            self.keys.running(tube), ScoreWindow.due_by(self.clock()), offset, count
        )
