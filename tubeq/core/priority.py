"""
PriorityScheduler — jobs ordered by a caller-supplied priority.

Lower score means more urgent. Priority is an ordering, not a readiness
gate: every ready job is reservable at any time. Scheduling a payload that is
already ready just moves it to the new priority.
"""
from __future__ import annotations

import dataclasses

from tubeq.core.clock import Clock, system_clock
from tubeq.core.keys import TubeKeys
from tubeq.core.protocol import PRIORITY_POLICY, LeaseProtocol
from tubeq.domain.models import JobInfo, ScoreWindow
from tubeq.ports.store import SortedSetStorePort


@dataclasses.dataclass
class PriorityScheduler:
    """
    Parameters
    ----------
    store  : any SortedSetStorePort implementation
    prefix : prepended to every key this scheduler touches
    clock  : epoch-millisecond clock used for lease expiry
    """

    store: SortedSetStorePort
    prefix: str = ""
    clock: Clock = system_clock

    _protocol: LeaseProtocol = dataclasses.field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._protocol = LeaseProtocol(
            store=self.store,
            keys=TubeKeys(self.prefix),
            policy=PRIORITY_POLICY,
            clock=self.clock,
        )

    @property
    def keys(self) -> TubeKeys:
        return self._protocol.keys

    async def schedule(self, tube: str, payload: str, priority: float) -> bool:
        """Add payload to the ready queue, or re-prioritise it. Always True."""
        await self.store.upsert(self.keys.ready(tube), payload, priority)
        return True

    async def reserve_multi(
        self,
        tube: str,
        lease_millis: int,
        max_jobs: int,
    ) -> list[JobInfo]:
        """Lease the max_jobs most urgent ready jobs for lease_millis."""
        return await self._protocol.reserve(tube, lease_millis, max_jobs)

    async def requeue_expired(self, tube: str, new_score: float) -> list[JobInfo]:
        """
        Move lease-expired jobs back to ready at new_score.

        Pick new_score relative to the priorities in use: a very low value
        puts recovered jobs at the front of the queue.
        """
        return await self._protocol.sweep_expired(tube, target_score=new_score)

    async def delete_job(self, tube: str, payload: str) -> bool:
        """Acknowledge a reserved job by dropping its lease."""
        return await self._protocol.delete(tube, payload)

    async def ready_size(self, tube: str) -> int:
        return await self._protocol.ready_size(tube)

    async def running_size(self, tube: str) -> int:
        return await self._protocol.running_size(tube)

    async def peek_ready(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        return await self._protocol.peek(
            self.keys.ready(tube), ScoreWindow.unbounded(), offset, count
        )

    async def peek_running(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        return await self._protocol.peek(
            self.keys.running(tube), ScoreWindow.after(self.clock()), offset, count
        )

    async def peek_expired(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        return await self._protocol.peek(
            self.keys.running(tube), ScoreWindow.due_by(self.clock()), offset, count
        )
