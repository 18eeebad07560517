"""
DelayedScheduler — time-gated jobs with de-duplication and quiescence.

Each ready score is the epoch-millisecond instant at which the job becomes
reservable. The payload is the job's identity: scheduling it again does not
create a second entry.

Quiescence
----------
Re-scheduling a payload that is already in the ready queue only moves it if
its pending entry lies more than quiescence_millis ahead of now
(current_score - now > quiescence_millis). Otherwise the call is a no-op
reported as ScheduleOutcome.QUIESCED, which debounces bursts of
re-scheduling for the same logical job. A job that is already due is never
re-scored unless quiescence_millis is negative enough to reach back to it.

Differences from ExclusiveScheduler
-----------------------------------
  - re-scheduling a pending job may update its score instead of being refused
  - delete_job() only drops the lease; a pending ready entry is kept
  - expired leases are requeued, not discarded
"""
from __future__ import annotations

import dataclasses
from collections.abc import Iterable

import structlog

from tubeq.core.clock import Clock, system_clock
from tubeq.core.keys import TubeKeys
from tubeq.core.protocol import DELAYED_POLICY, LeaseProtocol
from tubeq.domain.models import JobInfo, ScheduleOutcome, ScoreWindow
from tubeq.ports.store import SortedSetStorePort

logger = structlog.get_logger(__name__)


@dataclasses.dataclass
class DelayedScheduler:
    """
    Parameters
    ----------
    store  : any SortedSetStorePort implementation
    prefix : prepended to every key this scheduler touches
    clock  : epoch-millisecond clock used for due times, leases and quiescence
    """

    store: SortedSetStorePort
    prefix: str = ""
    clock: Clock = system_clock

    _protocol: LeaseProtocol = dataclasses.field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._protocol = LeaseProtocol(
            store=self.store,
            keys=TubeKeys(self.prefix),
            policy=DELAYED_POLICY,
            clock=self.clock,
        )

    @property
    def keys(self) -> TubeKeys:
        return self._protocol.keys

    # ------------------------------------------------------------------ #
    # Producer side                                                        #
    # ------------------------------------------------------------------ #

    async def schedule(
        self,
        tube: str,
        payload: str,
        millis_in_future: int,
        quiescence_millis: int,
        max_ready_queue_size: int | None = None,
    ) -> ScheduleOutcome:
        """
        Make payload reservable millis_in_future from now.

        Returns a ScheduleOutcome; check .accepted for a plain yes/no.
        QUEUE_FULL is only possible when max_ready_queue_size is given and
        the payload is not already pending.
        """
        if max_ready_queue_size is not None and max_ready_queue_size < 0:
            raise ValueError(
                f"max_ready_queue_size must not be negative, got {max_ready_queue_size}"
            )
        now = self.clock()
        outcome = await self.store.schedule_debounced(
            self.keys.ready(tube),
            self.keys.running(tube),
            payload,
            now + millis_in_future,
            now,
            quiescence_millis,
            max_ready_queue_size,
        )
        if outcome is ScheduleOutcome.QUEUE_FULL:
            logger.warning(
                "ready_queue_full",
                tube=tube,
                max_ready_queue_size=max_ready_queue_size,
            )
        return outcome

    async def schedule_multi(
        self,
        tube: str,
        payloads: Iterable[str],
        millis_in_future: int,
    ) -> int:
        """
        Schedule many payloads in a single pipelined round trip.

        No quiescence, lease or capacity checks: existing ready entries are
        simply re-scored. Returns the number of newly added payloads.
        """
        return await self.store.add_many(
            self.keys.ready(tube), payloads, self.clock() + millis_in_future
        )

    # ------------------------------------------------------------------ #
    # Worker side                                                          #
    # ------------------------------------------------------------------ #

    async def reserve_multi(
        self,
        tube: str,
        lease_millis: int,
        max_jobs: int,
    ) -> list[JobInfo]:
        """Lease up to max_jobs due jobs, earliest due time first."""
        return await self._protocol.reserve(tube, lease_millis, max_jobs)

    async def delete_job(self, tube: str, payload: str) -> bool:
        """Acknowledge a reserved job by dropping its lease."""
        return await self._protocol.delete(tube, payload)

    async def requeue_expired(self, tube: str) -> list[JobInfo]:
        """Move lease-expired jobs back to ready, due immediately."""
        return await self._protocol.sweep_expired(tube, target_score=self.clock())

    # ------------------------------------------------------------------ #
    # Inspection                                                           #
    # ------------------------------------------------------------------ #

    async def ready_size(self, tube: str) -> int:
        """Number of pending jobs, due or not."""
        return await self._protocol.ready_size(tube)

    async def running_size(self, tube: str) -> int:
        """Number of leased jobs, expired or not."""
        return await self._protocol.running_size(tube)

    async def peek_ready(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        """Pending jobs that are already due."""
        return await self._protocol.peek(
            self.keys.ready(tube), ScoreWindow.due_by(self.clock()), offset, count
        )

    async def peek_delayed(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        """Pending jobs that are not due yet."""
        return await self._protocol.peek(
            self.keys.ready(tube), ScoreWindow.after(self.clock()), offset, count
        )

    async def peek_running(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        """Leased jobs whose lease is still live."""
        return await self._protocol.peek(
            self.keys.running(tube), ScoreWindow.after(self.clock()), offset, count
        )

    async def peek_expired(self, tube: str, offset: int, count: int) -> list[JobInfo]:
        """Leased jobs whose lease has run out but have not been swept."""
        return await self._protocol.peek(
            self.keys.running(tube), ScoreWindow.due_by(self.clock()), offset, count
        )
