"""
LeaseProtocol — the reservation / expiry algorithms shared by every policy.

A tube is two sorted sets. Reserving moves entries from ready to running and
re-scores them with a lease-expiry instant; sweeping moves lease-expired
entries back to ready (or drops them). Both are single atomic store calls, so
two workers reserving concurrently never receive the same payload.

Policies do not subclass anything. Each one builds a LeasePolicy describing
how it differs (which scores are reservable, whether a pause flag applies,
whether an ack also removes the ready entry) and composes a LeaseProtocol.

Delivery is at-least-once: a worker that outlives its lease may see its job
swept and handed to someone else. Job bodies must be idempotent.
"""
from __future__ import annotations

import dataclasses
from collections.abc import Callable

import structlog

from tubeq.core.clock import Clock, system_clock
from tubeq.core.keys import TubeKeys
from tubeq.domain.models import JobInfo, ScoreWindow
from tubeq.ports.store import SortedSetStorePort

logger = structlog.get_logger(__name__)

WindowFn = Callable[[int], ScoreWindow]


def _unbounded(now: int) -> ScoreWindow:
    return ScoreWindow.unbounded()


def _due_by(now: int) -> ScoreWindow:
    return ScoreWindow.due_by(now)


@dataclasses.dataclass(frozen=True)
class LeasePolicy:
    """
    Policy-specific knobs of the shared protocol.

    name              — used in log events
    reserve_window    — now → window of ready scores eligible for reservation
    honors_pause      — reserve() checks the tube's pause flag
    delete_from_ready — delete() removes the ready entry too, not only the lease
    """

    name: str
    reserve_window: WindowFn
    honors_pause: bool = False
    delete_from_ready: bool = False


PRIORITY_POLICY = LeasePolicy(name="priority", reserve_window=_unbounded)
DELAYED_POLICY = LeasePolicy(name="delayed", reserve_window=_due_by)
EXCLUSIVE_POLICY = LeasePolicy(
    name="exclusive",
    reserve_window=_due_by,
    honors_pause=True,
    delete_from_ready=True,
)


@dataclasses.dataclass
class LeaseProtocol:
    """Reserve, sweep, delete and inspect tubes according to one LeasePolicy."""

    store: SortedSetStorePort
    keys: TubeKeys
    policy: LeasePolicy
    clock: Clock = system_clock

    # ------------------------------------------------------------------ #
    # Mutations                                                            #
    # ------------------------------------------------------------------ #

    async def reserve(self, tube: str, lease_millis: int, max_jobs: int) -> list[JobInfo]:
        """
        Lease up to max_jobs eligible ready jobs for lease_millis.

        Returned records carry the score they had in the ready queue.
        """
        if max_jobs < 1:
            raise ValueError(f"max_jobs must be at least 1, got {max_jobs}")
        if lease_millis < 0:
            raise ValueError(f"lease_millis must not be negative, got {lease_millis}")

        now = self.clock()
        paused_key = self.keys.paused(tube) if self.policy.honors_pause else None
        jobs = await self.store.reserve(
            self.keys.ready(tube),
            self.keys.running(tube),
            paused_key,
            max_jobs,
            self.policy.reserve_window(now),
            now + lease_millis,
        )
        if jobs:
            logger.debug(
                "jobs_reserved",
                policy=self.policy.name,
                tube=tube,
                count=len(jobs),
                lease_expires_at=now + lease_millis,
            )
        return jobs

    async def sweep_expired(
        self,
        tube: str,
        target_score: float | None = None,
    ) -> list[JobInfo]:
        """
        Collect running jobs whose lease has expired (score <= now).

        With target_score they are requeued to ready at that score; without
        it they are discarded. Returned records carry their lease scores.
        """
        now = self.clock()
        target_key = self.keys.ready(tube) if target_score is not None else None
        jobs = await self.store.sweep(
            self.keys.running(tube), now, target_key, target_score
        )
        if jobs:
            logger.info(
                "expired_leases_swept",
                policy=self.policy.name,
                tube=tube,
                count=len(jobs),
                requeued=target_key is not None,
            )
        return jobs

    async def sweep_ready(self, tube: str, cutoff: float) -> list[JobInfo]:
        """Discard ready jobs with score <= cutoff."""
        jobs = await self.store.sweep(self.keys.ready(tube), cutoff)
        if jobs:
            logger.info(
                "stale_ready_jobs_removed",
                policy=self.policy.name,
                tube=tube,
                count=len(jobs),
            )
        return jobs

    async def delete(self, tube: str, payload: str) -> bool:
        keys = [self.keys.running(tube)]
        if self.policy.delete_from_ready:
            keys.insert(0, self.keys.ready(tube))
        return await self.store.delete(keys, payload)

    # ------------------------------------------------------------------ #
    # Read operations                                                      #
    # ------------------------------------------------------------------ #

    async def ready_size(self, tube: str) -> int:
        return await self.store.count(self.keys.ready(tube))

    async def running_size(self, tube: str) -> int:
        return await self.store.count(self.keys.running(tube))

    async def peek(
        self,
        key: str,
        window: ScoreWindow,
        offset: int,
        count: int,
    ) -> list[JobInfo]:
        """Page through one queue without mutating it."""
        if offset < 0 or count < 0:
            raise ValueError(f"offset and count must not be negative, got {offset}, {count}")
        if count == 0:
            return []
        return await self.store.range_by_score(key, window, offset, count)
