"""
tubeq — beanstalkd-style job tubes on a shared sorted-set store.

A tube is two sorted sets in Redis: a ready queue of jobs waiting to run and
a running queue of jobs leased to a worker. Reserving a job atomically moves
it from ready to running and scores it with the instant its lease expires.
A sweep later recovers leases that were never acknowledged.

Every operation is one atomic round trip to the store (a Lua script in
Redis), so any number of producer and worker processes can share a tube
without client-side locking.

Delivery is AT-LEAST-ONCE. A job whose lease expires is handed out again,
even if the first worker is still running it. Job bodies must be idempotent;
if you need a retry counter, put it in the payload.

Quick start
-----------
    import asyncio
    from tubeq import DelayedScheduler, InMemorySortedSetStore

    async def main():
        scheduler = DelayedScheduler(InMemorySortedSetStore(), prefix="app:")

        # Producer: run in 5 seconds; re-scheduling only moves it while it is
        # more than 1 second away
        await scheduler.schedule("emails", '{"to": "user@example.com"}', 5_000, 1_000)

        # Worker: lease up to 10 due jobs for 30 seconds
        for job in await scheduler.reserve_multi("emails", 30_000, 10):
            send(job.payload)
            await scheduler.delete_job("emails", job.payload)

        # Recovery process: put expired leases back on the ready queue
        await scheduler.requeue_expired("emails")

    asyncio.run(main())

Policies
--------
  - PriorityScheduler  — caller-chosen priority, lower first, no time gating
  - DelayedScheduler   — due-time gating, payload dedup, quiescence debounce
  - ExclusiveScheduler — one live instance per payload, pausable tubes,
                         expired leases discarded instead of retried

Stores
------
  - RedisSortedSetStore     — production (pip install tubeq)
  - InMemorySortedSetStore  — tests and single-process use

Architecture
------------
Follows the Ports & Adapters pattern:
  domain/   — pure value types (JobInfo, ScoreWindow, ScheduleOutcome)
  ports/    — Protocol interface (SortedSetStorePort)
  core/     — key space, lease protocol, the three schedulers, sweeper
  adapters/ — concrete store implementations
"""
from __future__ import annotations

from tubeq.adapters.store.memory import InMemorySortedSetStore
from tubeq.adapters.store.redis import RedisSortedSetStore
from tubeq.config import TubeqSettings, get_settings
from tubeq.core.clock import Clock, system_clock
from tubeq.core.delayed import DelayedScheduler
from tubeq.core.exclusive import ExclusiveScheduler
from tubeq.core.keys import TubeKeys
from tubeq.core.priority import PriorityScheduler
from tubeq.core.protocol import LeasePolicy, LeaseProtocol
from tubeq.core.sweeper import ExpirySweeper
from tubeq.domain.errors import StoreError, TubeqError
from tubeq.domain.models import JobInfo, ScheduleOutcome, ScoreWindow
from tubeq.observability import configure_logging
from tubeq.ports.store import SortedSetStorePort

__all__ = [
    # Domain models
    "JobInfo",
    "ScheduleOutcome",
    "ScoreWindow",
    # Errors
    "TubeqError",
    "StoreError",
    # Port (for typing custom adapters)
    "SortedSetStorePort",
    # Schedulers
    "PriorityScheduler",
    "DelayedScheduler",
    "ExclusiveScheduler",
    "ExpirySweeper",
    # Building blocks
    "Clock",
    "LeasePolicy",
    "LeaseProtocol",
    "TubeKeys",
    "system_clock",
    # Built-in stores
    "InMemorySortedSetStore",
    "RedisSortedSetStore",
    # Configuration
    "TubeqSettings",
    "configure_logging",
    "get_settings",
]
