"""
SortedSetStorePort — the single port in tubeq.

Any object satisfying this structural Protocol can back the schedulers. No
base class or registration is required.

Atomicity contract
------------------
Every method is ONE indivisible operation with respect to every other method
call touching the same keys. The schedulers never combine two calls into a
read-modify-write sequence; correctness of "no payload is reserved twice"
rests entirely on this contract.

Ordering contract
-----------------
Sorted sets are ordered by ascending score, ties broken by ascending payload
(byte-wise lexicographic). reserve() and range_by_score() return records in
that order.

Implementing adapters (built-in):
  - InMemorySortedSetStore — asyncio.Lock-based, for tests and single-process use
  - RedisSortedSetStore    — Lua scripts over redis.asyncio (EVALSHA + NOSCRIPT reload)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

from tubeq.domain.models import JobInfo, ScheduleOutcome, ScoreWindow


@runtime_checkable
class SortedSetStorePort(Protocol):
    """Minimal set of atomic sorted-set operations required by tubeq core."""

    async def reserve(
        self,
        ready_key: str,
        running_key: str,
        paused_key: str | None,
        max_count: int,
        window: ScoreWindow,
        lease_score: float,
    ) -> list[JobInfo]:
        """
        Move up to max_count ready entries inside window into running.

        Moved entries get lease_score in the running set. Returns the moved
        payloads with their ORIGINAL ready scores. If paused_key is given and
        exists, nothing is moved and [] is returned.
        """
        ...

    async def sweep(
        self,
        source_key: str,
        max_score: float,
        target_key: str | None = None,
        target_score: float | None = None,
    ) -> list[JobInfo]:
        """
        Remove every source entry with score <= max_score.

        When target_key is given the removed entries are added to it at
        target_score; otherwise they are discarded. Returns the removed
        records with their source scores.
        """
        ...

    async def delete(self, keys: Sequence[str], payload: str) -> bool:
        """Remove payload from every set in keys. True if it was in any of them."""
        ...

    async def upsert(self, key: str, payload: str, score: float) -> bool:
        """Add or re-score payload. True if it was newly added."""
        ...

    async def add_many(self, key: str, payloads: Iterable[str], score: float) -> int:
        """Upsert many payloads at one score in one round trip. Returns how many were new."""
        ...

    async def schedule_debounced(
        self,
        ready_key: str,
        running_key: str,
        payload: str,
        score: float,
        now: float,
        quiescence: float,
        max_size: int | None,
    ) -> ScheduleOutcome:
        """
        Insert or re-score payload in ready, subject to dedup rules.

        IN_FLIGHT   payload is in running; nothing changes
        QUEUE_FULL  payload is new but ready already holds max_size entries
        SCHEDULED   payload was new and has been added at score
        UPDATED     payload existed and current_score - now > quiescence
        QUIESCED    payload existed inside its quiescence window; unchanged
        """
        ...

    async def schedule_exclusive(
        self,
        ready_key: str,
        running_key: str,
        payload: str,
        score: float,
    ) -> bool:
        """Add payload to ready only if it is in neither set. True if added."""
        ...

    async def count(self, key: str) -> int:
        """Cardinality of the sorted set at key (0 if absent)."""
        ...

    async def range_by_score(
        self,
        key: str,
        window: ScoreWindow,
        offset: int,
        count: int,
    ) -> list[JobInfo]:
        """Read-only page of entries inside window, in set order."""
        ...

    async def set_marker(self, key: str, value: int) -> None:
        """Store a plain integer value at key (used for pause flags)."""
        ...

    async def get_marker(self, key: str) -> int | None:
        """Return the integer stored at key, or None if absent."""
        ...

    async def clear_marker(self, key: str) -> bool:
        """Delete key. True if it existed."""
        ...
