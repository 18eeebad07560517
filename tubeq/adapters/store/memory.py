"""
InMemorySortedSetStore — asyncio.Lock-based store for testing and development.

Keeps every sorted set as a payload → score dict. One asyncio.Lock
serialises all operations, which gives the same all-or-nothing behaviour as
Redis script execution: no await happens between a selection and the
matching removal.

Ordering matches Redis: ascending score, ties by payload. Python compares
str by code point, which is the same order as comparing UTF-8 bytes.

Zero external dependencies. Safe for multiple concurrent coroutines in a
single event loop. NOT safe across processes or threads.
"""
from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Iterable, Sequence

from tubeq.domain.models import JobInfo, ScheduleOutcome, ScoreWindow


@dataclasses.dataclass
class InMemorySortedSetStore:
    """In-process sorted-set store. Empty sets are dropped, as Redis does."""

    def __post_init__(self) -> None:
        self._sets: dict[str, dict[str, float]] = {}
        self._markers: dict[str, int] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Helpers (caller holds the lock)                                      #
    # ------------------------------------------------------------------ #

    def _ordered(self, key: str, window: ScoreWindow) -> list[JobInfo]:
        members = self._sets.get(key, {})
        return [
            JobInfo(payload=payload, score=score)
            for payload, score in sorted(members.items(), key=lambda kv: (kv[1], kv[0]))
            if window.contains(score)
        ]

    def _add(self, key: str, payload: str, score: float) -> bool:
        members = self._sets.setdefault(key, {})
        is_new = payload not in members
        members[payload] = float(score)
        return is_new

    def _remove(self, key: str, payload: str) -> bool:
        members = self._sets.get(key)
        if members is None or payload not in members:
            return False
        del members[payload]
        if not members:
            del self._sets[key]
        return True

    def _score(self, key: str, payload: str) -> float | None:
        return self._sets.get(key, {}).get(payload)

    # ------------------------------------------------------------------ #
    # SortedSetStorePort                                                   #
    # ------------------------------------------------------------------ #

    async def reserve(
        self,
        ready_key: str,
        running_key: str,
        paused_key: str | None,
        max_count: int,
        window: ScoreWindow,
        lease_score: float,
    ) -> list[JobInfo]:
        async with self._lock:
            if paused_key is not None and paused_key in self._markers:
                return []
            found = self._ordered(ready_key, window)[:max_count]
            for job in found:
                self._remove(ready_key, job.payload)
                self._add(running_key, job.payload, lease_score)
            return found

    async def sweep(
        self,
        source_key: str,
        max_score: float,
        target_key: str | None = None,
        target_score: float | None = None,
    ) -> list[JobInfo]:
        async with self._lock:
            found = self._ordered(source_key, ScoreWindow(high=max_score))
            for job in found:
                self._remove(source_key, job.payload)
                if target_key is not None:
                    self._add(
                        target_key,
                        job.payload,
                        job.score if target_score is None else target_score,
                    )
            return found

    async def delete(self, keys: Sequence[str], payload: str) -> bool:
        async with self._lock:
            removed = [self._remove(key, payload) for key in keys]
            return any(removed)

    async def upsert(self, key: str, payload: str, score: float) -> bool:
        async with self._lock:
            return self._add(key, payload, score)

    async def add_many(self, key: str, payloads: Iterable[str], score: float) -> int:
        async with self._lock:
            return sum(self._add(key, payload, score) for payload in payloads)

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
        async with self._lock:
            if self._score(running_key, payload) is not None:
                return ScheduleOutcome.IN_FLIGHT
            current = self._score(ready_key, payload)
            if current is None:
                if max_size is not None and len(self._sets.get(ready_key, {})) >= max_size:
                    return ScheduleOutcome.QUEUE_FULL
                self._add(ready_key, payload, score)
                return ScheduleOutcome.SCHEDULED
            if current - now > quiescence:
                self._add(ready_key, payload, score)
                return ScheduleOutcome.UPDATED
            return ScheduleOutcome.QUIESCED

    async def schedule_exclusive(
        self,
        ready_key: str,
        running_key: str,
        payload: str,
        score: float,
    ) -> bool:
        async with self._lock:
            if self._score(running_key, payload) is not None:
                return False
            if self._score(ready_key, payload) is not None:
                return False
            return self._add(ready_key, payload, score)

    async def count(self, key: str) -> int:
        async with self._lock:
            return len(self._sets.get(key, {}))

    async def range_by_score(
        self,
        key: str,
        window: ScoreWindow,
        offset: int,
        count: int,
    ) -> list[JobInfo]:
        async with self._lock:
            return self._ordered(key, window)[offset : offset + count]

    async def set_marker(self, key: str, value: int) -> None:
        async with self._lock:
            self._markers[key] = value

    async def get_marker(self, key: str) -> int | None:
        async with self._lock:
            return self._markers.get(key)

    async def clear_marker(self, key: str) -> bool:
        async with self._lock:
            return self._markers.pop(key, None) is not None
