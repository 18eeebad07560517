"""
RedisSortedSetStore — Redis adapter using redis.asyncio and Lua scripts.

Atomicity
---------
Every multi-step operation (reserve, sweep, delete, the two dedup schedules)
is a Lua script. Redis runs a script to completion before serving any other
command, which is what guarantees that two workers reserving from the same
tube never receive the same payload. Single-command operations (ZADD, ZCARD,
ZRANGEBYSCORE, SET/GET/DEL) are atomic on their own.

Script cache
------------
Scripts are always invoked with EVALSHA using a SHA1 computed locally. When
the server does not know the script (first use, SCRIPT FLUSH, failover to a
fresh replica) it answers NOSCRIPT; the adapter then SCRIPT LOADs it and
retries the same call once. Callers never see NOSCRIPT.

Errors
------
Any other redis.exceptions.RedisError (connection refused, timeout, a
WRONGTYPE reply, ...) is wrapped in StoreError and raised. Connection pooling
and reconnect policy belong to the redis client.
"""
from __future__ import annotations

import contextlib
import dataclasses
import hashlib
from collections.abc import Iterable, Iterator, Sequence
from typing import TYPE_CHECKING, Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import NoScriptError, RedisError

from tubeq.core import codec
from tubeq.domain.errors import StoreError
from tubeq.domain.models import JobInfo, ScheduleOutcome, ScoreWindow

if TYPE_CHECKING:
    from tubeq.config import TubeqSettings

logger = structlog.get_logger(__name__)

RESERVE_LUA = r"""
-- KEYS[1] = ready queue, KEYS[2] = running queue, KEYS[3] = pause flag (optional)
-- ARGV[1] = max jobs, ARGV[2] = min score, ARGV[3] = max score, ARGV[4] = lease score
if #KEYS > 2 and redis.call('EXISTS', KEYS[3]) == 1 then
  return {}
end
local found = redis.call('ZRANGEBYSCORE', KEYS[1], ARGV[2], ARGV[3],
                         'WITHSCORES', 'LIMIT', 0, ARGV[1])
for i = 1, #found, 2 do
  redis.call('ZREM', KEYS[1], found[i])
  redis.call('ZADD', KEYS[2], ARGV[4], found[i])
end
return found
"""

SWEEP_LUA = r"""
-- KEYS[1] = source queue, KEYS[2] = target queue (optional)
-- ARGV[1] = max score, ARGV[2] = target score ('' keeps the source score)
local found = redis.call('ZRANGEBYSCORE', KEYS[1], '-inf', ARGV[1], 'WITHSCORES')
for i = 1, #found, 2 do
  redis.call('ZREM', KEYS[1], found[i])
  if #KEYS > 1 then
    local score = ARGV[2]
    if score == '' then
      score = found[i + 1]
    end
    redis.call('ZADD', KEYS[2], score, found[i])
  end
end
return found
"""

DELETE_LUA = r"""
-- KEYS = queues to remove from, ARGV[1] = payload
local removed = 0
for i = 1, #KEYS do
  removed = removed + redis.call('ZREM', KEYS[i], ARGV[1])
end
return removed
"""

SCHEDULE_DEBOUNCED_LUA = r"""
-- KEYS[1] = ready queue, KEYS[2] = running queue
-- ARGV[1] = payload, ARGV[2] = score, ARGV[3] = now, ARGV[4] = quiescence,
-- ARGV[5] = max ready size (-1 = unbounded)
-- returns 1 scheduled, 2 updated, 0 quiesced, -1 queue full, -2 in flight
if redis.call('ZSCORE', KEYS[2], ARGV[1]) then
  return -2
end
local current = redis.call('ZSCORE', KEYS[1], ARGV[1])
if not current then
  local limit = tonumber(ARGV[5])
  if limit >= 0 and redis.call('ZCARD', KEYS[1]) >= limit then
    return -1
  end
  redis.call('ZADD', KEYS[1], ARGV[2], ARGV[1])
  return 1
end
if tonumber(current) - tonumber(ARGV[3]) > tonumber(ARGV[4]) then
  redis.call('ZADD', KEYS[1], ARGV[2], ARGV[1])
  return 2
end
return 0
"""

SCHEDULE_EXCLUSIVE_LUA = r"""
-- KEYS[1] = ready queue, KEYS[2] = running queue
-- ARGV[1] = payload, ARGV[2] = score
if redis.call('ZSCORE', KEYS[2], ARGV[1]) then
  return 0
end
return redis.call('ZADD', KEYS[1], 'NX', ARGV[2], ARGV[1])
"""

_SCRIPTS: dict[str, str] = {
    "reserve": RESERVE_LUA,
    "sweep": SWEEP_LUA,
    "delete": DELETE_LUA,
    "schedule_debounced": SCHEDULE_DEBOUNCED_LUA,
    "schedule_exclusive": SCHEDULE_EXCLUSIVE_LUA,
}

_SHAS: dict[str, str] = {
    name: hashlib.sha1(body.encode("utf-8")).hexdigest()
    for name, body in _SCRIPTS.items()
}

_DEBOUNCED_OUTCOMES: dict[int, ScheduleOutcome] = {
    1: ScheduleOutcome.SCHEDULED,
    2: ScheduleOutcome.UPDATED,
    0: ScheduleOutcome.QUIESCED,
    -1: ScheduleOutcome.QUEUE_FULL,
    -2: ScheduleOutcome.IN_FLIGHT,
}


@contextlib.contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        raise StoreError(f"Redis {operation} failed", exc) from exc


@dataclasses.dataclass
class RedisSortedSetStore:
    """
    Redis-backed store.

    Parameters
    ----------
    client : redis.asyncio.Redis — owns the connection pool; may or may not
             decode responses, both are handled
    """

    client: Redis

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RedisSortedSetStore:
        """Build a store with its own client; kwargs are forwarded to Redis.from_url."""
        return cls(client=Redis.from_url(url, **kwargs))

    @classmethod
    def from_settings(cls, settings: TubeqSettings | None = None) -> RedisSortedSetStore:
        if settings is None:
            from tubeq.config import get_settings

            settings = get_settings()
        return cls.from_url(settings.redis_url)

    async def aclose(self) -> None:
        """Release the client's connection pool."""
        await self.client.aclose()

    # ------------------------------------------------------------------ #
    # Script execution                                                     #
    # ------------------------------------------------------------------ #

    async def _run_script(self, name: str, keys: Sequence[str], args: Sequence[Any]) -> Any:
        with _store_errors(f"script {name}"):
            try:
                return await self.client.evalsha(_SHAS[name], len(keys), *keys, *args)
            except NoScriptError:
                logger.warning("script_missing_reloading", script=name)
                await self.client.script_load(_SCRIPTS[name])
                return await self.client.evalsha(_SHAS[name], len(keys), *keys, *args)

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
        keys = [ready_key, running_key]
        if paused_key is not None:
            keys.append(paused_key)
        low, high = codec.encode_window(window)
        reply = await self._run_script(
            "reserve",
            keys,
            [max_count, low, high, codec.encode_score(lease_score)],
        )
        return codec.decode_flat(reply)

    async def sweep(
        self,
        source_key: str,
        max_score: float,
        target_key: str | None = None,
        target_score: float | None = None,
    ) -> list[JobInfo]:
        keys = [source_key] if target_key is None else [source_key, target_key]
        target = "" if target_score is None else codec.encode_score(target_score)
        reply = await self._run_script(
            "sweep", keys, [codec.encode_score(max_score), target]
        )
        return codec.decode_flat(reply)

    async def delete(self, keys: Sequence[str], payload: str) -> bool:
        removed = await self._run_script("delete", list(keys), [payload])
        return int(removed) > 0

    async def upsert(self, key: str, payload: str, score: float) -> bool:
        with _store_errors("ZADD"):
            added = await self.client.zadd(key, {payload: score})
        return int(added) == 1

    async def add_many(self, key: str, payloads: Iterable[str], score: float) -> int:
        payloads = list(payloads)
        if not payloads:
            return 0
        with _store_errors("pipelined ZADD"):
            async with self.client.pipeline(transaction=False) as pipe:
                for payload in payloads:
                    pipe.zadd(key, {payload: score})
                results = await pipe.execute()
        return sum(int(added) for added in results)

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
        code = await self._run_script(
            "schedule_debounced",
            [ready_key, running_key],
            [
                payload,
                codec.encode_score(score),
                codec.encode_score(now),
                codec.encode_score(quiescence),
                -1 if max_size is None else max_size,
            ],
        )
        return _DEBOUNCED_OUTCOMES[int(code)]

    async def schedule_exclusive(
        self,
        ready_key: str,
        running_key: str,
        payload: str,
        score: float,
    ) -> bool:
        added = await self._run_script(
            "schedule_exclusive",
            [ready_key, running_key],
            [payload, codec.encode_score(score)],
        )
        return int(added) == 1

    async def count(self, key: str) -> int:
        with _store_errors("ZCARD"):
            return int(await self.client.zcard(key))

    async def range_by_score(
        self,
        key: str,
        window: ScoreWindow,
        offset: int,
        count: int,
    ) -> list[JobInfo]:
        low, high = codec.encode_window(window)
        with _store_errors("ZRANGEBYSCORE"):
            reply = await self.client.zrangebyscore(
                key, low, high, start=offset, num=count, withscores=True
            )
        return codec.decode_pairs(reply)

    async def set_marker(self, key: str, value: int) -> None:
        with _store_errors("SET"):
            await self.client.set(key, value)

    async def get_marker(self, key: str) -> int | None:
        with _store_errors("GET"):
            value = await self.client.get(key)
        return None if value is None else int(value)

    async def clear_marker(self, key: str) -> bool:
        with _store_errors("DEL"):
            return int(await self.client.delete(key)) > 0
