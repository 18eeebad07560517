import asyncio

import pytest

from tubeq.adapters.store.memory import InMemorySortedSetStore
from tubeq.core.keys import TubeKeys
from tubeq.core.protocol import (
    DELAYED_POLICY,
    EXCLUSIVE_POLICY,
    PRIORITY_POLICY,
    LeasePolicy,
    LeaseProtocol,
)
from tubeq.domain.models import ScoreWindow

from conftest import FakeClock

TUBE = "t"


def _protocol(policy: LeasePolicy, clock: FakeClock) -> LeaseProtocol:
    return LeaseProtocol(
        store=InMemorySortedSetStore(), keys=TubeKeys("x:"), policy=policy, clock=clock
    )


@pytest.mark.parametrize("policy", [PRIORITY_POLICY, DELAYED_POLICY, EXCLUSIVE_POLICY])
async def test_overlapping_reservations_are_disjoint(policy: LeasePolicy, clock: FakeClock):
    protocol = _protocol(policy, clock)
    await protocol.store.add_many(protocol.keys.ready(TUBE), [f"j{i:03}" for i in range(100)], 0)

    batches = await asyncio.gather(*(protocol.reserve(TUBE, 1_000, 9) for _ in range(20)))

    payloads = [job.payload for batch in batches for job in batch]
    assert len(payloads) == len(set(payloads)) == 100
    assert await protocol.ready_size(TUBE) == 0
    assert await protocol.running_size(TUBE) == 100


async def test_each_batch_is_score_ordered(clock: FakeClock):
    protocol = _protocol(PRIORITY_POLICY, clock)
    for i, payload in enumerate(["e", "d", "c", "b", "a"]):
        await protocol.store.upsert(protocol.keys.ready(TUBE), payload, i % 2)
    jobs = await protocol.reserve(TUBE, 10, 5)
    assert [(j.score, j.payload) for j in jobs] == sorted((j.score, j.payload) for j in jobs)
    assert [j.payload for j in jobs] == ["a", "c", "e", "b", "d"]


def test_policies():
    assert PRIORITY_POLICY.reserve_window(123) == ScoreWindow.unbounded()
    assert DELAYED_POLICY.reserve_window(123) == ScoreWindow.due_by(123)
    assert EXCLUSIVE_POLICY.honors_pause and EXCLUSIVE_POLICY.delete_from_ready
    assert not DELAYED_POLICY.honors_pause and not DELAYED_POLICY.delete_from_ready


async def test_pause_ignored_by_policies_without_pause(clock: FakeClock):
    protocol = _protocol(DELAYED_POLICY, clock)
    await protocol.store.upsert(protocol.keys.ready(TUBE), "p", 0)
    await protocol.store.set_marker(protocol.keys.paused(TUBE), 1)
    assert len(await protocol.reserve(TUBE, 10, 1)) == 1


async def test_sweep_ready_discards_up_to_cutoff(clock: FakeClock):
    protocol = _protocol(EXCLUSIVE_POLICY, clock)
    await protocol.store.upsert(protocol.keys.ready(TUBE), "old", 10)
    await protocol.store.upsert(protocol.keys.ready(TUBE), "new", 30)
    removed = await protocol.sweep_ready(TUBE, 10)
    assert [j.payload for j in removed] == ["old"]
    assert await protocol.ready_size(TUBE) == 1


async def test_lease_score_is_future_at_reservation(clock: FakeClock):
    protocol = _protocol(DELAYED_POLICY, clock)
    await protocol.store.upsert(protocol.keys.ready(TUBE), "p", 0)
    await protocol.reserve(TUBE, 1, 1)
    [running] = await protocol.peek(protocol.keys.running(TUBE), ScoreWindow.unbounded(), 0, 1)
    assert running.score > clock.now
