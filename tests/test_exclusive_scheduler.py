import pytest

from tubeq.adapters.store.memory import InMemorySortedSetStore
from tubeq.core.exclusive import ExclusiveScheduler
from tubeq.domain.models import JobInfo

from conftest import FakeClock

TUBE = "reports"


@pytest.fixture
def store() -> InMemorySortedSetStore:
    return InMemorySortedSetStore()


@pytest.fixture
def scheduler(store: InMemorySortedSetStore, clock: FakeClock) -> ExclusiveScheduler:
    return ExclusiveScheduler(store=store, prefix="test:", clock=clock)


# ---------------------------------------------------------------------------
# schedule
# ---------------------------------------------------------------------------


async def test_schedule_twice_while_pending(scheduler: ExclusiveScheduler, clock: FakeClock):
    assert await scheduler.schedule(TUBE, "p", 100) is True
    assert await scheduler.schedule(TUBE, "p", 0) is False
    assert await scheduler.peek_delayed(TUBE, 0, 10) == [
        JobInfo(payload="p", score=clock.now + 100)
    ]


async def test_schedule_twice_while_running(scheduler: ExclusiveScheduler):
    await scheduler.schedule(TUBE, "p", 0)
    await scheduler.reserve_multi(TUBE, 1_000, 1)
    assert await scheduler.schedule(TUBE, "p", 0) is False
    assert await scheduler.ready_size(TUBE) == 0


async def test_schedule_again_after_delete(scheduler: ExclusiveScheduler):
    await scheduler.schedule(TUBE, "p", 0)
    await scheduler.reserve_multi(TUBE, 1_000, 1)
    assert await scheduler.delete_job(TUBE, "p") is True
    assert await scheduler.schedule(TUBE, "p", 0) is True


# ---------------------------------------------------------------------------
# reserve_multi / delete_job
# ---------------------------------------------------------------------------


async def test_reserve_only_due_jobs(scheduler: ExclusiveScheduler, clock: FakeClock):
    await scheduler.schedule(TUBE, "due", 0)
    await scheduler.schedule(TUBE, "later", 500)
    assert [j.payload for j in await scheduler.reserve_multi(TUBE, 1_000, 5)] == ["due"]
    clock.advance(500)
    assert [j.payload for j in await scheduler.reserve_multi(TUBE, 1_000, 5)] == ["later"]


async def test_delete_pending_job(scheduler: ExclusiveScheduler):
    await scheduler.schedule(TUBE, "p", 1_000)
    assert await scheduler.delete_job(TUBE, "p") is True
    assert await scheduler.ready_size(TUBE) == 0


async def test_delete_unknown_job(scheduler: ExclusiveScheduler):
    assert await scheduler.delete_job(TUBE, "ghost") is False


# ---------------------------------------------------------------------------
# remove_expired_jobs / remove_expired_ready_jobs
# ---------------------------------------------------------------------------


async def test_expired_leases_are_discarded(scheduler: ExclusiveScheduler, clock: FakeClock):
    await scheduler.schedule(TUBE, "p", 0)
    await scheduler.reserve_multi(TUBE, 100, 1)
    clock.advance(150)

    removed = await scheduler.remove_expired_jobs(TUBE)

    assert removed == [JobInfo(payload="p", score=clock.now - 50)]
    assert await scheduler.running_size(TUBE) == 0
    assert await scheduler.ready_size(TUBE) == 0
    assert await scheduler.remove_expired_jobs(TUBE) == []


async def test_discarded_job_can_be_rescheduled(scheduler: ExclusiveScheduler, clock: FakeClock):
    await scheduler.schedule(TUBE, "p", 0)
    await scheduler.reserve_multi(TUBE, 100, 1)
    clock.advance(100)
    await scheduler.remove_expired_jobs(TUBE)
    assert await scheduler.schedule(TUBE, "p", 0) is True


async def test_remove_expired_ready_jobs(scheduler: ExclusiveScheduler, clock: FakeClock):
    await scheduler.schedule(TUBE, "stale", 0)
    clock.advance(1_000)
    await scheduler.schedule(TUBE, "fresh", 0)
    clock.advance(500)

    removed = await scheduler.remove_expired_ready_jobs(TUBE, 1_000)

    assert [j.payload for j in removed] == ["stale"]
    assert [j.payload for j in await scheduler.peek_ready(TUBE, 0, 10)] == ["fresh"]


async def test_remove_expired_ready_jobs_leaves_running(scheduler: ExclusiveScheduler, clock: FakeClock):
    await scheduler.schedule(TUBE, "p", 0)
    await scheduler.reserve_multi(TUBE, 10_000, 1)
    clock.advance(5_000)
    assert await scheduler.remove_expired_ready_jobs(TUBE, 0) == []
    assert await scheduler.running_size(TUBE) == 1


# ---------------------------------------------------------------------------
# pause / resume
# ---------------------------------------------------------------------------


async def test_paused_tube_reserves_nothing(scheduler: ExclusiveScheduler):
    await scheduler.schedule(TUBE, "p", 0)
    await scheduler.pause(TUBE)

    assert await scheduler.reserve_multi(TUBE, 1_000, 5) == []
    assert await scheduler.ready_size(TUBE) == 1
    assert await scheduler.running_size(TUBE) == 0


async def test_resume_restores_reservation(scheduler: ExclusiveScheduler):
    await scheduler.schedule(TUBE, "p", 0)
    await scheduler.pause(TUBE)
    assert await scheduler.resume(TUBE) is True
    assert [j.payload for j in await scheduler.reserve_multi(TUBE, 1_000, 5)] == ["p"]


async def test_resume_unpaused_tube(scheduler: ExclusiveScheduler):
    assert await scheduler.resume(TUBE) is False


async def test_pause_state(scheduler: ExclusiveScheduler, clock: FakeClock):
    assert await scheduler.is_paused(TUBE) is False
    assert await scheduler.paused_since(TUBE) is None
    await scheduler.pause(TUBE)
    assert await scheduler.is_paused(TUBE) is True
    assert await scheduler.paused_since(TUBE) == clock.now


async def test_pause_is_per_tube(scheduler: ExclusiveScheduler):
    await scheduler.schedule("other", "p", 0)
    await scheduler.pause(TUBE)
    assert len(await scheduler.reserve_multi("other", 1_000, 1)) == 1


async def test_pause_uses_bit_exact_key(scheduler: ExclusiveScheduler, store: InMemorySortedSetStore):
    await scheduler.pause(TUBE)
    assert await store.get_marker("test:reports:paused") is not None


async def test_schedule_allowed_while_paused(scheduler: ExclusiveScheduler):
    await scheduler.pause(TUBE)
    assert await scheduler.schedule(TUBE, "p", 0) is True


# ---------------------------------------------------------------------------
# sizes / peeks
# ---------------------------------------------------------------------------


async def test_sizes_track_each_mutation(scheduler: ExclusiveScheduler, clock: FakeClock):
    async def sizes() -> tuple[int, int]:
        return await scheduler.ready_size(TUBE), await scheduler.running_size(TUBE)

    await scheduler.schedule(TUBE, "a", 0)
    await scheduler.schedule(TUBE, "b", 0)
    assert await sizes() == (2, 0)
    await scheduler.reserve_multi(TUBE, 100, 1)
    assert await sizes() == (1, 1)
    await scheduler.delete_job(TUBE, "b")
    assert await sizes() == (0, 1)
    clock.advance(100)
    await scheduler.remove_expired_jobs(TUBE)
    assert await sizes() == (0, 0)


async def test_peek_running_and_expired(scheduler: ExclusiveScheduler, clock: FakeClock):
    await scheduler.schedule(TUBE, "p", 0)
    await scheduler.reserve_multi(TUBE, 100, 1)
    assert [j.payload for j in await scheduler.peek_running(TUBE, 0, 10)] == ["p"]
    clock.advance(100)
    assert await scheduler.peek_running(TUBE, 0, 10) == []
    assert [j.payload for j in await scheduler.peek_expired(TUBE, 0, 10)] == ["p"]
