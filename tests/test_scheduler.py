import asyncio

from simplebot.capability import Available, Unavailable, adapter_of
from simplebot.scheduler import AsyncioScheduler, ManualScheduler


def test_manual_scheduler_fires_in_order():
    fired = []
    scheduler = ManualScheduler()
    scheduler.schedule(1000, lambda: fired.append("a"))
    scheduler.schedule(10, lambda: fired.append("b"))
    assert scheduler.fire_next() is True
    assert fired == ["a"]
    assert scheduler.fire_all() == 1
    assert fired == ["a", "b"]
    assert scheduler.fire_next() is False


def test_manual_scheduler_skips_cancelled():
    fired = []
    scheduler = ManualScheduler()
    token = scheduler.schedule(5, lambda: fired.append("x"))
    token.cancel()
    assert token.cancelled()
    assert scheduler.fire_all() == 0
    assert fired == []
    assert not token.fired


async def test_asyncio_scheduler_runs_callback():
    done = asyncio.Event()
    AsyncioScheduler().schedule(10, done.set)
    await asyncio.wait_for(done.wait(), timeout=2)


async def test_asyncio_scheduler_cancel():
    fired = []
    token = AsyncioScheduler().schedule(20, lambda: fired.append(1))
    token.cancel()
    await asyncio.sleep(0.05)
    assert fired == []
    assert token.cancelled()


def test_capability_variants():
    engine = object()
    assert Available(engine).available is True
    assert adapter_of(Available(engine)) is engine
    assert Unavailable("no device").available is False
    assert adapter_of(Unavailable()) is None
