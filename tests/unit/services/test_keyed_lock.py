"""Tests for KeyedLock."""

import asyncio

from stockledger.core.services import KeyedLock


async def test_same_key_runs_one_at_a_time():
    locks = KeyedLock()
    order: list[str] = []

    async def worker(name: str):
        async with locks.hold("k"):
            order.append(f"{name}-start")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]


async def test_different_keys_overlap():
    locks = KeyedLock()
    order: list[str] = []

    async def worker(key: str):
        async with locks.hold(key):
            order.append(f"{key}-start")
            await asyncio.sleep(0)
            order.append(f"{key}-end")

    await asyncio.gather(worker("x"), worker("y"))

    assert order.index("y-start") < order.index("x-end")


async def test_idle_locks_are_dropped():
    locks = KeyedLock()

    async with locks.hold(("b1", "rice")):
        assert locks.is_held(("b1", "rice"))
        assert len(locks) == 1

    assert len(locks) == 0
    assert not locks.is_held(("b1", "rice"))


async def test_lock_released_on_error():
    locks = KeyedLock()

    try:
        async with locks.hold("k"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert len(locks) == 0
    async with locks.hold("k"):
        assert locks.is_held("k")
