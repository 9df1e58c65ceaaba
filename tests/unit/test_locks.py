import asyncio

import pytest

from app.core.locks import KeyedLock


class TestKeyedLock:
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        events = []

        async def worker(name):
            async with locks.acquire(1):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    async def test_different_keys_run_concurrently(self):
        locks = KeyedLock()
        inside = asyncio.Event()
        released = asyncio.Event()

        async def holder():
            async with locks.acquire("x"):
                inside.set()
                await released.wait()

        task = asyncio.create_task(holder())
        await inside.wait()

        async with locks.acquire("y"):
            assert len(locks) == 2

        released.set()
        await task

    async def test_entries_are_dropped_when_idle(self):
        locks = KeyedLock()

        async with locks.acquire(("period", 1, "May", 2024)):
            assert len(locks) == 1

        assert len(locks) == 0

    async def test_lock_released_on_error(self):
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.acquire(5):
                raise RuntimeError("boom")

        assert len(locks) == 0
        async with locks.acquire(5):
            pass
