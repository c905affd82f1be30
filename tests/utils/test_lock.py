import asyncio

import pytest

from suins_buddy.utils.lock import KeyedLock


@pytest.mark.asyncio
async def test_same_key_is_serialized_and_table_is_cleaned():
    locks = KeyedLock()
    order = []

    async def worker(tag):
        async with locks.hold("alice.sui"):
            order.append(f"{tag}-in")
            await asyncio.sleep(0.01)
            order.append(f"{tag}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert locks.held_keys() == 0
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_different_keys_do_not_block_each_other():
    locks = KeyedLock()

    async with locks.hold("one"):
        # Would deadlock if keys shared a lock
        async with locks.hold("two"):
            assert locks.held_keys() == 2


@pytest.mark.asyncio
async def test_lock_released_on_error():
    locks = KeyedLock()

    with pytest.raises(ValueError):
        async with locks.hold("k"):
            raise ValueError("x")

    async with locks.hold("k"):
        pass
    assert locks.held_keys() == 0
