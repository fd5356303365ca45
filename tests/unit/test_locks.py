"""Unit tests for per-transfer locking"""

import asyncio

from remit_gateway.services.locks import TransferLocks


async def test_same_id_is_serialized():
    locks = TransferLocks()
    events = []

    async def worker(name: str):
        async with locks.hold("xb_1"):
            events.append(f"{name}:in")
            await asyncio.sleep(0.01)
            events.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))

    assert events == ["a:in", "a:out", "b:in", "b:out"]


async def test_different_ids_run_in_parallel():
    locks = TransferLocks()
    inside = asyncio.Event()

    async def first():
        async with locks.hold("xb_1"):
            await asyncio.wait_for(inside.wait(), timeout=1)

    async def second():
        async with locks.hold("xb_2"):
            inside.set()

    await asyncio.gather(first(), second())


async def test_lock_released_after_last_holder():
    locks = TransferLocks()

    async with locks.hold("xb_1"):
        assert len(locks) == 1

    assert len(locks) == 0


async def test_lock_released_when_body_raises():
    locks = TransferLocks()

    try:
        async with locks.hold("xb_1"):
            raise ValueError("boom")
    except ValueError:
        pass

    assert len(locks) == 0
    async with locks.hold("xb_1"):
        pass
