"""
Tests for ConversationLockManager.
"""
import asyncio

import pytest

from chat_service.infrastructure.concurrency import ConversationLockManager


@pytest.mark.asyncio
async def test_lock_serializes_same_conversation():
    manager = ConversationLockManager()
    events = []

    async def worker(name: str):
        async with manager.lock("conv-1"):
            events.append(f"{name}-start")
            await asyncio.sleep(0.01)
            events.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"), worker("c"))

    # No interleaving: every start is immediately followed by its end
    for i in range(0, len(events), 2):
        assert events[i].split("-")[0] == events[i + 1].split("-")[0]


@pytest.mark.asyncio
async def test_different_conversations_run_concurrently():
    manager = ConversationLockManager()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def holder():
        async with manager.lock("conv-1"):
            inside.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await inside.wait()

    async with manager.lock("conv-2"):
        assert manager.is_locked("conv-1")
        assert manager.is_locked("conv-2")

    release.set()
    await task


@pytest.mark.asyncio
async def test_lock_entry_removed_after_release():
    manager = ConversationLockManager()

    async with manager.lock("conv-1"):
        assert manager.get_lock_count() == 1

    assert manager.get_lock_count() == 0
    assert manager.is_locked("conv-1") is False


@pytest.mark.asyncio
async def test_waiters_share_one_lock():
    manager = ConversationLockManager()
    counter = {"value": 0}

    async def increment():
        async with manager.lock("conv-1"):
            current = counter["value"]
            await asyncio.sleep(0)
            counter["value"] = current + 1

    await asyncio.gather(*(increment() for _ in range(50)))

    assert counter["value"] == 50
    assert manager.get_lock_count() == 0


@pytest.mark.asyncio
async def test_lock_released_on_exception():
    manager = ConversationLockManager()

    with pytest.raises(RuntimeError):
        async with manager.lock("conv-1"):
            raise RuntimeError("boom")

    assert manager.get_lock_count() == 0
    async with manager.lock("conv-1"):
        pass
