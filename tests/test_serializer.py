"""Tests for the write serializer."""

import asyncio

import pytest

from calsync.sync import WriteSerializer


class TestWriteSerializer:
    """Tests for one-at-a-time, in-order execution."""

    @pytest.mark.asyncio
    async def test_tasks_run_in_enqueue_order(self):
        """Test that tasks complete in the order they were enqueued."""
        serializer = WriteSerializer()
        order = []

        def make_task(n, delay):
            async def task():
                await asyncio.sleep(delay)
                order.append(n)
                return n

            return task

        handles = [
            serializer.enqueue(make_task(1, 0.03)),
            serializer.enqueue(make_task(2, 0.0)),
            serializer.enqueue(make_task(3, 0.01)),
        ]

        results = await asyncio.gather(*handles)

        assert results == [1, 2, 3]
        assert order == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_tasks_never_overlap(self):
        """Test that only one task is active at a time."""
        serializer = WriteSerializer()
        active = 0
        max_active = 0

        async def task():
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.005)
            active -= 1

        await asyncio.gather(*(serializer.enqueue(task) for _ in range(5)))

        assert max_active == 1

    @pytest.mark.asyncio
    async def test_failure_does_not_block_later_tasks(self):
        """Test that a failing task is reported and the chain continues."""
        serializer = WriteSerializer()

        async def failing():
            raise RuntimeError("boom")

        async def succeeding():
            return "done"

        first = serializer.enqueue(failing)
        second = serializer.enqueue(succeeding)

        with pytest.raises(RuntimeError, match="boom"):
            await first
        assert await second == "done"

    @pytest.mark.asyncio
    async def test_lost_update_prevented(self):
        """Test that concurrent load-modify-save cycles do not interleave."""
        serializer = WriteSerializer()
        shared = {"count": 0}

        async def increment():
            value = shared["count"]
            await asyncio.sleep(0)
            shared["count"] = value + 1

        await asyncio.gather(*(serializer.run(increment) for _ in range(20)))

        assert shared["count"] == 20

    @pytest.mark.asyncio
    async def test_pending_count(self):
        """Test that pending tracks unfinished tasks."""
        serializer = WriteSerializer()
        gate = asyncio.Event()

        async def wait_for_gate():
            await gate.wait()

        handles = [serializer.enqueue(wait_for_gate) for _ in range(3)]
        assert serializer.pending == 3

        gate.set()
        await asyncio.gather(*handles)

        assert serializer.pending == 0

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_task(self):
        """Test that a task keeps running when the awaiting caller is cancelled."""
        serializer = WriteSerializer()
        gate = asyncio.Event()
        finished = []

        async def slow_write():
            await gate.wait()
            finished.append("slow")
            return "slow"

        async def next_write():
            return "next"

        caller = asyncio.ensure_future(serializer.run(slow_write))
        await asyncio.sleep(0)
        caller.cancel()

        with pytest.raises(asyncio.CancelledError):
            await caller

        gate.set()

        assert await serializer.run(next_write) == "next"
        assert finished == ["slow"]
