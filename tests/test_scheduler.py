"""
Tests for PeriodicTask.
"""

import asyncio

import pytest

from chatsync.client.scheduler import PeriodicTask


class TestPeriodicTask:

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask(0, lambda: None)

    @pytest.mark.asyncio
    async def test_ticks_until_stopped(self):
        calls = []

        async def tick():
            calls.append(1)

        task = PeriodicTask(0.02, tick)
        task.start()
        assert task.running
        await asyncio.sleep(0.11)
        await task.stop()
        assert not task.running

        seen = len(calls)
        assert seen >= 2
        await asyncio.sleep(0.05)
        assert len(calls) == seen

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_schedule(self):
        calls = []

        async def tick():
            calls.append(1)

        task = PeriodicTask(0.05, tick)
        task.start()
        task.start()
        await asyncio.sleep(0.07)
        await task.stop()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_schedule(self):
        calls = []

        async def tick():
            calls.append(1)
            raise RuntimeError("flaky")

        task = PeriodicTask(0.02, tick)
        task.start()
        await asyncio.sleep(0.09)
        assert task.running
        await task.stop()
        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_stop_when_not_started(self):
        task = PeriodicTask(1, lambda: None)
        await task.stop()
        assert not task.running
