"""
Unit Tests for AsyncioScheduler
===============================
Real event loop, millisecond delays.
"""

import asyncio

import pytest

from lodgebot.core.scheduler import AsyncioScheduler


class TestAsyncioScheduler:

    @pytest.mark.asyncio
    async def test_callback_runs_after_delay(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        async def callback():
            fired.set()

        scheduler.call_later(0.01, callback)

        await asyncio.wait_for(fired.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_cancelled_callback_never_runs(self):
        scheduler = AsyncioScheduler()
        calls = []

        async def callback():
            calls.append(1)

        handle = scheduler.call_later(0.01, callback)
        handle.cancel()
        await asyncio.sleep(0.05)

        assert handle.cancelled
        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_callback_is_released(self):
        scheduler = AsyncioScheduler()
        done = asyncio.Event()

        async def callback():
            done.set()
            raise RuntimeError("reconnect blew up")

        scheduler.call_later(0, callback)
        await asyncio.wait_for(done.wait(), timeout=1.0)
        await asyncio.sleep(0.01)

        assert scheduler.pending_tasks == 0

    @pytest.mark.asyncio
    async def test_negative_delay_runs_immediately(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        async def callback():
            fired.set()

        scheduler.call_later(-5, callback)

        await asyncio.wait_for(fired.wait(), timeout=1.0)
