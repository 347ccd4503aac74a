"""Tests for the fixed-interval PeriodicTask."""
import asyncio

import pytest

from helmwatch.modules.scheduler import PeriodicTask


def test_tick_is_skipped_while_previous_run_in_flight():
    async def scenario():
        started = asyncio.Event()
        release = asyncio.Event()
        calls = 0

        async def slow():
            nonlocal calls
            calls += 1
            started.set()
            await release.wait()

        task = PeriodicTask("slow", 0.01, slow)
        task.start()
        await asyncio.wait_for(started.wait(), timeout=1.0)
        await asyncio.sleep(0.1)
        assert task.busy
        assert calls == 1
        assert task.skipped >= 1
        release.set()
        await task.stop()
        assert not task.running

    asyncio.run(scenario())


def test_failing_run_is_logged_and_schedule_continues(caplog):
    calls = []

    def failing():
        calls.append(1)
        raise RuntimeError("scan exploded")

    async def scenario():
        task = PeriodicTask("failing", 0.01, failing)
        task.start()
        await asyncio.sleep(0.1)
        await task.stop()
        return task

    task = asyncio.run(scenario())
    assert len(calls) >= 2
    assert task.runs == len(calls)
    assert "scan exploded" in caplog.text


def test_sync_function_runs():
    calls = []

    async def scenario():
        task = PeriodicTask("sync", 0.01, lambda: calls.append(1))
        task.start()
        task.start()  # idempotent
        await asyncio.sleep(0.05)
        await task.stop()

    asyncio.run(scenario())
    assert calls


def test_invalid_interval():
    with pytest.raises(ValueError):
        PeriodicTask("bad", 0, lambda: None)


def test_start_requires_running_loop():
    with pytest.raises(RuntimeError):
        PeriodicTask("noloop", 1.0, lambda: None).start()
