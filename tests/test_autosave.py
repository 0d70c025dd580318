"""Tests for the debounced autosave task."""
import asyncio

import pytest

from app.services.autosave import Debouncer


@pytest.mark.asyncio
async def test_only_last_scheduled_action_runs():
    calls = []
    debouncer = Debouncer(delay=0.02)

    for i in range(5):
        async def action(i=i):
            calls.append(i)
        debouncer.schedule(action)

    await debouncer.wait()
    assert calls == [4]
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_cancel_drops_pending_action():
    calls = []
    debouncer = Debouncer(delay=0.02)

    async def action():
        calls.append(1)

    debouncer.schedule(action)
    assert debouncer.pending
    debouncer.cancel()
    await asyncio.sleep(0.05)
    assert calls == []


@pytest.mark.asyncio
async def test_failing_action_is_logged_not_raised(caplog):
    debouncer = Debouncer(delay=0, name="autosave")

    async def boom():
        raise RuntimeError("disk full")

    debouncer.schedule(boom)
    await debouncer.wait()
    assert "autosave task failed" in caplog.text


@pytest.mark.asyncio
async def test_wait_follows_reschedule():
    calls = []
    debouncer = Debouncer(delay=0.02)

    async def first():
        calls.append("first")

    async def second():
        calls.append("second")

    debouncer.schedule(first)
    waiter = asyncio.create_task(debouncer.wait())
    await asyncio.sleep(0)
    debouncer.schedule(second)
    await waiter
    assert calls == ["second"]


@pytest.mark.asyncio
async def test_running_action_is_not_cancelled():
    events = []
    started = asyncio.Event()
    debouncer = Debouncer(delay=0)

    async def slow_save():
        events.append("start")
        started.set()
        await asyncio.sleep(0.05)
        events.append("done")

    async def never():
        events.append("never")

    debouncer.schedule(slow_save)
    await started.wait()

    debouncer.schedule(never)
    debouncer.cancel()
    assert debouncer.pending

    await debouncer.wait()
    assert events == ["start", "done"]
    assert not debouncer.pending
