"""
Tests for the session timers: the one-shot DelayedAction and the rearmable
InactivityWatchdog.
"""

import asyncio

import pytest

from callbridge.bot.timers import DelayedAction, InactivityWatchdog


@pytest.mark.asyncio
async def test_delayed_action_runs_once():
    calls = []

    async def callback():
        calls.append("ran")

    action = DelayedAction("test")
    action.schedule(0.01, callback)
    assert action.pending

    await asyncio.sleep(0.05)
    assert calls == ["ran"]
    assert not action.pending


@pytest.mark.asyncio
async def test_delayed_action_cancel():
    calls = []

    async def callback():
        calls.append("ran")

    action = DelayedAction("test")
    action.schedule(0.02, callback)
    action.cancel()

    await asyncio.sleep(0.05)
    assert calls == []
    assert not action.pending


@pytest.mark.asyncio
async def test_delayed_action_reschedule_replaces():
    calls = []

    async def first():
        calls.append("first")

    async def second():
        calls.append("second")

    action = DelayedAction("test")
    action.schedule(0.02, first)
    action.schedule(0.02, second)

    await asyncio.sleep(0.06)
    assert calls == ["second"]


@pytest.mark.asyncio
async def test_delayed_action_logs_callback_errors(caplog):
    async def broken():
        raise RuntimeError("boom")

    action = DelayedAction("broken")
    action.schedule(0, broken)
    await asyncio.sleep(0.02)

    assert "Error in delayed action 'broken'" in caplog.text


@pytest.mark.asyncio
async def test_delayed_action_can_cancel_itself():
    action = DelayedAction("self")
    finished = asyncio.Event()

    async def callback():
        action.cancel()
        finished.set()

    action.schedule(0, callback)
    await asyncio.wait_for(finished.wait(), timeout=1)


@pytest.mark.asyncio
async def test_watchdog_fires_after_timeout():
    fired = []
    loop = asyncio.get_running_loop()

    async def on_expire():
        fired.append(loop.time())

    watchdog = InactivityWatchdog(0.1, on_expire)
    start = loop.time()
    watchdog.arm()
    assert watchdog.armed

    await asyncio.sleep(0.25)
    assert len(fired) == 1
    assert fired[0] - start >= 0.1
    assert not watchdog.armed


@pytest.mark.asyncio
async def test_watchdog_silent_while_activity_continues():
    """Activity more frequent than the timeout keeps the watchdog from firing"""
    fired = []

    async def on_expire():
        fired.append(True)

    watchdog = InactivityWatchdog(0.2, on_expire)
    watchdog.arm()
    for _ in range(10):
        await asyncio.sleep(0.05)
        watchdog.arm()
    assert fired == []

    # Activity stops: fires within the timeout plus a small margin
    await asyncio.sleep(0.3)
    assert fired == [True]
    watchdog.cancel()


@pytest.mark.asyncio
async def test_watchdog_cancel():
    fired = []

    async def on_expire():
        fired.append(True)

    watchdog = InactivityWatchdog(0.05, on_expire)
    watchdog.arm()
    watchdog.cancel()
    assert not watchdog.armed

    await asyncio.sleep(0.1)
    assert fired == []


@pytest.mark.asyncio
async def test_watchdog_can_rearm_from_handler():
    fired = []

    async def on_expire():
        fired.append(True)
        if len(fired) == 1:
            watchdog.arm()

    watchdog = InactivityWatchdog(0.05, on_expire)
    watchdog.arm()

    await asyncio.sleep(0.2)
    assert fired == [True, True]
