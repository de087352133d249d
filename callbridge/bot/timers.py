"""
Timer handles owned by a call session.

Two kinds of timers drive a session besides its sockets:

- ``DelayedAction``: a one-shot scheduled coroutine (handshake deadline, the
  hangup that follows a closing utterance).
- ``InactivityWatchdog``: a rearmable deadline that fires once when no caller
  activity was seen for ``timeout`` seconds.

Both are explicit objects with ``cancel()`` so the session can stop them on
every transition, instead of relying on delayed callbacks that might run
against a session that already closed.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from callbridge.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

TimerCallback = Callable[[], Awaitable[None]]


def _cancel_task(task: Optional[asyncio.Task]) -> None:
    # A timer whose callback cancels its own handle must not cancel itself
    if task is not None and not task.done() and task is not asyncio.current_task():
        task.cancel()


class DelayedAction:
    """Runs a coroutine function once after a delay, unless cancelled first."""

    def __init__(self, name: str):
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, delay: float, callback: TimerCallback) -> None:
        """
        Schedule ``callback`` to run after ``delay`` seconds, replacing any
        previously scheduled run.
        """
        self.cancel()
        self._task = asyncio.create_task(self._run(delay, callback))

    async def _run(self, delay: float, callback: TimerCallback) -> None:
        await asyncio.sleep(delay)
        try:
            await callback()
        except Exception as e:
            logger.error(f"Error in delayed action '{self.name}': {e}", exc_info=True)

    def cancel(self) -> None:
        _cancel_task(self._task)
        self._task = None


class InactivityWatchdog:
    """
    Single-shot inactivity timer with a movable deadline.

    ``arm()`` pushes the deadline to ``now + timeout``; it is cheap enough to
    call on every caller audio frame. A single background task sleeps until
    the current deadline and invokes ``on_expire`` once.
    """

    def __init__(self, timeout: float, on_expire: TimerCallback):
        self.timeout = timeout
        self._on_expire = on_expire
        self._deadline: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self) -> None:
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self.timeout
        if not self.armed:
            self._task = asyncio.create_task(self._watch())

    async def _watch(self) -> None:
        loop = asyncio.get_running_loop()
        while self._deadline is not None:
            remaining = self._deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(remaining)
        if self._deadline is None:
            return
        # Fired: a later arm() starts a fresh watch
        self._deadline = None
        self._task = None
        try:
            await self._on_expire()
        except Exception as e:
            logger.error(f"Error in inactivity handler: {e}", exc_info=True)

    def cancel(self) -> None:
        self._deadline = None
        _cancel_task(self._task)
        self._task = None
