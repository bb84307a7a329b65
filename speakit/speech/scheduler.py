"""Repeating timer on the asyncio event loop.

WHY: The synchronizer advances the highlighted word on a fixed interval
while audio plays. In the CLI and any other asyncio host the natural
timer is the event loop itself.

HOW: Each repeating timer keeps an absolute deadline and re-arms itself
with loop.call_at() before invoking the callback, so slow callbacks do
not accumulate drift and a callback may cancel its own timer.

RULES:
- Must be created and used from the thread running the event loop
- cancel() is idempotent and prevents any further callback
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Optional

from speakit.speech.base import Scheduler, TimerHandle


class _RepeatingTimer(TimerHandle):
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval_s: float,
        callback: Callable[[], None],
    ) -> None:
        self._loop = loop
        self._interval_s = interval_s
        self._callback = callback
        self._cancelled = False
        self._deadline = loop.time() + interval_s
        self._handle = loop.call_at(self._deadline, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._deadline += self._interval_s
        self._handle = self._loop.call_at(self._deadline, self._fire)
        self._callback()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop.

    Args:
        loop: Loop to schedule on. Defaults to the running loop at the
              time call_every() is first used.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle:
        if interval_s <= 0:
            raise ValueError("Timer interval must be positive, got {}".format(interval_s))
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return _RepeatingTimer(self._loop, interval_s, callback)
