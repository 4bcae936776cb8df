"""Debouncer: coalesces bursts of edit notifications into one update cycle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


# Same shape as asyncio.AbstractEventLoop.call_later
CallLater = Callable[[float, Callable[[], None]], TimerHandle]


def _running_loop_call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Arm *callback* on the running asyncio loop of the host."""
    return asyncio.get_running_loop().call_later(delay, callback)


class Debouncer:
    """Runs *callback* once, *delay* seconds after the last :meth:`trigger`.

    Each trigger cancels a pending, not-yet-started run and re-arms the
    timer.  Once started, the callback runs to completion synchronously;
    triggers arriving while it runs schedule a fresh run afterwards.

    The timer comes from *call_later* (``loop.call_later`` compatible), so
    tests can drive it with a fake clock.
    """

    __slots__ = ("_delay", "_callback", "_call_later", "_handle", "_running")

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        call_later: CallLater | None = None,
    ) -> None:
        self._delay = delay
        self._callback = callback
        self._call_later = call_later or _running_loop_call_later
        self._handle: TimerHandle | None = None
        self._running = False

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        """Schedule a run, replacing any pending one."""
        self.cancel()
        self._handle = self._call_later(self._delay, self._fire)

    def cancel(self) -> None:
        """Drop the pending run, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> bool:
        """Run a pending callback now. Returns True if one was pending."""
        if self._handle is None:
            return False
        self.cancel()
        self._run()
        return True

    def _fire(self) -> None:
        self._handle = None
        self._run()

    def _run(self) -> None:
        if self._running:
            logger.debug("Debounced callback re-entered; rescheduling")
            self.trigger()
            return
        self._running = True
        try:
            self._callback()
        finally:
            self._running = False
