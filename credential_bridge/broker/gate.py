"""
One-shot gate: first-settles-wins with guaranteed single resolution.

Several producers (a push subscription, a timeout timer, a poller) may
race to settle the same wait. The gate wraps an ``asyncio.Future`` and
accepts exactly one outcome; every later ``settle``/``fail`` is a no-op
that returns False, so the loser's effect is discarded instead of
corrupting the waiter.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class OneShotGate(Generic[T]):
    """A single-assignment slot awaited by one consumer.

    Must be created while an event loop is running.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

    @property
    def settled(self) -> bool:
        """True once any outcome has been accepted."""
        return self._future.done()

    def settle(self, value: T) -> bool:
        """Offer a successful outcome. Returns True if it won the race."""
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def fail(self, exc: BaseException) -> bool:
        """Offer a failed outcome. Returns True if it won the race."""
        if self._future.done():
            return False
        self._future.set_exception(exc)
        return True

    def close(self) -> None:
        """Cancel the gate if nothing has settled it yet."""
        if not self._future.done():
            self._future.cancel()

    async def wait(self) -> T:
        """Wait for the winning outcome; raises if the winner was a failure."""
        return await asyncio.shield(self._future)


class TerminalOnce(Generic[T]):
    """Callback filter that lets through at most one terminal event.

    Non-terminal events pass through until the first terminal event;
    that one passes, and everything after it is dropped.

    Args:
        callback: Downstream event handler.
        is_terminal: Predicate marking terminal events.
    """

    def __init__(
        self,
        callback: Callable[[T], None],
        is_terminal: Callable[[T], bool],
    ) -> None:
        self._callback = callback
        self._is_terminal = is_terminal
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once a terminal event has been delivered."""
        return self._closed

    def __call__(self, event: T) -> bool:
        """Deliver event if still open. Returns True if delivered."""
        if self._closed:
            return False
        if self._is_terminal(event):
            self._closed = True
        self._callback(event)
        return True
