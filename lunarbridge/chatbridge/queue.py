"""
FIFO lock that frees itself after a timeout.

Used to serialise in-game messages and commands: every sender ``wait()``s
for its turn and ``shift()``s when done. A holder that never shifts (a
crashed handler, a transport that stopped answering) must not stall the
chat forever, so each turn is released automatically after ``timeout``.
"""

from __future__ import annotations

import asyncio
from collections import deque

from lunarbridge.config.logging import get_logger

logger = get_logger(__name__)


class TimeoutAsyncQueue:
    def __init__(self, timeout: float = 60.0) -> None:
        self.timeout = timeout
        self._waiters: deque[asyncio.Future] = deque()
        self._locked = False
        self._turn = 0
        self._expire_handle: asyncio.TimerHandle | None = None

    @property
    def remaining(self) -> int:
        """Holder plus waiters."""
        return len(self._waiters) + (1 if self._locked else 0)

    @property
    def locked(self) -> bool:
        return self._locked

    async def wait(self) -> int:
        """
        Wait until it is the caller's turn.

        Returns:
            The turn, to pass to ``shift()``
        """
        if not self._locked:
            return self._acquire()

        future = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        try:
            turn = await future
        except asyncio.CancelledError:
            if future.done() and not future.cancelled():
                # the turn was handed over while being cancelled
                self.shift(future.result())
            else:
                self._waiters.remove(future)
            raise

        self._arm()
        return turn

    def shift(self, turn: int | None = None) -> None:
        """
        Hand the turn to the next waiter, or unlock.

        A ``turn`` other than the current one (it expired, and the queue
        moved on) is ignored.
        """
        if turn is not None and (turn != self._turn or not self._locked):
            logger.debug(f"[TIMEOUT ASYNC QUEUE]: ignoring shift of expired turn {turn}")
            return

        if self._expire_handle is not None:
            self._expire_handle.cancel()
            self._expire_handle = None

        while self._waiters:
            future = self._waiters.popleft()
            if not future.done():
                self._turn += 1
                future.set_result(self._turn)
                return

        self._locked = False

    def abort_all(self, error: BaseException) -> None:
        """Fail every waiter with ``error`` and unlock."""
        while self._waiters:
            future = self._waiters.popleft()
            if not future.done():
                future.set_exception(error)
        self.shift()

    def _acquire(self) -> int:
        self._locked = True
        self._turn += 1
        self._arm()
        return self._turn

    def _arm(self) -> None:
        if self.timeout > 0:
            self._expire_handle = asyncio.get_running_loop().call_later(self.timeout, self._expire)

    def _expire(self) -> None:
        self._expire_handle = None
        logger.error(f"[TIMEOUT ASYNC QUEUE]: timeout after {self.timeout} s")
        self.shift()
