"""
Collects in-game messages matching a filter.

A collector registers itself with its chat bridge, which hands it every
parsed message. It ends when ``max`` messages were collected, ``max_processed``
were received, ``time`` passed, nothing was collected for ``idle`` seconds,
the bridge disconnected, or ``stop()`` is called. Await ``wait()`` for the
collected messages and the end reason, or iterate it with ``async for``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from lunarbridge.config.logging import get_logger

if TYPE_CHECKING:
    from lunarbridge.chatbridge.bridge import ChatBridge
    from lunarbridge.chatbridge.message import HypixelMessage

logger = get_logger(__name__)

CollectorFilter = Callable[["HypixelMessage", list["HypixelMessage"]], bool]

COLLECT = "collect"
IGNORE = "ignore"
END = "end"


class HypixelMessageCollector:
    def __init__(
        self,
        bridge: ChatBridge,
        filter: CollectorFilter | None = None,
        *,
        max: int | None = None,
        max_processed: int | None = None,
        time: float | None = None,
        idle: float | None = None,
    ) -> None:
        self.bridge = bridge
        self.filter: CollectorFilter = filter or (lambda message, collected: True)
        self.max = max
        self.max_processed = max_processed
        self.time = time
        self.idle = idle

        self.collected: list[HypixelMessage] = []
        self.received = 0
        self.ended = False

        self._end_reason: str | None = None
        self._listeners: dict[str, list[Callable[..., Any]]] = {COLLECT: [], IGNORE: [], END: []}

        loop = asyncio.get_running_loop()
        self._done: asyncio.Future = loop.create_future()
        self._timeout = loop.call_later(time, self.stop, "time") if time else None
        self._idle_timeout = loop.call_later(idle, self.stop, "idle") if idle else None

        bridge.add_collector(self)

    def on(self, event: str, listener: Callable[..., Any]) -> HypixelMessageCollector:
        """
        ``collect`` / ``ignore`` listeners get the message, ``end`` listeners
        the collected messages and the reason.
        """
        self._listeners[event].append(listener)
        return self

    def off(self, event: str, listener: Callable[..., Any]) -> HypixelMessageCollector:
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)
        return self

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception:
                logger.exception(f"[HYPIXEL MESSAGE COLLECTOR]: {event} listener")

    @property
    def end_reason(self) -> str | None:
        if self.max and len(self.collected) >= self.max:
            return "limit"
        if self.max_processed and self.received >= self.max_processed:
            return "processedLimit"
        return self._end_reason

    def handle(self, message: HypixelMessage) -> None:
        """Called by the bridge for every parsed message."""
        if self.ended:
            return

        self.received += 1

        if self.filter(message, self.collected):
            self.collected.append(message)
            self._emit(COLLECT, message)

            if self._idle_timeout is not None:
                self._idle_timeout.cancel()
                self._idle_timeout = asyncio.get_running_loop().call_later(self.idle, self.stop, "idle")
        else:
            self._emit(IGNORE, message)

        self.check_end()

    def check_end(self) -> bool:
        if self.ended:
            return True
        reason = self.end_reason
        if reason:
            self.stop(reason)
        return bool(reason)

    def stop(self, reason: str = "user") -> None:
        if self.ended:
            return

        for handle in (self._timeout, self._idle_timeout):
            if handle is not None:
                handle.cancel()
        self._timeout = self._idle_timeout = None

        self._end_reason = reason
        self.ended = True
        self.bridge.remove_collector(self)

        self._emit(END, self.collected, reason)
        if not self._done.done():
            self._done.set_result((self.collected, reason))

    async def wait(self) -> tuple[list[HypixelMessage], str]:
        """Collected messages and the end reason, once the collector ended."""
        return await asyncio.shield(self._done)

    async def __aiter__(self):
        queue: asyncio.Queue = asyncio.Queue()

        def on_collect(message: HypixelMessage) -> None:
            queue.put_nowait(message)

        def on_end(collected: list[HypixelMessage], reason: str) -> None:
            queue.put_nowait(None)

        self.on(COLLECT, on_collect)
        self.on(END, on_end)
        if self.ended:
            queue.put_nowait(None)

        try:
            while (message := await queue.get()) is not None:
                yield message
        finally:
            self.off(COLLECT, on_collect)
            self.off(END, on_end)
