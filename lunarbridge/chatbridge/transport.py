"""
Transports connecting a chat bridge to a Minecraft client.

The bot doesn't speak the Minecraft protocol itself. A transport wraps an
external client and exchanges chat lines with it; the bridge only sees
decoded events:

    {"type": "ready", "username": "...", "uuid": "..."}
    {"type": "chat", "message": "...", "position": "chat" | "system"}
    {"type": "end", "reason": "..."}

and writes ``{"type": "chat", "message": "..."}`` to send a line.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from lunarbridge.config.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class ChatTransport(ABC):
    """
    Abstract base class for Minecraft chat transports.

    Transports provide a uniform interface for sending and receiving chat
    lines, whether they wrap a client subprocess or an in-process test double.
    """

    def __init__(self, on_event: EventHandler) -> None:
        self.on_event = on_event

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether lines can currently be written."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Start the client and begin delivering events.

        Raises:
            FileNotFoundError: If the client script doesn't exist
            ConnectionError: If the client could not be started
        """
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """Stop the client and release its resources."""
        pass

    @abstractmethod
    async def write(self, message: str) -> None:
        """
        Send a chat line (a message or a ``/command``).

        Raises:
            ConnectionError: If the transport is not connected
        """
        pass


class SubprocessChatTransport(ChatTransport):
    """
    Runs a Minecraft client script and talks JSON lines over its stdio.

    stdout carries events, stderr is forwarded to the log.
    """

    SHUTDOWN_TIMEOUT = 5.0

    def __init__(self, script_path: str, on_event: EventHandler, *, node_binary: str = "node") -> None:
        """Initialize the transport.

        Args:
            script_path: Path to the client script (index.js)
            on_event: Coroutine called with every decoded event
            node_binary: Executable running the script
        """
        super().__init__(on_event)
        self._script_path = script_path
        self._node_binary = node_binary
        self._process: asyncio.subprocess.Process | None = None
        self._reader_tasks: list[asyncio.Task] = []

    @property
    def connected(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def initialize(self) -> None:
        """Spawn the client subprocess."""
        script_path = Path(self._script_path)
        if not script_path.exists():
            raise FileNotFoundError(f"Minecraft client not found at: {script_path}")

        try:
            self._process = await asyncio.create_subprocess_exec(
                self._node_binary,
                str(script_path),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConnectionError(f"unable to start '{self._node_binary} {script_path}': {e}") from e

        self._reader_tasks = [
            asyncio.create_task(self._read_events(self._process.stdout)),
            asyncio.create_task(self._read_stderr(self._process.stderr)),
        ]
        logger.info(f"[TRANSPORT]: started Minecraft client (pid {self._process.pid})")

    async def _read_events(self, stream: asyncio.StreamReader) -> None:
        while line := await stream.readline():
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"[TRANSPORT]: ignoring malformed line {line[:100]!r}")
                continue

            try:
                await self.on_event(event)
            except Exception:
                logger.exception(f"[TRANSPORT]: error handling {event.get('type')} event")

        # stdout closed -> the client exited
        await self.on_event({"type": "end", "reason": "process exited"})

    @staticmethod
    async def _read_stderr(stream: asyncio.StreamReader) -> None:
        while line := await stream.readline():
            logger.warning(f"[TRANSPORT STDERR]: {line.decode(errors='replace').rstrip()}")

    async def write(self, message: str) -> None:
        if not self.connected:
            raise ConnectionError("Minecraft client is not running")

        payload = json.dumps({"type": "chat", "message": message}) + "\n"
        self._process.stdin.write(payload.encode())
        await self._process.stdin.drain()

    async def shutdown(self) -> None:
        """Terminate the client subprocess."""
        if self._process is None:
            return  # never started or already shut down

        process, self._process = self._process, None

        for task in self._reader_tasks:
            task.cancel()
        self._reader_tasks = []

        if process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), self.SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("[TRANSPORT]: client did not exit in time, killing it")
                process.kill()
                await process.wait()

        logger.info("[TRANSPORT]: Minecraft client stopped")
