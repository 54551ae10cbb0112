"""
Tests for SubprocessChatTransport.

A small Python script stands in for the Minecraft client: it prints JSON
events on stdout and answers written lines, so the real pipe handling is
exercised without Node or a Minecraft account.
"""

import asyncio
import sys
from unittest.mock import MagicMock

import pytest

from lunarbridge.chatbridge.bridge import ChatBridge
from lunarbridge.chatbridge.transport import SubprocessChatTransport

CLIENT_SCRIPT = """
import json
import sys

def emit(event):
    print(json.dumps(event), flush=True)

emit({"type": "ready", "username": "LunarBot", "uuid": "0123-4567"})
print("not json", flush=True)
emit({"type": "chat", "message": "trigger", "position": "system"})

for line in sys.stdin:
    event = json.loads(line)
    if event["message"] == "/g promote Alice":
        emit({"type": "chat", "message": "[MVP+] Alice was promoted from Member to Officer", "position": "system"})
    else:
        emit({"type": "chat", "message": "echo " + event["message"], "position": "system"})
"""


def _write_client(tmp_path):
    script = tmp_path / "client.py"
    script.write_text(CLIENT_SCRIPT)
    return script


async def _wait_until(predicate, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def _make_bridge():
    client = MagicMock()
    client.settings.bot.prefixes = ["!"]
    client.settings.chatbridge.chat_delay = 0.0
    client.settings.chatbridge.max_retries = 3
    client.settings.chatbridge.ingame_response_timeout = 2.0
    client.settings.chatbridge.minecraft_username = ""
    client.players.find_by_ign.return_value = None

    manager = MagicMock()
    manager.client = client
    manager.bridges = []
    manager.commands.get_by_name.return_value = None

    bridge = ChatBridge(manager)
    bridge.minecraft.SAFE_DELAY = 0.05
    return bridge


class TestSubprocessChatTransport:
    @pytest.mark.asyncio
    async def test_missing_script(self, tmp_path):
        transport = SubprocessChatTransport(str(tmp_path / "missing.js"), on_event=None)

        with pytest.raises(FileNotFoundError):
            await transport.initialize()

    @pytest.mark.asyncio
    async def test_events_and_writes(self, tmp_path):
        events = []

        async def on_event(event):
            events.append(event)

        transport = SubprocessChatTransport(str(_write_client(tmp_path)), on_event, node_binary=sys.executable)
        await transport.initialize()
        try:
            assert transport.connected is True
            await _wait_until(lambda: len(events) >= 2)

            # the malformed line is skipped
            assert events[0] == {"type": "ready", "username": "LunarBot", "uuid": "0123-4567"}
            assert events[1]["message"] == "trigger"

            await transport.write("/gc hello")
            await _wait_until(lambda: len(events) >= 3)
            assert events[2]["message"] == "echo /gc hello"
        finally:
            await transport.shutdown()

        assert transport.connected is False
        with pytest.raises(ConnectionError):
            await transport.write("/gc hello")

    @pytest.mark.asyncio
    async def test_command_from_message_handler(self, tmp_path, monkeypatch):
        """A handler awaiting a command's response must not block reading that response."""
        bridge = _make_bridge()
        results = []

        async def handle_message(message):
            if message.content == "trigger":
                results.append(
                    await bridge.minecraft.command("g promote Alice", response_regexp=r"promoted", max=1, timeout=2)
                )

        monkeypatch.setattr("lunarbridge.chatbridge.bridge.handle_message", handle_message)

        transport = SubprocessChatTransport(
            str(_write_client(tmp_path)), bridge.minecraft._handle_event, node_binary=sys.executable
        )
        await bridge.minecraft.connect(transport)
        try:
            await _wait_until(lambda: results, timeout=5.0)

            assert bridge.minecraft.bot_username == "LunarBot"
            assert bridge.minecraft.bot_uuid == "01234567"
            assert results == ["[MVP+] Alice was promoted from Member to Officer"]
        finally:
            await bridge.minecraft.disconnect()
