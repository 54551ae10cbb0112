"""
Tests for HypixelMessage parsing and replies.

Covers:
- Guild / officer / party / whisper lines and server messages
- Prefix, @mention and whisper command parsing
- Own message detection
- reply() routing and await_confirmation()
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lunarbridge.chatbridge.constants import HypixelMessageType
from lunarbridge.chatbridge.message import HypixelMessage
from lunarbridge.errors import CommandError


def _make_bridge(bot_username="LunarBot", command=None):
    bridge = MagicMock()
    bridge.client.settings.bot.prefixes = ["!", "-"]
    bridge.client.players.find_by_ign.return_value = None
    bridge.minecraft.bot_username = bot_username
    bridge.minecraft.whisper = AsyncMock(return_value=True)
    bridge.minecraft.pchat = AsyncMock(return_value=True)
    bridge.manager.commands.get_by_name.return_value = command
    bridge.broadcast = AsyncMock(return_value=(True, None))
    bridge.hypixel_guild = None
    return bridge


class TestParsing:
    def test_guild_message(self):
        message = HypixelMessage(_make_bridge(), "Guild > [MVP+] Alice [Officer]: hello there")
        assert message.type == HypixelMessageType.GUILD
        assert message.author.ign == "Alice"
        assert message.author.guild_rank == "Officer"
        assert message.content == "hello there"
        assert message.command_data.name is None
        assert message.is_user_message() is True

    def test_officer_and_party(self):
        assert HypixelMessage(_make_bridge(), "Officer > Alice: hi").type == HypixelMessageType.OFFICER
        assert HypixelMessage(_make_bridge(), "Party > [VIP] Alice: hi").type == HypixelMessageType.PARTY

    def test_server_message(self):
        message = HypixelMessage(_make_bridge(), "Alice joined the guild!")
        assert message.type is None
        assert message.author is None
        assert message.spam is False
        assert message.is_user_message() is False

    def test_spam_notice(self):
        assert HypixelMessage(_make_bridge(), "You cannot say the same message twice!").spam is True

    def test_prefixed_command(self):
        """A configured prefix marks a command; the name is looked up lowercased."""
        command = MagicMock()
        bridge = _make_bridge(command=command)
        message = HypixelMessage(bridge, "Guild > Alice: !Promote Bob  now")

        data = message.command_data
        assert data.name == "Promote"
        assert data.args == ["Bob", "now"]
        assert data.prefix == "!"
        assert data.command is command
        bridge.manager.commands.get_by_name.assert_called_once_with("promote")

    def test_bot_mention_prefix(self):
        message = HypixelMessage(_make_bridge(), "Guild > Alice: @LunarBot ping")
        assert message.command_data.name == "ping"
        assert message.command_data.prefix == "@LunarBot"

    def test_whisper_needs_no_prefix(self):
        message = HypixelMessage(_make_bridge(), "From [VIP] Alice: help me")
        assert message.type == HypixelMessageType.WHISPER
        assert message.command_data.name == "help"
        assert message.command_data.args == ["me"]

    def test_prefix_only_is_no_command(self):
        assert HypixelMessage(_make_bridge(), "Guild > Alice: !").command_data.name is None

    def test_own_messages_are_not_parsed(self):
        """Lines sent by the bot carry no command data and are no user messages."""
        message = HypixelMessage(_make_bridge(), "Guild > [VIP] LunarBot: !ping")
        assert message.me is True
        assert message.command_data is None
        assert message.is_user_message() is False

    def test_outgoing_whisper_is_own_message(self):
        message = HypixelMessage(_make_bridge(), "To Alice: hi")
        assert message.author.ign == "LunarBot"
        assert message.me is True

    def test_prefix_replaced_content(self):
        """The prefix and alias are replaced by the slash command name."""
        command = MagicMock()
        command.name = "promote"
        message = HypixelMessage(_make_bridge(command=command), "Guild > Alice: !p Bob")
        assert message.prefix_replaced_content == "/promote Bob"


class TestReply:
    @pytest.mark.asyncio
    async def test_guild_reply_broadcasts(self):
        bridge = _make_bridge()
        message = HypixelMessage(bridge, "Guild > Alice: !ping")

        await message.reply("pong")

        bridge.broadcast.assert_awaited_once()
        assert bridge.broadcast.call_args[0][0] == "pong"
        assert bridge.broadcast.call_args[1]["type"] == HypixelMessageType.GUILD
        bridge.minecraft.whisper.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_guild_reply_whispers(self):
        """If guild chat fails the author gets the reply as a whisper."""
        bridge = _make_bridge()
        bridge.broadcast = AsyncMock(return_value=(False, None))
        message = HypixelMessage(bridge, "Guild > Alice: !ping")

        await message.reply("pong")

        bridge.minecraft.whisper.assert_awaited_once_with("Alice", "pong")

    @pytest.mark.asyncio
    async def test_whisper_and_ephemeral_replies(self):
        bridge = _make_bridge()

        await HypixelMessage(bridge, "From Alice: ping").reply("pong")
        await HypixelMessage(bridge, "Guild > Bob: !ping").reply("secret", ephemeral=True)

        assert [call.args for call in bridge.minecraft.whisper.await_args_list] == [("Alice", "pong"), ("Bob", "secret")]
        bridge.broadcast.assert_not_called()

    @pytest.mark.asyncio
    async def test_party_reply(self):
        bridge = _make_bridge()
        await HypixelMessage(bridge, "Party > Alice: !ping").reply("pong")
        bridge.minecraft.pchat.assert_awaited_once()


class TestAwaitConfirmation:
    @pytest.mark.asyncio
    async def test_confirmed(self):
        bridge = _make_bridge()
        answer = MagicMock()
        answer.content = "Yes"
        bridge.minecraft.await_messages = AsyncMock(return_value=[answer])
        message = HypixelMessage(bridge, "From Alice: reset")

        await message.await_confirmation("sure?")

        bridge.minecraft.whisper.assert_awaited_once_with("Alice", "sure?")

    @pytest.mark.asyncio
    async def test_no_answer_raises(self):
        bridge = _make_bridge()
        bridge.minecraft.await_messages = AsyncMock(return_value=[])
        message = HypixelMessage(bridge, "From Alice: reset")

        with pytest.raises(CommandError, match="cancelled"):
            await message.await_confirmation()
