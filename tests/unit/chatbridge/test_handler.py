"""
Tests for the in-game message handler.

Covers:
- Mute / unmute / kick notices synced into the caches
- Guild membership kept in step from join / leave notices and guild chat
- Command dispatch: unknown commands, guild only, permissions, cooldowns,
  mandatory arguments and errors
- Auto maths replies
"""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from lunarbridge.chatbridge.constants import HypixelMessageType
from lunarbridge.chatbridge.handler import handle_message
from lunarbridge.chatbridge.message import CommandData, HypixelMessage
from lunarbridge.database import ConnectionManager, Player, PlayerManager, SchemaManager
from lunarbridge.database.connection import MEMORY
from lunarbridge.errors import CommandError, CooldownError


def _make_client(owner_id=1):
    client = MagicMock()
    client.owner_id = owner_id
    client.settings.chatbridge.auto_math = True
    client.settings.bot.command_cooldown_default = 3.0
    client.players.find_by_ign.return_value = None
    client.players.sync_mute = AsyncMock()
    client.players.update = AsyncMock()
    client.players.sync_member = AsyncMock()
    client.players.remove_from_guild = AsyncMock()
    client.players.touch = AsyncMock()
    client.hypixel_guilds.update = AsyncMock()
    client.permissions.assert_ = AsyncMock()
    return client


def _make_server_message(content, client=None):
    message = MagicMock()
    message.type = None
    message.spam = False
    message.content = content
    message.client = client or _make_client()
    message.bridge.client = message.client
    message.forward_to_discord = AsyncMock()
    return message


def _make_command(**kwargs):
    command = MagicMock(unsafe=True)
    command.name = kwargs.get("name", "promote")
    command.category = kwargs.get("category", "staff")
    command.guild_only = kwargs.get("guild_only", False)
    command.args = kwargs.get("args", 0)
    command.usage_info = "/promote [`IGN`]"
    command.command_id = None
    command.required_roles.return_value = kwargs.get("required_roles", [])
    command.minecraft_run = AsyncMock()
    return command


def _make_user_message(content="!promote Bob", *, command=None, args=None, type=HypixelMessageType.GUILD, player=None):
    message = MagicMock()
    message.type = type
    message.is_user_message.return_value = True
    message.content = content
    message.client = _make_client()
    message.player = player
    message.member = None
    message.bridge.hypixel_guild = None
    message.author.ign = "Alice"
    message.author.send = AsyncMock()
    message.forward_to_discord = AsyncMock()
    message.reply = AsyncMock()
    if command is None and args is None:
        message.command_data = CommandData(name=None, command=None)
    else:
        message.command_data = CommandData(name="promote", command=command, args=args or [], prefix="!")
    return message


class TestServerMessages:
    @pytest.mark.asyncio
    async def test_mute_synced(self):
        """A mute notice stores the mute on the player record."""
        player = MagicMock()
        message = _make_server_message("[MVP+] Admin has muted [VIP] Alice for 1h")
        message.client.players.find_by_ign.return_value = player

        before = time.time()
        await handle_message(message)

        message.forward_to_discord.assert_awaited_once()
        message.client.players.find_by_ign.assert_called_with("Alice")
        synced_player, until = message.client.players.sync_mute.call_args[0]
        assert synced_player is player
        assert before + 3600 <= until <= time.time() + 3600

    @pytest.mark.asyncio
    async def test_unmute_synced(self):
        player = MagicMock()
        message = _make_server_message("Admin has unmuted Alice")
        message.client.players.find_by_ign.return_value = player

        await handle_message(message)

        message.client.players.sync_mute.assert_awaited_once_with(player, None)

    @pytest.mark.asyncio
    async def test_guild_chat_mute(self):
        """Muting the guild chat updates the guild record instead."""
        message = _make_server_message("Admin has muted the guild chat for 30m")
        hypixel_guild = message.hypixel_guild

        await handle_message(message)

        guild, = message.client.hypixel_guilds.update.call_args[0]
        assert guild is hypixel_guild
        assert message.client.hypixel_guilds.update.call_args[1]["muted_till"] > time.time()
        message.client.players.sync_mute.assert_not_called()

    @pytest.mark.asyncio
    async def test_kick_clears_guild(self):
        player = MagicMock()
        message = _make_server_message("[VIP] Alice was kicked from the guild by [MVP+] Admin!")
        message.client.players.find_by_ign.return_value = player

        await handle_message(message)

        message.client.players.remove_from_guild.assert_awaited_once_with(player)

    @pytest.mark.asyncio
    async def test_spam_notice_ignored(self):
        message = _make_server_message("You cannot say the same message twice!")
        message.spam = True

        await handle_message(message)

        message.forward_to_discord.assert_not_called()

    @pytest.mark.asyncio
    async def test_bot_left_unlinks(self):
        message = _make_server_message("You left the guild")

        await handle_message(message)

        message.bridge.unlink.assert_called_once()
        message.client.players.remove_from_guild.assert_not_called()


async def _make_linked_bridge():
    """A bridge linked to guild ``g1`` over a real in-memory player store."""
    db = ConnectionManager()
    await db.open(MEMORY)
    await SchemaManager.initialize_schema(db.connection)

    bridge = MagicMock()
    bridge.client.settings.bot.prefixes = ["!"]
    bridge.client.settings.chatbridge.auto_math = False
    bridge.client.players = PlayerManager(db)
    bridge.minecraft.bot_username = "LunarBot"
    bridge.forward_to_discord = AsyncMock()
    bridge.hypixel_guild.guild_id = "g1"
    return db, bridge


class TestGuildMembers:
    @pytest.mark.asyncio
    async def test_join_adds_player(self):
        db, bridge = await _make_linked_bridge()
        try:
            await handle_message(HypixelMessage(bridge, "[VIP] Bob joined the guild!"))

            player = bridge.client.players.find_by_ign("bob")
            assert player is not None
            assert player.ign == "Bob"
            assert player.guild_id == "g1"
            bridge.forward_to_discord.assert_awaited_once()
        finally:
            await db.close()

    @pytest.mark.asyncio
    async def test_guild_chat_adds_and_updates_player(self):
        db, bridge = await _make_linked_bridge()
        players = bridge.client.players
        try:
            await handle_message(HypixelMessage(bridge, "Guild > [VIP] Bob [Member]: hello"))

            player = players.find_by_ign("Bob")
            assert player.guild_id == "g1"
            assert player.guild_rank == "Member"
            assert player.last_activity_at is not None

            # no rank shown, the stored one is kept
            await handle_message(HypixelMessage(bridge, "Guild > Bob: hello again"))
            assert players.find_by_ign("Bob").guild_rank == "Member"

            await handle_message(HypixelMessage(bridge, "Officer > [VIP] Bob [Officer]: hi"))
            assert players.find_by_ign("Bob").guild_rank == "Officer"

            # the row was written, not only cached
            await players.load_cache()
            assert players.find_by_ign("Bob").guild_rank == "Officer"
        finally:
            await db.close()

    @pytest.mark.asyncio
    async def test_party_chat_is_not_membership(self):
        db, bridge = await _make_linked_bridge()
        try:
            await handle_message(HypixelMessage(bridge, "Party > [VIP] Bob: hello"))

            assert bridge.client.players.find_by_ign("Bob") is None
        finally:
            await db.close()

    @pytest.mark.asyncio
    async def test_unlinked_bridge_adds_nobody(self):
        db, bridge = await _make_linked_bridge()
        bridge.hypixel_guild = None
        try:
            await handle_message(HypixelMessage(bridge, "[VIP] Bob joined the guild!"))
            await handle_message(HypixelMessage(bridge, "Guild > [VIP] Bob [Member]: hello"))

            assert bridge.client.players.cache == {}
        finally:
            await db.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content",
        ["[VIP] Bob left the guild!", "[VIP] Bob was kicked from the guild by [MVP+] Admin!"],
    )
    async def test_leave_and_kick_clear_membership(self, content):
        db, bridge = await _make_linked_bridge()
        players = bridge.client.players
        try:
            await players.add(Player(ign="Bob", guild_id="g1", guild_rank="Member", discord_id=7))

            await handle_message(HypixelMessage(bridge, content))

            player = players.find_by_ign("Bob")
            assert player.guild_id is None
            assert player.guild_rank is None
            assert player.discord_id == 7
            assert players.in_guild("g1") == []
        finally:
            await db.close()


class TestCommands:
    @pytest.mark.asyncio
    async def test_runs_command(self):
        command = _make_command(args=1)
        message = _make_user_message(command=command, args=["Bob"])

        await handle_message(message)

        message.forward_to_discord.assert_awaited_once()
        command.assert_cooldown.assert_called_once_with("Alice", 3.0)
        command.minecraft_run.assert_awaited_once_with(message)

    @pytest.mark.asyncio
    async def test_unknown_command(self):
        message = _make_user_message(command=None, args=[])

        await handle_message(message)

        message.author.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_guild_only(self):
        command = _make_command(guild_only=True)
        message = _make_user_message(command=command, args=[], type=HypixelMessageType.WHISPER)

        await handle_message(message)

        message.author.send.assert_awaited_once_with("the 'promote' command can only be executed in guild chat")
        command.minecraft_run.assert_not_called()

    @pytest.mark.asyncio
    async def test_owner_commands_are_ignored(self):
        """Owner commands are dropped silently for everyone but the owner."""
        command = _make_command(category="owner")
        message = _make_user_message(command=command, args=[])

        await handle_message(message)

        message.author.send.assert_not_called()
        command.minecraft_run.assert_not_called()

    @pytest.mark.asyncio
    async def test_owner_skips_permission_checks(self):
        command = _make_command(category="owner")
        owner = MagicMock()
        owner.discord_id = 1
        message = _make_user_message(command=command, args=[], player=owner)

        await handle_message(message)

        command.minecraft_run.assert_awaited_once_with(message)

    @pytest.mark.asyncio
    async def test_missing_role(self):
        """Users who are not in the Discord server can't use role locked commands."""
        command = _make_command(required_roles=[123])
        message = _make_user_message(command=command, args=[])
        message.hypixel_guild.discord_id = 99
        message.hypixel_guild.name = "Lunar"
        message.client.get_guild.return_value = None

        await handle_message(message)

        content = message.author.send.call_args[0][0]
        assert "requires a role (123)" in content
        assert "from the Lunar Discord server" in content
        command.minecraft_run.assert_not_called()

    @pytest.mark.asyncio
    async def test_cooldown(self):
        command = _make_command()
        command.assert_cooldown.side_effect = CooldownError("promote", 2.0, "2 seconds")
        message = _make_user_message(command=command, args=[])

        await handle_message(message)

        message.author.send.assert_awaited_once_with("`promote` is on cooldown for another `2 seconds`")
        command.minecraft_run.assert_not_called()

    @pytest.mark.asyncio
    async def test_mandatory_arguments(self):
        command = _make_command(args=2)
        message = _make_user_message(command=command, args=["Bob"])

        await handle_message(message)

        content = message.author.send.call_args[0][0]
        assert content.startswith("the 'promote' command has 2 mandatory arguments")
        assert "/promote [`IGN`]" in content
        command.minecraft_run.assert_not_called()

    @pytest.mark.asyncio
    async def test_command_error_is_whispered(self):
        command = _make_command()
        command.minecraft_run.side_effect = CommandError("`Bob` is not in the guild")
        message = _make_user_message(command=command, args=[])

        await handle_message(message)

        message.author.send.assert_awaited_once_with("`Bob` is not in the guild")

    @pytest.mark.asyncio
    async def test_unexpected_error(self):
        command = _make_command()
        command.minecraft_run.side_effect = RuntimeError("boom")
        message = _make_user_message(command=command, args=[])

        await handle_message(message)

        message.author.send.assert_awaited_once_with("an error occurred while executing the command")


class TestAutoMaths:
    @pytest.mark.asyncio
    async def test_replies_with_result(self):
        message = _make_user_message("2 x 21")

        await handle_message(message)

        message.reply.assert_awaited_once_with("2x21 = 42")

    @pytest.mark.asyncio
    async def test_plain_text_ignored(self):
        message = _make_user_message("hello there")

        await handle_message(message)

        message.reply.assert_not_called()

    @pytest.mark.asyncio
    async def test_disabled(self):
        message = _make_user_message("2 x 21")
        message.client.settings.chatbridge.auto_math = False

        await handle_message(message)

        message.reply.assert_not_called()

    @pytest.mark.asyncio
    async def test_only_guild_chat(self):
        message = _make_user_message("2 x 21", type=HypixelMessageType.PARTY)

        await handle_message(message)

        message.reply.assert_not_called()
