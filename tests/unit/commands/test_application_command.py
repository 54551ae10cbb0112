"""
Tests for the command base classes.

Covers:
- Slash payload defaults: name, visibility option, default permissions, aliases
- Cooldowns
- Role permission checks for interactions
- In-game usage info and dual command registration
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from lunarbridge.commands.application import ADMINISTRATOR, ApplicationCommand
from lunarbridge.commands.base import CommandContext
from lunarbridge.commands.bridge import BridgeCommand
from lunarbridge.commands.collection import ApplicationCommandCollection, BridgeCommandCollection
from lunarbridge.commands.dual import DualCommand
from lunarbridge.commands.options import CommandType, OptionType, string_option
from lunarbridge.database.models import HypixelGuild
from lunarbridge.errors import CommandError, CooldownError, MissingPermissionsError


def _make_client(owner_id=1):
    client = MagicMock()
    client.owner_id = owner_id
    client.settings.bot.prefixes = ["!", "-"]
    client.application_commands = ApplicationCommandCollection(client, "lunarbridge.commands.builtin")
    client.chat_bridges.commands = BridgeCommandCollection(client, "lunarbridge.chatbridge.commands")
    return client


def _make_context(client=None, file_name="promote", category="staff", bridge=False):
    client = client or _make_client()
    collection = client.chat_bridges.commands if bridge else client.application_commands
    return CommandContext(client=client, collection=collection, file_name=file_name, category=category)


def _make_interaction(user_id=5, guild_id=10, role_ids=()):
    interaction = MagicMock(spec=discord.Interaction)
    interaction.user = MagicMock()
    interaction.user.id = user_id
    interaction.user.mention = f"<@{user_id}>"
    interaction.user.roles = [MagicMock(id=role_id) for role_id in role_ids]
    interaction.guild_id = guild_id
    interaction.guild = MagicMock()
    interaction.guild.name = "Lunar Discord"
    interaction.guild.get_role.return_value = None
    return interaction


def _staff_roles(hypixel_guild):
    return hypixel_guild.staff_role_ids


class TestSlashPayload:
    def test_name_from_file_and_visibility_option(self):
        command = ApplicationCommand(_make_context(category="general"), slash={"description": "promote"})

        assert command.name == "promote"
        assert command.slash["name"] == "promote"
        assert command.slash["type"] == CommandType.CHAT_INPUT
        assert [option["name"] for option in command.slash["options"]] == ["visibility"]
        assert "default_member_permissions" not in command.slash

    def test_visibility_added_to_each_subcommand(self):
        slash = {
            "description": "reload",
            "options": [
                {"type": OptionType.SUB_COMMAND, "name": "command", "description": "a", "options": []},
                {"type": OptionType.SUB_COMMAND, "name": "database", "description": "b"},
            ],
        }
        command = ApplicationCommand(_make_context(category="general"), slash=slash)

        for subcommand in command.slash["options"]:
            assert [option["name"] for option in subcommand["options"]] == ["visibility"]
        # the passed payload is left untouched
        assert "options" not in slash["options"][1]

    def test_plain_options_get_one_visibility_option(self):
        command = ApplicationCommand(
            _make_context(category="general"),
            slash={"description": "x", "options": [string_option("a", "a"), string_option("b", "b")]},
        )
        assert [option["name"] for option in command.slash["options"]] == ["a", "b", "visibility"]

    @pytest.mark.parametrize("category", ["staff", "tax", "moderation", "manager"])
    def test_admin_categories(self, category):
        command = ApplicationCommand(_make_context(category=category), slash={"description": "x"})
        assert command.slash["default_member_permissions"] == ADMINISTRATOR

    def test_required_roles_imply_admin_permissions(self):
        command = ApplicationCommand(
            _make_context(category="general"), slash={"description": "x"}, required_roles=_staff_roles
        )
        assert command.slash["default_member_permissions"] == ADMINISTRATOR

    def test_owner_commands_disabled_by_default(self):
        command = ApplicationCommand(_make_context(category="owner"), slash={"description": "x"})
        assert command.slash["default_member_permissions"] == "0"

    def test_aliases_deployed_as_copies(self):
        command = ApplicationCommand(
            _make_context(category="general"), slash={"description": "x"}, aliases=["p", ""]
        )

        assert command.aliases == ["p"]
        assert [payload["name"] for payload in command.data] == ["promote", "p"]
        assert command.data[1]["description"] == "x"

    def test_context_menus(self):
        command = ApplicationCommand(
            _make_context(category="general"), user={"name": "Promote user"}, message={}
        )

        assert command.user["type"] == CommandType.USER
        assert command.message == {"type": CommandType.MESSAGE, "name": "promote"}
        assert "Promote user" in command.aliases
        assert command.data_length is None

    def test_data_length(self):
        command = ApplicationCommand(
            _make_context(file_name="ab", category="general"),
            slash={"description": "cd", "options": [string_option("ef", "gh", choices=["ij"])]},
        )
        visibility = len("visibility") + len("visibility of the response message")
        visibility += len("everyone") * 2 + len("just me") * 2
        assert command.data_length == 2 + 2 + 2 + 2 + 4 + visibility

    def test_base_custom_id(self):
        command = ApplicationCommand(_make_context(file_name="unpaid"), slash={"description": "x"})
        assert command.base_custom_id == "command:unpaid"


class TestCooldown:
    @pytest.mark.asyncio
    async def test_second_use_rejected(self):
        command = ApplicationCommand(_make_context(), slash={"description": "x"}, cooldown=30)

        command.assert_cooldown(5, default=1)
        with pytest.raises(CooldownError, match="`promote` is on cooldown"):
            command.assert_cooldown(5, default=1)
        # other users are not affected
        command.assert_cooldown(6, default=1)

    @pytest.mark.asyncio
    async def test_default_cooldown_used(self):
        command = ApplicationCommand(_make_context(), slash={"description": "x"})

        command.assert_cooldown(5, default=30)
        with pytest.raises(CooldownError):
            command.assert_cooldown(5, default=30)

    @pytest.mark.asyncio
    async def test_zero_disables(self):
        command = ApplicationCommand(_make_context(), slash={"description": "x"}, cooldown=0)

        assert command.timestamps is None
        command.assert_cooldown(5, default=30)
        command.assert_cooldown(5, default=30)

    @pytest.mark.asyncio
    async def test_clear_cooldowns(self):
        command = ApplicationCommand(_make_context(), slash={"description": "x"}, cooldown=30)

        command.assert_cooldown(5, default=1)
        command.clear_cooldowns()
        command.assert_cooldown(5, default=1)

    @pytest.mark.asyncio
    async def test_expiry(self):
        """Entries are dropped once the cooldown passed."""
        command = ApplicationCommand(_make_context(), slash={"description": "x"}, cooldown=0.01)

        command.assert_cooldown(5, default=1)
        await asyncio.sleep(0.05)

        assert command.timestamps == {}
        command.assert_cooldown(5, default=1)


class TestAssertPermissions:
    @pytest.mark.asyncio
    async def test_owner_bypasses_everything(self):
        command = ApplicationCommand(_make_context(category="owner"), slash={"description": "x"})
        await command.assert_permissions(_make_interaction(user_id=1))

    @pytest.mark.asyncio
    async def test_owner_category(self):
        command = ApplicationCommand(_make_context(category="owner"), slash={"description": "x"})

        with pytest.raises(CommandError, match="sudoers"):
            await command.assert_permissions(_make_interaction(), hypixel_guild=None)

    @pytest.mark.asyncio
    async def test_no_requirements(self):
        command = ApplicationCommand(_make_context(), slash={"description": "x"})
        await command.assert_permissions(_make_interaction(), hypixel_guild=None)

    @pytest.mark.asyncio
    async def test_role_in_same_server(self):
        command = ApplicationCommand(_make_context(), slash={"description": "x"}, required_roles=_staff_roles)
        hypixel_guild = HypixelGuild(guild_id="g1", name="Lunar", discord_id=10, staff_role_id=100)

        await command.assert_permissions(_make_interaction(role_ids=[100]), hypixel_guild=hypixel_guild)

        with pytest.raises(MissingPermissionsError, match="missing required role"):
            await command.assert_permissions(_make_interaction(role_ids=[200]), hypixel_guild=hypixel_guild)

    @pytest.mark.asyncio
    async def test_role_checked_in_linked_server(self):
        """Interactions from other servers are checked against the member of the linked server."""
        client = _make_client()
        member = MagicMock()
        member.roles = [MagicMock(id=100)]
        discord_guild = MagicMock()
        discord_guild.get_member.return_value = member
        client.get_guild.return_value = discord_guild
        command = ApplicationCommand(_make_context(client), slash={"description": "x"}, required_roles=_staff_roles)
        hypixel_guild = HypixelGuild(guild_id="g1", name="Lunar", discord_id=10, staff_role_id=100)

        await command.assert_permissions(_make_interaction(guild_id=None), hypixel_guild=hypixel_guild)

        client.get_guild.assert_called_once_with(10)
        discord_guild.get_member.assert_called_once_with(5)

    @pytest.mark.asyncio
    async def test_not_a_member_of_linked_server(self):
        client = _make_client()
        discord_guild = MagicMock()
        discord_guild.name = "Lunar Discord"
        discord_guild.get_member.return_value = None
        discord_guild.fetch_member = AsyncMock(
            side_effect=discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown Member")
        )
        discord_guild.get_role.return_value = None
        client.get_guild.return_value = discord_guild
        command = ApplicationCommand(_make_context(client), slash={"description": "x"}, required_roles=_staff_roles)
        hypixel_guild = HypixelGuild(guild_id="g1", name="Lunar", discord_id=10, staff_role_id=100)

        with pytest.raises(MissingPermissionsError, match="unknown discord member") as exc_info:
            await command.assert_permissions(_make_interaction(guild_id=None), hypixel_guild=hypixel_guild)

        assert exc_info.value.role_ids == [100]
        assert "in Lunar Discord" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_no_hypixel_guild(self):
        command = ApplicationCommand(_make_context(), slash={"description": "x"})

        with pytest.raises(CommandError, match="unable to find a hypixel guild"):
            await command.assert_permissions(_make_interaction(), hypixel_guild=None, role_ids=[1])


class TestBridgeCommand:
    def test_usage_info_uses_shortest_name(self):
        command = BridgeCommand(
            _make_context(bridge=True, file_name="help", category="general"),
            aliases=["H", ""],
            usage="<`command`>",
        )

        assert command.aliases == ["h"]
        assert command.usage_info == "`!h` <`command`>"
        assert command.visible is True

    def test_callable_usage(self):
        command = BridgeCommand(_make_context(bridge=True, file_name="kick"), usage=lambda: "[`IGN`]")
        assert command.usage == "[`IGN`]"

    def test_hidden_categories(self):
        assert BridgeCommand(_make_context(bridge=True, category="owner")).visible is False
        assert BridgeCommand(_make_context(bridge=True, category="hidden")).visible is False

    def test_load_registers_aliases(self):
        client = _make_client()
        command = BridgeCommand(_make_context(client, bridge=True, file_name="help"), aliases=["h"])

        command.load()
        assert client.chat_bridges.commands["help"] is command
        assert client.chat_bridges.commands["h"] is command

        command.unload()
        assert dict(client.chat_bridges.commands) == {}


class TestDualCommand:
    def test_registered_in_both_collections(self):
        client = _make_client()
        command = DualCommand(
            _make_context(client),
            slash={"description": "promote a guild member"},
            aliases_in_game=["p"],
            usage="[`IGN`]",
        )

        command.load()

        assert client.application_commands["promote"] is command
        assert client.chat_bridges.commands["promote"] is command
        assert client.chat_bridges.commands["p"] is command
        assert "p" not in client.application_commands
        assert command.description == "promote a guild member"
        assert command.usage_info == "`!p` [`IGN`]"

        command.unload()

        assert dict(client.application_commands) == {}
        assert dict(client.chat_bridges.commands) == {}
