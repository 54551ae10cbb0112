"""
Tests for InteractionsCog.

Covers:
- Slash command and context menu dispatch
- Custom id routing for buttons and select menus
- Error replies
- Autocomplete of players and Hypixel guilds
"""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from lunarbridge.bot.cogs.interactions import InteractionsCog
from lunarbridge.errors import CommandError


def _make_command():
    command = MagicMock(unsafe=True)
    command.assert_permissions = AsyncMock()
    command.chat_input_run = AsyncMock()
    command.user_context_menu_run = AsyncMock()
    command.message_context_menu_run = AsyncMock()
    command.button_run = AsyncMock()
    command.select_menu_run = AsyncMock()
    command.modal_submit_run = AsyncMock()
    command.autocomplete_run = AsyncMock(return_value=[])
    return command


def _make_bot(command=None):
    bot = MagicMock()
    bot.settings.bot.command_cooldown_default = 0
    bot.application_commands.get.return_value = command
    return bot


def _make_interaction(bot, interaction_type, data):
    interaction = MagicMock(spec=discord.Interaction)
    interaction.type = interaction_type
    interaction.data = data
    interaction.client = bot
    interaction.extras = {}
    interaction.message = None
    interaction.guild_id = None
    interaction.guild = None
    interaction.channel = MagicMock()
    interaction.channel_id = 20
    interaction.created_at = discord.utils.utcnow()
    interaction.user = MagicMock()
    interaction.user.id = 1
    interaction.response.send_message = AsyncMock()
    interaction.response.autocomplete = AsyncMock()
    interaction.response.is_done = MagicMock(return_value=False)
    interaction.followup.send = AsyncMock()
    return interaction


def _cleanup(interaction):
    data = interaction.extras.get("lunarbridge")
    if data is not None and data.auto_defer is not None:
        data.auto_defer.cancel()


def _reply_content(interaction):
    interaction.response.send_message.assert_awaited_once()
    return interaction.response.send_message.call_args.kwargs["content"]


class TestCommands:
    @pytest.mark.asyncio
    async def test_chat_input(self):
        command = _make_command()
        bot = _make_bot(command)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot, discord.InteractionType.application_command, {"name": "ping", "type": 1}
        )

        await cog.on_interaction(interaction)

        bot.application_commands.get.assert_called_once_with("ping")
        command.assert_permissions.assert_awaited_once_with(interaction)
        command.assert_cooldown.assert_called_once_with(1, 0)
        command.chat_input_run.assert_awaited_once_with(interaction)
        _cleanup(interaction)

    @pytest.mark.asyncio
    async def test_user_context_menu(self):
        command = _make_command()
        bot = _make_bot(command)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot,
            discord.InteractionType.application_command,
            {"name": "info", "type": 2, "target_id": "5"},
        )
        interaction.guild = MagicMock()
        member = interaction.guild.get_member.return_value

        await cog.on_interaction(interaction)

        interaction.guild.get_member.assert_called_once_with(5)
        command.user_context_menu_run.assert_awaited_once_with(interaction, member, member)
        _cleanup(interaction)

    @pytest.mark.asyncio
    async def test_disabled_command(self):
        bot = _make_bot(None)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot, discord.InteractionType.application_command, {"name": "ping", "type": 1}
        )

        await cog.on_interaction(interaction)

        assert _reply_content(interaction) == "the `ping` command is currently disabled"
        assert interaction.response.send_message.call_args.kwargs["ephemeral"] is True
        _cleanup(interaction)

    @pytest.mark.asyncio
    async def test_command_error_is_replied(self):
        command = _make_command()
        command.assert_permissions.side_effect = CommandError("missing permissions")
        bot = _make_bot(command)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot, discord.InteractionType.application_command, {"name": "ping", "type": 1}
        )

        await cog.on_interaction(interaction)

        assert _reply_content(interaction) == "missing permissions"
        command.chat_input_run.assert_not_called()
        _cleanup(interaction)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_replied(self):
        command = _make_command()
        command.chat_input_run.side_effect = RuntimeError("boom")
        bot = _make_bot(command)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot, discord.InteractionType.application_command, {"name": "ping", "type": 1}
        )

        await cog.on_interaction(interaction)

        assert _reply_content(interaction) == "an error occurred while executing the command: boom"
        _cleanup(interaction)


class TestCustomIds:
    @pytest.mark.asyncio
    async def test_button(self):
        command = _make_command()
        bot = _make_bot(command)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot,
            discord.InteractionType.component,
            {"custom_id": "command:unpaid:reset", "component_type": 2},
        )

        await cog.on_interaction(interaction)

        bot.application_commands.get.assert_called_once_with("unpaid")
        command.assert_permissions.assert_awaited_once_with(interaction)
        command.button_run.assert_awaited_once_with(interaction, ["reset"])
        command.assert_cooldown.assert_not_called()
        _cleanup(interaction)

    @pytest.mark.asyncio
    async def test_select_menu(self):
        command = _make_command()
        bot = _make_bot(command)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot,
            discord.InteractionType.component,
            {"custom_id": "command:poll:1:2", "component_type": 3},
        )

        await cog.on_interaction(interaction)

        command.select_menu_run.assert_awaited_once_with(interaction, ["1", "2"])
        _cleanup(interaction)

    @pytest.mark.asyncio
    async def test_modal_submit(self):
        command = _make_command()
        bot = _make_bot(command)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot, discord.InteractionType.modal_submit, {"custom_id": "command:tax:amount"}
        )

        await cog.on_interaction(interaction)

        command.modal_submit_run.assert_awaited_once_with(interaction, ["amount"])
        _cleanup(interaction)

    @pytest.mark.asyncio
    async def test_confirmation_buttons_are_ignored(self):
        """Those are answered by the view that sent them."""
        bot = _make_bot(_make_command())
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot, discord.InteractionType.component, {"custom_id": "confirm:yes", "component_type": 2}
        )

        await cog.on_interaction(interaction)

        bot.application_commands.get.assert_not_called()
        assert interaction.extras == {}

    @pytest.mark.asyncio
    async def test_foreign_custom_id(self):
        bot = _make_bot(_make_command())
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot, discord.InteractionType.component, {"custom_id": "something:else", "component_type": 2}
        )

        await cog.on_interaction(interaction)

        bot.application_commands.get.assert_not_called()
        interaction.response.send_message.assert_not_called()
        _cleanup(interaction)


class TestAutocomplete:
    @staticmethod
    def _player(ign):
        player = MagicMock()
        player.ign = ign
        return player

    @pytest.mark.asyncio
    async def test_players_sorted_by_similarity(self):
        bot = _make_bot()
        hypixel_guild = MagicMock()
        hypixel_guild.guild_id = "g1"
        bot.hypixel_guilds.cache = {"g1": hypixel_guild}
        bot.players.in_guild.return_value = [self._player("Bob"), self._player("Alice")]
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot,
            discord.InteractionType.autocomplete,
            {
                "name": "promote",
                "options": [
                    {"name": "guild", "type": 3, "value": "g1"},
                    {"name": "player", "type": 3, "value": "alic", "focused": True},
                ],
            },
        )

        await cog.on_interaction(interaction)

        bot.players.in_guild.assert_called_once_with("g1")
        choices = interaction.response.autocomplete.call_args.args[0]
        assert [choice.name for choice in choices] == ["Alice", "Bob"]

    @pytest.mark.asyncio
    async def test_mention_input_is_echoed(self):
        bot = _make_bot()
        bot.hypixel_guilds.cache = {"g1": MagicMock()}
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot,
            discord.InteractionType.autocomplete,
            {
                "name": "player",
                "options": [
                    {"name": "guild", "type": 3, "value": "g1"},
                    {"name": "player", "type": 3, "value": "<@123>", "focused": True},
                ],
            },
        )

        await cog.on_interaction(interaction)

        choices = interaction.response.autocomplete.call_args.args[0]
        assert [(choice.name, choice.value) for choice in choices] == [("<@123>", "<@123>")]

    @pytest.mark.asyncio
    async def test_guilds(self):
        bot = _make_bot()
        first = MagicMock()
        first.name = "Lunar Guild"
        first.guild_id = "g1"
        second = MagicMock()
        second.name = "Other"
        second.guild_id = "g2"
        bot.hypixel_guilds.cache = {"g1": first, "g2": second}
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot,
            discord.InteractionType.autocomplete,
            {"name": "guild", "options": [{"name": "guild", "type": 3, "value": "other", "focused": True}]},
        )

        await cog.on_interaction(interaction)

        choices = interaction.response.autocomplete.call_args.args[0]
        assert [choice.value for choice in choices] == ["g2", "g1"]

    @pytest.mark.asyncio
    async def test_other_options_go_to_the_command(self):
        command = _make_command()
        choices = [discord.app_commands.Choice(name="a", value="a")]
        command.autocomplete_run.return_value = choices
        bot = _make_bot(command)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot,
            discord.InteractionType.autocomplete,
            {"name": "poll", "options": [{"name": "question", "type": 3, "value": "wh", "focused": True}]},
        )

        await cog.on_interaction(interaction)

        command.autocomplete_run.assert_awaited_once_with(interaction, "wh", "question")
        interaction.response.autocomplete.assert_awaited_once_with(choices)

    @pytest.mark.asyncio
    async def test_errors_send_empty_choices(self):
        command = _make_command()
        command.assert_permissions.side_effect = CommandError("missing permissions")
        bot = _make_bot(command)
        cog = InteractionsCog(bot)
        interaction = _make_interaction(
            bot,
            discord.InteractionType.autocomplete,
            {"name": "poll", "options": [{"name": "question", "type": 3, "value": "", "focused": True}]},
        )

        await cog.on_interaction(interaction)

        interaction.response.autocomplete.assert_awaited_once_with([])
        interaction.response.send_message.assert_not_called()
