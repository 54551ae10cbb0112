"""
InteractionsCog — routes every interaction to the command framework.

Slash commands and context menus are looked up by name in the application
command collection; buttons, select menus and modals by the
``command:<name>:<args...>`` custom id. Role permissions are asserted for
all of them, cooldowns for commands only. Errors end up as an ephemeral
reply: ``CommandError`` with its own message, anything else generically.

Autocomplete for the shared ``player`` / ``target`` / ``guild`` options is
answered here; other options are passed to the command.
"""

from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from lunarbridge.commands.application import CUSTOM_ID_COMMAND
from lunarbridge.commands.options import MAX_CHOICES, CommandType
from lunarbridge.config.logging import get_logger
from lunarbridge.errors import CommandError
from lunarbridge.util.guild import GuildMemberUtil
from lunarbridge.util.interaction import CUSTOM_ID_CONFIRM, InteractionUtil
from lunarbridge.util.text import sort_by_similarity

logger = get_logger(__name__)

# discord.ComponentType.button
_BUTTON = 2


def _choices(pairs) -> list[app_commands.Choice]:
    return [app_commands.Choice(name=name, value=value) for name, value in pairs][:MAX_CHOICES]


class InteractionsCog(commands.Cog):
    """Dispatches interactions to application commands."""

    def __init__(self, bot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction) -> None:
        try:
            if interaction.type == discord.InteractionType.autocomplete:
                await self._handle_autocomplete(interaction)
                return

            if interaction.type == discord.InteractionType.component:
                custom_id = (interaction.data or {}).get("custom_id", "")
                # answered by the view that sent the buttons
                if custom_id.startswith(f"{CUSTOM_ID_CONFIRM}:"):
                    return

            InteractionUtil.add(interaction)

            if interaction.type == discord.InteractionType.application_command:
                await self._handle_command(interaction)
            elif interaction.type in (discord.InteractionType.component, discord.InteractionType.modal_submit):
                await self._handle_custom_id(interaction)
            else:
                raise CommandError(f"unknown interaction type '{interaction.type}'")

        except CommandError as e:
            logger.error(f"[INTERACTION CREATE]: {InteractionUtil.log_info(interaction)}: {e}")
            await self._reply_error(interaction, str(e))

        except Exception as e:
            logger.exception(f"[INTERACTION CREATE]: {InteractionUtil.log_info(interaction)}")
            if InteractionUtil.is_interaction_error(e):
                return  # interaction expired
            await self._reply_error(interaction, f"an error occurred while executing the command: {e}")

    async def _reply_error(self, interaction: discord.Interaction, content: str) -> None:
        if interaction.type == discord.InteractionType.autocomplete:
            # send empty choices
            if not interaction.response.is_done():
                try:
                    await interaction.response.autocomplete([])
                except discord.HTTPException as e:
                    logger.error(f"[INTERACTION CREATE]: {e} {InteractionUtil.log_info(interaction)}")
            return

        await InteractionUtil.reply(
            interaction,
            content,
            ephemeral=True,
            allowed_mentions=discord.AllowedMentions.none(),
        )

    def _get_command(self, name: str | None):
        command = self.bot.application_commands.get(name) if name else None
        if command is None:
            if name:
                raise CommandError(f"the `{name}` command is currently disabled")
            raise CommandError("unknown command")
        return command

    async def _handle_command(self, interaction: discord.Interaction) -> None:
        data = interaction.data or {}
        logger.info(f"[INTERACTION CREATE]: {InteractionUtil.log_info(interaction)}")

        command = self._get_command(data.get("name"))

        # role permissions
        await command.assert_permissions(interaction)

        # command cooldowns
        command.assert_cooldown(interaction.user.id, self.bot.settings.bot.command_cooldown_default)

        command_type = data.get("type", CommandType.CHAT_INPUT)

        if command_type == CommandType.CHAT_INPUT:
            await command.chat_input_run(interaction)

        elif command_type == CommandType.USER:
            target_id = int(data["target_id"])
            member = interaction.guild.get_member(target_id) if interaction.guild else None
            user = member or self.bot.get_user(target_id) or await self.bot.fetch_user(target_id)
            await command.user_context_menu_run(interaction, user, member)

        elif command_type == CommandType.MESSAGE:
            target_id = int(data["target_id"])
            message = discord.utils.get(self.bot.cached_messages, id=target_id)
            if message is None:
                message = await interaction.channel.fetch_message(target_id)
            await command.message_context_menu_run(interaction, message)

        else:
            logger.error(f"[HANDLE CONTEXT MENU]: unknown target type: {command_type}")

    async def _handle_custom_id(self, interaction: discord.Interaction) -> None:
        data = interaction.data or {}
        logger.info(f"[INTERACTION CREATE]: {InteractionUtil.log_info(interaction)}")

        args = data.get("custom_id", "").split(":")
        if args.pop(0) != CUSTOM_ID_COMMAND:
            return

        command = self._get_command(args.pop(0) if args else None)

        # role permissions
        await command.assert_permissions(interaction)

        if interaction.type == discord.InteractionType.modal_submit:
            await command.modal_submit_run(interaction, args)
        elif data.get("component_type") == _BUTTON:
            await command.button_run(interaction, args)
        else:
            await command.select_menu_run(interaction, args)

    async def _handle_autocomplete(self, interaction: discord.Interaction) -> None:
        name, value = InteractionUtil.options(interaction).get_focused()
        value = str(value or "")

        if name in ("player", "target"):
            await interaction.response.autocomplete(self._player_choices(interaction, name, value))
            return

        if name == "guild":
            guilds = list(self.bot.hypixel_guilds.cache.values())
            if value:
                guilds = sort_by_similarity(value, guilds, key=lambda guild: guild.name)
            await interaction.response.autocomplete(_choices((guild.name, guild.guild_id) for guild in guilds))
            return

        command = self.bot.application_commands.get((interaction.data or {}).get("name", ""))
        if command is None:
            await interaction.response.autocomplete([])
            return

        # role permissions
        await command.assert_permissions(interaction)

        choices = await command.autocomplete_run(interaction, value, name)
        await interaction.response.autocomplete(choices)

    def _player_choices(self, interaction: discord.Interaction, name: str, value: str) -> list[app_commands.Choice]:
        hypixel_guild = InteractionUtil.get_hypixel_guild(interaction)
        players = self.bot.players.in_guild(hypixel_guild.guild_id) if hypixel_guild else []

        # no value yet -> don't sort
        if not value:
            return _choices((player.ign, player.ign) for player in players)

        # <@id> input
        if value.startswith("<"):
            return _choices([(value, value)])

        # @display name input
        if value.startswith("@"):
            discord_guild = (
                self.bot.get_guild(hypixel_guild.discord_id) if hypixel_guild and hypixel_guild.discord_id else None
            )
            if discord_guild is None:
                return []

            pairs = []
            for member in discord_guild.members:
                player = GuildMemberUtil.get_player(self.bot, member)
                if player is not None:
                    pairs.append((member.display_name, player.ign))

            if value != "@":
                pairs = sort_by_similarity(value[1:], pairs, key=lambda pair: pair[0])
            return _choices(pairs)

        # the whole guild, e.g. for mute
        if name == "target" and value.lower() in ("guild", "everyone"):
            return _choices([("everyone", "everyone")])

        return _choices((player.ign, player.ign) for player in sort_by_similarity(value, players, key=lambda p: p.ign))
