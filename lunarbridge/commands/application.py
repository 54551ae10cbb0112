"""
Application commands: slash commands and user / message context menus.

Commands are defined by raw Discord API payloads. On construction every
slash payload (or each of its subcommands) gets the ``visibility`` option
and default member permissions derived from the command's category, and
slash aliases are deployed as copies of the payload under another name.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

import discord

from lunarbridge.commands.base import BaseCommand, CommandContext, RequiredRoles
from lunarbridge.commands.options import CommandType, OptionType, visibility_option
from lunarbridge.config.logging import get_logger
from lunarbridge.errors import CommandError, MissingPermissionsError
from lunarbridge.util.guild import GuildMemberUtil, GuildUtil
from lunarbridge.util.interaction import InteractionUtil

if TYPE_CHECKING:
    from lunarbridge.database.models import HypixelGuild

logger = get_logger(__name__)

CUSTOM_ID_COMMAND = "command"

ADMINISTRATOR = str(discord.Permissions(administrator=True).value)
_ADMIN_CATEGORIES = {"staff", "moderation", "tax", "manager"}

# "not passed" marker for assert_permissions, None means "no requirements"
_DEFAULT: Any = object()


class ApplicationCommand(BaseCommand):
    """
    Args:
        context: where the command was loaded from
        slash: chat input command payload
        message: message context menu payload
        user: user context menu payload
        aliases: extra names the slash command is deployed under
        name, cooldown, required_roles: see ``BaseCommand``
    """

    def __init__(
        self,
        context: CommandContext,
        *,
        slash: dict[str, Any] | None = None,
        message: dict[str, Any] | None = None,
        user: dict[str, Any] | None = None,
        aliases: list[str] | None = None,
        name: str | None = None,
        cooldown: float | None = None,
        required_roles: RequiredRoles | None = None,
    ) -> None:
        super().__init__(context, name=name, cooldown=cooldown, required_roles=required_roles)

        self.slash: dict[str, Any] | None = None
        self.message: dict[str, Any] | None = None
        self.user: dict[str, Any] | None = None
        self.slash_aliases: list[str] | None = None

        if slash is not None:
            slash = copy.deepcopy(slash)
            slash["type"] = CommandType.CHAT_INPUT
            self._set_default_permissions(slash)

            non_empty = [alias.lower() for alias in aliases or () if alias]
            if non_empty:
                self.aliases = (self.aliases or []) + non_empty
                self.slash_aliases = non_empty

            self._set_name(slash)
            self._add_visibility_option(slash)
            self.slash = slash

        if message is not None:
            message = copy.deepcopy(message)
            message["type"] = CommandType.MESSAGE
            self._set_default_permissions(message)
            self._set_name(message)
            self.message = message

        if user is not None:
            user = copy.deepcopy(user)
            user["type"] = CommandType.USER
            self._set_default_permissions(user)
            self._set_name(user)
            self.user = user

    def _set_name(self, payload: dict[str, Any]) -> None:
        if not payload.get("name"):
            payload["name"] = self.name
        elif payload["name"] != self.name:
            self.aliases = (self.aliases or []) + [payload["name"]]

    def _set_default_permissions(self, payload: dict[str, Any]) -> None:
        if self._required_roles is not None or self.category in _ADMIN_CATEGORIES:
            payload["default_member_permissions"] = ADMINISTRATOR
        elif self.category == "owner":
            # disabled for everyone but server admins, the owner check does the rest
            payload["default_member_permissions"] = "0"

    @staticmethod
    def _add_visibility_option(slash: dict[str, Any]) -> None:
        options = slash.setdefault("options", [])

        for option in options:
            if option["type"] == OptionType.SUB_COMMAND_GROUP:
                for subcommand in option.get("options", []):
                    subcommand.setdefault("options", []).append(visibility_option())
            elif option["type"] == OptionType.SUB_COMMAND:
                option.setdefault("options", []).append(visibility_option())
            else:
                # plain options, a single visibility option on the top level
                options.append(visibility_option())
                return

        if not options:
            options.append(visibility_option())

    @property
    def base_custom_id(self) -> str:
        """Component custom id prefix routed back to this command; args follow, split by ``:``."""
        return f"{CUSTOM_ID_COMMAND}:{self.name}"

    @property
    def command_id(self) -> int | None:
        """Id Discord assigned to the deployed slash command."""
        return self.client.application_commands.ids.get(self.name)

    @property
    def data(self) -> list[dict[str, Any]]:
        """Every payload to deploy for this command."""
        data: list[dict[str, Any]] = []

        if self.slash:
            data.append(self.slash)
            for alias in self.slash_aliases or ():
                data.append({**self.slash, "name": alias})

        if self.message:
            data.append(self.message)
        if self.user:
            data.append(self.user)

        return data

    @property
    def data_length(self) -> int | None:
        """Characters counted towards Discord's 4000 per-command limit."""
        if not self.slash:
            return None

        def reduce_options(options: list[dict[str, Any]] | None) -> int:
            total = 0
            for option in options or ():
                total += len(option["name"]) + len(option.get("description", ""))
                for choice in option.get("choices") or ():
                    total += len(choice["name"]) + len(str(choice["value"]))
                total += reduce_options(option.get("options"))
            return total

        return (
            len(self.slash["name"])
            + len(self.slash.get("description", ""))
            + reduce_options(self.slash.get("options"))
        )

    async def assert_permissions(
        self,
        interaction: discord.Interaction,
        *,
        hypixel_guild: HypixelGuild | None = _DEFAULT,
        role_ids: list[int] | None = _DEFAULT,
    ) -> None:
        """
        Raise if the interaction's user may not run this command.

        Raises:
            CommandError: owner-only command used by someone else
            MissingPermissionsError: missing a required role
        """
        if interaction.user.id == self.client.owner_id:
            return

        if self.category == "owner":
            raise CommandError(
                f"{interaction.user.mention} is not in the sudoers file. This incident will be reported."
            )

        if hypixel_guild is _DEFAULT:
            hypixel_guild = InteractionUtil.get_hypixel_guild(interaction)
        if role_ids is _DEFAULT:
            role_ids = self.required_roles(hypixel_guild)

        if not role_ids:
            return

        if hypixel_guild is None:
            raise CommandError("unable to find a hypixel guild for role permissions")

        if interaction.guild_id is not None and interaction.guild_id == hypixel_guild.discord_id:
            member = interaction.user
            discord_guild = interaction.guild
        else:
            discord_guild = self.client.get_guild(hypixel_guild.discord_id) if hypixel_guild.discord_id else None
            if discord_guild is None:
                raise self._missing_permissions("discord server unreachable", None, role_ids)

            member = await GuildUtil.fetch_member(discord_guild, interaction.user.id)
            if member is None:
                raise self._missing_permissions("unknown discord member", discord_guild, role_ids)

        if not GuildMemberUtil.has_any_role(member, role_ids):
            raise self._missing_permissions("missing required role", discord_guild, role_ids)

    def _missing_permissions(
        self,
        reason: str,
        discord_guild: discord.Guild | None,
        role_ids: list[int],
    ) -> MissingPermissionsError:
        role_names = None
        if discord_guild is not None:
            role_names = [
                role.name if (role := discord_guild.get_role(role_id)) else str(role_id) for role_id in role_ids
            ]
        return MissingPermissionsError(
            reason,
            command=self.name,
            role_ids=role_ids,
            role_names=role_names,
            guild_name=discord_guild.name if discord_guild else None,
        )

    # run hooks, overridden by the commands that support the interaction type

    async def chat_input_run(self, interaction: discord.Interaction) -> Any:
        raise NotImplementedError("no run function specified for slash commands")

    async def autocomplete_run(self, interaction: discord.Interaction, value: Any, name: str) -> Any:
        raise NotImplementedError("no run function specified for autocomplete")

    async def user_context_menu_run(
        self,
        interaction: discord.Interaction,
        user: discord.User,
        member: discord.Member | None,
    ) -> Any:
        raise NotImplementedError("no run function specified for user context menus")

    async def message_context_menu_run(self, interaction: discord.Interaction, message: discord.Message) -> Any:
        raise NotImplementedError("no run function specified for message context menus")

    async def button_run(self, interaction: discord.Interaction, args: list[str]) -> Any:
        raise NotImplementedError("no run function specified for buttons")

    async def select_menu_run(self, interaction: discord.Interaction, args: list[str]) -> Any:
        raise NotImplementedError("no run function specified for select menus")

    async def modal_submit_run(self, interaction: discord.Interaction, args: list[str]) -> Any:
        raise NotImplementedError("no run function specified for modals")
