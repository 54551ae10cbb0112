"""List of all commands, the commands of a category or info about a single command."""

from __future__ import annotations

from discord import app_commands

from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.commands.options import MAX_CHOICES, string_option
from lunarbridge.util.interaction import InteractionUtil
from lunarbridge.util.text import comma_list_or, format_duration, sort_by_similarity


class HelpCommand(ApplicationCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            slash={
                "description": "list of all commands or info about a specific command or category",
                "options": [string_option("command", "command or category name", autocomplete=True)],
            },
            cooldown=1,
        )

    def _command_lines(self, commands) -> str:
        return "\n".join(
            f"`/{command.name}`: {command.slash.get('description', '')}" for command in commands if command.slash
        )

    def _required_roles(self, interaction, command) -> list[str]:
        hypixel_guild = InteractionUtil.get_hypixel_guild(interaction)
        role_ids = command.required_roles(hypixel_guild) if hypixel_guild else None
        if not role_ids:
            return []

        discord_guild = self.client.get_guild(hypixel_guild.discord_id) if hypixel_guild.discord_id else None
        names = [
            role.mention if discord_guild and (role := discord_guild.get_role(role_id)) else str(role_id)
            for role_id in role_ids
        ]
        return [f"**Required Roles:** {comma_list_or(names)}"]

    async def autocomplete_run(self, interaction, value, name):
        names = [*self.collection.visible_categories, *(command.name for command in self.collection.commands)]
        if value:
            names = sort_by_similarity(value, names, key=str)
        return [app_commands.Choice(name=name_, value=name_) for name_ in names][:MAX_CHOICES]

    async def chat_input_run(self, interaction):
        input_ = InteractionUtil.options(interaction).get_string("command")

        # default help
        if not input_:
            reply = [f"**{category}**\n{self._command_lines(self.collection.filter_by_category(category))}"
                     for category in self.collection.visible_categories]
            return await InteractionUtil.reply(interaction, "\n\n".join(reply) or "no commands loaded", split=True)

        input_ = input_.lower()

        # category help
        if input_ in self.collection.categories:
            commands = self.collection.filter_by_category(input_)
            reply = [f"**Category:** {input_}"]
            if commands:
                reply.extend(self._required_roles(interaction, commands[0]))
            if input_ == "owner":
                reply.append(f"**Required ID:** {self.client.owner_id}")
            reply.append(self._command_lines(commands))
            return await InteractionUtil.reply(interaction, "\n".join(reply), split=True)

        # single command help
        command = self.collection.get_by_name(input_)
        if command is None:
            return await InteractionUtil.reply(interaction, f"`{input_}` is neither a valid command nor category")

        reply = [f"**Name:** {command.name}"]
        if command.aliases:
            reply.append(f"**Aliases:** {', '.join(command.aliases)}")
        reply.append(f"**Category:** {command.category}")
        reply.extend(self._required_roles(interaction, command))
        if command.slash and command.slash.get("description"):
            reply.append(f"**Description:** {command.slash['description']}")
        cooldown = command.cooldown if command.cooldown is not None else self.settings.bot.command_cooldown_default
        reply.append(f"**Cooldown:** {format_duration(cooldown)}")

        return await InteractionUtil.reply(interaction, "\n".join(reply))


def setup(context) -> HelpCommand:
    return HelpCommand(context)
