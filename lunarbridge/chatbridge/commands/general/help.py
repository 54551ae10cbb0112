"""In-game help: every visible command, a category or a single command."""

from __future__ import annotations

from lunarbridge.commands.bridge import BridgeCommand
from lunarbridge.util.text import comma_list_or, format_duration


def list_commands(commands) -> str:
    """``name | alias, name | alias, ...`` with duplicates removed."""
    return ", ".join(
        " | ".join([command.name, *(getattr(command, "aliases_in_game", None) or command.aliases or ())])
        for command in dict.fromkeys(commands)
    )


class HelpBridgeCommand(BridgeCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            aliases=["h"],
            description="list of all commands or info about a specific command",
            usage="<`command`|`category` name>",
            cooldown=1,
        )

    def _role_names(self, hypixel_message, role_ids: list[int]) -> str:
        hypixel_guild = hypixel_message.hypixel_guild
        discord_guild = (
            self.client.get_guild(hypixel_guild.discord_id) if hypixel_guild and hypixel_guild.discord_id else None
        )
        return comma_list_or(
            role.name if discord_guild and (role := discord_guild.get_role(role_id)) else str(role_id)
            for role_id in role_ids
        )

    def _requirements(self, hypixel_message, command, category: str | None) -> list[str]:
        required_roles = command.required_roles(hypixel_message.hypixel_guild) if command else None
        if required_roles:
            return [f"Required Roles: {self._role_names(hypixel_message, required_roles)}"]
        if category == "owner":
            return [f"Required ID: {self.client.owner_id}"]
        return []

    async def minecraft_run(self, hypixel_message):
        args = hypixel_message.command_data.args

        # default help
        if not args:
            prefixes = [*self.settings.bot.prefixes, f"@{hypixel_message.bridge.minecraft.bot_username}"]
            reply = [f"Guild chat prefix: {', '.join(prefixes)}"]
            reply.extend(
                f"{category}: {list_commands(self.collection.filter_by_category(category))}"
                for category in self.collection.visible_categories
            )
            return await hypixel_message.author.send("\n".join(reply))

        input_ = args[0].lower()

        # category help
        if input_ in self.collection.categories:
            category_commands = self.collection.filter_by_category(input_)
            reply = [f"Category: {input_}"]
            reply.extend(self._requirements(hypixel_message, category_commands[0] if category_commands else None, input_))
            reply.append(f"Commands: {list_commands(category_commands)}")
            return await hypixel_message.author.send("\n".join(reply))

        # single command help
        command = self.collection.get_by_name(input_)
        if command is None:
            return await hypixel_message.author.send(f"'{input_}' is neither a valid command nor category")

        reply = [f"Name: {command.name}"]
        aliases = getattr(command, "aliases_in_game", None) or command.aliases
        if aliases:
            reply.append(f"Aliases: {', '.join(aliases)}")
        reply.append(f"Category: {command.category}")
        reply.extend(self._requirements(hypixel_message, command, command.category))
        if command.description:
            reply.append(f"Description: {command.description}")
        if command.usage:
            reply.append(f"Usage: {command.usage_info}")
        cooldown = command.cooldown if command.cooldown is not None else self.settings.bot.command_cooldown_default
        reply.append(f"Cooldown: {format_duration(cooldown)}")

        return await hypixel_message.author.send("\n".join(reply))


def setup(context) -> HelpBridgeCommand:
    return HelpBridgeCommand(context)
