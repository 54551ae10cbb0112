"""Hot reload commands, the database caches or cooldowns."""

from __future__ import annotations

from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.commands.options import OptionType, string_option
from lunarbridge.config.logging import get_logger
from lunarbridge.errors import CommandError
from lunarbridge.util.interaction import InteractionUtil

logger = get_logger(__name__)

_REIMPORT_OPTION = {
    "type": OptionType.BOOLEAN,
    "name": "reload",
    "description": "whether to reimport the module",
    "required": False,
}


class ReloadCommand(ApplicationCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            slash={
                "description": "hot reload certain parts of the bot",
                "options": [
                    {
                        "type": OptionType.SUB_COMMAND,
                        "name": "command",
                        "description": "reload a command",
                        "options": [string_option("name", "command name", required=True), dict(_REIMPORT_OPTION)],
                    },
                    {
                        "type": OptionType.SUB_COMMAND,
                        "name": "commands",
                        "description": "reload all commands",
                        "options": [dict(_REIMPORT_OPTION)],
                    },
                    {
                        "type": OptionType.SUB_COMMAND,
                        "name": "database",
                        "description": "reload the database cache",
                    },
                    {
                        "type": OptionType.SUB_COMMAND,
                        "name": "cooldowns",
                        "description": "reset all cooldowns",
                    },
                ],
            },
            cooldown=0,
        )

    def _reload_command(self, name: str, reimport: bool) -> str:
        """Reload ``name`` from the application or the in-game command package."""
        name = name.lower()

        for collection in (self.client.application_commands, self.client.chat_bridges.commands):
            command = collection.load_by_name(name, reload=reimport)

            # autocorrect to the module of an existing command
            if command is None:
                existing = collection.get_by_name(name)
                if existing is not None:
                    command = collection.load_by_name(existing.name, reload=reimport)

            if command is not None:
                logger.info(f"[RELOAD]: {command!r}")
                return f"command `{command.name}` was reloaded successfully"

        raise CommandError(f"no command with the name or alias `{name}` found")

    async def chat_input_run(self, interaction):
        options = InteractionUtil.options(interaction)
        reimport = bool(options.get_boolean("reload"))

        if options.subcommand == "command":
            return await InteractionUtil.reply(
                interaction, self._reload_command(options.get_string("name", required=True), reimport)
            )

        if options.subcommand == "commands":
            self.client.application_commands.unload_all()
            self.client.chat_bridges.commands.unload_all()
            self.client.application_commands.load_all(reload=reimport)
            self.client.chat_bridges.load_commands(reload=reimport)
            return await InteractionUtil.reply(
                interaction,
                f"{len(self.client.application_commands.commands)} command(s) were reloaded successfully",
            )

        if options.subcommand == "database":
            await self.client.hypixel_guilds.load_cache()
            await self.client.players.load_cache()
            return await InteractionUtil.reply(interaction, "database cache reloaded successfully")

        if options.subcommand == "cooldowns":
            self.client.application_commands.clear_cooldowns()
            self.client.chat_bridges.commands.clear_cooldowns()
            return await InteractionUtil.reply(interaction, "cooldowns reset successfully")

        raise CommandError(f"unknown subcommand '{options.subcommand}'")


def setup(context) -> ReloadCommand:
    return ReloadCommand(context)
