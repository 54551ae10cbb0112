"""
Commands available both as application commands and in the in-game chat.

A dual command lives in the application command collection like any other
slash command and is additionally registered in the chat bridge command
collection under its name and in-game aliases.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.commands.base import CommandContext
from lunarbridge.commands.bridge import INVISIBLE_CATEGORIES, Usage, resolve_usage, shortest_name

if TYPE_CHECKING:
    from lunarbridge.chatbridge.message import HypixelMessage


class DualCommand(ApplicationCommand):
    """
    Args:
        context: where the command was loaded from
        aliases_in_game: additional in-game names
        guild_only: in-game: only runnable from guild chat
        args: in-game: number of mandatory arguments
        usage: in-game: argument usage, or a callable building it
        **kwargs: forwarded to ``ApplicationCommand``
    """

    def __init__(
        self,
        context: CommandContext,
        *,
        aliases_in_game: list[str] | None = None,
        guild_only: bool = False,
        args: int | bool = False,
        usage: Usage | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(context, **kwargs)

        self.aliases_in_game = [alias.lower() for alias in aliases_in_game or () if alias] or None
        self.guild_only = guild_only
        self.args = args
        self._usage = usage

    @property
    def bridge_commands(self):
        return self.client.chat_bridges.commands

    @property
    def description(self) -> str | None:
        return self.slash.get("description") if self.slash else None

    @property
    def usage(self) -> str | None:
        return resolve_usage(self._usage)

    @property
    def usage_info(self) -> str:
        prefix = self.settings.bot.prefixes[0]
        return f"`{prefix}{shortest_name(self.name, self.aliases_in_game)}` {self.usage or ''}".rstrip()

    @property
    def visible(self) -> bool:
        return self.category not in INVISIBLE_CATEGORIES

    def load(self) -> DualCommand:
        bridge_commands = self.bridge_commands
        for key in (self.name, *(self.aliases_in_game or ())):
            bridge_commands[key] = self
        return super().load()

    def unload(self) -> DualCommand:
        bridge_commands = self.bridge_commands
        for key in (self.name, *(self.aliases_in_game or ())):
            if bridge_commands.get(key) is self:
                del bridge_commands[key]
        return super().unload()

    async def minecraft_run(self, hypixel_message: HypixelMessage) -> Any:
        raise NotImplementedError("no run function specified for minecraft")
