"""Commands that only exist in the in-game chat."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from lunarbridge.commands.base import BaseCommand, CommandContext, RequiredRoles

if TYPE_CHECKING:
    from lunarbridge.chatbridge.message import HypixelMessage

Usage = str | Callable[[], str]

INVISIBLE_CATEGORIES = frozenset({"hidden", "owner"})


def shortest_name(name: str, aliases: list[str] | None) -> str:
    return min([name, *(aliases or ())], key=len)


def resolve_usage(usage: Usage | None) -> str | None:
    if callable(usage):
        return usage()
    return usage or None


class BridgeCommand(BaseCommand):
    """
    Args:
        context: where the command was loaded from
        aliases: additional in-game names
        description: shown by the help command
        guild_only: only runnable from guild chat
        args: number of mandatory arguments (``True`` for at least one)
        usage: argument usage, or a callable building it
    """

    def __init__(
        self,
        context: CommandContext,
        *,
        aliases: list[str] | None = None,
        description: str | None = None,
        guild_only: bool = False,
        args: int | bool = False,
        usage: Usage | None = None,
        name: str | None = None,
        cooldown: float | None = None,
        required_roles: RequiredRoles | None = None,
    ) -> None:
        super().__init__(context, name=name, cooldown=cooldown, required_roles=required_roles)

        self.aliases = [alias.lower() for alias in aliases or () if alias] or None
        self.description = description or None
        self.guild_only = guild_only
        self.args = args
        self._usage = usage

    @property
    def usage(self) -> str | None:
        return resolve_usage(self._usage)

    @property
    def usage_info(self) -> str:
        """`<prefix><shortest name>` followed by the argument usage."""
        prefix = self.settings.bot.prefixes[0]
        return f"`{prefix}{shortest_name(self.name, self.aliases)}` {self.usage or ''}".rstrip()

    @property
    def visible(self) -> bool:
        """Whether the command shows up in help and can be autocorrected to."""
        return self.category not in INVISIBLE_CATEGORIES

    async def minecraft_run(self, hypixel_message: HypixelMessage) -> Any:
        raise NotImplementedError("no run function specified for minecraft")
