"""
Base class shared by application (slash) commands and in-game bridge commands.

A command module exposes ``setup(context)`` which returns the command
instance; the collection builds the ``CommandContext`` from the module's
location (file name -> default command name, parent package -> category).
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lunarbridge.errors import CommandError, CooldownError
from lunarbridge.util.text import format_duration

if TYPE_CHECKING:
    from lunarbridge.commands.collection import BaseCommandCollection
    from lunarbridge.database.models import HypixelGuild

RequiredRoles = Callable[["HypixelGuild"], list[int]]


@dataclass
class CommandContext:
    client: Any
    collection: BaseCommandCollection
    file_name: str
    category: str | None


class BaseCommand:
    """
    A named, optionally cooled-down command living in a collection.

    Args:
        context: where the command was loaded from
        name: command name, defaults to the module's file name
        cooldown: seconds between two uses; ``None`` uses the configured
            default, ``0`` disables the cooldown
        required_roles: callable returning the role ids (of the Hypixel
            guild's Discord server) of which the user needs at least one
    """

    def __init__(
        self,
        context: CommandContext,
        *,
        name: str | None = None,
        cooldown: float | None = None,
        required_roles: RequiredRoles | None = None,
    ) -> None:
        self.client = context.client
        self.collection = context.collection
        self.name = (name or context.file_name).lower()
        self.category = context.category

        self.cooldown = cooldown
        self._required_roles = required_roles
        # identifier -> last use (unix seconds)
        self.timestamps: dict[Any, float] | None = {} if cooldown != 0 else None
        self.aliases: list[str] | None = None

    @property
    def settings(self):
        return self.client.settings

    def required_roles(self, hypixel_guild: HypixelGuild | None) -> list[int] | None:
        """Role ids required to run this command, ``None`` if there are no requirements."""
        if self._required_roles is None:
            return None
        if hypixel_guild is None:
            raise CommandError("unable to find a hypixel guild for role permissions")
        return self._required_roles(hypixel_guild)

    def assert_cooldown(self, identifier: Any, default: float) -> None:
        """
        Record a use by ``identifier``.

        Raises:
            CooldownError: if the previous use is less than the cooldown ago
        """
        if self.timestamps is None:
            return

        cooldown = self.cooldown if self.cooldown is not None else default
        if cooldown <= 0:
            return

        now = time.time()
        last_used = self.timestamps.get(identifier)
        if last_used is not None:
            remaining = last_used + cooldown - now
            if remaining > 0:
                raise CooldownError(self.name, remaining, format_duration(remaining))

        self.timestamps[identifier] = now
        asyncio.get_running_loop().call_later(cooldown, self._expire_cooldown, identifier, now)

    def _expire_cooldown(self, identifier: Any, used_at: float) -> None:
        # clear_cooldowns() may have replaced the entry in the meantime
        if self.timestamps is not None and self.timestamps.get(identifier) == used_at:
            del self.timestamps[identifier]

    def clear_cooldowns(self) -> BaseCommand:
        if self.timestamps is not None:
            self.timestamps.clear()
        return self

    def load(self) -> BaseCommand:
        """Register the command and its aliases in its collection."""
        self.collection[self.name] = self
        for alias in self.aliases or ():
            self.collection[alias] = self
        return self

    def unload(self) -> BaseCommand:
        """Remove the command and its aliases from its collection."""
        for key in (self.name, *(self.aliases or ())):
            if self.collection.get(key) is self:
                del self.collection[key]
        return self

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} category={self.category!r}>"
