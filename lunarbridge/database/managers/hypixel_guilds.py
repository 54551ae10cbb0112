"""Configured in-game guilds."""

from __future__ import annotations

from lunarbridge.database.connection import ConnectionManager
from lunarbridge.database.managers.base import ModelManager
from lunarbridge.database.models import HypixelGuild


class HypixelGuildManager(ModelManager[HypixelGuild]):
    def __init__(self, db: ConnectionManager) -> None:
        super().__init__(db, HypixelGuild)

    def find_by_name(self, name: str | None) -> HypixelGuild | None:
        if not name:
            return None
        name = name.lower()
        for guild in self.cache.values():
            if guild.name.lower() == name:
                return guild
        return None

    def find_by_discord_guild(self, discord_guild_id: int | None) -> HypixelGuild | None:
        if discord_guild_id is None:
            return None
        for guild in self.cache.values():
            if guild.discord_id == discord_guild_id:
                return guild
        return None

    @property
    def main_guild(self) -> HypixelGuild | None:
        """The first configured guild."""
        return next(iter(self.cache.values()), None)
