"""
Player store.

Players are keyed by IGN. Lookups are case-insensitive: the cache is keyed
by the lower-cased IGN and the ``ign`` column uses ``COLLATE NOCASE``.
"""

from __future__ import annotations

import time
from typing import Any

from lunarbridge.config.logging import get_logger
from lunarbridge.database.connection import ConnectionManager
from lunarbridge.database.managers.base import ModelManager
from lunarbridge.database.models import Player
from lunarbridge.util.text import autocorrect

logger = get_logger(__name__)


class PlayerManager(ModelManager[Player]):
    def __init__(self, db: ConnectionManager, autocorrect_threshold: float = 0.75) -> None:
        super().__init__(db, Player)
        self.autocorrect_threshold = autocorrect_threshold

    def _cache_key(self, key: Any) -> Any:
        return key.lower() if isinstance(key, str) else key

    def get_by_discord_id(self, discord_id: int | None) -> Player | None:
        if discord_id is None:
            return None
        for player in self.cache.values():
            if player.discord_id == discord_id:
                return player
        return None

    def get_by_uuid(self, minecraft_uuid: str | None) -> Player | None:
        if not minecraft_uuid:
            return None
        minecraft_uuid = minecraft_uuid.replace("-", "").lower()
        for player in self.cache.values():
            if player.minecraft_uuid and player.minecraft_uuid.replace("-", "").lower() == minecraft_uuid:
                return player
        return None

    def find_by_ign(self, ign: str | None) -> Player | None:
        """Exact (case-insensitive) IGN lookup."""
        if not ign:
            return None
        return self.cache.get(ign.lower())

    def get_by_ign(self, ign: str | None) -> Player | None:
        """IGN lookup that falls back to the closest cached IGN above the autocorrect threshold."""
        if not ign:
            return None

        player = self.find_by_ign(ign)
        if player:
            return player

        result = autocorrect(ign, self.cache.values(), key=lambda p: p.ign)
        if result is None or result.similarity < self.autocorrect_threshold:
            return None
        return result.value

    def in_guild(self, guild_id: str) -> list[Player]:
        return [player for player in self.cache.values() if player.guild_id == guild_id]

    async def link(self, player: Player, discord_id: int) -> Player:
        """
        Link ``player`` to a Discord account.

        A Discord account can only be linked to one player; a previous link
        of the same account is removed first.
        """
        previous = self.get_by_discord_id(discord_id)
        if previous is not None and previous is not player:
            await self.unlink(previous)

        logger.info(f"[PLAYERS]: linking {player.ign} to {discord_id}")
        return await self.update(player, discord_id=discord_id)

    async def unlink(self, player: Player) -> Player:
        logger.info(f"[PLAYERS]: unlinking {player.ign} from {player.discord_id}")
        return await self.update(player, discord_id=None)

    async def sync_member(self, ign: str, guild_id: str, guild_rank: str | None = None) -> Player:
        """
        Record ``ign`` as a member of ``guild_id``, creating the player if it is unknown.

        ``guild_rank`` is only written when given; guild chat does not always show it.
        """
        player = self.find_by_ign(ign)
        if player is None:
            logger.info(f"[PLAYERS]: adding {ign} to {guild_id}")
            return await self.add(Player(ign=ign, guild_id=guild_id, guild_rank=guild_rank))

        changes = {"guild_id": guild_id}
        if guild_rank is not None:
            changes["guild_rank"] = guild_rank
        changes = {column: value for column, value in changes.items() if getattr(player, column) != value}
        if changes:
            logger.info(f"[PLAYERS]: {player.ign}: {changes}")
        return await self.update(player, **changes)

    async def remove_from_guild(self, player: Player) -> Player:
        logger.info(f"[PLAYERS]: removing {player.ign} from {player.guild_id}")
        return await self.update(player, guild_id=None, guild_rank=None)

    async def sync_mute(self, player: Player, until: float | None) -> Player:
        """Record an in-game mute; ``None`` clears it."""
        return await self.update(player, muted_till=until or 0.0)

    async def touch(self, player: Player, now: float | None = None) -> Player:
        """Record chat activity."""
        return await self.update(player, last_activity_at=time.time() if now is None else now)

    # tax ledger

    async def set_paid(self, player: Player, amount: int, collector: str | None = None) -> Player:
        return await self.update(player, paid=True, tax_amount=amount, tax_collected_by=collector)

    async def reset_tax(self) -> int:
        """Mark every player as unpaid again. Returns the number of players reset."""
        async with self.db.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE players SET paid = 0, tax_amount = 0, tax_collected_by = NULL WHERE paid = 1"
            )
            count = cursor.rowcount

        for player in self.cache.values():
            player.paid = False
            player.tax_amount = 0
            player.tax_collected_by = None

        logger.info(f"[PLAYERS]: reset tax of {count} player(s)")
        return count

    def unpaid(self, guild_id: str | None = None) -> list[Player]:
        """Guild members who have not paid, sorted by IGN."""
        players = [
            player
            for player in self.cache.values()
            if player.in_guild and not player.paid and (guild_id is None or player.guild_id == guild_id)
        ]
        return sorted(players, key=lambda p: p.ign.lower())
