"""Discord guild and member lookups."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import discord

from lunarbridge.config.logging import get_logger

if TYPE_CHECKING:
    from lunarbridge.database.models import Player

logger = get_logger(__name__)


class GuildUtil:
    @staticmethod
    async def fetch_member(guild: discord.Guild, user_id: int) -> discord.Member | None:
        """Cached member, or fetched via REST. None if the user is not in the guild."""
        member = guild.get_member(user_id)
        if member is not None:
            return member

        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            return None
        except discord.HTTPException as e:
            logger.error(f"[GUILD FETCH MEMBER]: {user_id} in {guild.name}: {e}")
            return None


class GuildMemberUtil:
    @staticmethod
    def has_any_role(member: discord.Member, role_ids: Iterable[int]) -> bool:
        member_roles = {role.id for role in member.roles}
        return any(role_id in member_roles for role_id in role_ids)

    @staticmethod
    def get_player(client: Any, member: discord.Member | None) -> Player | None:
        if member is None:
            return None
        return client.players.get_by_discord_id(member.id)
