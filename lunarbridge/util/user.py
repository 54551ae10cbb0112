"""Direct messages and player lookups for Discord users."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import discord

from lunarbridge.config.logging import get_logger

if TYPE_CHECKING:
    from lunarbridge.database.models import Player

logger = get_logger(__name__)


class UserUtil:
    @staticmethod
    def get_player(client: Any, user: discord.abc.User | None) -> Player | None:
        if user is None:
            return None
        return client.players.get_by_discord_id(user.id)

    @staticmethod
    async def send_dm(
        user: discord.abc.User,
        content: str,
        *,
        reject_on_error: bool = False,
        **kwargs,
    ) -> discord.Message | None:
        if user.bot:
            message = f"{user} is a bot and can't be messaged"
            if reject_on_error:
                raise RuntimeError(message)
            logger.warning(f"[USER SEND DM]: {message}")
            return None

        try:
            return await user.send(content, **kwargs)
        except discord.Forbidden:
            if reject_on_error:
                raise
            logger.warning(f"[USER SEND DM]: {user} has DMs disabled")
            return None
        except discord.HTTPException as e:
            if reject_on_error:
                raise
            logger.error(f"[USER SEND DM]: {user}: {e}")
            return None
