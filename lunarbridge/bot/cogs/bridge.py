"""
ChatBridgeCog — Discord side of the chat bridge.

Messages posted in a bridge channel are forwarded to the in-game guild
chat. Application command permission overrides edited in the Discord
server settings are mirrored into the PermissionsManager cache so in-game
usage of dual commands honours them as well.
"""

from __future__ import annotations

import discord
from discord.ext import commands

from lunarbridge.config.logging import get_logger
from lunarbridge.util.message import MessageUtil

logger = get_logger(__name__)


class ChatBridgeCog(commands.Cog):
    """Forwards bridge channel messages and tracks permission overrides."""

    def __init__(self, bot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        """
        Forward messages from bridge channels to in-game chat.

        Ignores:
        - Messages from bots and webhooks (including the bridge's own)
        - System messages
        - Channels that aren't linked to a bridge
        """
        if not MessageUtil.is_user_message(message):
            return

        if message.channel.id not in self.bot.chat_bridges.channel_ids:
            return

        await self.bot.chat_bridges.handle_discord_message(message)

    @commands.Cog.listener()
    async def on_raw_app_command_permissions_update(
        self,
        payload: discord.RawAppCommandPermissionsUpdateEvent,
    ) -> None:
        if payload.application_id != self.bot.application_id:
            return

        self.bot.permissions.update(
            payload.target_id,
            payload.guild.id,
            [
                {"id": permission.id, "type": permission.type.value, "permission": permission.permission}
                for permission in payload.permissions
            ],
        )
        logger.info(f"[PERMISSIONS]: updated overrides of {payload.target_id} in {payload.guild.name}")
