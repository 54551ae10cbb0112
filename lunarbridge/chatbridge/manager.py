"""
Owns every chat bridge and the in-game command collection.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from lunarbridge.chatbridge.bridge import ChatBridge
from lunarbridge.commands.collection import BridgeCommandCollection
from lunarbridge.config.logging import get_logger
from lunarbridge.errors import ChatBridgeError, CommandError

if TYPE_CHECKING:
    import discord

    from lunarbridge.chatbridge.transport import ChatTransport

logger = get_logger(__name__)

COMMANDS_PACKAGE = "lunarbridge.chatbridge.commands"


class ChatBridgeManager:
    def __init__(self, client: Any, *, bridge_count: int | None = None) -> None:
        self.client = client
        self.commands = BridgeCommandCollection(client, COMMANDS_PACKAGE)

        if bridge_count is None:
            bridge_count = 1 if client.settings.chatbridge.enabled else 0
        self.bridges = [ChatBridge(self, index) for index in range(bridge_count)]

    @property
    def channel_ids(self) -> set[int]:
        """Discord channels mirrored by a bridge."""
        return {
            bridge.hypixel_guild.chat_bridge_channel_id
            for bridge in self.bridges
            if bridge.hypixel_guild is not None and bridge.hypixel_guild.chat_bridge_channel_id is not None
        }

    def get_by_channel(self, channel_id: int | None) -> ChatBridge | None:
        if channel_id is None:
            return None
        for bridge in self.bridges:
            if bridge.hypixel_guild is not None and bridge.hypixel_guild.chat_bridge_channel_id == channel_id:
                return bridge
        return None

    def get_by_hypixel_guild(self, guild_id: str | None) -> ChatBridge | None:
        if guild_id is None:
            return None
        for bridge in self.bridges:
            if bridge.hypixel_guild is not None and bridge.hypixel_guild.guild_id == guild_id:
                return bridge
        return None

    def require(self, hypixel_guild) -> ChatBridge:
        """
        The ready bridge linked to ``hypixel_guild``.

        Raises:
            CommandError: if there is none
        """
        if hypixel_guild is None:
            raise CommandError("unable to find a hypixel guild")

        bridge = self.get_by_hypixel_guild(hypixel_guild.guild_id)
        if bridge is None or not bridge.is_ready():
            raise CommandError(f"no chat bridge for {hypixel_guild} is currently online")
        return bridge

    def load_commands(self, *, reload: bool = False) -> ChatBridgeManager:
        self.commands.load_all(reload=reload)
        return self

    async def connect(self, transports: list[ChatTransport] | None = None) -> ChatBridgeManager:
        """Connect every bridge; failures are logged, the others keep going."""

        async def connect_one(bridge: ChatBridge, transport: ChatTransport | None) -> None:
            try:
                await bridge.connect(transport)
            except (ChatBridgeError, ConnectionError, FileNotFoundError) as e:
                logger.error(f"[CHATBRIDGE]: {bridge.log_info}: unable to connect: {e}")

        transports = transports or [None] * len(self.bridges)
        await asyncio.gather(*(connect_one(bridge, transport) for bridge, transport in zip(self.bridges, transports)))
        return self

    async def disconnect(self) -> ChatBridgeManager:
        await asyncio.gather(*(bridge.disconnect() for bridge in self.bridges))
        return self

    async def handle_discord_message(self, message: discord.Message) -> bool:
        """Forward ``message`` if it was sent in a bridge channel."""
        bridge = self.get_by_channel(message.channel.id)
        if bridge is None:
            return False
        return await bridge.handle_discord_message(message)
