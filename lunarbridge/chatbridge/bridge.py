"""
A single chat bridge: one Minecraft account, its Hypixel guild and the
Discord channel the guild chat is mirrored to.
"""

from __future__ import annotations

import asyncio
import math
from typing import TYPE_CHECKING, Any

import discord

from lunarbridge.chatbridge.constants import (
    FORWARD_REJECTION_EMOJI,
    FORWARD_REJECTION_MESSAGE,
    ForwardRejection,
    HypixelMessageType,
)
from lunarbridge.chatbridge.handler import handle_message
from lunarbridge.chatbridge.message import HypixelMessage
from lunarbridge.chatbridge.minecraft import MinecraftChatManager
from lunarbridge.config.logging import get_logger
from lunarbridge.errors import ChatBridgeError
from lunarbridge.util.channel import ChannelUtil
from lunarbridge.util.message import MessageUtil
from lunarbridge.util.user import UserUtil

if TYPE_CHECKING:
    from lunarbridge.chatbridge.collector import HypixelMessageCollector
    from lunarbridge.chatbridge.manager import ChatBridgeManager
    from lunarbridge.chatbridge.transport import ChatTransport
    from lunarbridge.database.models import HypixelGuild

logger = get_logger(__name__)


class ChatBridge:
    def __init__(self, manager: ChatBridgeManager, index: int = 0) -> None:
        self.manager = manager
        self.client = manager.client
        self.index = index
        self.minecraft = MinecraftChatManager(self)
        self.hypixel_guild: HypixelGuild | None = None
        # unix seconds the running poll ends at, None if there is none
        self.poll_until: float | None = None

        self._collectors: set[HypixelMessageCollector] = set()
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def log_info(self) -> str:
        return f"{self.minecraft.bot_username or f'bridge #{self.index}'} | {self.hypixel_guild or 'no guild'}"

    @property
    def discord_channel(self) -> discord.abc.Messageable | None:
        if self.hypixel_guild is None or self.hypixel_guild.chat_bridge_channel_id is None:
            return None
        return self.client.get_channel(self.hypixel_guild.chat_bridge_channel_id)

    def is_enabled(self) -> bool:
        return (
            self.client.settings.chatbridge.enabled
            and self.hypixel_guild is not None
            and self.hypixel_guild.chat_bridge_enabled
        )

    def is_ready(self) -> bool:
        return self.minecraft.is_ready and self.hypixel_guild is not None

    def _spawn(self, coro) -> None:
        """Run ``coro`` in the background, keeping a reference until it is done."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    # collectors

    def add_collector(self, collector: HypixelMessageCollector) -> None:
        self._collectors.add(collector)

    def remove_collector(self, collector: HypixelMessageCollector) -> None:
        self._collectors.discard(collector)

    # connection

    async def connect(self, transport: ChatTransport | None = None) -> ChatBridge:
        await self.minecraft.connect(transport)
        return self

    async def disconnect(self) -> ChatBridge:
        self.unlink()
        self._stop_collectors()
        await self.minecraft.disconnect()
        return self

    def _stop_collectors(self) -> None:
        for collector in list(self._collectors):
            collector.stop("disconnect")

    async def handle_ready(self) -> None:
        try:
            self.link()
        except ChatBridgeError as e:
            logger.error(f"[CHATBRIDGE]: {self.log_info}: {e}")

    def handle_disconnect(self) -> None:
        self._stop_collectors()

    def link(self, guild_name: str | None = None) -> ChatBridge:
        """
        Bind the bridge to a Hypixel guild, by name or the bot's own guild.

        Raises:
            ChatBridgeError: if no matching guild is configured, or another
                bridge is already linked to it
        """
        guilds = self.client.hypixel_guilds

        if guild_name is not None:
            hypixel_guild = guilds.find_by_name(guild_name)
        else:
            bot_player = self.minecraft.bot_player
            hypixel_guild = guilds.cache.get(bot_player.guild_id) if bot_player and bot_player.guild_id else None
            if hypixel_guild is None and len(self.manager.bridges) == 1:
                hypixel_guild = guilds.main_guild

        if hypixel_guild is None:
            self.unlink()
            raise ChatBridgeError(f"no matching guild found for {guild_name or self.minecraft.bot_username}")

        linked = self.manager.get_by_hypixel_guild(hypixel_guild.guild_id)
        if linked is not None and linked is not self:
            raise ChatBridgeError(f"{hypixel_guild} is already linked to {linked.log_info}")

        self.hypixel_guild = hypixel_guild
        logger.info(f"[CHATBRIDGE]: {self.log_info}: linked")
        return self

    def unlink(self) -> ChatBridge:
        if self.hypixel_guild is not None:
            logger.info(f"[CHATBRIDGE]: {self.log_info}: unlinked")
        self.hypixel_guild = None
        return self

    # in-game -> discord

    def handle_line(self, content: str, position: str = "chat") -> HypixelMessage:
        """
        Parse an in-game line and hand it to everything listening for it.

        Collectors see the line right away; the handler runs as a background
        task so the transport keeps reading while a command waits for the
        server's response.
        """
        message = HypixelMessage(self, content, position)

        self.minecraft.collect(message)
        for collector in list(self._collectors):
            collector.handle(message)

        self._spawn(self._handle_message(message))
        return message

    async def _handle_message(self, message: HypixelMessage) -> None:
        try:
            await handle_message(message)
        except Exception:
            logger.exception(f"[CHATBRIDGE]: {self.log_info}: error handling {message!r}")

    async def forward_to_discord(self, message: HypixelMessage) -> discord.Message | None:
        if message.type not in (None, HypixelMessageType.GUILD):
            return None

        channel = self.discord_channel
        if channel is None:
            return None

        if message.author is None:
            content = message.content
        else:
            member = message.member
            name = member.display_name if member is not None else message.author.ign
            content = f"**{discord.utils.escape_markdown(name)}:** {message.prefix_replaced_content}"

        return await ChannelUtil.send(channel, content, split=True, allowed_mentions=discord.AllowedMentions.none())

    # discord -> in-game

    async def handle_discord_message(self, message: discord.Message) -> bool:
        """Forward a message from the bridge channel to guild chat."""
        if not self.is_enabled():
            return False

        if not self.is_ready():
            self.handle_forward_rejection(message, ForwardRejection.ERROR)
            return False

        content = message.content
        if message.attachments:
            content = " ".join((content, *(attachment.url for attachment in message.attachments))).strip()
        if not content:
            return False

        player = UserUtil.get_player(self.client, message.author)
        name = player.ign if player is not None else getattr(message.author, "display_name", message.author.name)

        return await self.minecraft.gchat(content, prefix=f"{name}:", discord_message=message)

    def handle_forward_rejection(self, message: discord.Message | None, reason: str) -> None:
        """React to a Discord message that could not be forwarded and tell its author why."""
        if message is None:
            return

        self._spawn(MessageUtil.react(message, FORWARD_REJECTION_EMOJI.get(reason, FORWARD_REJECTION_EMOJI["error"])))

        explanation = FORWARD_REJECTION_MESSAGE.get(reason)
        if explanation is not None:
            self._spawn(UserUtil.send_dm(message.author, f"{explanation}: {message.jump_url}"))

    # both

    async def broadcast(
        self,
        content: str,
        *,
        type: str = HypixelMessageType.GUILD,
        hypixel_message: HypixelMessage | None = None,
        discord_message: discord.Message | None = None,
        max_parts: float = math.inf,
        prefix: str = "",
    ) -> tuple[bool, discord.Message | None]:
        """
        Send ``content`` to the in-game chat of ``type`` and the Discord channel.

        Returns:
            Whether sending in-game succeeded, the Discord message
        """
        if type == HypixelMessageType.OFFICER:
            minecraft = self.minecraft.ochat(content, prefix=prefix, max_parts=max_parts, discord_message=discord_message)
        elif type == HypixelMessageType.PARTY:
            minecraft = self.minecraft.pchat(content, prefix=prefix, max_parts=max_parts)
        else:
            minecraft = self.minecraft.gchat(content, prefix=prefix, max_parts=max_parts, discord_message=discord_message)

        discord_send = self._send_to_discord(content, type, hypixel_message)
        ingame, sent = await asyncio.gather(minecraft, discord_send)
        return ingame, sent

    async def _send_to_discord(
        self,
        content: str,
        type: str,
        hypixel_message: HypixelMessage | None,
    ) -> discord.Message | None:
        if type != HypixelMessageType.GUILD:
            return None

        channel = self.discord_channel
        if channel is None:
            return None

        # the message that triggered the reply shows up first
        if hypixel_message is not None and hypixel_message.discord_message is not None:
            await asyncio.shield(hypixel_message.discord_message)

        return await ChannelUtil.send(channel, content, split=True, allowed_mentions=discord.AllowedMentions.none())

    def __repr__(self) -> str:
        return f"<ChatBridge {self.log_info}>"
