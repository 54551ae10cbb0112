"""Reacting to, editing and deleting Discord messages without raising on missing permissions."""

from __future__ import annotations

import discord

from lunarbridge.config.logging import get_logger
from lunarbridge.util.channel import MAX_MESSAGE_LENGTH, ChannelUtil

logger = get_logger(__name__)


class MessageUtil:
    @staticmethod
    def channel_log_info(message: discord.Message) -> str:
        return ChannelUtil.log_info(message.channel)

    @staticmethod
    def is_ephemeral(message: discord.Message) -> bool:
        return message.flags.ephemeral

    @staticmethod
    def is_user_message(message: discord.Message) -> bool:
        """Sent by a non-bot user account (no webhook, no system message)."""
        return not message.author.bot and message.webhook_id is None and not message.is_system()

    @staticmethod
    def _is_own(message: discord.Message) -> bool:
        me = message.guild.me if message.guild is not None else message.channel.me
        return message.author.id == me.id

    @classmethod
    async def react(cls, message: discord.Message | None, *emojis: str) -> list[discord.Reaction | str]:
        """React with ``emojis`` in order, logging instead of raising on failure."""
        if message is None or cls.is_ephemeral(message):
            return []

        required = discord.Permissions(add_reactions=True, view_channel=True, read_message_history=True)
        if ChannelUtil.missing_permissions(ChannelUtil.bot_permissions(message.channel), required):
            logger.warning(f"[MESSAGE REACT]: missing permissions to react in {cls.channel_log_info(message)}")
            return []

        reacted: list[discord.Reaction | str] = []
        try:
            for emoji in emojis:
                existing = next((r for r in message.reactions if str(r.emoji) == emoji and r.me), None)
                if existing is None:
                    await message.add_reaction(emoji)
                reacted.append(existing or emoji)
        except discord.HTTPException as e:
            logger.error(f"[MESSAGE REACT]: in {cls.channel_log_info(message)}: {e}")

        return reacted

    @classmethod
    async def edit(
        cls,
        message: discord.Message,
        content: str,
        *,
        reject_on_error: bool = False,
        **kwargs,
    ) -> discord.Message:
        """Edit one of the bot's messages; returns the unchanged message on failure."""
        def fail(reason: str) -> discord.Message:
            if reject_on_error:
                raise RuntimeError(reason)
            logger.warning(f"[MESSAGE EDIT]: {reason} in {cls.channel_log_info(message)}")
            return message

        if not cls._is_own(message):
            return fail("missing permissions to edit message")

        if len(content) > MAX_MESSAGE_LENGTH:
            return fail(f"content length {len(content)} > {MAX_MESSAGE_LENGTH}")

        try:
            return await message.edit(content=content, **kwargs)
        except discord.HTTPException as e:
            if reject_on_error:
                raise
            logger.error(f"[MESSAGE EDIT]: in {cls.channel_log_info(message)}: {e}")
            return message

    @classmethod
    async def delete(cls, message: discord.Message) -> discord.Message:
        if not cls._is_own(message) and not ChannelUtil.bot_permissions(message.channel).manage_messages:
            logger.warning(f"[MESSAGE DELETE]: missing permissions to delete message in {cls.channel_log_info(message)}")
            return message

        try:
            await message.delete()
        except discord.NotFound:
            # already deleted
            pass
        except discord.HTTPException as e:
            logger.error(f"[MESSAGE DELETE]: in {cls.channel_log_info(message)}: {e}")
        return message
