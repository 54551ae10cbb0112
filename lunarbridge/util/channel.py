"""
Sending to Discord channels with permission checks.

Failures are logged and reported as ``None`` unless ``reject_on_error`` is
set, so fire-and-forget callers (chat bridge forwarding, poll results) don't
have to wrap every send.
"""

from __future__ import annotations

import discord

from lunarbridge.config.logging import get_logger
from lunarbridge.util.text import comma_list_or, format_duration, split_message

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 2000


class ChannelUtil:
    DEFAULT_SEND_PERMISSIONS = discord.Permissions(view_channel=True, send_messages=True)

    @staticmethod
    def log_info(channel: discord.abc.Messageable | None) -> str:
        if channel is None:
            return "unknown channel"
        guild = getattr(channel, "guild", None)
        name = getattr(channel, "name", None)
        if guild is not None:
            return f"#{name} | {guild.name}"
        return f"DM channel {getattr(channel, 'id', '?')}"

    @staticmethod
    def bot_permissions(channel: discord.abc.Messageable) -> discord.Permissions:
        """The bot's permissions in ``channel``; DMs allow everything text related."""
        guild = getattr(channel, "guild", None)
        if guild is None:
            return discord.Permissions.text()
        return channel.permissions_for(guild.me)

    @staticmethod
    def missing_permissions(permissions: discord.Permissions, required: discord.Permissions) -> list[str]:
        return [name for name, value in required if value and not getattr(permissions, name)]

    @classmethod
    async def send(
        cls,
        channel: discord.abc.Messageable,
        content: str,
        *,
        split: bool = False,
        reference: discord.Message | None = None,
        reject_on_error: bool = False,
        **kwargs,
    ) -> discord.Message | None:
        """
        Send ``content``, splitting it into several messages if ``split`` is set.

        Returns:
            The (last) sent message, None if sending failed
        """
        def fail(message: str) -> None:
            if reject_on_error:
                raise RuntimeError(message)
            logger.warning(f"[CHANNEL SEND]: {message}")

        if len(content) > MAX_MESSAGE_LENGTH and not split:
            fail(f"content length {len(content)} > {MAX_MESSAGE_LENGTH}")
            return None

        required = discord.Permissions(cls.DEFAULT_SEND_PERMISSIONS.value)
        if reference is not None:
            required.read_message_history = True
        if kwargs.get("embeds") or kwargs.get("embed"):
            required.embed_links = True
        if kwargs.get("files") or kwargs.get("file"):
            required.attach_files = True

        missing = cls.missing_permissions(cls.bot_permissions(channel), required)
        if missing:
            names = [f"'{name}'" for name in missing]
            fail(
                f"missing {comma_list_or(names)} permission{'s' if len(names) != 1 else ''} "
                f"in {cls.log_info(channel)}"
            )
            return None

        guild = getattr(channel, "guild", None)
        if guild is not None and guild.me.is_timed_out():
            remaining = (guild.me.timed_out_until - discord.utils.utcnow()).total_seconds()
            fail(f"bot timed out in '{guild.name}' for {format_duration(remaining)}")
            return None

        message = None
        try:
            for part in split_message(content, MAX_MESSAGE_LENGTH) if split else [content]:
                message = await channel.send(part, reference=reference, **kwargs)
                # attachments and the reply go with the first part only
                reference = None
                kwargs = {}
        except discord.HTTPException as e:
            if reject_on_error:
                raise
            logger.error(f"[CHANNEL SEND]: in {cls.log_info(channel)}: {e}")
            return None

        return message
