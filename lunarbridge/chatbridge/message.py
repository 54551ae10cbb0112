"""
Parsed in-game chat lines.

A line is either a user message (guild, officer or party chat, or a
whisper) with an author, or a server message (command responses, join and
leave notifications, anti spam warnings) without one. User messages that
start with a configured prefix, or with ``@<bot ign>``, carry command data.
"""

from __future__ import annotations

import asyncio
import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from lunarbridge.chatbridge.constants import (
    INVISIBLE_CHARACTER_REGEXP,
    REPLY_CONFIRMATION,
    HypixelMessageType,
)
from lunarbridge.chatbridge.responses import spam_messages
from lunarbridge.errors import CommandError

if TYPE_CHECKING:
    import discord

    from lunarbridge.chatbridge.bridge import ChatBridge
    from lunarbridge.database.models import HypixelGuild, Player

USER_MESSAGE_REGEXP = re.compile(
    r"^(?:(?P<type>Guild|Officer|Party) > |(?P<whisper>From|To) )"
    r"(?:\[.+?\] )?(?P<ign>\w+)(?: \[(?P<guild_rank>\w+)\])?: "
)

_ARGS_SPLIT = re.compile(r" +")


@dataclass
class CommandData:
    name: str | None
    command: Any
    args: list[str] = field(default_factory=list)
    prefix: str | None = None


class HypixelMessageAuthor:
    """The sender of a user message."""

    def __init__(self, bridge: ChatBridge, ign: str, guild_rank: str | None = None) -> None:
        self.bridge = bridge
        self.ign = ign
        self.guild_rank = guild_rank

    @property
    def player(self) -> Player | None:
        return self.bridge.client.players.find_by_ign(self.ign)

    @property
    def member(self) -> discord.Member | None:
        player = self.player
        hypixel_guild = self.bridge.hypixel_guild
        if player is None or player.discord_id is None or hypixel_guild is None or hypixel_guild.discord_id is None:
            return None
        discord_guild = self.bridge.client.get_guild(hypixel_guild.discord_id)
        return discord_guild.get_member(player.discord_id) if discord_guild is not None else None

    async def send(self, content: str, **kwargs: Any) -> bool:
        """Whisper ``content`` to the author."""
        return await self.bridge.minecraft.whisper(self.ign, content, **kwargs)

    def __str__(self) -> str:
        return self.ign


class HypixelMessage:
    def __init__(self, bridge: ChatBridge, content: str, position: str = "chat") -> None:
        self.bridge = bridge
        self.position = position
        self.raw_content = content
        self.cleaned_content = INVISIBLE_CHARACTER_REGEXP.sub("", content).strip()
        self.command_data: CommandData | None = None
        self.discord_message: asyncio.Future | None = None

        matched = USER_MESSAGE_REGEXP.match(self.cleaned_content)

        if matched is None:
            self.type: str | None = None
            self.author: HypixelMessageAuthor | None = None
            self.content = self.cleaned_content
            self.spam = bool(spam_messages.search(self.content))
            return

        if matched["type"]:
            self.type = matched["type"].upper()
        else:
            self.type = HypixelMessageType.WHISPER

        if matched["whisper"] == "To":
            # the bot's own outgoing whisper
            self.author = HypixelMessageAuthor(bridge, bridge.minecraft.bot_username or matched["ign"])
        else:
            self.author = HypixelMessageAuthor(bridge, matched["ign"], matched["guild_rank"])

        self.content = self.cleaned_content[matched.end():].lstrip()
        self.spam = False

        # sent by the bot, don't parse input
        if self.me:
            return

        self.command_data = self._parse_command()

    def _parse_command(self) -> CommandData:
        prefixes = [re.escape(prefix) for prefix in self.bridge.client.settings.bot.prefixes]
        if self.bridge.minecraft.bot_username:
            prefixes.append(f"@{re.escape(self.bridge.minecraft.bot_username)}")

        prefix_matched = re.match(f"^(?:{'|'.join(prefixes)})", self.content, re.IGNORECASE) if prefixes else None
        prefix = prefix_matched.group(0) if prefix_matched else None

        args = [arg for arg in _ARGS_SPLIT.split(self.content[len(prefix or ""):].strip()) if arg]
        name = args.pop(0) if args else None

        # no command, only a ping or a prefix
        if (prefix is None and self.type != HypixelMessageType.WHISPER) or not name:
            return CommandData(name=None, command=None, args=args)

        return CommandData(
            name=name,
            command=self.bridge.manager.commands.get_by_name(name.lower()),
            args=args,
            prefix=prefix,
        )

    @property
    def client(self):
        return self.bridge.client

    @property
    def log_info(self) -> str:
        return self.author.ign if self.author else "unknown author"

    @property
    def me(self) -> bool:
        if self.author is None:
            return False
        return self.author.ign == self.bridge.minecraft.bot_username

    @property
    def player(self) -> Player | None:
        return self.author.player if self.author else None

    @property
    def member(self) -> discord.Member | None:
        return self.author.member if self.author else None

    @property
    def hypixel_guild(self) -> HypixelGuild | None:
        if self.bridge.hypixel_guild is not None:
            return self.bridge.hypixel_guild
        player = self.player
        if player is None or player.guild_id is None:
            return None
        return self.client.hypixel_guilds.cache.get(player.guild_id)

    @property
    def prefix_replaced_content(self) -> str:
        """Content with the in-game prefix and alias replaced by ``/<command name>``."""
        data = self.command_data
        if data is None or data.command is None:
            return self.content
        return self.content.replace(data.prefix or "", "/", 1).replace(data.name, data.command.name, 1)

    async def forward_to_discord(self) -> discord.Message | None:
        """Mirror the message to the bridge channel; ``discord_message`` resolves to the sent message."""
        self.discord_message = asyncio.ensure_future(self.bridge.forward_to_discord(self))
        return await asyncio.shield(self.discord_message)

    def is_user_message(self) -> bool:
        return self.type is not None and not self.me

    async def reply(self, content: str, *, ephemeral: bool = False, **kwargs: Any) -> Any:
        """Answer in the channel the message was sent in, ``ephemeral`` whispers instead."""
        if ephemeral:
            return await self.author.send(content, **kwargs)

        if self.type in (HypixelMessageType.GUILD, HypixelMessageType.OFFICER):
            result = await self.bridge.broadcast(content, type=self.type, hypixel_message=self, **kwargs)
            # whisper the author if sending to guild chat failed
            if not result[0]:
                await self.author.send(content)
            return result

        if self.type == HypixelMessageType.PARTY:
            return await self.bridge.minecraft.pchat(content, max_parts=kwargs.pop("max_parts", math.inf), **kwargs)

        if self.type == HypixelMessageType.WHISPER:
            return await self.author.send(content, **kwargs)

        raise ValueError(f"unknown type to reply to: {self.type}: {self.raw_content}")

    async def await_confirmation(
        self,
        question: str = "confirm this action?",
        *,
        time: float = 60.0,
        error_message: str = "the command has been cancelled",
    ) -> None:
        """
        Ask the author for a yes / no answer in the same chat.

        Raises:
            CommandError: if the author answered anything but yes, or not at all
        """
        await self.reply(question)

        ign = self.author.ign
        channel = self.type
        collected = await self.bridge.minecraft.await_messages(
            lambda message, _: message.author is not None and message.author.ign == ign and message.type == channel,
            max=1,
            time=time,
        )

        if not collected or collected[0].content.lower() not in REPLY_CONFIRMATION:
            raise CommandError(error_message)

    def __repr__(self) -> str:
        return f"<HypixelMessage type={self.type!r} author={self.log_info!r} content={self.content!r}>"
