"""
Polls running in the in-game guild chat and the bridge channel at once.

Votes are messages starting with the number of an option; every player (or
Discord user without a linked player) counts once per option.
"""

from __future__ import annotations

import asyncio
import math
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

import discord

from lunarbridge.chatbridge.constants import HypixelMessageType
from lunarbridge.commands.dual import DualCommand
from lunarbridge.commands.options import hypixel_guild_option, string_option
from lunarbridge.config.logging import get_logger
from lunarbridge.util.channel import ChannelUtil
from lunarbridge.util.interaction import InteractionUtil
from lunarbridge.util.message import MessageUtil
from lunarbridge.util.text import format_duration, parse_duration, upper_case_first_char
from lunarbridge.util.user import UserUtil

logger = get_logger(__name__)

MAX_CHOICES = 10
MIN_DURATION = 30.0
MAX_DURATION = 10 * 60.0
DEFAULT_DURATION = 60.0

QUOTE_CHARS = "\"“”"
_QUOTED = re.compile(f"(?<=[{QUOTE_CHARS}]).+?(?=[{QUOTE_CHARS}])")
_VOTE = re.compile(r"\s*(\d+)")


@dataclass
class PollOption:
    number: int
    option: str
    votes: set = field(default_factory=set)


def poll_duration(raw: str | None) -> float:
    """Clamped to 30s..10m, one minute if missing or invalid."""
    duration = parse_duration(raw) if raw else None
    if not duration:
        return DEFAULT_DURATION
    return min(max(duration, MIN_DURATION), MAX_DURATION)


def parse_vote(content: str, option_count: int) -> int | None:
    """1-based option number a message starts with, None if it is no valid vote."""
    matched = _VOTE.match(content)
    if matched is None:
        return None
    number = int(matched[1])
    if number < 1 or number > option_count:
        return None
    return number


def format_results(options: list[PollOption]) -> list[str]:
    """Options sorted by votes, with their share of the total."""
    ranked = sorted(options, key=lambda option: len(option.votes), reverse=True)
    total = sum(len(option.votes) for option in ranked)

    lines = []
    for option in ranked:
        votes = len(option.votes)
        percentage = round(votes / total * 100) if total else 0
        lines.append(f"#{option.number}: {option.option} ({percentage}%, {votes} vote{'' if votes == 1 else 's'})")
    return lines


class PollCommand(DualCommand):
    def __init__(self, context) -> None:
        options = [string_option("question", "poll question", required=True)]
        options.extend(
            string_option(f"choice_{number}", f"choice {number}", required=number <= 1)
            for number in range(1, MAX_CHOICES + 1)
        )
        options.append(string_option("duration", "s[econds] | m[inutes], must be between 30s and 10m"))
        options.append(hypixel_guild_option())

        super().__init__(
            context,
            slash={
                "description": "create a poll for both in game and discord guild chat",
                "options": options,
            },
            cooldown=1,
            args=1,
            usage='<30s <= `duration` <= 10m> [`"question" "choice_1" "choice_2"` ...]',
        )

    async def _await_discord_votes(self, channel, duration: float) -> list[discord.Message]:
        if channel is None:
            return []

        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration
        collected: list[discord.Message] = []

        def check(message: discord.Message) -> bool:
            return message.channel.id == channel.id and MessageUtil.is_user_message(message)

        while (remaining := deadline - loop.time()) > 0:
            try:
                message = await self.client.wait_for("message", check=check, timeout=remaining)
            except asyncio.TimeoutError:
                break
            collected.append(message)

        return collected

    async def _run(self, bridge, question: str, option_names: list[str], raw_duration: str | None, author: str):
        """Returns a message for the poll creator if the poll could not be started."""
        if bridge.poll_until:
            ends = discord.utils.format_dt(datetime.fromtimestamp(bridge.poll_until, tz=timezone.utc), "R")
            return f"poll already in progress, ends {ends}"

        duration = poll_duration(raw_duration)
        bridge.poll_until = time.time() + duration

        try:
            options = [PollOption(number, name.strip()) for number, name in enumerate(option_names, start=1)]
            channel = bridge.discord_channel

            ingame_messages = asyncio.ensure_future(
                bridge.minecraft.await_messages(
                    lambda message, _: message.is_user_message() and message.type == HypixelMessageType.GUILD,
                    time=duration,
                )
            )
            discord_messages = asyncio.ensure_future(self._await_discord_votes(channel, duration))

            # post the poll to both chats
            choices = "\n".join(f"{option.number}: {option.option}" for option in options)
            await bridge.broadcast(
                f"poll by {author}: type a number to vote ({format_duration(duration)})\n{question}\n{choices}"
            )

            for message in await ingame_messages:
                number = parse_vote(message.content, len(options))
                if number is None:
                    continue
                player = message.player
                options[number - 1].votes.add(player.minecraft_uuid if player and player.minecraft_uuid else message.author.ign)

            for message in await discord_messages:
                number = parse_vote(message.content, len(options))
                if number is None:
                    continue
                player = UserUtil.get_player(self.client, message.author)
                options[number - 1].votes.add(player.minecraft_uuid if player and player.minecraft_uuid else message.author.id)

            results = format_results(options)
            logger.info(f"[POLL]: {bridge.log_info}: {question}: {results}")

            if channel is not None:
                await ChannelUtil.send(
                    channel,
                    f"**{question}**\n\n" + "\n\n".join(results) + f"\n\npoll by {author}",
                    allowed_mentions=discord.AllowedMentions.none(),
                )

            await bridge.minecraft.gchat("\n".join([question, *results]), max_parts=math.inf)
            return None

        finally:
            # unlock
            bridge.poll_until = None

    async def chat_input_run(self, interaction):
        await InteractionUtil.defer_reply(interaction, ephemeral=True)

        options = InteractionUtil.options(interaction)
        bridge = self.client.chat_bridges.require(InteractionUtil.get_hypixel_guild(interaction))
        player = UserUtil.get_player(self.client, interaction.user)

        result = await self._run(
            bridge,
            options.get_string("question", required=True),
            [
                choice
                for number in range(1, MAX_CHOICES + 1)
                if (choice := options.get_string(f"choice_{number}")) is not None
            ],
            options.get_string("duration"),
            player.ign if player is not None else getattr(interaction.user, "display_name", str(interaction.user)),
        )

        return await InteractionUtil.reply(interaction, result or "poll complete", ephemeral=True)

    async def minecraft_run(self, hypixel_message):
        inputs = [quoted.strip() for quoted in _QUOTED.findall(hypixel_message.content) if quoted.strip()]

        if len(inputs) < 2:
            return await hypixel_message.reply(self.usage_info)

        result = await self._run(
            hypixel_message.bridge,
            upper_case_first_char(inputs.pop(0)),
            inputs,
            hypixel_message.command_data.args[0],
            hypixel_message.author.ign,
        )

        if result:
            return await hypixel_message.author.send(result)


def setup(context) -> PollCommand:
    return PollCommand(context)
