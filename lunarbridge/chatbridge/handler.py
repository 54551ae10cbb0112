"""
Reactions to parsed in-game chat lines.

Server messages keep the bridge's view of the guild in step (members, mutes,
guild ranks) and mirror guild events to Discord. User messages are
forwarded, checked for commands and, if they carry one, run through the
same permission and cooldown checks as application commands.
"""

from __future__ import annotations

import math
import re
import time
from typing import TYPE_CHECKING

from lunarbridge.chatbridge.constants import HypixelMessageType
from lunarbridge.chatbridge.responses import (
    demote_success,
    kick_success,
    mute_success,
    promote_success,
    unmute_success,
)
from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.config.logging import get_logger
from lunarbridge.errors import ChatBridgeError, CommandError, CooldownError
from lunarbridge.util.guild import GuildMemberUtil
from lunarbridge.util.maths import MathsError, calculate, is_auto_maths_candidate
from lunarbridge.util.text import comma_list_or, parse_duration

if TYPE_CHECKING:
    from lunarbridge.chatbridge.message import HypixelMessage

logger = get_logger(__name__)

_JOINED_GUILD = re.compile(r"^You joined (?P<guild>.+)!")
_MEMBER_JOINED = re.compile(r"^(?:\[.+?\] )?(?P<ign>\w+) joined the guild!?")
_MEMBER_LEFT = re.compile(r"^(?:\[.+?\] )?(?P<target>\w+) left the guild!?")
_BOT_LEFT = re.compile(
    r"^(?:You left the guild|You were kicked from the guild by|.+ has disbanded the guild)", re.IGNORECASE
)
_GUILD_EVENT = re.compile(
    r"^(?:(?:\[.+?\] )?\w+ transferred Guild Master rank to"
    r"|(?:\[.+?\] )?\w+ renamed the guild to"
    r"|\s*The Guild has reached Level \d+|\s*GUILD QUEST|\s*LEVEL UP!"
    r"|The guild tag was changed)",
    re.IGNORECASE,
)
_FRIEND_REQUEST = re.compile(r"^Friend request from (?:\[.+?\] )?(?P<ign>\w+)")
_HYPIXEL_BLOCKED = "We blocked your comment"

_MUTE_SUCCESS = re.compile(mute_success(), re.IGNORECASE)
_UNMUTE_SUCCESS = re.compile(unmute_success(), re.IGNORECASE)
_KICK_SUCCESS = re.compile(kick_success(), re.IGNORECASE)
_RANK_CHANGE = (
    re.compile(promote_success(), re.IGNORECASE),
    re.compile(demote_success(), re.IGNORECASE),
)


class _Ignored(Exception):
    """Owner-only or disabled command, dropped without an answer."""


async def handle_message(message: HypixelMessage) -> None:
    if message.type is None:
        await _handle_server_message(message)
    elif message.is_user_message():
        await _handle_user_message(message)


async def _handle_server_message(message: HypixelMessage) -> None:
    bridge = message.bridge
    client = bridge.client
    content = message.content

    if message.spam:
        logger.warning(f"[CHATBRIDGE]: {bridge.log_info}: anti spam failed: {content}")
        return

    if content.startswith(_HYPIXEL_BLOCKED):
        logger.error(f"[CHATBRIDGE]: {bridge.log_info}: blocked: {content}")
        return

    if matched := _MEMBER_JOINED.match(content):
        await message.forward_to_discord()
        if bridge.hypixel_guild is not None:
            await client.players.sync_member(matched["ign"], bridge.hypixel_guild.guild_id)
        return

    if _BOT_LEFT.match(content):
        await message.forward_to_discord()
        bridge.unlink()
        return

    if matched := (_MEMBER_LEFT.match(content) or _KICK_SUCCESS.match(content)):
        await message.forward_to_discord()
        player = client.players.find_by_ign(matched["target"])
        if player is not None:
            await client.players.remove_from_guild(player)
        return

    if _GUILD_EVENT.match(content):
        await message.forward_to_discord()
        return

    if matched := _MUTE_SUCCESS.match(content):
        await message.forward_to_discord()
        duration = parse_duration(matched["duration"])
        until = time.time() + duration if duration is not None else math.inf
        await _sync_mute(message, matched["target"], until)
        return

    if matched := _UNMUTE_SUCCESS.match(content):
        await message.forward_to_discord()
        await _sync_mute(message, matched["target"], None)
        return

    for pattern in _RANK_CHANGE:
        if matched := pattern.match(content):
            await message.forward_to_discord()
            player = client.players.find_by_ign(matched["target"])
            if player is not None:
                await client.players.update(player, guild_rank=matched["new_rank"].strip())
            return

    if matched := _JOINED_GUILD.match(content):
        try:
            bridge.link(matched["guild"])
        except ChatBridgeError as e:
            logger.error(f"[CHATBRIDGE]: {bridge.log_info}: {e}")
        return

    if matched := _FRIEND_REQUEST.match(content):
        player = client.players.find_by_ign(matched["ign"])
        if player is None or not player.in_guild:
            logger.info(f"[CHATBRIDGE]: {bridge.log_info}: ignoring friend request from {matched['ign']}")
            return
        await bridge.minecraft.command(f"friend add {player.ign}", response_regexp=re.compile(re.escape(player.ign)))


async def _sync_mute(message: HypixelMessage, target: str, until: float | None) -> None:
    client = message.client

    if target.lower() == "the guild chat":
        hypixel_guild = message.hypixel_guild
        if hypixel_guild is not None:
            await client.hypixel_guilds.update(hypixel_guild, muted_till=until or 0.0)
            logger.info(f"[CHATBRIDGE]: {hypixel_guild}: guild chat {'muted' if until else 'unmuted'}")
        return

    player = client.players.find_by_ign(target)
    if player is None:
        logger.info(f"[CHATBRIDGE]: {message.bridge.log_info}: no player record for {target}")
        return

    await client.players.sync_mute(player, until)
    logger.info(f"[CHATBRIDGE]: {player}: {'muted' if until else 'unmuted'}")


async def _handle_user_message(message: HypixelMessage) -> None:
    client = message.client
    settings = client.settings

    if message.type == HypixelMessageType.GUILD:
        await message.forward_to_discord()

    player = message.player
    hypixel_guild = message.bridge.hypixel_guild
    if message.type in (HypixelMessageType.GUILD, HypixelMessageType.OFFICER) and hypixel_guild is not None:
        player = await client.players.sync_member(
            message.author.ign, hypixel_guild.guild_id, message.author.guild_rank
        )
    if player is not None:
        await client.players.touch(player)

    data = message.command_data

    # no prefix and not a whisper
    if data is None or data.name is None:
        if settings.chatbridge.auto_math and message.type == HypixelMessageType.GUILD:
            await _auto_maths(message)
        return

    command = data.command
    if command is None:
        logger.info(f"[CHATBRIDGE]: {message.log_info}: invalid command: {message.content}")
        return

    if command.guild_only and message.type != HypixelMessageType.GUILD:
        await message.author.send(f"the '{command.name}' command can only be executed in guild chat")
        return

    if player is None or player.discord_id != client.owner_id:
        try:
            await _assert_permissions(message, command)
        except _Ignored:
            return
        except CommandError as e:
            logger.info(f"[CHATBRIDGE]: {message.log_info}: {e}")
            await message.author.send(str(e))
            return

    member = message.member
    identifier = member.id if member is not None else message.author.ign
    try:
        command.assert_cooldown(identifier, settings.bot.command_cooldown_default)
    except CooldownError as e:
        await message.author.send(str(e))
        return

    count = 1 if command.args is True else int(command.args)
    if len(data.args) < count:
        await message.author.send(
            f"the '{command.name}' command has {count} mandatory argument{'s' if count != 1 else ''}\n"
            f"use: {command.usage_info}"
        )
        return

    logger.info(f"[CHATBRIDGE]: {message.log_info}: running {command.name} {' '.join(data.args)}".rstrip())

    try:
        await command.minecraft_run(message)
    except CommandError as e:
        await message.author.send(str(e))
    except Exception:
        logger.exception(f"[CHATBRIDGE]: {message.log_info}: error running {command.name}")
        await message.author.send("an error occurred while executing the command")


async def _assert_permissions(message: HypixelMessage, command) -> None:
    client = message.client

    if command.category == "owner":
        raise _Ignored

    if isinstance(command, ApplicationCommand) and command.slash and command.slash.get("default_member_permissions") == "0":
        raise _Ignored

    hypixel_guild = message.hypixel_guild
    required = command.required_roles(hypixel_guild)
    member = message.member

    if required:
        discord_guild = client.get_guild(hypixel_guild.discord_id) if hypixel_guild.discord_id else None
        role_names = [
            role.name if discord_guild and (role := discord_guild.get_role(role_id)) else str(role_id)
            for role_id in required
        ]
        guild_name = discord_guild.name if discord_guild else hypixel_guild.name

        if member is None or discord_guild is None:
            raise CommandError(
                f"the '{command.name}' command requires a role ({comma_list_or(role_names)}) "
                f"from the {guild_name} Discord server which you could not be found in"
            )

        if not GuildMemberUtil.has_any_role(member, required):
            raise CommandError(
                f"the '{command.name}' command requires you to have a role ({comma_list_or(role_names)}) "
                f"from the {guild_name} Discord Server"
            )

    command_id = getattr(command, "command_id", None)
    if command_id is not None and hypixel_guild is not None and hypixel_guild.discord_id is not None:
        await client.permissions.assert_(hypixel_guild.discord_id, command_id, member)


async def _auto_maths(message: HypixelMessage) -> None:
    content = message.content
    if not is_auto_maths_candidate(content):
        return

    try:
        result = calculate(content)
    except MathsError:
        return

    # plain numbers
    if result.formatted_output.replace(",", "") == result.input:
        return

    await message.reply(f"{result.input} = {result.formatted_output}")
