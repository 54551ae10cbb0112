"""
Sending to the in-game chat.

Every outgoing line goes through one queue and is followed by a short
delay, since Hypixel drops messages sent too quickly. After writing a line
the manager listens for the bot's own echo (success) or an anti spam,
filter or mute notice; anti spam rejections are retried with random padding
appended so the message no longer looks like a repeat.

``command()`` sends a slash command and collects the server's free-text
response with a regular expression, treating the dashed line separators
Hypixel wraps multi-line responses in as response boundaries.
"""

from __future__ import annotations

import asyncio
import math
import re
import time
from typing import TYPE_CHECKING, Any

from lunarbridge.chatbridge.collector import COLLECT, END, HypixelMessageCollector
from lunarbridge.chatbridge.constants import (
    ALLOWED_URLS_REGEXP,
    BLOCKED_EXPRESSIONS_REGEXP,
    INVISIBLE_CHARACTER_REGEXP,
    LINE_SEPARATOR_END_REGEXP,
    LINE_SEPARATOR_REGEXP,
    MAX_MESSAGE_LENGTH,
    MAYBE_URL_REGEXP,
    SEPARATOR_STRIP_REGEXP,
    UNKNOWN_COMMAND_REGEXP,
    URL_DOT_REPLACEMENT,
    WHITESPACE_ONLY_REGEXP,
    ChatPrefix,
    ForwardRejection,
    HypixelMessageType,
    random_padding,
)
from lunarbridge.chatbridge.queue import TimeoutAsyncQueue
from lunarbridge.chatbridge.transport import ChatTransport, SubprocessChatTransport
from lunarbridge.config.logging import get_logger
from lunarbridge.errors import ChatBridgeError
from lunarbridge.util.text import format_duration, similarity, split_message

if TYPE_CHECKING:
    import discord

    from lunarbridge.chatbridge.bridge import ChatBridge
    from lunarbridge.chatbridge.collector import CollectorFilter
    from lunarbridge.chatbridge.message import HypixelMessage

logger = get_logger(__name__)

_DISCORD_USER_MENTION = re.compile(r"<@!?(\d{17,20})>")
_DISCORD_CHANNEL_ROLE_MENTION = re.compile(r"<(#|@&)(\d{17,20})>")
_DISCORD_CUSTOM_EMOJI = re.compile(r"<a?:(\w{2,32}):\d{17,20}>")
_DISCORD_COMMAND_MENTION = re.compile(r"</([\w -]+):\d{17,20}>")
_DIGITS = re.compile(r"\d")


class ChatResponse:
    """What the server answered to a written line, besides echoing it."""

    TIMEOUT = "timeout"
    SPAM = "spam"
    BLOCKED = "blocked"
    MUTED = "muted"


class LastMessages:
    """
    The last few messages sent to one chat.

    Hypixel rejects a message that (nearly) repeats a recent one, numbers
    ignored. Checking beforehand allows padding it right away instead of
    waiting for the anti spam notice.
    """

    MAX_INDEX = 4
    SIMILARITY_THRESHOLD = 0.98
    EXPIRATION_TIME = 4 * 60.0

    def __init__(self) -> None:
        self._index = -1
        self._cache: list[tuple[str, float]] = [("", math.inf)] * self.MAX_INDEX

    @staticmethod
    def _clean_content(content: str) -> str:
        return _DIGITS.sub("", content).strip()

    def check(self, content: str, retry: int = 0, now: float | None = None) -> bool:
        """Whether ``content`` would be considered a repeat."""
        cleaned = self._clean_content(content)
        threshold = self.SIMILARITY_THRESHOLD - 0.01 * retry
        expired_before = (time.time() if now is None else now) - self.EXPIRATION_TIME

        for message, timestamp in self._cache:
            if timestamp < expired_before or not message:
                continue
            if message == cleaned or (len(cleaned) > 7 and similarity(cleaned, message) >= threshold):
                return True

        return False

    def add(self, content: str, now: float | None = None) -> None:
        self._index = (self._index + 1) % self.MAX_INDEX
        self._cache[self._index] = (self._clean_content(content), time.time() if now is None else now)


class MinecraftChatManager:
    SAFE_DELAY = 0.6
    # increasing delay depending on how many messages were sent in the last 10 seconds
    DELAYS = (0.0, 0.1, 0.1, 0.1, 0.12, 0.15)
    ANTI_SPAM_DELAY = 1.0
    COUNTER_DECAY = 10.0

    def __init__(self, bridge: ChatBridge) -> None:
        self.bridge = bridge
        self.transport: ChatTransport | None = None
        self.bot_username: str | None = None
        self.bot_uuid: str | None = None
        self.ready = False

        self.queue = TimeoutAsyncQueue()
        self.command_queue = TimeoutAsyncQueue()

        self._retries = 0
        self._message_counter = 0
        self._collecting = False
        self._content_filter: str | None = None
        self._response: asyncio.Future | None = None

        self._guild_messages = LastMessages()
        self._whisper_messages = LastMessages()

    @property
    def client(self):
        return self.bridge.client

    @property
    def settings(self):
        return self.client.settings.chatbridge

    @property
    def bot_player(self):
        return self.client.players.find_by_ign(self.bot_username) if self.bot_username else None

    @property
    def is_ready(self) -> bool:
        return self.ready and self.transport is not None and self.transport.connected

    @property
    def delay(self) -> float:
        index = self._temp_increment_counter()
        return self.DELAYS[index] if index < len(self.DELAYS) else self.settings.chat_delay

    # connection

    async def connect(self, transport: ChatTransport | None = None) -> MinecraftChatManager:
        """Start the transport, a subprocess running the configured client by default."""
        if self.transport is not None and self.transport.connected:
            return self

        if transport is None:
            if not self.settings.transport_path:
                raise ChatBridgeError("no Minecraft client configured (CHATBRIDGE__TRANSPORT_PATH)")
            transport = SubprocessChatTransport(
                self.settings.transport_path,
                self._handle_event,
                node_binary=self.settings.node_binary,
            )

        self.transport = transport
        await transport.initialize()
        return self

    async def disconnect(self) -> MinecraftChatManager:
        self.ready = False
        self._resolve(None)

        transport, self.transport = self.transport, None
        if transport is not None:
            await transport.shutdown()

        error = ChatBridgeError("chat bridge disconnected")
        self.queue.abort_all(error)
        self.command_queue.abort_all(error)
        return self

    async def _handle_event(self, event: dict[str, Any]) -> None:
        event_type = event.get("type")

        if event_type == "ready":
            self.bot_username = event.get("username") or self.settings.minecraft_username or None
            self.bot_uuid = (event.get("uuid") or "").replace("-", "") or None
            self.ready = True
            logger.info(f"[CHATBRIDGE]: {self.bot_username} logged in")
            await self.bridge.handle_ready()

        elif event_type == "chat":
            self.bridge.handle_line(event.get("message", ""), event.get("position", "chat"))

        elif event_type == "end":
            self.ready = False
            logger.warning(f"[CHATBRIDGE]: {self.bot_username} disconnected: {event.get('reason')}")
            self.bridge.handle_disconnect()

        else:
            logger.debug(f"[CHATBRIDGE]: ignoring {event_type} event")

    # own message detection

    def _listen_for(self, content: str) -> asyncio.Future:
        self._content_filter = content
        self._collecting = True
        self._response = asyncio.get_running_loop().create_future()
        return self._response

    def _reset_filter(self) -> None:
        self._content_filter = None
        self._collecting = False

    def _resolve(self, value: Any) -> None:
        self._reset_filter()
        if self._response is not None and not self._response.done():
            self._response.set_result(value)

    def collect(self, message: HypixelMessage) -> None:
        """Check whether ``message`` answers the line that was just written."""
        if not self._collecting:
            return

        if message.me and self._content_filter and self._content_filter in message.content:
            self._resolve(message)
            return

        # only server messages from here on
        if message.type is not None:
            return

        if message.spam:
            self._resolve(ChatResponse.SPAM)
        elif message.content.startswith(
            ("We blocked your comment", "Advertising is against the rules", "This message is not allowed")
        ):
            self._resolve(ChatResponse.BLOCKED)
        elif message.content.startswith("You're currently guild muted for"):
            self._resolve(ChatResponse.MUTED)

    def _temp_increment_counter(self) -> int:
        """Increment the message counter for ``COUNTER_DECAY`` seconds."""
        asyncio.get_running_loop().call_later(self.COUNTER_DECAY, self._decrement_counter)
        self._message_counter += 1
        return self._message_counter

    def _decrement_counter(self) -> None:
        self._message_counter -= 1

    # collectors

    def create_message_collector(self, filter: CollectorFilter | None = None, **options: Any) -> HypixelMessageCollector:
        return HypixelMessageCollector(self.bridge, filter, **options)

    async def await_messages(
        self,
        filter: CollectorFilter | None = None,
        *,
        max: int | None = None,
        time: float | None = None,
        idle: float | None = None,
    ) -> list[HypixelMessage]:
        """Messages collected until one of the limits is reached."""
        collector = self.create_message_collector(filter, max=max, time=time, idle=idle)
        collected, _ = await collector.wait()
        return collected

    # chat

    def parse_content(self, content: str, discord_message: discord.Message | None = None) -> str:
        """Discord markdown -> something readable in mc chat."""
        guild = discord_message.guild if discord_message is not None else None

        def user_mention(match: re.Match) -> str:
            user_id = int(match[1])
            player = self.client.players.get_by_discord_id(user_id)
            if player is not None:
                return f"@{player}"
            member = guild.get_member(user_id) if guild is not None else None
            user = member or self.client.get_user(user_id)
            return f"@{user.display_name}" if user is not None else match[0]

        def channel_or_role_mention(match: re.Match) -> str:
            if match[1] == "#":
                channel = self.client.get_channel(int(match[2]))
                return f"#{channel.name}" if channel is not None else match[0]
            role = guild.get_role(int(match[2])) if guild is not None else None
            return f"@{role.name}" if role is not None else match[0]

        def maybe_url(match: re.Match) -> str:
            if ALLOWED_URLS_REGEXP.match(match[0]):
                return match[0]
            return match[0].replace(".", URL_DOT_REPLACEMENT)

        content = _DISCORD_USER_MENTION.sub(user_mention, content)
        content = _DISCORD_CHANNEL_ROLE_MENTION.sub(channel_or_role_mention, content)
        content = _DISCORD_CUSTOM_EMOJI.sub(r":\1:", content)
        content = _DISCORD_COMMAND_MENTION.sub(r"/\1", content)
        content = INVISIBLE_CHARACTER_REGEXP.sub("", content)
        content = content.replace("•", "●").replace("`", "'")
        return MAYBE_URL_REGEXP.sub(maybe_url, content)

    async def gchat(self, content: str, *, prefix: str = "", **kwargs: Any) -> bool:
        hypixel_guild = self.bridge.hypixel_guild
        if hypixel_guild is not None and hypixel_guild.check_mute(self.bot_player):
            logger.debug(f"[GCHAT]: bot muted, not sending {content!r}")
            self.bridge.handle_forward_rejection(kwargs.get("discord_message"), ForwardRejection.BOT_MUTED)
            return False

        return await self.chat(content, prefix=f"{ChatPrefix.GUILD}{prefix} " if prefix else ChatPrefix.GUILD, **kwargs)

    async def ochat(self, content: str, *, prefix: str = "", **kwargs: Any) -> bool:
        hypixel_guild = self.bridge.hypixel_guild
        if hypixel_guild is not None and hypixel_guild.check_mute(self.bot_player):
            logger.debug(f"[OCHAT]: bot muted, not sending {content!r}")
            self.bridge.handle_forward_rejection(kwargs.get("discord_message"), ForwardRejection.BOT_MUTED)
            return False

        return await self.chat(
            content, prefix=f"{ChatPrefix.OFFICER}{prefix} " if prefix else ChatPrefix.OFFICER, **kwargs
        )

    async def pchat(self, content: str, *, prefix: str = "", **kwargs: Any) -> bool:
        return await self.chat(content, prefix=f"{ChatPrefix.PARTY}{prefix} " if prefix else ChatPrefix.PARTY, **kwargs)

    async def whisper(self, ign: str, content: str, *, prefix: str = "", **kwargs: Any) -> bool:
        kwargs.setdefault("max_parts", math.inf)
        return await self.chat(
            content,
            prefix=f"{ChatPrefix.WHISPER}{ign} {prefix} " if prefix else f"{ChatPrefix.WHISPER}{ign} ",
            **kwargs,
        )

    async def chat(
        self,
        content: str,
        *,
        prefix: str = "",
        max_parts: float | None = None,
        discord_message: discord.Message | None = None,
    ) -> bool:
        """
        Send ``content`` split into as many in-game messages as necessary.

        Returns:
            Whether every part was sent
        """
        if not content:
            return False

        if max_parts is None:
            max_parts = self.settings.default_max_parts

        parsed = self.parse_content(content, discord_message)

        if BLOCKED_EXPRESSIONS_REGEXP.search(parsed):
            logger.warning(f"[CHATBRIDGE CHAT]: blocked word or URL in {parsed!r}")
            self.bridge.handle_forward_rejection(discord_message, ForwardRejection.LOCAL_BLOCKED)
            return False

        # dict keeps insertion order and deduplicates
        parts: dict[str, None] = {}
        for line in parsed.split("\n"):
            for part in split_message(line, MAX_MESSAGE_LENGTH - len(prefix), separators=(" ", "")):
                if WHITESPACE_ONLY_REGEXP.match(part):
                    continue
                parts[part] = None

        if not parts:
            return False

        if len(parts) > max_parts:
            self.bridge.handle_forward_rejection(discord_message, ForwardRejection.MESSAGE_SIZE)
            return False

        if prefix.startswith((ChatPrefix.GUILD, ChatPrefix.OFFICER)):
            last_messages: LastMessages | None = self._guild_messages
            command_prefix = prefix[: len(ChatPrefix.GUILD)]
            content_prefix = prefix[len(ChatPrefix.GUILD):]
        elif prefix.startswith(ChatPrefix.WHISPER):
            last_messages = self._whisper_messages
            index = prefix.index(" ", len(ChatPrefix.WHISPER)) + 1
            command_prefix = prefix[:index]
            content_prefix = prefix[index:]
        else:
            last_messages = None
            command_prefix = prefix
            content_prefix = ""

        success = True

        # queue each part separately to not clog up the queue if someone spams
        for part in parts:
            try:
                turn = await self.queue.wait()
            except ChatBridgeError as e:
                logger.error(f"[CHATBRIDGE CHAT]: {e}")
                return False

            try:
                await self._send_to_chat(f"{content_prefix}{part}", command_prefix, discord_message, last_messages)
            except Exception as e:
                logger.error(f"[CHATBRIDGE CHAT]: {e}")
                success = False
            finally:
                self._retries = 0
                self.queue.shift(turn)

        return success

    async def _send_to_chat(
        self,
        content: str,
        prefix: str,
        discord_message: discord.Message | None = None,
        last_messages: LastMessages | None = None,
    ) -> None:
        """Write one line; the caller holds the queue."""
        if self.transport is None or not self.transport.connected:
            self.bridge.handle_forward_rejection(discord_message, ForwardRejection.ERROR)
            raise ChatBridgeError("the Minecraft client is not connected")

        if last_messages is not None:
            index = self._retries
            # one chunk per retry, more while it still looks like a repeat
            while True:
                index -= 1
                if not (index >= 0 or last_messages.check(content, self._retries)):
                    break
                if len(prefix) + len(content) > MAX_MESSAGE_LENGTH:
                    break
                content += random_padding()

        message = f"{prefix}{content}"[:MAX_MESSAGE_LENGTH]
        listener = self._listen_for(content)

        try:
            await self.transport.write(message)
        except Exception:
            logger.exception("[SEND TO CHAT]: transport write error")
            self.bridge.handle_forward_rejection(discord_message, ForwardRejection.ERROR)
            self._reset_filter()
            raise

        try:
            response = await asyncio.wait_for(asyncio.shield(listener), self.SAFE_DELAY)
        except asyncio.TimeoutError:
            response = ChatResponse.TIMEOUT

        if response is None:
            raise ChatBridgeError("chat bridge disconnected")

        if response == ChatResponse.TIMEOUT:
            # nothing echoed, happens for every command with a server response
            self._temp_increment_counter()
            self._reset_filter()

            if discord_message is not None and not self.is_ready:
                self.bridge.handle_forward_rejection(discord_message, ForwardRejection.TIMEOUT)
                raise ChatBridgeError(f"timeout while sending '{message}'")

            if last_messages is not None:
                last_messages.add(content)
            return

        if response == ChatResponse.SPAM:
            self._temp_increment_counter()
            self._retries += 1

            if self._retries >= self.settings.max_retries:
                self.bridge.handle_forward_rejection(discord_message, ForwardRejection.SPAM)
                await asyncio.sleep(self._retries * self.ANTI_SPAM_DELAY)
                raise ChatBridgeError(
                    f"unable to send '{message}', anti spam failed {self.settings.max_retries} times"
                )

            await asyncio.sleep(self._retries * self.ANTI_SPAM_DELAY)
            return await self._send_to_chat(content, prefix, discord_message, last_messages)

        if response == ChatResponse.BLOCKED:
            self.bridge.handle_forward_rejection(discord_message, ForwardRejection.HYPIXEL_BLOCKED)
            await asyncio.sleep(self.delay)
            raise ChatBridgeError(f"unable to send '{message}', hypixel's filter blocked it")

        if response == ChatResponse.MUTED:
            self.bridge.handle_forward_rejection(discord_message, ForwardRejection.BOT_MUTED)
            await asyncio.sleep(self.delay)
            raise ChatBridgeError(f"unable to send '{message}', bot is muted")

        # the bot's own message was echoed
        if last_messages is not None:
            last_messages.add(content)

        if response.type in (HypixelMessageType.GUILD, HypixelMessageType.PARTY, HypixelMessageType.OFFICER):
            await asyncio.sleep(self.delay)
        else:
            # commands and whispers
            self._temp_increment_counter()
            await asyncio.sleep(self.settings.chat_delay)

    # commands

    @staticmethod
    def clean_command_response(messages: list[HypixelMessage]) -> str:
        """Remove the line separators around each message."""
        return "\n".join(SEPARATOR_STRIP_REGEXP.sub("", message.content).strip() for message in messages)

    async def command(
        self,
        command: str,
        *,
        prefix: str = "",
        response_regexp: re.Pattern | str | None = None,
        abort_regexp: re.Pattern | str | None = UNKNOWN_COMMAND_REGEXP,
        max: int = -1,
        raw: bool = False,
        timeout: float | None = None,
        reject_on_timeout: bool = False,
        reject_on_abort: bool = False,
    ) -> str | list[HypixelMessage]:
        """
        Send ``/<command>`` and collect the server's response.

        Args:
            command: the command without the leading ``/``
            response_regexp: server messages to collect, any if None
            abort_regexp: server messages ending the collection early
            max: stop after this many collected messages, -1 for no limit
            raw: return the collected messages instead of their content
            timeout: seconds to wait for a response, the configured
                in-game response timeout by default
            reject_on_timeout: raise instead of returning a notice if
                nothing was collected
            reject_on_abort: raise if ``abort_regexp`` matched

        Raises:
            ChatBridgeError: on send errors, or timeouts / aborts if requested
        """
        if isinstance(response_regexp, str):
            response_regexp = re.compile(response_regexp, re.IGNORECASE)
        if isinstance(abort_regexp, str):
            abort_regexp = re.compile(abort_regexp, re.IGNORECASE)
        if timeout is None:
            timeout = self.settings.ingame_response_timeout

        # one collector at a time, otherwise responses to other commands would be collected
        command_turn = await self.command_queue.wait()

        # only start the collector once the chat queue is free
        try:
            turn = await self.queue.wait()
        except BaseException:
            self.command_queue.shift(command_turn)
            raise

        def response_filter(message: HypixelMessage, _collected: list[HypixelMessage]) -> bool:
            if message.type is not None:
                return False
            return bool(
                (response_regexp.search(message.content) if response_regexp is not None else True)
                or (abort_regexp is not None and abort_regexp.search(message.content))
                or LINE_SEPARATOR_REGEXP.search(message.content)
            )

        collector = self.create_message_collector(response_filter, time=timeout)
        loop = asyncio.get_running_loop()
        result: asyncio.Future = loop.create_future()

        def on_collect(message: HypixelMessage) -> None:
            if LINE_SEPARATOR_REGEXP.search(message.content):
                # separator at both ends with content in between -> complete single message response
                if LINE_SEPARATOR_END_REGEXP.search(message.content):
                    if len(collector.collected) != 1:
                        collector.collected[:] = [message]
                    collector.stop()
                    return

                collector.collected.pop()
                # a separator after collected lines closes the response
                if collector.collected:
                    collector.stop()
                return

            if len(collector.collected) == max:
                collector.stop()
                return

            if abort_regexp is not None and abort_regexp.search(message.content):
                collector.stop("abort")
                return

            # anti spam notices are not part of the response
            if message.spam:
                collector.collected.pop()

        def on_end(collected: list[HypixelMessage], reason: str) -> None:
            self.command_queue.shift(command_turn)
            if result.done():
                return

            if reason in ("time", "disconnect"):
                if reject_on_timeout and not collected:
                    result.set_exception(
                        ChatBridgeError(f"no in-game response after {format_duration(timeout)}")
                    )
                elif raw:
                    result.set_result(collected)
                elif collected:
                    result.set_result(self.clean_command_response(collected))
                else:
                    result.set_result(f"no in-game response after {format_duration(timeout)}")
            elif reason == "error":
                # the send error is raised below
                result.set_result(None)
            elif reason == "abort" and reject_on_abort:
                result.set_exception(ChatBridgeError(self.clean_command_response(collected)))
            else:
                result.set_result(collected if raw else self.clean_command_response(collected))

        collector.on(COLLECT, on_collect)
        collector.on(END, on_end)

        try:
            await self._send_to_chat(f"/{prefix}{command}", "")
        except Exception as e:
            logger.error(f"[CHATBRIDGE COMMAND]: {e}")
            collector.stop("error")
            raise
        finally:
            self._retries = 0
            self.queue.shift(turn)

        return await result
