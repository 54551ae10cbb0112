"""
Interaction reply handling.

Discord requires every interaction to be acknowledged within 3 seconds and
only allows one initial response; everything after that has to be a
follow-up or an edit. InteractionUtil keeps per-interaction state in
``interaction.extras`` so commands can simply call ``reply()`` (or
``defer()`` before slow work) without tracking which of those applies:

- ``add()`` is called once by the dispatcher. It picks the default
  visibility and schedules an automatic defer after ``AUTO_DEFER_TIMEOUT``
  in case the command is slow to respond.
- ``defer_reply()`` / ``defer_update()`` store their pending task, so
  concurrent callers await the same acknowledgement instead of sending a
  second one.
- ``reply()`` sends the initial response or a follow-up, and fixes up the
  visibility of a deferred response when the reply wants another one.
- If Discord rejects the interaction itself (expired token, already
  acknowledged, ...), replies fall back to a DM (ephemeral) or a regular
  channel message.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import discord

from lunarbridge.commands.options import VISIBILITY_EVERYONE, VISIBILITY_JUST_ME, VISIBILITY_OPTION_NAME, CommandOptions
from lunarbridge.config.logging import get_logger
from lunarbridge.errors import CommandError
from lunarbridge.util.channel import ChannelUtil
from lunarbridge.util.message import MessageUtil
from lunarbridge.util.text import make_content
from lunarbridge.util.user import UserUtil

if TYPE_CHECKING:
    from lunarbridge.database.models import HypixelGuild, Player

logger = get_logger(__name__)

_EXTRAS_KEY = "lunarbridge"

# unknown webhook, unknown interaction, already acknowledged, invalid webhook token
INTERACTION_ERROR_CODES = frozenset({10015, 10062, 40060, 50027})

CUSTOM_ID_CONFIRM = "confirm"

_DISCORD_ID = re.compile(r"\d{17,20}")
MINECRAFT_UUID_REGEXP = re.compile(r"[\da-f]{32}")


@dataclass
class InteractionData:
    use_ephemeral: bool
    defer_reply_task: asyncio.Task | None = None
    defer_update_task: asyncio.Task | None = None
    auto_defer: asyncio.TimerHandle | None = None
    deferred: bool = False
    ephemeral_defer: bool = False
    replied: bool = False


class ConfirmationView(discord.ui.View):
    """Confirm / cancel buttons only the invoking user may press."""

    def __init__(self, user_id: int, question: str, *, timeout: float) -> None:
        super().__init__(timeout=timeout)
        self.user_id = user_id
        self.question = question
        self.confirmed: bool | None = None

        snowflake = discord.utils.time_snowflake(discord.utils.utcnow())
        self.confirm_button = discord.ui.Button(
            style=discord.ButtonStyle.success, emoji="✅", custom_id=f"{CUSTOM_ID_CONFIRM}:{snowflake}"
        )
        self.cancel_button = discord.ui.Button(
            style=discord.ButtonStyle.danger, emoji="❌", custom_id=f"{CUSTOM_ID_CONFIRM}:{snowflake + 1}"
        )
        self.confirm_button.callback = self._confirm
        self.cancel_button.callback = self._cancel
        self.add_item(self.confirm_button)
        self.add_item(self.cancel_button)

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id != self.user_id:
            await interaction.response.send_message("that is not up to you to decide", ephemeral=True)
            return False
        return True

    def disable(self) -> None:
        self.confirm_button.disabled = True
        self.cancel_button.disabled = True

    async def _resolve(self, interaction: discord.Interaction, confirmed: bool) -> None:
        self.confirmed = confirmed
        self.disable()
        self.stop()
        await interaction.response.edit_message(
            content=f"{self.question}\n> {'confirmed' if confirmed else 'cancelled'}", view=self
        )

    async def _confirm(self, interaction: discord.Interaction) -> None:
        await self._resolve(interaction, True)

    async def _cancel(self, interaction: discord.Interaction) -> None:
        await self._resolve(interaction, False)


class InteractionUtil:
    AUTO_DEFER_TIMEOUT = 1.0

    # --- state ---

    @classmethod
    def add(cls, interaction: discord.Interaction) -> InteractionData:
        """Create the reply state for ``interaction`` and schedule the auto defer."""
        use_ephemeral = cls.check_ephemeral_option(interaction)

        if use_ephemeral is None:
            channel = interaction.channel
            if channel is not None and interaction.guild_id is not None:
                name = getattr(channel, "name", None) or ""
                use_ephemeral = "command" not in name and "ᴄᴏᴍᴍᴀɴᴅ" not in name
            else:
                use_ephemeral = False

        data = InteractionData(use_ephemeral=use_ephemeral)
        data.auto_defer = asyncio.get_running_loop().call_later(
            cls.AUTO_DEFER_TIMEOUT, cls._auto_defer, interaction, data
        )
        interaction.extras[_EXTRAS_KEY] = data
        return data

    @classmethod
    def _data(cls, interaction: discord.Interaction) -> InteractionData:
        data = interaction.extras.get(_EXTRAS_KEY)
        if data is None:
            data = cls.add(interaction)
        return data

    @classmethod
    def _auto_defer(cls, interaction: discord.Interaction, data: InteractionData) -> None:
        data.auto_defer = None
        elapsed = (discord.utils.utcnow() - interaction.created_at).total_seconds() * 1000
        logger.warning(f"[INTERACTION UTIL]: auto defer triggered after {elapsed:.0f} ms {cls.log_info(interaction)}")
        asyncio.ensure_future(cls.defer(interaction))

    @staticmethod
    def _cancel_auto_defer(data: InteractionData) -> None:
        if data.auto_defer is not None:
            data.auto_defer.cancel()
            data.auto_defer = None

    # --- inspection ---

    @staticmethod
    def options(interaction: discord.Interaction) -> CommandOptions:
        return CommandOptions(interaction.data)

    @classmethod
    def check_ephemeral_option(cls, interaction: discord.Interaction) -> bool | None:
        """True / False for an explicit ``visibility`` choice, None if there is none."""
        if interaction.type != discord.InteractionType.application_command:
            return None

        visibility = cls.options(interaction).get_string(VISIBILITY_OPTION_NAME)
        if visibility == VISIBILITY_EVERYONE:
            return False
        if visibility == VISIBILITY_JUST_ME:
            return True
        return None

    @staticmethod
    def is_interaction_error(error: BaseException) -> bool:
        """Whether ``error`` means the interaction itself can no longer be responded to."""
        if isinstance(error, discord.InteractionResponded):
            return True
        return isinstance(error, discord.HTTPException) and error.code in INTERACTION_ERROR_CODES

    @staticmethod
    def is_from_message(interaction: discord.Interaction) -> bool:
        """Components (and modals opened from them) have a message to update."""
        return interaction.message is not None

    @classmethod
    def full_command_name(cls, interaction: discord.Interaction) -> str:
        data = interaction.data or {}

        if interaction.type == discord.InteractionType.component:
            component_type = discord.ComponentType(data.get("component_type", 2)).name
            return f"{component_type} '{data.get('custom_id')}'"

        if interaction.type == discord.InteractionType.modal_submit:
            return data.get("custom_id", "")

        options = cls.options(interaction)
        return " ".join(
            part for part in (data.get("name"), options.subcommand_group, options.subcommand) if part
        )

    @classmethod
    def log_info(cls, interaction: discord.Interaction) -> dict[str, Any]:
        user = interaction.user
        info: dict[str, Any] = {
            "type": interaction.type.name if interaction.type else None,
            "command": cls.full_command_name(interaction),
            "user": f"{user.display_name} | {user}" if isinstance(user, discord.Member) else str(user),
            "channel": (
                (getattr(interaction.channel, "name", None) or interaction.channel_id)
                if interaction.guild_id
                else "DM"
            ),
            "guild": interaction.guild.name if interaction.guild else None,
        }
        if interaction.type == discord.InteractionType.autocomplete:
            info["focused"] = cls.options(interaction).get_focused()
        return info

    @classmethod
    def check_force(cls, interaction: discord.Interaction) -> bool:
        return cls.options(interaction).get_boolean("force") or False

    # --- acknowledging ---

    @classmethod
    async def defer(cls, interaction: discord.Interaction, *, reject_on_error: bool = False) -> None:
        """defer_update for interactions with a message attached, defer_reply otherwise."""
        if cls.is_from_message(interaction):
            await cls.defer_update(interaction, reject_on_error=reject_on_error)
        else:
            await cls.defer_reply(interaction, reject_on_error=reject_on_error)

    @staticmethod
    async def _await_pending(task: asyncio.Task, reject_on_error: bool) -> None:
        try:
            await asyncio.shield(task)
        except discord.DiscordException:
            # already logged by whoever started the defer
            if reject_on_error:
                raise

    @classmethod
    async def defer_reply(
        cls,
        interaction: discord.Interaction,
        *,
        ephemeral: bool | None = None,
        reject_on_error: bool = False,
    ) -> None:
        data = cls._data(interaction)

        if data.defer_reply_task is not None:
            return await cls._await_pending(data.defer_reply_task, reject_on_error)

        if data.replied:
            if reject_on_error:
                raise RuntimeError(f"{cls.log_info(interaction)}: already replied")
            logger.warning(f"[INTERACTION DEFER REPLY]: already replied {cls.log_info(interaction)}")
            return None

        cls._cancel_auto_defer(data)
        ephemeral = data.use_ephemeral if ephemeral is None else ephemeral

        async def _defer() -> None:
            await interaction.response.defer(ephemeral=ephemeral, thinking=True)
            data.deferred = True
            data.ephemeral_defer = ephemeral

        data.defer_reply_task = asyncio.ensure_future(_defer())
        try:
            await asyncio.shield(data.defer_reply_task)
        except discord.DiscordException as e:
            if reject_on_error:
                raise
            logger.error(f"[INTERACTION DEFER REPLY]: {e} {cls.log_info(interaction)}")

    @classmethod
    async def defer_update(cls, interaction: discord.Interaction, *, reject_on_error: bool = False) -> None:
        data = cls._data(interaction)

        if data.defer_update_task is not None:
            return await cls._await_pending(data.defer_update_task, reject_on_error)

        if data.replied:
            logger.warning(f"[INTERACTION DEFER UPDATE]: already replied {cls.log_info(interaction)}")
            return None

        cls._cancel_auto_defer(data)

        async def _defer() -> None:
            await interaction.response.defer()
            data.deferred = True

        data.defer_update_task = asyncio.ensure_future(_defer())
        try:
            await asyncio.shield(data.defer_update_task)
        except discord.DiscordException as e:
            if reject_on_error:
                raise
            logger.error(f"[INTERACTION DEFER UPDATE]: {e} {cls.log_info(interaction)}")

    @staticmethod
    async def _await_defers(data: InteractionData) -> None:
        if data.defer_reply_task is not None:
            await asyncio.shield(data.defer_reply_task)
        if data.defer_update_task is not None:
            await asyncio.shield(data.defer_update_task)

    # --- responding ---

    @staticmethod
    async def _follow_up(
        interaction: discord.Interaction,
        data: InteractionData,
        content: str | None,
        ephemeral: bool,
        **kwargs,
    ) -> discord.WebhookMessage:
        if content is not None:
            kwargs["content"] = content
        message = await interaction.followup.send(ephemeral=ephemeral, wait=True, **kwargs)
        data.replied = True
        return message

    @classmethod
    async def reply(
        cls,
        interaction: discord.Interaction,
        content: str | None = None,
        *,
        ephemeral: bool | None = None,
        split: bool = False,
        code: str | bool = False,
        reject_on_error: bool = False,
        **kwargs,
    ) -> discord.Message | None:
        """
        Respond to ``interaction``, whatever state it is in.

        Args:
            content: message content
            ephemeral: defaults to the visibility picked in ``add()``
            split: split content exceeding the message limit into several replies
            code: wrap the content in a code block (str: with that language)
            reject_on_error: raise instead of logging non-interaction errors
            **kwargs: forwarded to discord.py (``view``, ``embed``, ...)

        Returns:
            The sent follow-up message, None for initial responses and failures
        """
        data = cls._data(interaction)
        ephemeral = data.use_ephemeral if ephemeral is None else ephemeral

        if split or code:
            parts = make_content(content or "", split=split, code=code)
            last = parts.pop()
            for part in parts:
                await cls.reply(interaction, part, ephemeral=ephemeral, reject_on_error=reject_on_error, **kwargs)
            return await cls.reply(interaction, last, ephemeral=ephemeral, reject_on_error=reject_on_error, **kwargs)

        try:
            if data.replied:
                return await cls._follow_up(interaction, data, content, ephemeral, **kwargs)

            await cls._await_defers(data)

            if data.deferred:
                # a deferred reply keeps the visibility of the defer, swap it if needed
                if not cls.is_from_message(interaction):
                    if data.ephemeral_defer:
                        if not ephemeral:
                            await interaction.edit_original_response(content="\u200b")
                    elif ephemeral:
                        await interaction.delete_original_response()

                return await cls._follow_up(interaction, data, content, ephemeral, **kwargs)

            cls._cancel_auto_defer(data)
            if content is not None:
                kwargs["content"] = content
            await interaction.response.send_message(ephemeral=ephemeral, **kwargs)
            data.replied = True
            return None

        except discord.DiscordException as e:
            if cls.is_interaction_error(e):
                logger.error(f"[INTERACTION REPLY]: {e} {cls.log_info(interaction)}")
                if ephemeral:
                    return await UserUtil.send_dm(interaction.user, content or "", **kwargs)
                if interaction.channel is None:
                    return None
                return await ChannelUtil.send(interaction.channel, content or "", **kwargs)

            if reject_on_error:
                raise
            logger.error(f"[INTERACTION REPLY]: {e} {cls.log_info(interaction)}")
            return None

    @classmethod
    async def edit_reply(
        cls,
        interaction: discord.Interaction,
        content: str | None = None,
        *,
        message: discord.abc.Snowflake | None = None,
        reject_on_error: bool = False,
        **kwargs,
    ) -> discord.Message | None:
        """Edit the original response, or the follow-up ``message``."""
        if content is not None:
            kwargs["content"] = content

        try:
            if message is not None:
                return await interaction.followup.edit_message(message.id, **kwargs)

            await cls._await_defers(cls._data(interaction))
            return await interaction.edit_original_response(**kwargs)

        except discord.DiscordException as e:
            if cls.is_interaction_error(e):
                logger.error(f"[INTERACTION EDIT REPLY]: {e} {cls.log_info(interaction)}")
                try:
                    original = await interaction.original_response()
                except discord.HTTPException as fetch_error:
                    if reject_on_error:
                        raise
                    logger.error(f"[INTERACTION EDIT REPLY]: {fetch_error} {cls.log_info(interaction)}")
                    return None
                kwargs.pop("content", None)
                return await MessageUtil.edit(original, content or original.content, **kwargs)

            if reject_on_error:
                raise
            logger.error(f"[INTERACTION EDIT REPLY]: {e} {cls.log_info(interaction)}")
            return None

    @classmethod
    async def update(
        cls,
        interaction: discord.Interaction,
        content: str | None = None,
        *,
        reject_on_error: bool = False,
        **kwargs,
    ) -> discord.Message | None:
        """Edit the message the component is attached to."""
        data = cls._data(interaction)
        edit_kwargs = dict(kwargs)
        if content is not None:
            edit_kwargs["content"] = content

        try:
            if data.defer_reply_task is not None:
                await asyncio.shield(data.defer_reply_task)

            if data.replied:
                return await interaction.followup.edit_message(interaction.message.id, **edit_kwargs)

            if data.defer_update_task is not None:
                await asyncio.shield(data.defer_update_task)

            if data.deferred:
                return await interaction.edit_original_response(**edit_kwargs)

            cls._cancel_auto_defer(data)
            await interaction.response.edit_message(**edit_kwargs)
            data.replied = True
            return interaction.message

        except discord.DiscordException as e:
            if cls.is_interaction_error(e):
                logger.error(f"[INTERACTION UPDATE]: {e} {cls.log_info(interaction)}")
                return await MessageUtil.edit(interaction.message, content or interaction.message.content, **kwargs)

            if reject_on_error:
                raise
            logger.error(f"[INTERACTION UPDATE]: {e} {cls.log_info(interaction)}")
            return None

    @classmethod
    async def reply_or_update(cls, interaction: discord.Interaction, content: str | None = None, **kwargs):
        """update for components, reply otherwise."""
        if cls.is_from_message(interaction):
            return await cls.update(interaction, content, **kwargs)
        return await cls.reply(interaction, content, **kwargs)

    @classmethod
    async def delete_message(cls, interaction: discord.Interaction) -> discord.Message | None:
        """Delete the message the component is attached to."""
        data = cls._data(interaction)

        try:
            if data.defer_reply_task is not None:
                await asyncio.shield(data.defer_reply_task)

            if data.replied:
                return await MessageUtil.delete(interaction.message)

            await cls.defer_update(interaction, reject_on_error=True)

            if MessageUtil.is_ephemeral(interaction.message):
                logger.warning(
                    f"[INTERACTION DELETE MESSAGE]: unable to delete ephemeral message in "
                    f"{MessageUtil.channel_log_info(interaction.message)}"
                )
                return None

            await interaction.delete_original_response()
            return interaction.message

        except discord.DiscordException as e:
            logger.error(f"[INTERACTION DELETE MESSAGE]: {e} {cls.log_info(interaction)}")
            return await MessageUtil.delete(interaction.message)

    @classmethod
    async def show_modal(cls, interaction: discord.Interaction, modal: discord.ui.Modal) -> None:
        data = cls._data(interaction)

        # a modal is an initial response
        if data.defer_reply_task is not None or data.defer_update_task is not None:
            raise RuntimeError("[INTERACTION SHOW MODAL]: interaction already acknowledged")

        cls._cancel_auto_defer(data)
        await interaction.response.send_modal(modal)

    @classmethod
    async def await_reply(
        cls,
        interaction: discord.Interaction,
        question: str = "confirm this action?",
        *,
        timeout: float = 60.0,
        **kwargs,
    ) -> str | None:
        """Ask ``question`` and return the content of the user's next message in the channel."""
        try:
            channel = interaction.channel
            if channel is None and interaction.channel_id is not None:
                channel = await interaction.client.fetch_channel(interaction.channel_id)
            if channel is None:
                raise CommandError(f"no channel with the id '{interaction.channel_id}'")

            await cls.reply(interaction, question, reject_on_error=True, **kwargs)

            message = await interaction.client.wait_for(
                "message",
                check=lambda msg: msg.author.id == interaction.user.id and msg.channel.id == channel.id,
                timeout=timeout,
            )
            return message.content

        except asyncio.TimeoutError:
            return None
        except (discord.DiscordException, CommandError) as e:
            logger.error(f"[INTERACTION AWAIT REPLY]: {e} {cls.log_info(interaction)}")
            return None

    @classmethod
    async def await_confirmation(
        cls,
        interaction: discord.Interaction,
        question: str = "confirm this action?",
        *,
        timeout: float = 60.0,
        error_message: str = "the command has been cancelled",
        **kwargs,
    ) -> None:
        """
        Ask for confirmation via buttons.

        Raises:
            CommandError: with ``error_message`` if cancelled, timed out or the question could not be sent
        """
        view = ConfirmationView(interaction.user.id, question, timeout=timeout)

        try:
            message = await cls.reply(interaction, question, view=view, reject_on_error=True, **kwargs)
        except discord.DiscordException as e:
            logger.error(f"[INTERACTION AWAIT CONFIRMATION]: {e} {cls.log_info(interaction)}")
            raise CommandError(error_message) from e

        timed_out = await view.wait()

        if timed_out:
            view.disable()
            await cls.edit_reply(interaction, f"{question}\n> timeout", message=message, view=view)

        if not view.confirmed:
            raise CommandError(error_message)

    @classmethod
    async def react(cls, interaction: discord.Interaction, *emojis: str) -> list:
        if cls._data(interaction).use_ephemeral:
            return []

        try:
            message = await interaction.original_response()
        except discord.HTTPException as e:
            logger.error(f"[INTERACTION REACT]: {e} {cls.log_info(interaction)}")
            return []
        return await MessageUtil.react(message, *emojis)

    # --- lookups ---

    @classmethod
    def get_player(
        cls,
        interaction: discord.Interaction,
        *,
        fallback_to_current_user: bool = False,
        throw_if_not_found: bool = False,
    ) -> Player | None:
        """
        Player from the ``player`` / ``target`` option.

        The input is matched as Discord id (mentions included), Minecraft
        UUID, then IGN (exact with ``force``, autocorrected otherwise).
        """
        players = interaction.client.players
        options = cls.options(interaction)
        raw = options.get_string("player") or options.get_string("target")
        input_ = re.sub(r"\W", "", raw).lower() if raw else ""

        if not input_:
            if not fallback_to_current_user:
                return None
            player = UserUtil.get_player(interaction.client, interaction.user)
            if throw_if_not_found and player is None:
                raise CommandError(f"no player linked to `{interaction.user}` found")
            return player

        if _DISCORD_ID.fullmatch(input_):
            player = players.get_by_discord_id(int(input_))
        elif MINECRAFT_UUID_REGEXP.fullmatch(input_):
            player = players.get_by_uuid(input_)
        elif cls.check_force(interaction):
            player = players.find_by_ign(input_)
        else:
            player = players.get_by_ign(input_)

        if throw_if_not_found and player is None:
            raise CommandError(f"no player linked to `{input_}` found")
        return player

    @classmethod
    def get_ign(
        cls,
        interaction: discord.Interaction,
        *,
        fallback_to_current_user: bool = False,
        throw_if_not_found: bool = False,
    ) -> str | None:
        """Like ``get_player`` but with ``force`` the raw input is returned as is."""
        if cls.check_force(interaction):
            options = cls.options(interaction)
            raw = options.get_string("player") or options.get_string("target")
            ign = raw.lower() if raw else None
            if ign is None and fallback_to_current_user:
                player = UserUtil.get_player(interaction.client, interaction.user)
                ign = player.ign if player else None
            if throw_if_not_found and not ign:
                raise CommandError("no IGN specified")
            return ign

        player = cls.get_player(
            interaction,
            fallback_to_current_user=fallback_to_current_user,
            throw_if_not_found=throw_if_not_found,
        )
        return player.ign if player else None

    @classmethod
    def get_hypixel_guild(
        cls,
        interaction: discord.Interaction,
        *,
        fallback_if_no_input: bool = True,
    ) -> HypixelGuild | None:
        """
        Hypixel guild from the ``guild`` option (id or name).

        Falls back to the guild linked to the interaction's Discord server,
        then the guild of the user's player, then the main guild.
        """
        hypixel_guilds = interaction.client.hypixel_guilds
        input_ = cls.options(interaction).get_string("guild")

        if input_:
            hypixel_guild = hypixel_guilds.cache.get(input_) or hypixel_guilds.find_by_name(input_)
            if hypixel_guild is not None:
                return hypixel_guild

        if not fallback_if_no_input:
            return None

        if interaction.guild_id is not None:
            hypixel_guild = hypixel_guilds.find_by_discord_guild(interaction.guild_id)
        else:
            player = UserUtil.get_player(interaction.client, interaction.user)
            hypixel_guild = hypixel_guilds.cache.get(player.guild_id) if player and player.guild_id else None

        return hypixel_guild or hypixel_guilds.main_guild
