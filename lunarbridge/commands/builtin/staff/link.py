"""Link a Discord user to a Minecraft player."""

from __future__ import annotations

import discord

from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.commands.options import (
    MAX_IGN_INPUT_LENGTH,
    OptionType,
    hypixel_guild_option,
    string_option,
)
from lunarbridge.config.logging import get_logger
from lunarbridge.errors import CommandError
from lunarbridge.util.interaction import MINECRAFT_UUID_REGEXP, InteractionUtil
from lunarbridge.util.user import UserUtil

logger = get_logger(__name__)


class LinkCommand(ApplicationCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            slash={
                "description": "link a discord user to a minecraft ign",
                "options": [
                    string_option("ign", "IGN | UUID", required=True, max_length=MAX_IGN_INPUT_LENGTH),
                    {"type": OptionType.USER, "name": "user", "description": "discord user", "required": True},
                    hypixel_guild_option(),
                ],
            },
            cooldown=1,
        )

    def _find_player(self, ign_or_uuid: str):
        players = self.client.players
        normalized = ign_or_uuid.replace("-", "").lower()
        if MINECRAFT_UUID_REGEXP.fullmatch(normalized):
            return players.get_by_uuid(normalized)
        return players.get_by_ign(ign_or_uuid)

    async def _fetch_user(self, user_id: int) -> discord.User | None:
        user = self.client.get_user(user_id)
        if user is not None:
            return user
        try:
            return await self.client.fetch_user(user_id)
        except discord.NotFound:
            logger.error(f"[LINK]: deleted discord user: {user_id}")
            return None

    async def chat_input_run(self, interaction):
        options = InteractionUtil.options(interaction)
        ign_or_uuid = options.get_string("ign", required=True)
        user_id = options.get_snowflake("user", required=True)

        player = self._find_player(ign_or_uuid)
        if player is None:
            raise CommandError(
                f"`{ign_or_uuid}` is neither a valid IGN nor minecraft uuid of a player in the database"
            )

        if interaction.user.id != self.client.owner_id:
            if player.guild_id is None or player.guild_id not in self.client.hypixel_guilds.cache:
                raise CommandError(f"`{player}` is not in a cached hypixel guild")

            hypixel_guild = InteractionUtil.get_hypixel_guild(interaction)
            if hypixel_guild is None or hypixel_guild.guild_id != player.guild_id:
                raise CommandError(f"you can only link players in {self.client.hypixel_guilds.cache[player.guild_id]}'s discord server")

        user = await self._fetch_user(user_id)
        user_name = str(user) if user is not None else str(user_id)

        # discord id already linked to another player
        linked_to_user = UserUtil.get_player(self.client, user) if user is not None else None
        if linked_to_user is None:
            linked_to_user = await self.client.players.fetch(discord_id=user_id, cache=False)

        if linked_to_user is not None:
            if linked_to_user.ign.lower() == player.ign.lower():
                return await InteractionUtil.reply(
                    interaction,
                    f"`{player}` is already linked to `{user_name}`",
                    allowed_mentions=discord.AllowedMentions.none(),
                )

            await InteractionUtil.await_confirmation(
                interaction,
                f"`{user_name}` is already linked to `{linked_to_user}`. Overwrite this?",
                allowed_mentions=discord.AllowedMentions.none(),
            )

        # player already linked
        if player.discord_id is not None:
            linked_user = self.client.get_user(player.discord_id)
            await InteractionUtil.await_confirmation(
                interaction,
                f"`{player}` is already linked to `{linked_user or player.discord_id}`. Overwrite this?",
                allowed_mentions=discord.AllowedMentions.none(),
            )
            await self.client.players.unlink(player)

        await self.client.players.link(player, user_id)

        return await InteractionUtil.reply(
            interaction,
            f"`{player}` linked to `{user_name}`",
            allowed_mentions=discord.AllowedMentions.none(),
        )


def setup(context) -> LinkCommand:
    return LinkCommand(context)
