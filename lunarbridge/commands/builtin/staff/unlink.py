"""Remove the Discord link of a player."""

from __future__ import annotations

import discord

from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.commands.options import force_option, player_option
from lunarbridge.errors import CommandError
from lunarbridge.util.interaction import InteractionUtil


class UnlinkCommand(ApplicationCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            slash={
                "description": "remove a link between a discord user and a minecraft ign",
                "options": [player_option(required=True), force_option()],
            },
            cooldown=0,
        )

    async def chat_input_run(self, interaction):
        player = InteractionUtil.get_player(interaction, throw_if_not_found=True)

        if player.discord_id is None:
            raise CommandError(f"`{player}` is not linked")

        discord_id = player.discord_id
        await self.client.players.unlink(player)

        return await InteractionUtil.reply(
            interaction,
            f"`{player}` is no longer linked to <@{discord_id}>",
            allowed_mentions=discord.AllowedMentions.none(),
        )


def setup(context) -> UnlinkCommand:
    return UnlinkCommand(context)
