"""List guild members who haven't paid their tax; the button starts a new tax round."""

from __future__ import annotations

import discord

from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.commands.options import hypixel_guild_option
from lunarbridge.errors import CommandError
from lunarbridge.util.interaction import InteractionUtil

RESET = "reset"


class UnpaidCommand(ApplicationCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            slash={
                "description": "list guild members who have not paid their tax",
                "options": [hypixel_guild_option()],
            },
            cooldown=0,
            required_roles=lambda hypixel_guild: hypixel_guild.admin_role_ids,
        )

    def _reset_view(self) -> discord.ui.View:
        view = discord.ui.View()
        view.add_item(
            discord.ui.Button(
                style=discord.ButtonStyle.danger,
                label="reset tax",
                custom_id=f"{self.base_custom_id}:{RESET}",
            )
        )
        return view

    async def chat_input_run(self, interaction):
        hypixel_guild = InteractionUtil.get_hypixel_guild(interaction)
        if hypixel_guild is None:
            raise CommandError("unable to find a hypixel guild")

        unpaid = self.client.players.unpaid(hypixel_guild.guild_id)

        if not unpaid:
            content = f"every member of {hypixel_guild} has paid"
        else:
            content = f"unpaid members of {hypixel_guild} ({len(unpaid)}):\n" + "\n".join(
                f"`{player}`" if player.discord_id is None else f"`{player}` <@{player.discord_id}>"
                for player in unpaid
            )

        return await InteractionUtil.reply(
            interaction,
            content,
            split=True,
            view=self._reset_view(),
            allowed_mentions=discord.AllowedMentions.none(),
        )

    async def button_run(self, interaction, args):
        if args[:1] != [RESET]:
            raise CommandError(f"unknown button `{':'.join(args)}`")

        await InteractionUtil.await_confirmation(interaction, "reset the tax of every player?")

        count = await self.client.players.reset_tax()

        return await InteractionUtil.reply(interaction, f"reset the tax of {count} player{'' if count == 1 else 's'}")


def setup(context) -> UnpaidCommand:
    return UnpaidCommand(context)
