"""Record a player's guild tax payment."""

from __future__ import annotations

from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.commands.options import OptionType, force_option, hypixel_guild_option, player_option
from lunarbridge.errors import CommandError
from lunarbridge.util.interaction import InteractionUtil
from lunarbridge.util.user import UserUtil


class PaidCommand(ApplicationCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            slash={
                "description": "manually mark a player as paid",
                "options": [
                    player_option(required=True),
                    {
                        "type": OptionType.INTEGER,
                        "name": "amount",
                        "description": "amount of coins",
                        "required": True,
                        "min_value": 0,
                    },
                    force_option(),
                    hypixel_guild_option(),
                ],
            },
            cooldown=0,
            required_roles=lambda hypixel_guild: hypixel_guild.admin_role_ids,
        )

    async def chat_input_run(self, interaction):
        player = InteractionUtil.get_player(interaction, throw_if_not_found=True)
        amount = InteractionUtil.options(interaction).get_integer("amount", required=True)

        if player.paid:
            await InteractionUtil.await_confirmation(
                interaction,
                f"`{player}` is already set to paid with an amount of `{player.tax_amount:,}`. Overwrite this?",
            )

        collector = UserUtil.get_player(self.client, interaction.user)
        if collector is None and interaction.user.id != self.client.owner_id:
            raise CommandError(f"`{interaction.user}` is not linked to a player")

        await self.client.players.set_paid(
            player,
            amount,
            collector.ign if collector is not None else str(interaction.user),
        )

        return await InteractionUtil.reply(interaction, f"`{player}` set to paid with an amount of `{amount:,}`")


def setup(context) -> PaidCommand:
    return PaidCommand(context)
