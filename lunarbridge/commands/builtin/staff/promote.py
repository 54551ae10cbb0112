"""Promote a guild member, from Discord or in-game."""

from __future__ import annotations

from lunarbridge.chatbridge import responses
from lunarbridge.commands.dual import DualCommand
from lunarbridge.commands.options import force_option, hypixel_guild_option, player_option
from lunarbridge.util.interaction import InteractionUtil


class PromoteCommand(DualCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            slash={
                "description": "promote a guild member",
                "options": [player_option(required=True), force_option(), hypixel_guild_option()],
            },
            cooldown=0,
            required_roles=lambda hypixel_guild: hypixel_guild.staff_role_ids,
            args=1,
            usage="[`IGN`]",
        )

    async def _run(self, bridge, ign: str) -> str:
        result = await bridge.minecraft.command(f"g promote {ign}", response_regexp=responses.promote(ign), max=1)
        return f"`/g promote {ign}`\n > {result}"

    async def chat_input_run(self, interaction):
        await InteractionUtil.defer_reply(interaction)

        bridge = self.client.chat_bridges.require(InteractionUtil.get_hypixel_guild(interaction))
        ign = InteractionUtil.get_ign(interaction, throw_if_not_found=True)

        return await InteractionUtil.reply(interaction, await self._run(bridge, ign))

    async def minecraft_run(self, hypixel_message):
        target = hypixel_message.command_data.args[0]
        player = self.client.players.get_by_ign(target)

        return await hypixel_message.reply(
            await self._run(hypixel_message.bridge, player.ign if player is not None else target)
        )


def setup(context) -> PromoteCommand:
    return PromoteCommand(context)
