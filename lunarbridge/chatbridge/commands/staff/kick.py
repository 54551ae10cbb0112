"""Kick a player from the guild via in-game chat."""

from __future__ import annotations

from lunarbridge.chatbridge import responses
from lunarbridge.commands.bridge import BridgeCommand


class KickBridgeCommand(BridgeCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            description="kick a player from the guild",
            args=2,
            usage="[`IGN`] [`reason`]",
            cooldown=10,
            required_roles=lambda hypixel_guild: hypixel_guild.admin_role_ids,
        )

    async def minecraft_run(self, hypixel_message):
        target, *reason = hypixel_message.command_data.args

        if hypixel_message.hypixel_guild is None:
            return await hypixel_message.author.send("unable to determine the guild to perform the kick on")

        player = self.client.players.get_by_ign(target)
        ign = player.ign if player is not None else target
        minecraft = hypixel_message.bridge.minecraft

        result = await minecraft.command(
            f"g kick {ign} {' '.join(reason)}",
            response_regexp=responses.kick(ign, minecraft.bot_username),
            max=1,
        )

        return await hypixel_message.author.send(result or "an unknown error occurred")


def setup(context) -> KickBridgeCommand:
    return KickBridgeCommand(context)
