"""Mute a guild member or the whole guild chat, from Discord or in-game."""

from __future__ import annotations

from lunarbridge.chatbridge import responses
from lunarbridge.commands.dual import DualCommand
from lunarbridge.commands.options import force_option, hypixel_guild_option, string_option, target_option
from lunarbridge.errors import CommandError
from lunarbridge.util.interaction import InteractionUtil
from lunarbridge.util.text import parse_duration

MIN_DURATION = 60.0
MAX_DURATION = 30 * 24 * 60 * 60.0

_GUILD_TARGETS = ("guild", "everyone")


class MuteCommand(DualCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            slash={
                "description": "mute a single guild member or guild chat both ingame and for the chat bridge",
                "options": [
                    target_option(),
                    string_option("duration", "s[econds] | m[inutes] | h[ours] | d[ays]", required=True),
                    force_option(),
                    hypixel_guild_option(),
                ],
            },
            cooldown=0,
            required_roles=lambda hypixel_guild: hypixel_guild.staff_role_ids,
            args=2,
            usage="[`IGN` | `guild` | `everyone`] [`duration`]",
        )

    @staticmethod
    def _check_duration(raw: str | None) -> str:
        """The duration input, passed on to `/g mute` as typed once it is known to be valid."""
        duration = parse_duration(raw)
        if duration is None or duration < MIN_DURATION or duration > MAX_DURATION:
            raise CommandError(f"`{raw}` is not a valid duration between 1 minute and 30 days")
        return raw.strip()

    async def _run(self, bridge, target: str, duration: str) -> str:
        minecraft = bridge.minecraft
        command = f"g mute {target} {duration}"
        result = await minecraft.command(
            command, response_regexp=responses.mute(target, minecraft.bot_username), max=1
        )
        return f"`/{command}`\n > {result}"

    async def chat_input_run(self, interaction):
        options = InteractionUtil.options(interaction)
        duration = self._check_duration(options.get_string("duration", required=True))

        await InteractionUtil.defer_reply(interaction)

        bridge = self.client.chat_bridges.require(InteractionUtil.get_hypixel_guild(interaction))

        if options.get_string("target", required=True).lower() in _GUILD_TARGETS:
            target = "everyone"
        else:
            target = InteractionUtil.get_ign(interaction, throw_if_not_found=True)

        return await InteractionUtil.reply(interaction, await self._run(bridge, target, duration))

    async def minecraft_run(self, hypixel_message):
        target_input, raw_duration = hypixel_message.command_data.args[:2]
        duration = self._check_duration(raw_duration)

        if target_input.lower() in _GUILD_TARGETS:
            target = "everyone"
        else:
            player = self.client.players.get_by_ign(target_input)
            target = player.ign if player is not None else target_input

        return await hypixel_message.reply(await self._run(hypixel_message.bridge, target, duration))


def setup(context) -> MuteCommand:
    return MuteCommand(context)
