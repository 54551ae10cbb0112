"""Gateway and round trip latency."""

from __future__ import annotations

import time

from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.util.interaction import InteractionUtil


class PingCommand(ApplicationCommand):
    def __init__(self, context) -> None:
        super().__init__(
            context,
            slash={"description": "check the bot's latency"},
            cooldown=0,
        )

    async def chat_input_run(self, interaction):
        started = time.perf_counter()
        await InteractionUtil.defer_reply(interaction)
        round_trip = (time.perf_counter() - started) * 1000

        return await InteractionUtil.reply(
            interaction,
            f"Api Latency: {round(self.client.latency * 1000)} ms\nRound Trip: {round(round_trip)} ms",
        )


def setup(context) -> PingCommand:
    return PingCommand(context)
