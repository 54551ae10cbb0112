"""
Tests for LunarBot construction and setup_hook().

The bot never logs in: setup_hook() runs against an in-memory database with
the chat bridge disabled and application command deployment mocked out.
"""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from lunarbridge.bot.client import LunarBot, PassthroughCommandTree
from lunarbridge.config.settings import BotSettings, ChatBridgeSettings, DatabaseSettings, Settings


def _make_settings() -> Settings:
    settings = MagicMock(spec=Settings)
    settings.bot = MagicMock(spec=BotSettings)
    settings.bot.name = "LunarBridge"
    settings.bot.owner_id = 42
    settings.bot.dev_guild_id = 123
    settings.bot.autocorrect_threshold = 0.8
    settings.chatbridge = MagicMock(spec=ChatBridgeSettings)
    settings.chatbridge.enabled = False
    settings.database = MagicMock(spec=DatabaseSettings)
    settings.database.path = ":memory:"
    return settings


class TestBotInit:
    @pytest.mark.asyncio
    async def test_intents_and_owner(self):
        bot = LunarBot(_make_settings())

        assert bot.intents.message_content is True
        assert bot.intents.members is True
        assert bot.owner_id == 42
        assert isinstance(bot.tree, PassthroughCommandTree)
        assert bot.players.autocorrect_threshold == 0.8

    @pytest.mark.asyncio
    async def test_no_bridges_when_disabled(self):
        bot = LunarBot(_make_settings())
        assert bot.chat_bridges.bridges == []

    @pytest.mark.asyncio
    async def test_tree_never_runs_commands(self):
        """Interactions are left to InteractionsCog."""
        bot = LunarBot(_make_settings())
        interaction = MagicMock(spec=discord.Interaction)

        assert await bot.tree.interaction_check(interaction) is False


class TestSetupHook:
    @pytest.mark.asyncio
    async def test_loads_everything(self):
        bot = LunarBot(_make_settings())
        bot.application_commands.init = AsyncMock()

        try:
            await bot.setup_hook()

            assert bot.get_cog("InteractionsCog") is not None
            assert bot.get_cog("ChatBridgeCog") is not None
            assert bot.application_commands.get("ping") is not None
            assert bot.chat_bridges.commands.get("promote") is not None
            bot.application_commands.init.assert_awaited_once_with(123)
            assert bot.players.cache == {}
        finally:
            await bot._exit_stack.aclose()

        with pytest.raises(RuntimeError):
            bot.db.connection

    @pytest.mark.asyncio
    async def test_deploy_errors_are_not_fatal(self):
        bot = LunarBot(_make_settings())
        bot.application_commands.init = AsyncMock(
            side_effect=discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "Missing Access")
        )

        try:
            await bot.setup_hook()
            assert bot.get_cog("InteractionsCog") is not None
        finally:
            await bot._exit_stack.aclose()
