"""
LunarBot — discord.py bot client.

Manages the full bot lifecycle:
- Opens the SQLite database and fills the player / guild caches
- Loads application commands and in-game bridge commands from their packages
- Deploys application commands (guild-local for dev, global for production)
- Connects the chat bridges to their Minecraft clients
- Cleans up all resources on shutdown via AsyncExitStack
"""

from __future__ import annotations

from contextlib import AsyncExitStack

import discord
from discord import app_commands
from discord.ext import commands

from lunarbridge.chatbridge.manager import ChatBridgeManager
from lunarbridge.commands.collection import ApplicationCommandCollection
from lunarbridge.commands.permissions import PermissionsManager
from lunarbridge.config.logging import get_logger
from lunarbridge.config.settings import Settings
from lunarbridge.database import HypixelGuildManager, PlayerManager, SchemaManager, db_connection

logger = get_logger(__name__)

COMMANDS_PACKAGE = "lunarbridge.commands.builtin"


class PassthroughCommandTree(app_commands.CommandTree):
    """
    Command tree that never runs anything itself.

    Application commands are deployed from raw payloads and dispatched by
    InteractionsCog, so every interaction is left to the ``on_interaction``
    listeners.
    """

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        return False


class LunarBot(commands.Bot):
    """
    Discord bot for a Hypixel guild.

    Holds shared application state (caches, command collections, chat
    bridges) and exposes it to cogs and commands. All async resources are
    managed via AsyncExitStack so they're properly cleaned up when the bot
    shuts down.

    Args:
        settings: Full application settings (bot token, chat bridge, database, etc.)
    """

    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        intents.message_content = True  # Required to forward chat bridge channel messages
        intents.members = True  # Role checks for in-game commands
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            owner_id=settings.bot.owner_id,
            tree_cls=PassthroughCommandTree,
        )
        self.settings = settings
        self.db = db_connection
        self.players = PlayerManager(self.db, settings.bot.autocorrect_threshold)
        self.hypixel_guilds = HypixelGuildManager(self.db)
        self.application_commands = ApplicationCommandCollection(self, COMMANDS_PACKAGE)
        self.permissions = PermissionsManager(self)
        self.chat_bridges = ChatBridgeManager(self)
        self._exit_stack = AsyncExitStack()

    async def setup_hook(self) -> None:
        """
        Called after login, before connecting to the Gateway.

        Opens the database, loads commands and cogs, deploys application
        commands and connects the chat bridges.
        """
        # --- 1. Database ---
        await self.db.open(self.settings.database.path)
        self._exit_stack.push_async_callback(self.db.close)
        await SchemaManager.initialize_schema(self.db.connection)
        await self.hypixel_guilds.load_cache()
        await self.players.load_cache()

        # --- 2. Commands ---
        self.application_commands.load_all()
        self.chat_bridges.load_commands()

        # --- 3. Cogs ---
        from lunarbridge.bot.cogs.bridge import ChatBridgeCog
        from lunarbridge.bot.cogs.interactions import InteractionsCog
        await self.add_cog(InteractionsCog(self))
        await self.add_cog(ChatBridgeCog(self))
        logger.info("Cogs loaded")

        # --- 4. Deploy application commands ---
        try:
            await self.application_commands.init(self.settings.bot.dev_guild_id)
        except discord.Forbidden:
            logger.warning(
                "Could not deploy application commands (403 Forbidden). "
                "The bot is missing the 'applications.commands' OAuth2 scope. "
                "In-game commands keep working while slash commands are unavailable."
            )
        except discord.HTTPException as e:
            logger.warning(f"Application command deployment failed: {e}. The bot will still start.")

        # --- 5. Chat bridges ---
        if self.settings.chatbridge.enabled:
            self._exit_stack.push_async_callback(self.chat_bridges.disconnect)
            await self.chat_bridges.connect()
        else:
            logger.info("Chat bridge disabled (CHATBRIDGE__ENABLED=false)")

    async def on_ready(self) -> None:
        """Called when the bot successfully connects to Discord."""
        logger.info(f"Logged in as {self.user} (id: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")

        try:
            await self.permissions.init()
        except RuntimeError as e:
            logger.error(f"[PERMISSIONS]: {e}")

    async def close(self) -> None:
        """Graceful shutdown — clean up all async resources before disconnecting."""
        logger.info(f"Shutting down {self.settings.bot.name}...")
        await self._exit_stack.aclose()
        await super().close()
