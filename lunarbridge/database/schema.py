"""
Database schema initialization.

Tables are created with ``CREATE TABLE IF NOT EXISTS`` so running this on
every start is harmless.
"""

import aiosqlite

from lunarbridge.config.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the tables the managers read from and write to."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS hypixel_guilds (
                guild_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                discord_id INTEGER,
                chat_bridge_channel_id INTEGER,
                staff_role_id INTEGER,
                moderator_role_id INTEGER,
                admin_role_id INTEGER,
                muted_till REAL NOT NULL DEFAULT 0,
                chat_bridge_enabled INTEGER NOT NULL DEFAULT 1
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS players (
                ign TEXT PRIMARY KEY COLLATE NOCASE,
                minecraft_uuid TEXT UNIQUE,
                discord_id INTEGER UNIQUE,
                guild_id TEXT REFERENCES hypixel_guilds(guild_id) ON DELETE SET NULL,
                guild_rank TEXT,
                muted_till REAL NOT NULL DEFAULT 0,
                last_activity_at REAL,
                paid INTEGER NOT NULL DEFAULT 0,
                tax_amount INTEGER NOT NULL DEFAULT 0,
                tax_collected_by TEXT
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_players_guild ON players(guild_id)")
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_hypixel_guilds_discord ON hypixel_guilds(discord_id)"
        )
