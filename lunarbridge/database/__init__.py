"""SQLite persistence: connection, schema, models and cache-backed managers."""

from lunarbridge.database.connection import ConnectionManager, db_connection
from lunarbridge.database.managers.hypixel_guilds import HypixelGuildManager
from lunarbridge.database.managers.players import PlayerManager
from lunarbridge.database.models import HypixelGuild, Player
from lunarbridge.database.schema import SchemaManager

__all__ = [
    "ConnectionManager",
    "HypixelGuild",
    "HypixelGuildManager",
    "Player",
    "PlayerManager",
    "SchemaManager",
    "db_connection",
]
