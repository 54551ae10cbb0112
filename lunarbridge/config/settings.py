"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BotSettings(BaseSettings):
    """Discord bot configuration."""

    name: str = Field(default="LunarBridge", description="Bot display name")
    token: str = Field(default="", description="Discord bot token")
    owner_id: int | None = Field(
        default=None,
        description="Discord user id of the bot owner. The owner bypasses every "
                    "permission check and is the only one allowed to run owner commands.",
    )
    dev_guild_id: int | None = Field(
        default=None,
        description="If set, registers application commands to this guild instantly (dev mode). "
                    "If None, registers globally (up to 1 hour propagation).",
    )
    prefixes: list[str] = Field(
        default_factory=lambda: ["!", "-", "?", "."],
        description="In-game command prefixes. Set via BOT__PREFIXES='[\"!\", \"-\"]'",
    )
    command_cooldown_default: float = Field(
        default=1.0,
        description="Cooldown in seconds for commands that don't define their own",
    )
    autocorrect_threshold: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Minimum similarity (0.0-1.0) for autocorrecting command and player names",
    )


class ChatBridgeSettings(BaseSettings):
    """In-game chat bridge configuration."""

    enabled: bool = Field(default=True, description="Enable the chat bridge")
    transport_path: str | None = Field(
        default=None,
        description="Path to the Minecraft client script (index.js). "
                    "If None, the chat bridge stays disconnected and bridge commands are unavailable.",
    )
    node_binary: str = Field(default="node", description="Executable used to run the client script")
    minecraft_username: str = Field(default="", description="Minecraft account of the bridge bot")
    ingame_response_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for an in-game response to a command",
    )
    chat_delay: float = Field(
        default=0.6,
        description="Seconds to wait between two in-game messages",
    )
    max_retries: int = Field(
        default=3,
        description="How often a message is resent after Hypixel's anti spam rejected it",
    )
    default_max_parts: int = Field(
        default=5,
        description="Maximum amount of in-game messages a single Discord message may be split into",
    )
    auto_math: bool = Field(
        default=True,
        description="Reply to arithmetic-only guild chat messages with the result",
    )

    model_config = SettingsConfigDict(env_prefix="CHATBRIDGE_")


class DatabaseSettings(BaseSettings):
    """SQLite storage configuration."""

    path: Path = Field(default=Path("data/lunarbridge.db"), description="Path to the SQLite database")

    model_config = SettingsConfigDict(env_prefix="DATABASE_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    # Sub-configurations
    bot: BotSettings = Field(default_factory=BotSettings)
    chatbridge: ChatBridgeSettings = Field(default_factory=ChatBridgeSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
