"""
Row types for the tables created by SchemaManager.

Timestamps are unix seconds (float). ``muted_till`` uses ``math.inf`` for
mutes without a known end.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Mapping


@dataclass
class Model:
    """Base for rows that know their table and primary key."""

    __table__: ClassVar[str]
    __primary_key__: ClassVar[str]

    @classmethod
    def columns(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        keys = row.keys()
        values = {}
        for f in fields(cls):
            if f.name not in keys:
                continue
            value = row[f.name]
            # SQLite has no boolean type
            if f.type in ("bool", bool) and value is not None:
                value = bool(value)
            values[f.name] = value
        return cls(**values)

    def to_row(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def primary_key(self) -> Any:
        return getattr(self, self.__primary_key__)


@dataclass
class HypixelGuild(Model):
    """An in-game guild and the Discord server it is linked to."""

    __table__: ClassVar[str] = "hypixel_guilds"
    __primary_key__: ClassVar[str] = "guild_id"

    guild_id: str
    name: str
    discord_id: int | None = None
    chat_bridge_channel_id: int | None = None
    staff_role_id: int | None = None
    moderator_role_id: int | None = None
    admin_role_id: int | None = None
    muted_till: float = 0.0
    chat_bridge_enabled: bool = True

    @property
    def staff_role_ids(self) -> list[int]:
        return [
            role_id
            for role_id in (self.staff_role_id, self.moderator_role_id, self.admin_role_id)
            if role_id is not None
        ]

    @property
    def admin_role_ids(self) -> list[int]:
        return [role_id for role_id in (self.admin_role_id,) if role_id is not None]

    def is_muted(self, now: float | None = None) -> bool:
        """Whether the whole guild chat is muted."""
        return self.muted_till > (time.time() if now is None else now)

    def check_mute(self, player: Player | None, now: float | None = None) -> bool:
        """Whether ``player`` (or the guild chat as a whole) is currently muted."""
        if self.is_muted(now):
            return True
        return player is not None and player.is_muted(now)

    def __str__(self) -> str:
        return self.name


@dataclass
class Player(Model):
    """A Minecraft player, optionally linked to a Discord user."""

    __table__: ClassVar[str] = "players"
    __primary_key__: ClassVar[str] = "ign"

    ign: str
    minecraft_uuid: str | None = None
    discord_id: int | None = None
    guild_id: str | None = None
    guild_rank: str | None = None
    muted_till: float = 0.0
    last_activity_at: float | None = None
    paid: bool = False
    tax_amount: int = 0
    tax_collected_by: str | None = None

    @property
    def in_guild(self) -> bool:
        return self.guild_id is not None

    def is_muted(self, now: float | None = None) -> bool:
        return self.muted_till > (time.time() if now is None else now)

    def __str__(self) -> str:
        return self.ign
