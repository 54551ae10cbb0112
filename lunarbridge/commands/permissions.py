"""
Application command permission overrides.

Server admins can restrict commands per role or user in Discord's
integration settings. Slash commands are filtered by Discord itself, but
in-game usage of dual commands is not, so the overrides are mirrored here
(guild id -> command id -> parsed overrides) and checked by the chat
bridge before running a command.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import discord

from lunarbridge.config.logging import get_logger
from lunarbridge.errors import MissingPermissionsError

logger = get_logger(__name__)


class PermissionType:
    ROLE = 1
    USER = 2
    CHANNEL = 3


@dataclass
class CommandPermissions:
    allowed_roles: list[int] = field(default_factory=list)
    denied_roles: list[int] = field(default_factory=list)
    # user id -> allowed
    users: dict[int, bool] = field(default_factory=dict)


class PermissionsManager:
    def __init__(self, client: Any) -> None:
        self.client = client
        self.cache: dict[int, dict[int, CommandPermissions]] = {}
        self._ready = False
        self._init_task: asyncio.Task | None = None

    @property
    def ready(self) -> bool:
        return self._ready

    async def init(self) -> PermissionsManager:
        """
        Populate the cache with the current overrides of every guild.

        Concurrent callers share a single fetch.
        """
        if self._init_task is None or self._init_task.done():
            self._init_task = asyncio.ensure_future(self._init())
        await asyncio.shield(self._init_task)
        return self

    async def _init(self) -> None:
        http = self.client.http
        application_id = self.client.application_id

        try:
            for guild in self.client.guilds:
                payloads = await http.get_guild_application_command_permissions(application_id, guild.id)
                for payload in payloads:
                    self.update(int(payload["id"]), guild.id, payload["permissions"])
        except discord.HTTPException as e:
            logger.error(f"[PERMISSIONS]: {e}")
            raise RuntimeError("Error fetching command permissions") from e

        self._ready = True
        logger.info(f"[PERMISSIONS]: cached overrides for {len(self.cache)} guild(s)")

    def update(self, command_id: int, guild_id: int, permissions: list[dict[str, Any]]) -> CommandPermissions:
        """Replace the cached overrides of one command in one guild."""
        parsed = CommandPermissions()

        for entry in permissions:
            target_id = int(entry["id"])
            type_ = entry["type"]

            if type_ == PermissionType.CHANNEL:
                continue
            if type_ == PermissionType.ROLE:
                (parsed.allowed_roles if entry["permission"] else parsed.denied_roles).append(target_id)
            elif type_ == PermissionType.USER:
                parsed.users[target_id] = bool(entry["permission"])
            else:
                logger.warning(f"[PERMISSIONS]: unknown permission type {type_}")

        self.cache.setdefault(guild_id, {})[command_id] = parsed
        return parsed

    def _names(self, guild_id: int, command_id: int) -> tuple[str, str]:
        command_name = self.client.application_commands.name_of(command_id) or str(command_id)
        guild = self.client.get_guild(guild_id)
        return command_name, guild.name if guild else str(guild_id)

    async def assert_(self, guild_id: int, command_id: int, member: discord.Member | None) -> None:
        """
        Raise if the overrides deny ``member`` the command.

        Explicit user overrides win, then allowed roles, then denied roles.

        Raises:
            MissingPermissionsError
        """
        if not self._ready:
            await self.init()

        permissions = self.cache.get(guild_id, {}).get(command_id)
        if permissions is None:
            return

        if member is None:
            command_name, guild_name = self._names(guild_id, command_id)
            raise MissingPermissionsError(
                f"no discord member to check permissions for in `{guild_name}`", command=command_name
            )

        explicit = permissions.users.get(member.id)
        if explicit is True:
            return
        if explicit is False:
            command_name, guild_name = self._names(guild_id, command_id)
            raise MissingPermissionsError(
                f"you are explicitly denied access in `{guild_name}`", command=command_name
            )

        role_ids = {role.id for role in member.roles}

        if any(role_id in role_ids for role_id in permissions.allowed_roles):
            return

        for role_id in permissions.denied_roles:
            if role_id in role_ids:
                command_name, guild_name = self._names(guild_id, command_id)
                guild = self.client.get_guild(guild_id)
                role = guild.get_role(role_id) if guild else None
                raise MissingPermissionsError(
                    f"the {role.name if role else role_id} role in `{guild_name}` is denied access",
                    command=command_name,
                )
