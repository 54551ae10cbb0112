"""
Command collections.

A collection maps every command name and alias to its command and knows
the package the command modules are loaded from. A command module lives
in ``<package>.<category>.<name>`` (or directly in ``<package>`` for
uncategorised commands) and defines ``setup(context)`` returning the
command. Modules whose name starts with ``_`` are skipped.
"""

from __future__ import annotations

import importlib
import pkgutil
from collections.abc import Iterator
from typing import Any

from lunarbridge.commands.application import ApplicationCommand
from lunarbridge.commands.base import BaseCommand, CommandContext
from lunarbridge.commands.bridge import INVISIBLE_CATEGORIES
from lunarbridge.config.logging import get_logger
from lunarbridge.util.text import autocorrect

logger = get_logger(__name__)


class BaseCommandCollection(dict):
    INVISIBLE_CATEGORIES = INVISIBLE_CATEGORIES

    def __init__(self, client: Any, package: str) -> None:
        super().__init__()
        self.client = client
        self.package = package

    @property
    def commands(self) -> list[BaseCommand]:
        """Every loaded command once, aliases collapsed."""
        return list(dict.fromkeys(self.values()))

    @property
    def categories(self) -> list[str]:
        return sorted({command.category for command in self.commands if command.category})

    @property
    def visible_categories(self) -> list[str]:
        return [category for category in self.categories if category not in self.INVISIBLE_CATEGORIES]

    def filter_by_category(self, category: str | None) -> list[BaseCommand]:
        return [command for command in self.commands if command.category == category]

    def clear_cooldowns(self) -> None:
        for command in self.commands:
            command.clear_cooldowns()

    def _iter_modules(self) -> Iterator[str]:
        package = importlib.import_module(self.package)
        for info in pkgutil.walk_packages(package.__path__, prefix=f"{self.package}."):
            if info.ispkg or info.name.rsplit(".", 1)[-1].startswith("_"):
                continue
            yield info.name

    def _category_of(self, module_name: str) -> str | None:
        parent = module_name.rsplit(".", 1)[0]
        if parent == self.package:
            return None
        return parent.rsplit(".", 1)[-1]

    def load_by_name(self, name: str, *, reload: bool = False) -> BaseCommand | None:
        """Load the command whose module is called ``name``."""
        name = name.lower()
        for module_name in self._iter_modules():
            if module_name.rsplit(".", 1)[-1].lower() == name:
                return self.load_from_module(module_name, reload=reload)
        return None

    def load_from_module(self, module_name: str, *, reload: bool = False) -> BaseCommand:
        module = importlib.import_module(module_name)
        if reload:
            module = importlib.reload(module)

        context = CommandContext(
            client=self.client,
            collection=self,
            file_name=module_name.rsplit(".", 1)[-1],
            category=self._category_of(module_name),
        )
        command: BaseCommand = module.setup(context)

        previous = self.get(command.name)
        if previous is not None:
            previous.unload()

        return command.load()

    def load_all(self, *, reload: bool = False) -> BaseCommandCollection:
        count = 0
        for module_name in self._iter_modules():
            self.load_from_module(module_name, reload=reload)
            count += 1

        logger.info(f"[COMMANDS]: {count} command{'s' if count != 1 else ''} loaded from {self.package}")
        return self

    def unload_all(self) -> None:
        for command in self.commands:
            command.unload()

    def get_by_name(self, name: str) -> BaseCommand | None:
        """
        Command by name or alias, autocorrecting typos.

        Autocorrected matches below the configured threshold, or onto
        commands of an invisible category, return None.
        """
        name = name.lower()
        command = self.get(name)
        if command is not None:
            return command

        result = autocorrect(name, list(self.keys()))
        if result is None or result.similarity < self.client.settings.bot.autocorrect_threshold:
            return None

        command = self[result.value]
        return command if getattr(command, "visible", True) else None


class ApplicationCommandCollection(BaseCommandCollection):
    """Application commands plus their deployment to Discord."""

    def __init__(self, client: Any, package: str) -> None:
        super().__init__(client, package)
        # command name -> id assigned by Discord
        self.ids: dict[str, int] = {}

    @property
    def api_data(self) -> list[dict[str, Any]]:
        """Payloads of every loaded command, ready to be deployed."""
        return [
            payload
            for command in self.commands
            if isinstance(command, ApplicationCommand)
            for payload in command.data
        ]

    def name_of(self, command_id: int) -> str | None:
        for name, id_ in self.ids.items():
            if id_ == command_id:
                return name
        return None

    def _remember(self, created: list[dict[str, Any]]) -> None:
        for payload in created:
            self.ids[payload["name"]] = int(payload["id"])

    async def init(self, guild_id: int | None = None) -> list[dict[str, Any]]:
        """Overwrite the deployed commands with ``api_data`` (globally or for one guild)."""
        http = self.client.http
        application_id = self.client.application_id
        payloads = self.api_data

        if guild_id is not None:
            created = await http.bulk_upsert_guild_commands(application_id, guild_id, payloads)
        else:
            created = await http.bulk_upsert_global_commands(application_id, payloads)

        self.ids.clear()
        self._remember(created)
        logger.info(
            f"[COMMANDS INIT]: deployed {len(created)} application command(s) "
            f"{f'to guild {guild_id}' if guild_id is not None else 'globally'}"
        )
        return created

    async def create(self, name: str, guild_id: int | None = None) -> list[dict[str, Any]]:
        """Deploy a single command, loading it first if necessary."""
        command = self.get(name.lower()) or self.load_by_name(name)

        if command is None:
            raise ValueError(f"[COMMANDS CREATE]: unknown command '{name}'")
        if not isinstance(command, ApplicationCommand):
            raise TypeError(f"[COMMANDS CREATE]: {command.name} is not an ApplicationCommand")

        http = self.client.http
        application_id = self.client.application_id
        created = []
        for payload in command.data:
            if guild_id is not None:
                created.append(await http.upsert_guild_command(application_id, guild_id, payload))
            else:
                created.append(await http.upsert_global_command(application_id, payload))

        self._remember(created)
        return created

    async def delete_command(self, name: str, guild_id: int | None = None) -> None:
        """Delete a deployed command by name."""
        http = self.client.http
        application_id = self.client.application_id
        name = name.lower()

        if guild_id is not None:
            deployed = await http.get_guild_commands(application_id, guild_id)
        else:
            deployed = await http.get_global_commands(application_id)

        payload = next((cmd for cmd in deployed if cmd["name"] == name), None)
        if payload is None:
            raise ValueError(f"unknown command {name}")

        if guild_id is not None:
            await http.delete_guild_command(application_id, guild_id, payload["id"])
        else:
            await http.delete_global_command(application_id, payload["id"])

        self.ids.pop(name, None)


class BridgeCommandCollection(BaseCommandCollection):
    """In-game commands; dual commands register themselves here as well."""
