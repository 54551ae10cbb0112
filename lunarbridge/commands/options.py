"""
Raw application command option payloads and a read-only view over the
options Discord sends back with an interaction.

Option payloads are plain dicts in the shape of the Discord API
(``APIApplicationCommandOption``); commands copy them into their slash
payloads.
"""

from __future__ import annotations

import copy
from typing import Any

from lunarbridge.errors import CommandError


class OptionType:
    SUB_COMMAND = 1
    SUB_COMMAND_GROUP = 2
    STRING = 3
    INTEGER = 4
    BOOLEAN = 5
    USER = 6
    CHANNEL = 7
    ROLE = 8
    MENTIONABLE = 9
    NUMBER = 10


class CommandType:
    CHAT_INPUT = 1
    USER = 2
    MESSAGE = 3


# discord API limits
MAX_CHOICES = 25
MAX_DATA_LENGTH = 4000

VISIBILITY_OPTION_NAME = "visibility"
VISIBILITY_EVERYONE = "everyone"
VISIBILITY_JUST_ME = "just me"

VISIBILITY_OPTION: dict[str, Any] = {
    "type": OptionType.STRING,
    "name": VISIBILITY_OPTION_NAME,
    "description": "visibility of the response message",
    "required": False,
    "choices": [{"name": value, "value": value} for value in (VISIBILITY_EVERYONE, VISIBILITY_JUST_ME)],
}

MAX_IGN_INPUT_LENGTH = 36  # dashed UUID
MAX_PLAYER_INPUT_LENGTH = max(MAX_IGN_INPUT_LENGTH, 1 + 32)  # "@" + display name


def string_option(
    name: str,
    description: str,
    *,
    required: bool = False,
    autocomplete: bool = False,
    choices: list[str] | None = None,
    max_length: int | None = None,
) -> dict[str, Any]:
    option: dict[str, Any] = {
        "type": OptionType.STRING,
        "name": name,
        "description": description,
        "required": required,
    }
    if autocomplete:
        option["autocomplete"] = True
    if choices:
        option["choices"] = [{"name": choice, "value": choice} for choice in choices]
    if max_length is not None:
        option["max_length"] = max_length
    return option


def player_option(*, required: bool = False) -> dict[str, Any]:
    return string_option(
        "player",
        "IGN | UUID | discord ID | @mention",
        required=required,
        autocomplete=True,
        max_length=MAX_PLAYER_INPUT_LENGTH,
    )


def target_option() -> dict[str, Any]:
    return string_option(
        "target",
        "IGN | UUID | discord ID | @mention | 'guild' | 'everyone'",
        required=True,
        autocomplete=True,
        max_length=MAX_PLAYER_INPUT_LENGTH,
    )


def hypixel_guild_option() -> dict[str, Any]:
    return string_option("guild", "hypixel guild", autocomplete=True)


def force_option() -> dict[str, Any]:
    return {
        "type": OptionType.BOOLEAN,
        "name": "force",
        "description": "disable IGN autocorrection",
        "required": False,
    }


def visibility_option() -> dict[str, Any]:
    return copy.deepcopy(VISIBILITY_OPTION)


class CommandOptions:
    """
    Typed access to the (possibly nested) options of an interaction payload.

    Subcommand groups and subcommands are unwrapped on construction, so
    ``get()`` always looks at the leaf options.
    """

    def __init__(self, data: dict[str, Any] | None) -> None:
        data = data or {}
        self.resolved: dict[str, Any] = data.get("resolved") or {}
        self.subcommand_group: str | None = None
        self.subcommand: str | None = None

        options = data.get("options") or []
        if options and options[0].get("type") == OptionType.SUB_COMMAND_GROUP:
            self.subcommand_group = options[0]["name"]
            options = options[0].get("options") or []
        if options and options[0].get("type") == OptionType.SUB_COMMAND:
            self.subcommand = options[0]["name"]
            options = options[0].get("options") or []

        self._options: dict[str, dict[str, Any]] = {option["name"]: option for option in options}

    def __contains__(self, name: str) -> bool:
        return name in self._options

    def get(self, name: str, *, required: bool = False) -> Any:
        option = self._options.get(name)
        if option is None:
            if required:
                raise CommandError(f"missing required option `{name}`")
            return None
        return option.get("value")

    def get_string(self, name: str, *, required: bool = False) -> str | None:
        value = self.get(name, required=required)
        return None if value is None else str(value)

    def get_integer(self, name: str, *, required: bool = False) -> int | None:
        value = self.get(name, required=required)
        return None if value is None else int(value)

    def get_number(self, name: str, *, required: bool = False) -> float | None:
        value = self.get(name, required=required)
        return None if value is None else float(value)

    def get_boolean(self, name: str, *, required: bool = False) -> bool | None:
        value = self.get(name, required=required)
        return None if value is None else bool(value)

    def get_snowflake(self, name: str, *, required: bool = False) -> int | None:
        """User, role, channel or mentionable options carry the id as a string."""
        value = self.get(name, required=required)
        return None if value is None else int(value)

    def get_focused(self) -> tuple[str, Any] | tuple[None, None]:
        """Name and current value of the option being autocompleted."""
        for name, option in self._options.items():
            if option.get("focused"):
                return name, option.get("value")
        return None, None
