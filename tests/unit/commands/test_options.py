"""Tests for option payload builders and CommandOptions."""

import pytest

from lunarbridge.commands.options import (
    MAX_PLAYER_INPUT_LENGTH,
    CommandOptions,
    OptionType,
    force_option,
    player_option,
    string_option,
    visibility_option,
)
from lunarbridge.errors import CommandError


class TestOptionBuilders:
    def test_string_option(self):
        option = string_option("reason", "why", required=True, choices=["a", "b"], max_length=20)

        assert option == {
            "type": OptionType.STRING,
            "name": "reason",
            "description": "why",
            "required": True,
            "choices": [{"name": "a", "value": "a"}, {"name": "b", "value": "b"}],
            "max_length": 20,
        }

    def test_player_option_autocompletes(self):
        option = player_option(required=True)
        assert option["autocomplete"] is True
        assert option["max_length"] == MAX_PLAYER_INPUT_LENGTH

    def test_visibility_option_is_a_copy(self):
        """Each command gets its own payload, edits don't leak into others."""
        first = visibility_option()
        first["choices"].clear()
        assert len(visibility_option()["choices"]) == 2

    def test_force_option(self):
        assert force_option()["type"] == OptionType.BOOLEAN


class TestCommandOptions:
    def test_plain_options(self):
        options = CommandOptions(
            {
                "options": [
                    {"name": "player", "type": OptionType.STRING, "value": "Alice"},
                    {"name": "amount", "type": OptionType.INTEGER, "value": 5},
                    {"name": "force", "type": OptionType.BOOLEAN, "value": True},
                    {"name": "user", "type": OptionType.USER, "value": "123456789012345678"},
                ]
            }
        )

        assert "player" in options
        assert options.get_string("player") == "Alice"
        assert options.get_integer("amount") == 5
        assert options.get_number("amount") == 5.0
        assert options.get_boolean("force") is True
        assert options.get_snowflake("user") == 123456789012345678
        assert options.get_string("missing") is None
        assert options.subcommand is None

    def test_required_option_missing(self):
        with pytest.raises(CommandError, match="missing required option `player`"):
            CommandOptions({}).get("player", required=True)

    def test_subcommand_group(self):
        """Subcommand groups and subcommands are unwrapped to their leaf options."""
        options = CommandOptions(
            {
                "options": [
                    {
                        "name": "config",
                        "type": OptionType.SUB_COMMAND_GROUP,
                        "options": [
                            {
                                "name": "set",
                                "type": OptionType.SUB_COMMAND,
                                "options": [{"name": "key", "type": OptionType.STRING, "value": "prefix"}],
                            }
                        ],
                    }
                ]
            }
        )

        assert options.subcommand_group == "config"
        assert options.subcommand == "set"
        assert options.get("key") == "prefix"

    def test_subcommand_without_options(self):
        options = CommandOptions({"options": [{"name": "database", "type": OptionType.SUB_COMMAND}]})
        assert options.subcommand == "database"
        assert options.get_focused() == (None, None)

    def test_focused(self):
        options = CommandOptions(
            {
                "options": [
                    {"name": "guild", "type": OptionType.STRING, "value": "lu"},
                    {"name": "player", "type": OptionType.STRING, "value": "Ali", "focused": True},
                ]
            }
        )
        assert options.get_focused() == ("player", "Ali")
