"""
Tests for the CLI: argument parsing and the database subcommands.

These tests verify that:
- Every subcommand parses with its defaults
- deploy validates --delete without --command
- init-db, add-guild and add-player write to the configured database
"""

import asyncio
from argparse import Namespace
from pathlib import Path

import pytest

from lunarbridge.__main__ import cmd_add_guild, cmd_add_player, cmd_deploy, cmd_init_db, create_parser
from lunarbridge.config.settings import Settings
from lunarbridge.database import ConnectionManager, HypixelGuildManager, PlayerManager


def _make_settings(tmp_path: Path, token: str = "") -> Settings:
    settings = Settings()
    settings.database.path = tmp_path / "lunarbridge.db"
    settings.bot.token = token
    return settings


class TestParser:
    def test_no_command(self):
        args = create_parser().parse_args([])
        assert args.command is None

    def test_global_options(self):
        args = create_parser().parse_args(["--log-level", "DEBUG", "--env-file", "prod.env", "run"])
        assert args.log_level == "DEBUG"
        assert args.env_file == Path("prod.env")
        assert args.command == "run"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--log-level", "LOUD", "run"])

    def test_deploy_defaults(self):
        """deploy targets the whole command set globally by default."""
        args = create_parser().parse_args(["deploy"])
        assert args.guild is None
        assert args.command_name is None
        assert args.delete is False

    def test_deploy_single_command(self):
        args = create_parser().parse_args(["deploy", "--guild", "123", "--command", "ping", "--delete"])
        assert args.guild == 123
        assert args.command_name == "ping"
        assert args.delete is True

    def test_add_guild(self):
        args = create_parser().parse_args(
            ["add-guild", "abc123", "Lunar", "--discord-id", "1", "--channel-id", "2", "--staff-role", "3"]
        )
        assert args.guild_id == "abc123"
        assert args.name == "Lunar"
        assert args.discord_id == 1
        assert args.channel_id == 2
        assert args.staff_role == 3
        assert args.admin_role is None

    def test_add_guild_requires_name(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["add-guild", "abc123"])


class TestDeploy:
    def test_requires_token(self, tmp_path):
        args = Namespace(guild=None, command_name=None, delete=False)
        assert asyncio.run(cmd_deploy(args, _make_settings(tmp_path))) == 1

    def test_delete_requires_command(self, tmp_path):
        args = Namespace(guild=None, command_name=None, delete=True)
        assert asyncio.run(cmd_deploy(args, _make_settings(tmp_path, token="token"))) == 1


class TestDatabaseCommands:
    def test_init_db_creates_file(self, tmp_path):
        settings = _make_settings(tmp_path)

        assert asyncio.run(cmd_init_db(settings)) == 0
        assert settings.database.path.exists()

    def test_add_guild(self, tmp_path):
        settings = _make_settings(tmp_path)
        args = create_parser().parse_args(["add-guild", "abc123", "Lunar", "--discord-id", "1", "--channel-id", "2"])

        assert asyncio.run(cmd_add_guild(args, settings)) == 0

        async def load():
            db = ConnectionManager()
            await db.open(settings.database.path)
            try:
                guilds = HypixelGuildManager(db)
                await guilds.load_cache()
                return guilds.cache
            finally:
                await db.close()

        cache = asyncio.run(load())
        assert cache["abc123"].name == "Lunar"
        assert cache["abc123"].discord_id == 1
        assert cache["abc123"].chat_bridge_channel_id == 2

    def test_add_player_then_update(self, tmp_path):
        settings = _make_settings(tmp_path)
        parser = create_parser()

        args = parser.parse_args(["add-player", "Bob", "--guild-id", "abc123", "--rank", "Member"])
        assert asyncio.run(cmd_add_player(args, settings)) == 0

        # only the given columns change
        args = parser.parse_args(["add-player", "bob", "--discord-id", "7"])
        assert asyncio.run(cmd_add_player(args, settings)) == 0

        async def load():
            db = ConnectionManager()
            await db.open(settings.database.path)
            try:
                players = PlayerManager(db)
                await players.load_cache()
                return players.cache
            finally:
                await db.close()

        cache = asyncio.run(load())
        assert list(cache) == ["bob"]
        assert cache["bob"].ign == "Bob"
        assert cache["bob"].guild_id == "abc123"
        assert cache["bob"].guild_rank == "Member"
        assert cache["bob"].discord_id == 7
