"""
LunarBridge CLI entry point.

Provides command-line interface for running the bot and utility commands.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from lunarbridge import __version__
from lunarbridge.config.logging import get_logger, setup_logging
from lunarbridge.config.settings import Settings, load_settings


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="lunarbridge",
        description="Discord bot bridging a Discord server and a Hypixel guild",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"LunarBridge {__version__}",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level from config",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "run",
        help="Run the Discord bot and connect the chat bridges",
    )

    subparsers.add_parser(
        "config",
        help="Show current configuration",
    )

    subparsers.add_parser(
        "commands",
        help="List application and in-game commands",
    )

    # Deploy command
    deploy_parser = subparsers.add_parser(
        "deploy",
        help="Register application commands with Discord",
    )
    deploy_parser.add_argument(
        "--guild",
        type=int,
        default=None,
        help="Deploy to a single Discord server instead of globally (default: BOT__DEV_GUILD_ID if set)",
    )
    deploy_parser.add_argument(
        "--command",
        dest="command_name",
        default=None,
        help="Deploy a single command instead of overwriting all of them",
    )
    deploy_parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete --command from Discord instead of deploying it",
    )

    # Database commands
    subparsers.add_parser(
        "init-db",
        help="Create the SQLite database and its tables",
    )

    guild_parser = subparsers.add_parser(
        "add-guild",
        help="Register a Hypixel guild and the Discord server it is linked to",
    )
    guild_parser.add_argument("guild_id", help="Hypixel guild id")
    guild_parser.add_argument("name", help="Hypixel guild name")
    guild_parser.add_argument("--discord-id", type=int, default=None, help="Linked Discord server id")
    guild_parser.add_argument("--channel-id", type=int, default=None, help="Chat bridge channel id")
    guild_parser.add_argument("--staff-role", type=int, default=None, help="Staff role id")
    guild_parser.add_argument("--moderator-role", type=int, default=None, help="Moderator role id")
    guild_parser.add_argument("--admin-role", type=int, default=None, help="Admin role id")

    player_parser = subparsers.add_parser(
        "add-player",
        help="Register a player or update an existing one",
    )
    player_parser.add_argument("ign", help="Minecraft IGN")
    player_parser.add_argument("--uuid", default=None, help="Minecraft UUID")
    player_parser.add_argument("--discord-id", type=int, default=None, help="Linked Discord user id")
    player_parser.add_argument("--guild-id", default=None, help="Hypixel guild id the player is in")
    player_parser.add_argument("--rank", default=None, help="Guild rank")

    return parser


def cmd_config(settings: Settings) -> int:
    """Show current configuration."""
    logger = get_logger(__name__)

    logger.info("\n=== LunarBridge Configuration ===\n")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"Log File: {settings.log_file or 'None (console only)'}")
    logger.info(f"\nBot Name: {settings.bot.name}")
    logger.info(f"Bot Token: {'Set' if settings.bot.token else 'Not set'}")
    logger.info(f"Owner: {settings.bot.owner_id or 'Not set'}")
    logger.info(f"Dev Guild: {settings.bot.dev_guild_id or 'None (global deployment)'}")
    logger.info(f"In-game Prefixes: {' '.join(settings.bot.prefixes)}")
    logger.info(f"Default Cooldown: {settings.bot.command_cooldown_default}s")
    logger.info(f"\nChat Bridge: {'enabled' if settings.chatbridge.enabled else 'disabled'}")
    logger.info(f"Client Script: {settings.chatbridge.transport_path or 'Not set'}")
    logger.info(f"Minecraft Username: {settings.chatbridge.minecraft_username or 'Not set'}")
    logger.info(f"Response Timeout: {settings.chatbridge.ingame_response_timeout}s")
    logger.info(f"Auto Maths: {settings.chatbridge.auto_math}")
    logger.info(f"\nDatabase: {settings.database.path}")

    return 0


def cmd_commands(settings: Settings) -> int:
    """List every command the bot would load."""
    from lunarbridge.bot import LunarBot

    bot = LunarBot(settings)
    bot.application_commands.load_all()
    bot.chat_bridges.load_commands()

    print("\n=== Application Commands ===")
    for category in bot.application_commands.categories:
        print(f"\n[{category}]")
        for command in bot.application_commands.filter_by_category(category):
            aliases = f"  (aliases: {', '.join(command.aliases)})" if command.aliases else ""
            print(f"  /{command.name}{aliases}")

    print("\n=== In-game Commands ===")
    for category in bot.chat_bridges.commands.categories:
        print(f"\n[{category}]")
        for command in bot.chat_bridges.commands.filter_by_category(category):
            names = [command.name, *(getattr(command, "aliases_in_game", None) or command.aliases or ())]
            print(f"  {' | '.join(dict.fromkeys(names))}  {command.usage or ''}".rstrip())

    return 0


async def cmd_deploy(args, settings: Settings) -> int:
    """
    Register application commands with Discord.

    Logs in via HTTP only; no gateway connection is opened.
    """
    logger = get_logger(__name__)

    if not settings.bot.token:
        logger.error("Discord bot token not set. Add BOT__TOKEN=<your-token> to your .env file.")
        return 1

    if args.delete and not args.command_name:
        logger.error("--delete requires --command")
        return 1

    import discord

    from lunarbridge.bot import LunarBot

    guild_id = args.guild if args.guild is not None else settings.bot.dev_guild_id
    bot = LunarBot(settings)

    try:
        async with bot:
            await bot.login(settings.bot.token)
            bot.application_commands.load_all()

            if args.delete:
                await bot.application_commands.delete_command(args.command_name, guild_id)
                logger.info(f"Deleted {args.command_name}")
            elif args.command_name:
                created = await bot.application_commands.create(args.command_name, guild_id)
                logger.info(f"Deployed {', '.join(payload['name'] for payload in created)}")
            else:
                await bot.application_commands.init(guild_id)

    except (discord.HTTPException, ValueError, TypeError) as e:
        logger.error(f"Deployment failed: {e}")
        return 1

    return 0


async def cmd_init_db(settings: Settings) -> int:
    """Create the database file and tables."""
    logger = get_logger(__name__)

    from lunarbridge.database import ConnectionManager, SchemaManager

    db = ConnectionManager()
    await db.open(settings.database.path)
    try:
        await SchemaManager.initialize_schema(db.connection)
    finally:
        await db.close()

    logger.info(f"Database ready at {settings.database.path}")
    return 0


async def cmd_add_guild(args, settings: Settings) -> int:
    """Insert or replace a Hypixel guild row."""
    logger = get_logger(__name__)

    from lunarbridge.database import ConnectionManager, HypixelGuild, HypixelGuildManager, SchemaManager

    db = ConnectionManager()
    await db.open(settings.database.path)
    try:
        await SchemaManager.initialize_schema(db.connection)
        hypixel_guild = await HypixelGuildManager(db).add(
            HypixelGuild(
                guild_id=args.guild_id,
                name=args.name,
                discord_id=args.discord_id,
                chat_bridge_channel_id=args.channel_id,
                staff_role_id=args.staff_role,
                moderator_role_id=args.moderator_role,
                admin_role_id=args.admin_role,
            )
        )
    finally:
        await db.close()

    logger.info(f"Registered {hypixel_guild} ({hypixel_guild.guild_id})")
    return 0


async def cmd_add_player(args, settings: Settings) -> int:
    """Insert a player row, or update the given columns of an existing one."""
    logger = get_logger(__name__)

    from lunarbridge.database import ConnectionManager, Player, PlayerManager, SchemaManager

    changes = {
        "minecraft_uuid": args.uuid,
        "discord_id": args.discord_id,
        "guild_id": args.guild_id,
        "guild_rank": args.rank,
    }
    changes = {column: value for column, value in changes.items() if value is not None}

    db = ConnectionManager()
    await db.open(settings.database.path)
    try:
        await SchemaManager.initialize_schema(db.connection)
        players = PlayerManager(db)
        player = await players.fetch(ign=args.ign)
        if player is None:
            player = await players.add(Player(ign=args.ign, **changes))
            logger.info(f"Registered {player}")
        else:
            await players.update(player, **changes)
            logger.info(f"Updated {player}")
    finally:
        await db.close()

    return 0


def cmd_run(settings: Settings) -> int:
    """Start the Discord bot."""
    logger = get_logger(__name__)

    if not settings.bot.token:
        logger.error(
            "Discord bot token not set. Add BOT__TOKEN=<your-token> to your .env file."
        )
        return 1

    if settings.chatbridge.enabled and not settings.chatbridge.transport_path:
        logger.warning(
            "Minecraft client script not set (CHATBRIDGE__TRANSPORT_PATH). "
            "The bot will start but the chat bridge stays offline."
        )

    from lunarbridge.bot import LunarBot

    bot = LunarBot(settings)
    logger.info(f"Starting {settings.bot.name}...")
    # log_handler=None: disable discord.py's default logging setup and use ours
    bot.run(settings.bot.token, log_handler=None)
    return 0


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Override log level if specified
    if args.log_level:
        settings.log_level = args.log_level

    setup_logging(settings)

    # Execute command
    if args.command == "config":
        return cmd_config(settings)
    elif args.command == "run":
        return cmd_run(settings)
    elif args.command == "commands":
        return cmd_commands(settings)
    elif args.command == "deploy":
        return asyncio.run(cmd_deploy(args, settings))
    elif args.command == "init-db":
        return asyncio.run(cmd_init_db(settings))
    elif args.command == "add-guild":
        return asyncio.run(cmd_add_guild(args, settings))
    elif args.command == "add-player":
        return asyncio.run(cmd_add_player(args, settings))
    else:
        # Default: show help
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
