"""
schedcord
=========

A Discord moderation bot built around a persistent task scheduler: timed
role changes, messages and unbans, plus a moderation log that tells kicks
and bans apart from voluntary leaves.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. SCHEDCORD_HOME environment variable, if set.
    2. If running in a frozen/compiled context, the executable's directory.
    3. Otherwise the repository root, two levels above this package.
    """
    if env_home := os.getenv("SCHEDCORD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dataclasses import dataclass

import discord
from dotenv import load_dotenv

from schedcord.configuration.app_configuration import app_config
from schedcord.database.db_connection import db_connection
from schedcord.moderation.departure_correlator import DepartureCorrelator
from schedcord.platform.discord_client import DiscordPlatformClient
from schedcord.repositories.member_history_repo import MemberHistoryRepo
from schedcord.repositories.scheduled_task_repo import ScheduledTaskRepo
from schedcord.scheduler.task_scheduler import TaskScheduler
from schedcord.scheduler.task_store import ScheduledTaskStore
from schedcord.util.logger import get_logger, handle_exception

logger = get_logger("main")


@dataclass
class Runtime:
    """Objects shared by the cogs; there is exactly one of each per process."""
    bot: discord.Bot
    store: ScheduledTaskStore
    scheduler: TaskScheduler
    correlator: DepartureCorrelator
    history: MemberHistoryRepo
    client: DiscordPlatformClient


def load_environment() -> str:
    """Load ``.env`` and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Default intents plus the privileged members intent for join/leave events."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    return intents


def create_runtime(store: ScheduledTaskStore) -> Runtime:
    """Instantiate the bot and everything that talks to Discord through it."""
    bot = discord.Bot(intents=build_intents())
    guild_id = app_config.guild_id
    if guild_id is None:
        logger.warning("No guild_id configured; role, unban and audit log calls will fail.")
    client = DiscordPlatformClient(bot, guild_id or 0)
    scheduler = TaskScheduler(store, client, poll_interval=app_config.poll_interval_seconds)
    correlator = DepartureCorrelator(
        client,
        store,
        window_seconds=app_config.correlation_window_seconds,
        audit_lookback=app_config.audit_lookback,
    )
    return Runtime(
        bot=bot,
        store=store,
        scheduler=scheduler,
        correlator=correlator,
        history=MemberHistoryRepo(),
        client=client,
    )


def load_cogs(runtime: Runtime) -> None:
    """Register all cogs, handing each the shared runtime objects it uses."""
    from schedcord.cog.commands import schedule_cmds
    from schedcord.cog.listener import member_listener, scheduler_cog

    scheduler_cog.setup(runtime.bot, runtime.scheduler)
    member_listener.setup(
        runtime.bot,
        store=runtime.store,
        correlator=runtime.correlator,
        history=runtime.history,
        client=runtime.client,
    )
    schedule_cmds.setup(runtime.bot, runtime.store)

    logger.info("All cogs loaded successfully.")


async def initialize_store() -> ScheduledTaskStore:
    """Open the database and load the persisted task list."""
    await db_connection.open(app_config.database_path)
    store = ScheduledTaskStore(ScheduledTaskRepo())
    await store.load()
    return store


async def start_bot(bot: discord.Bot, token: str) -> None:
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot | None) -> None:
    """Close the Discord connection, then the database."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord bot: %s", exc)

    try:
        await db_connection.close()
    except Exception as exc:
        logger.exception("Error while closing the database: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap storage and the bot, returning a process exit code."""
    token = load_environment()

    try:
        logger.info("Initializing database and loading scheduled tasks...")
        store = await initialize_store()
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        await db_connection.close()
        return 1

    try:
        runtime = create_runtime(store)
        load_cogs(runtime)
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await shutdown_runtime(None)
        return 1

    exit_code = 0
    try:
        await start_bot(runtime.bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(runtime.bot)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    logger.info("Starting schedcord…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 0 if code is None else 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
