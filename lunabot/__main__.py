"""Run the bot on the console transport: ``python -m lunabot``."""

import asyncio
import logging

from dotenv import load_dotenv

from lunabot.core.bot import Bot
from lunabot.core.config import PROJECT_DIR, get_settings
from lunabot.core.logging import setup_logging
from lunabot.shared.database import DatabaseManager, PoolConfig
from lunabot.shared.migrations.runner import MigrationRunner
from lunabot.shared.store import Store
from lunabot.transports.console import ConsoleTransport

LOGGER: logging.Logger = logging.getLogger("Bot")

load_dotenv(dotenv_path=PROJECT_DIR / ".env")


async def runner() -> None:
    settings = get_settings()
    db: DatabaseManager | None = None
    store: Store | None = None

    if settings.database_url:
        db = DatabaseManager(settings.database_url, PoolConfig())
        await db.connect()
        await MigrationRunner(db.pool).run_pending()
        store = Store(db.pool)
    else:
        LOGGER.info("No database configured, activity will not be recorded")

    transport = ConsoleTransport(settings.bot_name)
    bot = Bot(transport, settings, store=store)
    try:
        await bot.setup()
        await bot.run(transport.events())
    finally:
        await bot.close()
        if db is not None:
            await db.disconnect()


def main() -> None:
    setup_logging(get_settings().log_level)
    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")


if __name__ == "__main__":
    main()
