import asyncio
import logging

from shared.database import DatabaseManager, PoolConfig
from shared.migrations.runner import run_migrations
from twitch.core.bot import Bot
from twitch.core.config import get_settings
from twitch.core.logging import setup_logging

LOGGER: logging.Logger = logging.getLogger("Bot")


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)

    async def runner() -> None:
        db = DatabaseManager(
            settings.database_url,
            PoolConfig.for_service("twitch", ssl=settings.database_ssl or None),
        )
        await db.connect()

        try:
            applied = await run_migrations(db.pool)
            if applied:
                LOGGER.info(f"Applied migrations: {', '.join(applied)}")

            if not settings.conduit_id:
                LOGGER.warning("CONDUIT_ID not set, using websocket EventSub")

            async with Bot(
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                bot_id=settings.bot_id,
                owner_id=settings.owner_id,
                conduit_id=settings.conduit_id or None,
                token_database=db.pool,
            ) as bot:
                await bot.start()
        finally:
            await db.disconnect()

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")


if __name__ == "__main__":
    main()
