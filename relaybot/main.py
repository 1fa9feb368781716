"""
Entry point.

Runs the Discord bot and the FastAPI web server concurrently on the same
asyncio event loop. Heroku requires a web dyno to bind to $PORT; uvicorn
handles that while the bot maintains the Discord WebSocket connection.

Usage:
    python3 -m relaybot.main
"""

import asyncio
import os

import uvicorn

from relaybot.api import create_app
from relaybot.bot import create_bot
from relaybot.config import settings
from relaybot.logging_config import setup_logging
from relaybot.services.account_service import AccountService
from relaybot.services.relay import RelayService
from relaybot.services.user_store import UserStore


async def main():
    setup_logging(settings.LOG_LEVEL)
    if not settings.DISCORD_KEY:
        raise SystemExit("DISCORD_KEY is not set")

    # --- Shared services ---
    user_store = UserStore(database_url=settings.DATABASE_URL)
    await user_store.init()

    relay = RelayService.create(settings)
    accounts = AccountService(relay.session, settings.ZIPLINE_BASE_URL)

    # --- Discord bot ---
    bot = create_bot(relay, user_store, accounts)

    # --- FastAPI ---
    fastapi_app = create_app(relay, user_store)
    port = int(os.environ.get("PORT", settings.PORT))
    uvicorn_config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=port,
        log_level="warning",
    )
    server = uvicorn.Server(uvicorn_config)

    # Run both concurrently; either crashing will propagate to the other
    try:
        await asyncio.gather(
            bot.start(settings.DISCORD_KEY),
            server.serve(),
        )
    finally:
        await relay.close()
        await user_store.close()


if __name__ == "__main__":
    asyncio.run(main())
