#!/usr/bin/env python3
"""
app.py — Application entrypoint.

Sets up logging, validates environment, initialises the relay core,
and runs Telegram polling and the visitor WebSocket server side by side
on one event loop.
"""

import asyncio
import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv
from telegram.ext import Application, MessageHandler, filters

from .channels import TelegramAgentChannel
from .commands import register_commands
from .listener import handle_message
from .relay import Agent, AgentDirectory, Router
from .web import create_app

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------
load_dotenv()

REQUIRED_ENV = ["TELEGRAM_BOT_TOKEN"]

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
# httpx logs every Telegram poll at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)


def _validate_env():
    """Fail fast if any required environment variable is missing."""
    missing = [k for k in REQUIRED_ENV if not os.environ.get(k, "").strip()]
    if missing:
        logging.critical(f"Missing environment variables: {', '.join(missing)}")
        sys.exit(1)


def seed_agents(directory: AgentDirectory, entries: str) -> int:
    """Add agents from a ``<chat_id>:<name>,...`` string. Returns the count."""
    added = 0
    for item in entries.split(","):
        item = item.strip()
        if not item:
            continue
        chat_id, sep, name = item.partition(":")
        chat_id, name = chat_id.strip(), name.strip()
        if not sep or not name or not chat_id.lstrip("-").isdigit():
            logging.warning("Ignoring malformed SUPPORT_AGENTS entry: %r", item)
            continue
        directory.upsert(Agent(id=chat_id, name=name, address=int(chat_id)))
        added += 1
    return added


async def _serve(app: Application, channel: TelegramAgentChannel, router: Router) -> None:
    """Run bot polling and the web server until the server exits."""
    config = uvicorn.Config(
        create_app(router),
        host=os.environ.get("WEB_HOST", "0.0.0.0"),
        port=int(os.environ.get("WEB_PORT", "3000")),
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
    )
    server = uvicorn.Server(config)

    async with app:
        await app.start()
        await app.updater.start_polling()
        channel.start()
        logging.info("⚡️ deskbridge running: web on %s:%s, Telegram polling", config.host, config.port)
        try:
            await server.serve()
        finally:
            await app.updater.stop()
            await app.stop()
            await channel.close()
            router.close()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main():
    _validate_env()

    directory = AgentDirectory()
    seeded = seed_agents(directory, os.environ.get("SUPPORT_AGENTS", ""))
    if seeded:
        logging.info("Seeded %d support agent(s) from environment", seeded)

    # Initialise Telegram bot
    app = Application.builder().token(os.environ["TELEGRAM_BOT_TOKEN"]).build()
    channel = TelegramAgentChannel(app.bot)
    router = Router(directory=directory, agents=channel)

    # Store shared objects for handlers to access
    app.bot_data["router"] = router
    app.bot_data["directory"] = directory
    app.bot_data["known_usernames"] = {}

    register_commands(app)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))

    asyncio.run(_serve(app, channel, router))


if __name__ == "__main__":
    main()
