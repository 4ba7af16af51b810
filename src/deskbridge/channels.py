"""
channels.py — Outbound side of the Telegram agent channel.
"""

from __future__ import annotations

import logging

from telegram import Bot

from .outbox import Outbox


class TelegramAgentChannel:
    """Sends text to agent chats through the bot, in order, without blocking."""

    def __init__(self, bot: Bot):
        self._bot = bot
        self._outbox = Outbox("telegram", self._send)

    def start(self) -> None:
        self._outbox.start()

    def send(self, address, text: str) -> None:
        self._outbox.put((address, text))

    async def _send(self, item: tuple) -> None:
        address, text = item
        await self._bot.send_message(chat_id=address, text=text)
        logging.debug("Sent %d chars to agent chat %s", len(text), address)

    async def close(self) -> None:
        await self._outbox.close()
