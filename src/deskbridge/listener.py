"""
listener.py — Telegram message handler for agent replies.

Every non-command text an agent writes to the bot is handed to the
Router together with the text of the message it replies to (if any),
which carries the visitor's identity marker.
"""

import logging

from telegram import Message, Update
from telegram.ext import ContextTypes

from .commands import remember_username
from .relay import RouteOutcome, Router


def _get_reply_text(message: Message) -> str | None:
    """Text of the message being replied to, or None for a fresh message."""
    reply = message.reply_to_message
    if not reply:
        return None
    return reply.text or reply.caption or None


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Main Telegram message handler.

    Caches the sender's username, ignores commands and non-text messages,
    and routes agent text back to the web visitor.
    """
    message = update.message
    if not message:
        return

    remember_username(update, context)

    text = message.text
    if not isinstance(text, str) or text.startswith("/"):
        return

    router: Router = context.bot_data["router"]
    ts = message.date.astimezone() if message.date else None

    try:
        outcome = router.handle_agent_message(
            message.chat.id,
            _get_reply_text(message),
            text,
            ts=ts,
        )
        if outcome is not RouteOutcome.IGNORED:
            logging.info("📤 Agent message from chat %s: %s", message.chat.id, outcome.value)
    except Exception as e:
        logging.exception("Error routing agent message")
        await message.reply_text(f"⚠️ Relay error: {e}")
