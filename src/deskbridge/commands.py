"""
commands.py — Telegram commands that manage the agent directory.

/addsupport, /listsupport and /removesupport are limited to the user ids
in ``TELEGRAM_ADMIN_IDS``. /help and /whoami are open to everyone.
Directory mutations broadcast a fresh agent list to every visitor.
"""

import logging
import os
import re

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from .relay import Agent, AgentDirectory

_NUMERIC_ID = re.compile(r"^\d+$")

HELP_TEXT = "\n".join(
    [
        "Commands:",
        "/addsupport <name> — register yourself as an agent named <name>.",
        "/addsupport <name> <chat_id|@username> — register someone else "
        "(they must have messaged this bot first).",
        "/listsupport — list all agents.",
        "/removesupport <chat_id|@username|me> — remove an agent.",
        "/whoami — show your chat id, username and name.",
    ]
)


def _admin_ids() -> set[str]:
    return {
        uid.strip()
        for uid in os.environ.get("TELEGRAM_ADMIN_IDS", "").split(",")
        if uid.strip()
    }


def _is_admin(update: Update) -> bool:
    user = update.effective_user
    return bool(user) and str(user.id) in _admin_ids()


def _known_usernames(context: ContextTypes.DEFAULT_TYPE) -> dict:
    return context.bot_data.setdefault("known_usernames", {})


def remember_username(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Cache ``@username -> chat id`` for later /addsupport @username."""
    user = update.effective_user
    chat = update.effective_chat
    if user and user.username and chat:
        _known_usernames(context)[user.username.lower()] = chat.id


def _resolve_target(target: str, context: ContextTypes.DEFAULT_TYPE) -> tuple[int | None, str | None]:
    """Turn ``<chat_id>`` or ``@username`` into ``(chat_id, username)``."""
    if target.startswith("@"):
        username = target[1:].lower()
        return _known_usernames(context).get(username), username
    if _NUMERIC_ID.match(target):
        return int(target), None
    return None, None


async def _reject_non_admin(update: Update) -> bool:
    if _is_admin(update):
        return False
    user = update.effective_user
    logging.warning("Rejected admin command from %s", user.id if user else "unknown")
    await update.message.reply_text("Only admins can run this command.")
    return True


async def add_support(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/addsupport <name> [<chat_id>|@username]"""
    if await _reject_non_admin(update):
        return
    directory: AgentDirectory = context.bot_data["directory"]
    args = context.args or []
    if not args:
        await update.message.reply_text("Usage: /addsupport <name> [<chat_id>|@username]")
        return

    name = args[0]
    chat_id, username = update.effective_chat.id, None
    if len(args) > 1:
        chat_id, username = _resolve_target(args[1], context)
        if chat_id is None:
            if username:
                await update.message.reply_text(
                    f"Cannot resolve @{username}. Ask them to message this bot first."
                )
            else:
                await update.message.reply_text(
                    "Invalid target. Use a numeric Telegram id or @username."
                )
            return

    existed = directory.upsert(
        Agent(id=str(chat_id), name=name, address=chat_id, username=username)
    )
    verb = "Updated" if existed else "Added"
    await update.message.reply_text(f"{verb} support agent: {name} (chat id: {chat_id}).")


async def list_support(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/listsupport"""
    if await _reject_non_admin(update):
        return
    directory: AgentDirectory = context.bot_data["directory"]
    agents = list(directory)
    if not agents:
        await update.message.reply_text(
            "No agents registered yet. Use /addsupport <name> to add one."
        )
        return

    lines = ["Support agents:"]
    for agent in agents:
        suffix = f", @{agent.username}" if agent.username else ""
        lines.append(f"• {agent.name} (chat id: {agent.address}{suffix})")
    await update.message.reply_text("\n".join(lines))


async def remove_support(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/removesupport [<chat_id>|@username|me]"""
    if await _reject_non_admin(update):
        return
    directory: AgentDirectory = context.bot_data["directory"]
    args = context.args or []

    if not args or args[0].lower() == "me":
        chat_id = update.effective_chat.id
    else:
        chat_id, _ = _resolve_target(args[0], context)

    removed = directory.remove(chat_id) if chat_id is not None else None
    if removed is None:
        await update.message.reply_text("That agent is not in the list.")
        return
    await update.message.reply_text(
        f"Removed support agent: {removed.name} (chat id: {removed.address})."
    )


async def show_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(HELP_TEXT)


async def whoami(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Report the caller's chat id, username and display name."""
    remember_username(update, context)
    user = update.effective_user
    username = f"@{user.username}" if user and user.username else "(none)"
    display_name = " ".join(
        part for part in (user and user.first_name, user and user.last_name) if part
    ) or "(none)"
    await update.message.reply_text(
        "\n".join(
            [
                "Your Telegram identity:",
                f"chat id: {update.effective_chat.id}",
                f"username: {username}",
                f"name: {display_name}",
            ]
        )
    )


def register_commands(app: Application) -> None:
    """Attach all command handlers to the bot application."""
    app.add_handler(CommandHandler("addsupport", add_support))
    app.add_handler(CommandHandler("listsupport", list_support))
    app.add_handler(CommandHandler("removesupport", remove_support))
    app.add_handler(CommandHandler("help", show_help))
    app.add_handler(CommandHandler("whoami", whoami))
