"""Telegram bot command handlers.

The group is read-only for members: the bot posts digests, greets new
members and accepts a few admin commands.
"""

import logging

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from ottpulse.config import WELCOME_MESSAGE, admin_id
from ottpulse.digest import LanguageCategory
from ottpulse.digest.job import CycleState, DigestBroadcaster

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "OTT Pulse posts a weekly digest of OTT releases to this group.\n\n"
    "Commands:\n"
    "/language <name> - set your preferred language "
    "(Tamil, Telugu, Malayalam, Kannada, Hindi, English, Korean)\n"
    "/setadmin - claim the admin role (first caller only)\n"
    "/broadcast <text> - admin: post an announcement to the group\n"
    "/digest - admin: build and send a digest now"
)


def _broadcaster(context: ContextTypes.DEFAULT_TYPE) -> DigestBroadcaster:
    return context.bot_data["broadcaster"]


def _is_admin(broadcaster: DigestBroadcaster, user_id: int | None) -> bool:
    if user_id is None:
        return False
    admin = broadcaster.store.admin_id or admin_id()
    return admin is not None and user_id == admin


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start and /help."""
    await update.message.reply_text(HELP_TEXT)


async def setadmin_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    user = update.effective_user
    if user is None:
        return
    broadcaster = _broadcaster(context)
    current = broadcaster.store.admin_id or admin_id()
    if current is not None and current != user.id:
        await update.message.reply_text("❌ An admin is already set.")
        return
    await broadcaster.store.set_admin_id(user.id)
    await update.message.reply_text("✓ Admin set to your Telegram ID.")


async def broadcast_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Admin-only: forward free text to the group."""
    broadcaster = _broadcaster(context)
    user = update.effective_user
    if not _is_admin(broadcaster, user.id if user else None):
        await update.message.reply_text("❌ You are not authorized to use this command.")
        return

    text = " ".join(context.args or []).strip()
    if not text:
        await update.message.reply_text("Usage: /broadcast Your message here")
        return

    try:
        await context.bot.send_message(
            chat_id=broadcaster.destination, text=f"📢 Admin Broadcast:\n\n{text}"
        )
    except TelegramError as exc:
        logger.error("Admin broadcast failed: %s", exc)
        await update.message.reply_text(f"✗ Failed to send broadcast: {exc}")
        return
    await update.message.reply_text("✓ Broadcast sent to the group.")


async def digest_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Admin-only: trigger a digest cycle without waiting for the timer."""
    broadcaster = _broadcaster(context)
    user = update.effective_user
    if not _is_admin(broadcaster, user.id if user else None):
        await update.message.reply_text("❌ You are not authorized to use this command.")
        return
    if broadcaster.state == CycleState.RUNNING:
        await update.message.reply_text("A digest is already being built.")
        return
    context.application.create_task(broadcaster.run_cycle(context.bot))
    await update.message.reply_text("✓ Digest cycle started.")


async def language_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    user = update.effective_user
    if user is None:
        return
    name = " ".join(context.args or []).strip().capitalize()
    try:
        language = LanguageCategory(name)
    except ValueError:
        choices = ", ".join(c.value for c in LanguageCategory if c != LanguageCategory.MIXED)
        await update.message.reply_text(f"Usage: /language <name>\nChoose from: {choices}")
        return
    await _broadcaster(context).store.set_preferred_language(user.id, language.value)
    await update.message.reply_text(f"✓ Preferred language set to {language.value}.")


async def new_members_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Register new members, remember the group, post the welcome message."""
    message = update.message
    if message is None:
        return
    broadcaster = _broadcaster(context)
    store = broadcaster.store

    chat = update.effective_chat
    if chat is None or chat.id != broadcaster.chat_id:
        logger.warning("Ignoring join event from unconfigured chat %s", getattr(chat, "id", None))
        return
    if store.group_id != chat.id:
        await store.set_group_id(chat.id)
        logger.info("Stored group id %s", chat.id)

    for member in message.new_chat_members:
        if not member.is_bot:
            await store.register_member(member.id)

    try:
        await message.reply_text(WELCOME_MESSAGE[:3000])
    except TelegramError as exc:
        logger.warning("Welcome message failed: %s", exc)
