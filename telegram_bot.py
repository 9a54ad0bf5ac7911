"""
Location: telegram_bot.py
Summary: Telegram side of the summariser, built on python-telegram-bot. Buffers
         every non-command text message for up to 24 hours, tracks reaction
         counts, and answers /summarise with an x402 payment prompt whose
         callback token routes the paid summary back into the chat.

Used by: main.py (constructed and started alongside the Discord bot and web server)
Uses: python-telegram-bot, store.ConversationStore, store.PendingCallbackStore,
      payments.build_pay_url, summary/window.py (validate_lookback)
"""

import logging
from typing import Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    MessageReactionHandler,
    filters,
)

from payments import build_pay_url
from store.models import TELEGRAM, StoredMessage
from summary.window import DEFAULT_LOOKBACK_MINUTES, MAX_LOOKBACK_MINUTES, LookbackError, validate_lookback
from utils.constants import TELEGRAM_HELP_TEXT

logger = logging.getLogger(__name__)


def author_display(user) -> Optional[str]:
    """First and last name, falling back to the username."""
    if user is None:
        return None
    if user.first_name:
        return f"{user.first_name} {user.last_name}" if user.last_name else user.first_name
    return user.username


def parse_lookback_args(args) -> int:
    """Lookback from /summarise arguments; default when none given.

    Raises:
        LookbackError: The first argument is not a valid lookback.
    """
    if not args:
        return DEFAULT_LOOKBACK_MINUTES
    return validate_lookback(args[0], MAX_LOOKBACK_MINUTES)


def payment_prompt(lookback_minutes: int) -> str:
    return (
        "🪙 *Payment Required*\n\n"
        f"We'll summarise the last {lookback_minutes} minutes of this chat."
    )


class TelegramSummaryBot:
    """python-telegram-bot application wired to the shared stores.

    Attributes:
        application: PTB Application.
        store: Buffer of recent chat messages.
        pending: Pending payment callbacks.
    """

    def __init__(self, token: str, store, pending, base_url: str, price: str = "0.10"):
        self.store = store
        self.pending = pending
        self.base_url = base_url
        self.price = price
        self.application = Application.builder().token(token).build()
        self._register_handlers()

    @property
    def bot(self):
        return self.application.bot

    def _register_handlers(self) -> None:
        app = self.application
        app.add_handler(CommandHandler("start", self._cmd_help))
        app.add_handler(CommandHandler("help", self._cmd_help))
        app.add_handler(CommandHandler(["summarise", "summarize"], self._cmd_summarise))
        app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self._on_message))
        app.add_handler(MessageReactionHandler(self._on_reaction))
        app.add_error_handler(self._on_error)

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Buffer a text message for later summaries."""
        message = update.effective_message
        chat = update.effective_chat
        if message is None or chat is None:
            return
        text = (message.text or "").strip()
        if not text or text.startswith("/"):
            return

        user = update.effective_user
        self.store.append(chat.id, StoredMessage(
            message_id=message.message_id,
            text=message.text,
            timestamp=message.date,
            author_id=user.id if user else None,
            author_username=user.username if user else None,
            author_display=author_display(user),
            reply_to_id=message.reply_to_message.message_id if message.reply_to_message else None,
        ))

    async def _on_reaction(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Track reaction totals from anonymous count updates and per-user updates."""
        counts = update.message_reaction_count
        if counts is not None:
            total = sum(r.total_count for r in counts.reactions)
            self.store.update_reactions(counts.chat.id, counts.message_id, total)
            return

        change = update.message_reaction
        if change is not None:
            delta = len(change.new_reaction) - len(change.old_reaction)
            if delta:
                self.store.adjust_reactions(change.chat.id, change.message_id, delta)

    async def _cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.effective_message is None:
            return
        await update.effective_message.reply_text(TELEGRAM_HELP_TEXT)

    async def _cmd_summarise(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Reply with a payment prompt for a summary of this chat."""
        message = update.effective_message
        chat = update.effective_chat
        if message is None:
            return
        if chat is None:
            await message.reply_text("❌ Could not determine chat id.")
            return

        try:
            lookback = parse_lookback_args(context.args)
        except LookbackError as e:
            await message.reply_text(f"❌ {e}\n\nUsage: /summarise 60")
            return

        user = update.effective_user
        callback = self.pending.create(
            TELEGRAM,
            chat_id=chat.id,
            lookback_minutes=lookback,
            thread_id=message.message_thread_id if message.is_topic_message else None,
            message_id=message.message_id,
            username=user.username if user else None,
        )
        pay_url = build_pay_url(
            self.base_url,
            TELEGRAM,
            callback.token,
            chatId=chat.id,
            lookbackMinutes=lookback,
        )
        keyboard = InlineKeyboardMarkup([[InlineKeyboardButton(f"Pay ${self.price} via x402", url=pay_url)]])

        sent = await message.reply_text(
            payment_prompt(lookback),
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=keyboard,
        )
        callback.payment_message_id = sent.message_id
        logger.info(f"Issued payment link for {lookback} min summary of Telegram chat {chat.id}")

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error(f"Telegram handler error: {context.error}", exc_info=context.error)

    async def start(self) -> None:
        """Initialize the application and start long polling without blocking."""
        await self.application.initialize()
        await self.application.start()
        await self.application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
        logger.info("Telegram bot polling started")

    async def stop(self) -> None:
        """Stop polling and shut the application down."""
        if self.application.updater and self.application.updater.running:
            await self.application.updater.stop()
        if self.application.running:
            await self.application.stop()
        await self.application.shutdown()
        logger.info("Telegram bot stopped")
