"""
Location: utils/constants.py
Summary: Application-wide constants for the summariser bot.
         Contains platform message limits, payment timing and user-facing copy.

Used by: commands.py, telegram_bot.py, delivery.py, web_server.py
"""

# Platform message length limits.
DISCORD_MESSAGE_LIMIT = 2000
DISCORD_EMBED_DESCRIPTION_LIMIT = 4096
TELEGRAM_MESSAGE_LIMIT = 4096

# Pending payment callbacks expire after 15 minutes and are swept every 30.
PAYMENT_CALLBACK_EXPIRY_SECONDS = 15 * 60
SWEEP_INTERVAL_SECONDS = 30 * 60

# Paid entrypoint keys, used in URLs and the /pay query string.
DISCORD_ENTRYPOINT = "summarise-chat"
TELEGRAM_ENTRYPOINT = "summarise-telegram-chat"

DISCORD_ENTRYPOINT_DESCRIPTION = (
    "Summarise recent Discord channel activity with a cordial recap and action items."
)
TELEGRAM_ENTRYPOINT_DESCRIPTION = (
    "Summarise recent Telegram chat activity with a cordial recap and action items."
)

TELEGRAM_PAYMENT_CONFIRMED = "✅ Payment confirmed - summary posted below."

HELP_TEXT = (
    "**/summarise** `minutes` - summarise the last N minutes of this channel (1-480, default 60).\n"
    "You'll get a payment link; once the x402 payment settles, the summary and any action "
    "items are posted here automatically."
)

TELEGRAM_HELP_TEXT = (
    "Hey! I summarise what happened in this chat.\n\n"
    "• /summarise - summarise the last 60 minutes\n"
    "• /summarise <minutes> - summarise up to the last 480 minutes\n\n"
    "Each summary is paid with a small x402 stablecoin payment."
)
