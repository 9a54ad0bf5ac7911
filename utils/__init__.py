"""
Location: utils/__init__.py
Summary: Utils package for shared constants, decorators and text formatting.

Used by: main.py, commands.py, telegram_bot.py, delivery.py, web_server.py
"""

from utils.constants import (
    DISCORD_MESSAGE_LIMIT,
    TELEGRAM_MESSAGE_LIMIT,
    PAYMENT_CALLBACK_EXPIRY_SECONDS,
    SWEEP_INTERVAL_SECONDS,
)
from utils.decorators import with_error_handling
from utils.text_formatting import split_response, truncate_response, create_embed

__all__ = [
    "DISCORD_MESSAGE_LIMIT",
    "TELEGRAM_MESSAGE_LIMIT",
    "PAYMENT_CALLBACK_EXPIRY_SECONDS",
    "SWEEP_INTERVAL_SECONDS",
    "with_error_handling",
    "split_response",
    "truncate_response",
    "create_embed",
]
