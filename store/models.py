"""
Location: store/models.py
Summary: Dataclasses for the in-memory stores: StoredMessage rows in the
         short-term Telegram message buffer and PendingCallback records that
         link a payment request back to the chat that asked for it.

Used by: buffer.py, pending.py, telegram_bot.py, commands.py, delivery.py,
         summary/formatter.py
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

DISCORD = "discord"
TELEGRAM = "telegram"


@dataclass
class StoredMessage:
    """A chat message kept in the short-term buffer.

    Attributes:
        message_id: Platform message ID.
        text: Message text.
        timestamp: When the message was sent (UTC, timezone aware).
        author_id: Platform user ID of the author.
        author_username: Author handle, without "@".
        author_display: Author's display name (first + last name on Telegram).
        reply_to_id: Message this one replies to.
        reaction_count: Total reactions, updated in place.
    """
    message_id: int
    text: str
    timestamp: datetime
    author_id: Optional[int] = None
    author_username: Optional[str] = None
    author_display: Optional[str] = None
    reply_to_id: Optional[int] = None
    reaction_count: int = 0


@dataclass
class PendingCallback:
    """Correlates a payment request with the chat that should get the summary.

    Attributes:
        token: Single-use callback token carried through the payment flow.
        platform: DISCORD or TELEGRAM.
        chat_id: Discord channel ID or Telegram chat ID.
        lookback_minutes: Requested window.
        expires_at: When the record becomes invalid.
        guild_id: Discord guild ID.
        application_id: Discord application ID (for interaction follow-ups).
        interaction_token: Discord interaction token (for follow-ups).
        thread_id: Telegram forum topic ID.
        message_id: Message that issued the command.
        payment_message_id: Message carrying the payment prompt.
        username: Requesting user's handle.
    """
    token: str
    platform: str
    chat_id: str
    lookback_minutes: int
    expires_at: datetime
    guild_id: Optional[str] = None
    application_id: Optional[str] = None
    interaction_token: Optional[str] = None
    thread_id: Optional[int] = None
    message_id: Optional[int] = None
    payment_message_id: Optional[int] = None
    username: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
