"""
Location: store/buffer.py
Summary: Per-chat short-term message store using bounded deques. Keeps a rolling
         24-hour window of at most 1000 messages per chat, trimmed on every
         insert, and supports reaction-count updates in place. Entirely
         volatile: nothing survives a restart.

Used by: telegram_bot.py (appends, reaction updates), summary/orchestrator.py (queries)
Uses: models.py (StoredMessage)
"""

import logging
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, List, Optional

import pytz

from store.models import StoredMessage

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 24
DEFAULT_MAX_MESSAGES = 1000


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


class ConversationStore:
    """Per-chat ring buffer for recent messages.

    Attributes:
        window: How far back messages are retained.
        max_messages: Maximum messages per chat.
        _buffers: Dict mapping chat ID to deque of messages.
    """

    def __init__(
        self,
        window_hours: int = DEFAULT_WINDOW_HOURS,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the store.

        Args:
            window_hours: Retention window in hours.
            max_messages: Maximum messages kept per chat.
            clock: Returns the current time; defaults to UTC now.
        """
        self.window = timedelta(hours=window_hours)
        self.max_messages = max_messages
        self._clock = clock or utc_now
        self._buffers: Dict[str, Deque[StoredMessage]] = {}
        self._lock = threading.RLock()

    def append(self, chat_id, message: StoredMessage) -> None:
        """Add a message to a chat's buffer and trim it.

        Args:
            chat_id: Chat the message belongs to.
            message: Message to store.
        """
        key = str(chat_id)
        with self._lock:
            if key not in self._buffers:
                self._buffers[key] = deque(maxlen=self.max_messages)
                logger.debug(f"Created new buffer for chat {key}")
            self._buffers[key].append(message)
            self.trim(key)

    def trim(self, chat_id) -> int:
        """Drop messages older than the retention window.

        Returns:
            Number of messages removed.
        """
        key = str(chat_id)
        with self._lock:
            buffer = self._buffers.get(key)
            if not buffer:
                return 0
            cutoff = self._clock() - self.window
            kept = [m for m in buffer if m.timestamp >= cutoff]
            removed = len(buffer) - len(kept)
            if removed:
                self._buffers[key] = deque(kept, maxlen=self.max_messages)
                logger.debug(f"Trimmed {removed} expired messages from chat {key}")
            return removed

    def query_within(self, chat_id, lookback_minutes: int) -> List[StoredMessage]:
        """Messages from the last ``lookback_minutes`` minutes, oldest first."""
        key = str(chat_id)
        cutoff = self._clock() - timedelta(minutes=lookback_minutes)
        with self._lock:
            messages = list(self._buffers.get(key, ()))
        return sorted(
            (m for m in messages if m.timestamp >= cutoff),
            key=lambda m: m.timestamp,
        )

    def update_reactions(self, chat_id, message_id: int, reaction_count: int) -> bool:
        """Set the reaction count of a stored message.

        Returns:
            True if the message was found.
        """
        with self._lock:
            for message in self._buffers.get(str(chat_id), ()):
                if message.message_id == message_id:
                    message.reaction_count = max(reaction_count, 0)
                    return True
        return False

    def adjust_reactions(self, chat_id, message_id: int, delta: int) -> bool:
        """Add ``delta`` to a stored message's reaction count, never below zero."""
        with self._lock:
            for message in self._buffers.get(str(chat_id), ()):
                if message.message_id == message_id:
                    message.reaction_count = max(message.reaction_count + delta, 0)
                    return True
        return False

    def chat_ids(self) -> List[str]:
        with self._lock:
            return list(self._buffers.keys())

    def total_messages(self) -> int:
        with self._lock:
            return sum(len(buf) for buf in self._buffers.values())
