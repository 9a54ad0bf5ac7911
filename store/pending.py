"""
Location: store/pending.py
Summary: Single-use pending payment callbacks. A record is created when a chat
         command issues a payment link and is taken exactly once when the
         payment settles. A background task sweeps expired records every
         30 minutes.

Used by: commands.py, telegram_bot.py (create), web_server.py (take_once), main.py (start/stop)
Uses: models.py (PendingCallback)
"""

import asyncio
import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import pytz

from store.models import PendingCallback
from utils.constants import PAYMENT_CALLBACK_EXPIRY_SECONDS, SWEEP_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class PendingCallbackStore:
    """Token-keyed store of pending callbacks with expiry.

    Attributes:
        expiry: Lifetime of a new record.
        sweep_interval: Seconds between background sweeps.
    """

    def __init__(
        self,
        expiry_seconds: int = PAYMENT_CALLBACK_EXPIRY_SECONDS,
        sweep_interval: int = SWEEP_INTERVAL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.expiry = timedelta(seconds=expiry_seconds)
        self.sweep_interval = sweep_interval
        self._clock = clock or (lambda: datetime.now(pytz.UTC))
        self._entries: Dict[str, PendingCallback] = {}
        self._lock = threading.RLock()
        self._sweep_task: Optional[asyncio.Task] = None
        self._running = False

    @staticmethod
    def new_token() -> str:
        return uuid.uuid4().hex

    def create(self, platform: str, chat_id, lookback_minutes: int, **fields) -> PendingCallback:
        """Create and store a record with a fresh token.

        Args:
            platform: "discord" or "telegram".
            chat_id: Channel or chat to deliver to.
            lookback_minutes: Requested window.
            **fields: Remaining PendingCallback attributes.
        """
        callback = PendingCallback(
            token=self.new_token(),
            platform=platform,
            chat_id=str(chat_id),
            lookback_minutes=lookback_minutes,
            expires_at=self._clock() + self.expiry,
            **fields,
        )
        self.put(callback)
        return callback

    def put(self, callback: PendingCallback) -> None:
        """Store a record.

        Raises:
            ValueError: A live record already uses this token.
        """
        with self._lock:
            existing = self._entries.get(callback.token)
            if existing is not None and not existing.is_expired(self._clock()):
                raise ValueError(f"Callback token already pending: {callback.token[:8]}...")
            self._entries[callback.token] = callback
        logger.debug(f"Stored pending {callback.platform} callback for chat {callback.chat_id}")

    def get(self, token: str) -> Optional[PendingCallback]:
        """Look up a live record without consuming it."""
        with self._lock:
            callback = self._entries.get(token)
        if callback is None or callback.is_expired(self._clock()):
            return None
        return callback

    def take_once(self, token: str) -> Optional[PendingCallback]:
        """Remove and return a live record; None if unknown or expired."""
        with self._lock:
            callback = self._entries.pop(token, None)
        if callback is None:
            return None
        if callback.is_expired(self._clock()):
            logger.info(f"Pending callback {token[:8]}... expired before use")
            return None
        return callback

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every expired record.

        Returns:
            Number of records removed.
        """
        now = now or self._clock()
        with self._lock:
            expired = [t for t, cb in self._entries.items() if cb.is_expired(now)]
            for token in expired:
                del self._entries[token]
        if expired:
            logger.info(f"Swept {len(expired)} expired payment callbacks")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Callback sweeper already running")
            return
        self._running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info("Pending callback sweeper started")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        self._running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        logger.info("Pending callback sweeper stopped")

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.sweep_interval)
                self.sweep_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in callback sweep loop: {e}", exc_info=True)
