"""
Location: summary/orchestrator.py
Summary: Runs a summary request end to end. Resolves the window, gathers messages
         (Discord history via the injected fetcher, Telegram from the message
         buffer), formats the transcript, asks the LLM and post-processes the
         answer. Any LLM failure, timeout or degenerate answer falls back to a
         deterministic summary so a paid request always gets a result.

Used by: web_server.py (entrypoint handlers), main.py (construction)
Uses: window.py, formatter.py, summarizer.py, fallback.py, pipeline.py,
      store.ConversationStore, discord_api.DiscordHistoryFetcher
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

import pytz

from config import ConfigurationError
from summary.fallback import build_fallback
from summary.formatter import build_transcript, messages_from_store
from summary.models import Message, SummaryResult, WindowDescriptor
from summary.pipeline import finalize
from summary.summarizer import (
    SummarizerError,
    build_payload,
    clean_summary,
)
from summary.window import (
    DEFAULT_LOOKBACK_MINUTES,
    ENTRYPOINT_MAX_LOOKBACK_MINUTES,
    WindowError,
    resolve_discord_window,
    validate_lookback,
)

logger = logging.getLogger(__name__)

MIN_SUMMARY_CHARS = 10
DISCORD_EMPTY_MODEL = "discord-empty"
TELEGRAM_EMPTY_MODEL = "telegram-empty"


class SummaryOrchestrator:
    """Produces SummaryResults for Discord channels and Telegram chats.

    Attributes:
        fetcher: Discord history fetcher, or None when Discord is not configured.
        summarizer: LLM summarizer, or None to always use the fallback.
        store: Telegram message buffer.
        tz: pytz timezone for the greeting clock.
    """

    def __init__(
        self,
        fetcher=None,
        summarizer=None,
        store=None,
        tz=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.fetcher = fetcher
        self.summarizer = summarizer
        self.store = store
        self.tz = tz or pytz.UTC
        self._clock = clock or (lambda: datetime.now(pytz.UTC))

    async def summarise_discord(
        self,
        channel_id: Optional[str] = None,
        guild_id: Optional[str] = None,
        lookback_minutes: Optional[int] = None,
        start_message_url: Optional[str] = None,
        end_message_url: Optional[str] = None,
    ) -> SummaryResult:
        """Summarise a Discord channel over a lookback or between two message links.

        Raises:
            ConfigurationError: No Discord client is available.
            WindowError: The window arguments are invalid.
        """
        if self.fetcher is None:
            raise ConfigurationError("Discord is not configured; set DISCORD_TOKEN")

        now = self._clock()
        window = resolve_discord_window(
            channel_id=channel_id,
            guild_id=guild_id,
            lookback_minutes=lookback_minutes,
            start_message_url=start_message_url,
            end_message_url=end_message_url,
            now=now,
        )
        label = await self.fetcher.fetch_channel_label(window.channel_id, window.guild_id)
        messages = await self.fetcher.fetch_messages(window)
        logger.info(f"Fetched {len(messages)} Discord messages from {label} ({window.range_label})")

        if not messages:
            return SummaryResult(
                summary=f"No Discord messages found in {label} for {window.range_label}.",
                actionables=[],
                model=DISCORD_EMPTY_MODEL,
            )

        descriptor = WindowDescriptor(
            lookback_minutes=window.lookback_minutes,
            range_label=window.range_label,
        )
        time_window = f"{window.start.isoformat()} → {window.end.isoformat()} ({window.range_label})"
        return await self._summarise(
            platform="discord",
            messages=messages,
            channel_label=label,
            time_window=time_window,
            descriptor=descriptor,
            now=now,
        )

    async def summarise_telegram(self, chat_id, lookback_minutes: int = DEFAULT_LOOKBACK_MINUTES) -> SummaryResult:
        """Summarise the buffered messages of a Telegram chat.

        Raises:
            WindowError: The chat ID or lookback is invalid.
        """
        try:
            chat = int(str(chat_id).strip())
        except (TypeError, ValueError):
            raise WindowError("Chat ID must be a numeric Telegram chat identifier.")
        minutes = validate_lookback(lookback_minutes, ENTRYPOINT_MAX_LOOKBACK_MINUTES)

        stored = self.store.query_within(chat, minutes) if self.store is not None else []
        if not stored:
            return SummaryResult(
                summary=f"No Telegram messages found in chat {chat} for the last {minutes} minutes.",
                actionables=[],
                model=TELEGRAM_EMPTY_MODEL,
            )

        messages = messages_from_store(stored)
        if not messages:
            return SummaryResult(
                summary=f"Recent Telegram messages in chat {chat} were empty or unsupported for summarisation.",
                actionables=[],
                model=TELEGRAM_EMPTY_MODEL,
            )

        now = self._clock()
        return await self._summarise(
            platform="telegram",
            messages=messages,
            channel_label=f"chat {chat}",
            time_window=f"the last {minutes} minutes",
            descriptor=WindowDescriptor(lookback_minutes=minutes),
            now=now,
        )

    async def _summarise(
        self,
        platform: str,
        messages: List[Message],
        channel_label: str,
        time_window: str,
        descriptor: WindowDescriptor,
        now: datetime,
    ) -> SummaryResult:
        conversation, entries = build_transcript(messages)

        if self.summarizer is None:
            return build_fallback(messages, conversation, entries, descriptor,
                                  reason="No LLM is configured.", now=now, tz=self.tz)

        payload = build_payload(
            platform=platform,
            channel_label=channel_label,
            time_window=time_window,
            messages=messages,
            lookback_minutes=descriptor.lookback_minutes,
        )
        try:
            llm = await self.summarizer.summarize(payload)
        except SummarizerError as e:
            logger.warning(f"LLM summary failed for {channel_label}, using fallback: {e}")
            return build_fallback(messages, conversation, entries, descriptor,
                                  reason=str(e), now=now, tz=self.tz)

        cleaned = clean_summary(llm.summary)
        if len(cleaned) < MIN_SUMMARY_CHARS:
            logger.warning(f"LLM returned a degenerate summary for {channel_label}, using fallback")
            return build_fallback(messages, conversation, entries, descriptor,
                                  reason="The model returned an empty summary.", now=now, tz=self.tz)

        return SummaryResult(
            summary=finalize(cleaned, descriptor, entries, now, self.tz),
            actionables=list(llm.actionables),
            model=llm.model or getattr(self.summarizer, "model_id", None),
        )
