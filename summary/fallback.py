"""
Location: summary/fallback.py
Summary: Deterministic summaries for when the LLM is unavailable, fails, times
         out or returns something unusable. Chatty windows (banter, emoji,
         reply threads, no substantive vocabulary) get a "social" summary that
         surfaces the most engaging message; everything else gets the first few
         transcript lines pushed through the bullet pipeline.

Used by: orchestrator.py
Uses: formatter.py, greeting.py, pipeline.py, scoring.py, models.py
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from summary.greeting import build_intro, resolve_now
from summary.models import ConversationEntry, Message, SummaryResult, WindowDescriptor
from summary.pipeline import assemble, finalize
from summary.scoring import (
    ACTION_PATTERN,
    LAUGHTER_PATTERN,
    RESOLUTION_PATTERN,
    STATUS_PATTERN,
    is_emoji_only,
    is_emoji_char,
)

logger = logging.getLogger(__name__)

FALLBACK_LINE_COUNT = 5
LONG_MESSAGE_CHARS = 160
EXCERPT_CHARS = 80

FALLBACK_MODEL = "fallback"
SOCIAL_FALLBACK_MODEL = "social-fallback"

HUMOR_CUES = ("😂", "🤣", "💀", "lmao", "lol", "haha", "rofl", "😆")


def transcript_excerpt(conversation: str, count: int = FALLBACK_LINE_COUNT) -> str:
    """First ``count`` transcript lines, each marked as a bullet."""
    lines = [line.strip() for line in (conversation or "").split("\n") if line.strip()]
    return "\n".join(f"• {line}" for line in lines[:count])


def _is_substantive(text: str) -> bool:
    return bool(
        ACTION_PATTERN.search(text)
        or STATUS_PATTERN.search(text)
        or RESOLUTION_PATTERN.search(text)
    )


def _has_emoji(message: Message) -> bool:
    return bool(message.reactions) or any(is_emoji_char(c) for c in message.text or "")


def _has_humor(text: str) -> bool:
    lowered = (text or "").lower()
    return bool(LAUGHTER_PATTERN.search(lowered)) or any(cue in lowered for cue in HUMOR_CUES)


def is_chatty(messages: Sequence[Message]) -> bool:
    """Heuristic: the window is social chatter rather than work talk.

    True when no message uses action, status or resolution vocabulary and at
    least one engagement signal is present (emoji or reactions, reply
    threads, humor cues, long messages).
    """
    if not messages:
        return False
    if any(_is_substantive(m.text or "") for m in messages):
        return False
    return any(
        _has_emoji(m)
        or m.reply_to_id is not None
        or _has_humor(m.text)
        or len(m.text or "") >= LONG_MESSAGE_CHARS
        for m in messages
    )


def _excerpt(text: str) -> str:
    cleaned = " ".join((text or "").replace(":", " ").split())
    if len(cleaned) > EXCERPT_CHARS:
        cleaned = cleaned[:EXCERPT_CHARS - 3].rstrip() + "..."
    return cleaned


def social_bullets(messages: Sequence[Message]) -> List[str]:
    """Up to three bullets describing a chatty window."""
    candidates = [m for m in messages if (m.text or "").strip() and not is_emoji_only(m.text)]
    bullets = []

    if candidates:
        top = max(candidates, key=lambda m: (m.reaction_total, len(m.text)))
        if top.reaction_total > 0:
            bullets.append(
                f"{top.speaker_name} drew the most reactions ({top.reaction_total}) "
                f"with \"{_excerpt(top.text)}\"."
            )
        else:
            bullets.append(f"{top.speaker_name} posted the longest message, \"{_excerpt(top.text)}\".")

    speakers = {m.speaker_name for m in messages}
    noun = "person" if len(speakers) == 1 else "people"
    bullets.append(
        f"{len(speakers)} {noun} chatted across {len(messages)} messages, mostly casual banter."
    )

    replies = sum(1 for m in messages if m.reply_to_id is not None)
    if replies:
        bullets.append(f"{replies} {'reply' if replies == 1 else 'replies'} kept the back-and-forth going.")

    return bullets[:3]


def social_summary(
    messages: Sequence[Message],
    window: Optional[WindowDescriptor] = None,
    now: Optional[datetime] = None,
    tz=None,
) -> str:
    intro = build_intro(window, resolve_now(now, tz))
    return assemble(intro, social_bullets(messages))


def build_fallback(
    messages: Sequence[Message],
    conversation: str,
    entries: List[ConversationEntry],
    window: Optional[WindowDescriptor] = None,
    reason: str = "",
    now: Optional[datetime] = None,
    tz=None,
) -> SummaryResult:
    """Produce a deterministic SummaryResult without the LLM.

    Args:
        messages: Messages in the window.
        conversation: Formatted transcript.
        entries: Conversation entries from the transcript.
        window: Window descriptor for the greeting.
        reason: Why the fallback was used; appears in the text only when the
            transcript itself is empty.
        now: Clock reading for the greeting.
        tz: pytz timezone for the greeting.
    """
    if is_chatty(messages):
        logger.info(f"Using social fallback for {len(messages)} messages")
        return SummaryResult(
            summary=social_summary(messages, window, now, tz),
            actionables=[],
            model=SOCIAL_FALLBACK_MODEL,
        )

    excerpt = transcript_excerpt(conversation)
    if not excerpt:
        label = window.range_label if window and window.range_label else "this period"
        excerpt = f"Messages retrieved ({label}), but no summary could be generated. {reason}".strip()

    return SummaryResult(
        summary=finalize(excerpt, window, entries, now, tz),
        actionables=[],
        model=FALLBACK_MODEL,
    )
