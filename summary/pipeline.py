"""
Location: summary/pipeline.py
Summary: The bullet pipeline entry point. finalize() takes a raw summary (LLM
         output or a transcript excerpt), makes sure it opens with a greeting,
         rewrites every body line into a third-person sentence, scores and
         filters the sentences and assembles the final message. It is pure and
         never raises: any unexpected failure degrades to the greeting-ensured
         text.

Used by: orchestrator.py, fallback.py
Uses: greeting.py, bullets.py, scoring.py, models.py
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from summary.bullets import extract_bullets
from summary.greeting import ensure_greeting
from summary.models import ConversationEntry, WindowDescriptor
from summary.scoring import filter_and_rank

logger = logging.getLogger(__name__)

BULLET_MARKER = "•"


def split_intro(text: str):
    """Split text into (intro line, body) where body is everything after line one."""
    lines = text.strip().split("\n")
    intro = lines[0].strip()
    body = "\n".join(lines[1:]).strip()
    return intro, body


def assemble(intro: str, bullets: Sequence[str], marker: str = BULLET_MARKER) -> str:
    """Join the intro and bullet sentences into the final message."""
    if not bullets:
        return intro
    return intro + "\n" + "\n".join(f"{marker} {bullet}" for bullet in bullets)


def normalize_summary_bullets(summary: str, entries: List[ConversationEntry]) -> str:
    """Rewrite and rank the body lines of a greeting-ensured summary.

    Args:
        summary: Summary whose first line is the intro.
        entries: Conversation entries for speaker lookup and answer pairing.

    Returns:
        Intro plus ranked bullets; the text unchanged when it has no body;
        intro plus the untouched body when no line yields a bullet.
    """
    trimmed = (summary or "").strip()
    if not trimmed:
        return ""

    intro, body = split_intro(trimmed)
    if not body:
        return trimmed

    bullets = extract_bullets(body, entries)
    if not bullets:
        return f"{intro}\n{body}"

    return assemble(intro, filter_and_rank(bullets))


def finalize(
    raw_summary: str,
    window: Optional[WindowDescriptor] = None,
    entries: Optional[List[ConversationEntry]] = None,
    now: Optional[datetime] = None,
    tz=None,
) -> str:
    """Turn a raw summary into the user-facing message.

    Args:
        raw_summary: LLM output or fallback transcript excerpt.
        window: Lookback minutes or range label for the greeting.
        entries: Conversation entries (may be empty).
        now: Clock reading for the greeting; defaults to the current time.
        tz: pytz timezone for the greeting hour; defaults to UTC.

    Returns:
        Final text. Blank input returns "".
    """
    try:
        with_greeting = ensure_greeting(raw_summary, window, now, tz)
    except Exception as e:
        logger.error(f"Greeting step failed, returning raw summary: {e}", exc_info=True)
        return (raw_summary or "").strip() if isinstance(raw_summary, str) else ""

    try:
        return normalize_summary_bullets(with_greeting, list(entries or []))
    except Exception as e:
        logger.error(f"Bullet normalization failed, returning greeting text: {e}", exc_info=True)
        return with_greeting
