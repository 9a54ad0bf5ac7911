"""
Location: summary/greeting.py
Summary: Greeting assurance for summaries. Prepends a time-of-day greeting and a
         "Here is what happened in ..." line unless the summary already opens
         with a greeting. The clock and timezone are injectable so callers (and
         tests) never depend on the host's local time.

Used by: pipeline.py, fallback.py
Uses: models.py (WindowDescriptor), pytz
"""

import re
from datetime import datetime
from typing import Optional

import pytz

from summary.models import WindowDescriptor

GREETING_PATTERN = re.compile(
    r"^(?:good\s+(?:morning|afternoon|evening|night)|hello|hi|hey|greetings)\b",
    re.IGNORECASE,
)

BULLET_PREFIXES = ("•", "-")


def time_based_greeting(now: datetime) -> str:
    """Pick a greeting for the wall-clock hour of ``now``."""
    hour = now.hour
    if 5 <= hour < 12:
        return "Good morning!"
    if 12 <= hour < 17:
        return "Good afternoon!"
    if 17 <= hour < 22:
        return "Good evening!"
    return "Hello!"


def window_phrase(window: Optional[WindowDescriptor]) -> str:
    """Describe the summary window for the intro line."""
    if window is not None:
        if window.lookback_minutes is not None and window.lookback_minutes > 0:
            return f"the last {window.lookback_minutes} minutes"
        if window.range_label and window.range_label.strip():
            return window.range_label.strip()
    return "this period"


def resolve_now(now: Optional[datetime] = None, tz=None) -> datetime:
    """Return ``now`` expressed in ``tz`` (default UTC).

    Naive datetimes are taken to already be in ``tz``.
    """
    zone = tz or pytz.UTC
    if now is None:
        return datetime.now(zone)
    if now.tzinfo is None:
        return zone.localize(now) if hasattr(zone, "localize") else now.replace(tzinfo=zone)
    return now.astimezone(zone)


def has_greeting(text: str) -> bool:
    return bool(GREETING_PATTERN.match((text or "").strip()))


def build_intro(window: Optional[WindowDescriptor], now: datetime) -> str:
    return f"{time_based_greeting(now)} Here is what happened in {window_phrase(window)}:"


def ensure_greeting(
    summary: str,
    window: Optional[WindowDescriptor] = None,
    now: Optional[datetime] = None,
    tz=None,
) -> str:
    """Make sure a summary starts with a greeting line.

    Args:
        summary: Raw summary text.
        window: Window the summary covers.
        now: Clock reading; defaults to the current time.
        tz: pytz timezone used to read the hour; defaults to UTC.

    Returns:
        The trimmed summary, untouched if it already greets, otherwise with an
        intro prepended: on its own line when the summary starts with a bullet
        marker, inline otherwise. Blank input returns "".
    """
    trimmed = (summary or "").strip()
    if not trimmed:
        return ""
    if has_greeting(trimmed):
        return trimmed

    intro = build_intro(window, resolve_now(now, tz))
    if trimmed.startswith(BULLET_PREFIXES):
        return f"{intro}\n{trimmed}"
    return f"{intro} {trimmed}".strip()
