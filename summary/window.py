"""
Location: summary/window.py
Summary: Summary window resolution. Validates lookback minutes, parses Discord
         message links, does Discord snowflake arithmetic and resolves a request
         (lookback window OR a start/end message link pair) into a concrete
         DiscordWindow that the history fetcher can page through.

Used by: orchestrator.py, commands.py, telegram_bot.py, web_server.py, schemas.py
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlparse

import pytz

DISCORD_EPOCH_MS = 1420070400000

# Slash commands and Telegram commands cap the window at 8 hours.
MAX_LOOKBACK_MINUTES = 8 * 60

# Paid HTTP entrypoints accept up to 14 days.
ENTRYPOINT_MAX_LOOKBACK_MINUTES = 14 * 24 * 60

DEFAULT_LOOKBACK_MINUTES = 60

DISCORD_HOSTS = {
    "discord.com", "www.discord.com", "ptb.discord.com", "canary.discord.com",
    "discordapp.com", "www.discordapp.com",
}


class WindowError(ValueError):
    """The requested summary window is invalid."""


class LookbackError(WindowError):
    """Lookback minutes are missing, malformed or out of range."""


@dataclass
class MessageLink:
    """Parts of a Discord message link."""
    guild_id: Optional[str]
    channel_id: str
    message_id: str


@dataclass
class DiscordWindow:
    """A resolved Discord summary window.

    Attributes:
        channel_id: Channel to read.
        guild_id: Guild that owns the channel, when known.
        start: Earliest message time to include.
        end: Latest message time to include.
        after_id: Snowflake to page after (exclusive).
        end_message_id: Last message to include when summarising by links.
        range_label: Human-readable range ("the last 60 minutes", "message links A → B").
        lookback_minutes: Lookback when the window is time based.
    """
    channel_id: str
    guild_id: Optional[str]
    start: datetime
    end: datetime
    after_id: str
    range_label: str
    end_message_id: Optional[str] = None
    lookback_minutes: Optional[int] = None


def describe_hours(minutes: int) -> str:
    hours = minutes / 60
    if hours >= 24 and hours % 24 == 0:
        days = int(hours // 24)
        return f"{days} day{'s' if days != 1 else ''}"
    if hours == int(hours):
        hours = int(hours)
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{hours:.1f} hours"


def validate_lookback(value, maximum: int = MAX_LOOKBACK_MINUTES) -> int:
    """Validate a lookback value and return whole minutes.

    Args:
        value: Raw value (int, float or numeric string).
        maximum: Upper bound in minutes.

    Returns:
        Minutes, floored to an integer.

    Raises:
        LookbackError: Value is not numeric, below 1 or above ``maximum``.
    """
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise LookbackError("Lookback must be provided as a number of minutes.")
    if isinstance(value, bool) or not math.isfinite(numeric):
        raise LookbackError("Lookback must be provided as a number of minutes.")

    minutes = math.floor(numeric)
    if minutes <= 0:
        raise LookbackError("Lookback must be at least 1 minute.")
    if minutes > maximum:
        raise LookbackError(
            f"Lookback may not exceed {maximum} minutes ({describe_hours(maximum)})."
        )
    return minutes


def parse_message_link(url: str) -> Optional[MessageLink]:
    """Parse https://discord.com/channels/{guild|@me}/{channel}/{message}."""
    try:
        parsed = urlparse((url or "").strip())
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or parsed.hostname not in DISCORD_HOSTS:
        return None

    segments = [s for s in parsed.path.split("/") if s]
    if len(segments) < 4 or segments[0] != "channels":
        return None

    guild, channel, message = segments[1], segments[2], segments[3]
    if not channel.isdigit() or not message.isdigit():
        return None
    return MessageLink(
        guild_id=guild if guild and guild != "@me" else None,
        channel_id=channel,
        message_id=message,
    )


def snowflake_to_datetime(snowflake: str) -> datetime:
    ms = (int(snowflake) >> 22) + DISCORD_EPOCH_MS
    return datetime.fromtimestamp(ms / 1000, tz=pytz.UTC)


def snowflake_from_datetime(moment: datetime, adjustment: int = 0) -> str:
    """Smallest snowflake for ``moment`` plus ``adjustment``, floored at 0.

    Raises:
        WindowError: ``moment`` precedes the Discord epoch.
    """
    ms = int(moment.timestamp() * 1000)
    if ms < DISCORD_EPOCH_MS:
        raise WindowError("Date precedes the Discord epoch (2015-01-01).")
    value = ((ms - DISCORD_EPOCH_MS) << 22) + adjustment
    return str(max(value, 0))


def compare_snowflakes(a: str, b: str) -> int:
    left, right = int(a), int(b)
    if left == right:
        return 0
    return -1 if left < right else 1


def decrement_snowflake(snowflake: str) -> str:
    value = int(snowflake)
    return "0" if value <= 0 else str(value - 1)


def lookback_window(
    channel_id: str,
    lookback_minutes: int,
    guild_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DiscordWindow:
    """Window covering the last ``lookback_minutes`` minutes."""
    now = now or datetime.now(pytz.UTC)
    epoch = datetime.fromtimestamp(DISCORD_EPOCH_MS / 1000, tz=pytz.UTC)
    start = max(now - timedelta(minutes=lookback_minutes), epoch)
    return DiscordWindow(
        channel_id=channel_id,
        guild_id=guild_id,
        start=start,
        end=now,
        after_id=snowflake_from_datetime(start, -1),
        range_label=f"the last {lookback_minutes} minutes",
        lookback_minutes=lookback_minutes,
    )


def link_window(
    start_url: str,
    end_url: str,
    channel_id: Optional[str] = None,
    guild_id: Optional[str] = None,
) -> DiscordWindow:
    """Window bounded by two message links (both inclusive).

    Raises:
        WindowError: Links are unparseable, point at different channels,
            disagree with ``channel_id`` or are out of order.
    """
    start_link = parse_message_link(start_url)
    end_link = parse_message_link(end_url)
    if start_link is None or end_link is None:
        raise WindowError("Unable to parse one or both Discord message links.")
    if start_link.channel_id != end_link.channel_id:
        raise WindowError("Start and end message links must reference the same channel.")
    if channel_id and channel_id.strip() != start_link.channel_id:
        raise WindowError("Provided channel ID does not match the supplied message links.")
    if compare_snowflakes(start_link.message_id, end_link.message_id) > 0:
        raise WindowError("Start message link must precede (or equal) the end message link.")

    return DiscordWindow(
        channel_id=start_link.channel_id,
        guild_id=guild_id or start_link.guild_id or end_link.guild_id,
        start=snowflake_to_datetime(start_link.message_id),
        end=snowflake_to_datetime(end_link.message_id) + timedelta(seconds=1),
        after_id=decrement_snowflake(start_link.message_id),
        end_message_id=end_link.message_id,
        range_label=f"message links {start_url} → {end_url}",
    )


def resolve_discord_window(
    channel_id: Optional[str] = None,
    guild_id: Optional[str] = None,
    lookback_minutes: Optional[int] = None,
    start_message_url: Optional[str] = None,
    end_message_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DiscordWindow:
    """Resolve a Discord request into a window.

    Exactly one of ``lookback_minutes`` or the link pair must be supplied.

    Raises:
        WindowError: The combination of arguments is invalid.
    """
    guild_id = guild_id.strip() if guild_id and guild_id.strip() else None
    has_links = bool(start_message_url) or bool(end_message_url)

    if lookback_minutes is not None and has_links:
        raise WindowError("Provide either a lookback window or message links, not both.")

    if lookback_minutes is not None:
        channel = (channel_id or "").strip()
        if not channel:
            raise WindowError("Channel ID is required when summarising via a lookback window.")
        return lookback_window(channel, lookback_minutes, guild_id, now)

    if start_message_url and end_message_url:
        return link_window(start_message_url, end_message_url, channel_id, guild_id)

    if has_links:
        raise WindowError(
            "Provide both start and end message links when using message link summarisation."
        )
    raise WindowError("Provide a lookback window in minutes or both start and end message links.")
