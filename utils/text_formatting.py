"""
Location: utils/text_formatting.py
Summary: Text formatting utilities for chat messages.
         Splits long summaries to platform limits, truncates embed text and
         builds embeds with consistent defaults.

Used by: delivery.py (splitting), commands.py (embeds, truncation)
"""

from typing import List, Optional

import discord

from utils.constants import DISCORD_MESSAGE_LIMIT, DISCORD_EMBED_DESCRIPTION_LIMIT

_SENTENCE_ENDS = ('. ', '! ', '? ')


def create_embed(
    title: Optional[str] = None,
    description: Optional[str] = None,
    color: Optional[discord.Color] = None
) -> discord.Embed:
    """Create a Discord embed with the given parameters.

    Args:
        title: Optional title for the embed.
        description: Optional body text, truncated to the embed limit.
        color: Optional sidebar color. Defaults to Discord's default.

    Returns:
        A configured discord.Embed object.
    """
    embed = discord.Embed(color=color or discord.Color.default())
    if title:
        embed.title = title
    if description:
        embed.description = truncate_response(description, DISCORD_EMBED_DESCRIPTION_LIMIT)
    return embed


def _find_split_point(candidate: str, floor: int) -> Optional[int]:
    """Best natural boundary in ``candidate`` past ``floor``, or None."""
    para_break = candidate.rfind('\n\n')
    if para_break > floor:
        return para_break + 2

    line_break = candidate.rfind('\n')
    if line_break > floor:
        return line_break + 1

    sentence_end = max(candidate.rfind(end) for end in _SENTENCE_ENDS)
    if sentence_end > floor:
        return sentence_end + 2
    return None


def split_response(text: str, max_length: int = DISCORD_MESSAGE_LIMIT) -> List[str]:
    """Split text into chunks that fit a platform's message limit.

    Splits at paragraph breaks, then line breaks, then sentence ends. A
    chunk with no natural boundary in its last three quarters is cut hard
    and marked with '...'.

    Args:
        text: The full text to split.
        max_length: Maximum characters per chunk.

    Returns:
        List of strings, each within max_length.
    """
    if not text:
        return [""]

    chunks = []
    remaining = text
    while len(remaining) > max_length:
        candidate = remaining[:max_length]
        split_point = _find_split_point(candidate, max_length // 4)
        if split_point is None:
            split_point = max_length - 3
            chunks.append(remaining[:split_point] + '...')
            remaining = remaining[split_point:]
            continue
        chunks.append(remaining[:split_point].rstrip())
        remaining = remaining[split_point:].lstrip('\n')

    if remaining:
        chunks.append(remaining)
    return chunks or [""]


def truncate_response(text: str, max_length: int = DISCORD_MESSAGE_LIMIT) -> str:
    """Truncate text to a single message, preferring a sentence boundary.

    Args:
        text: The full text.
        max_length: Maximum allowed characters.

    Returns:
        The original text if within limits, or a truncated version ending in '...'.
    """
    if len(text) <= max_length:
        return text

    limit = max_length - 3
    truncated = text[:limit]
    last_sentence_end = max(
        truncated.rfind(end) for end in ('. ', '! ', '? ', '.\n', '!\n', '?\n')
    )
    if last_sentence_end > limit // 2:
        truncated = truncated[:last_sentence_end + 1]
    return truncated + '...'
