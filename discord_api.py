"""
Location: discord_api.py
Summary: Reads Discord channel history for a summary window. Resolves the
         channel and guild names for a readable label and pages through
         history after the window's start snowflake, stopping at the window
         end. A failing page keeps what was already fetched.

Used by: summary/orchestrator.py (via main.py wiring)
Uses: discord.py, summary/models.py, summary/window.py
"""

import logging
from typing import List, Optional

import discord

from summary.models import Attachment, Message, Reaction
from summary.window import DiscordWindow, WindowError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
MAX_FETCH_PAGES = 10


def channel_label(guild_name: Optional[str], guild_id: Optional[str],
                  channel_name: Optional[str], channel_id: str) -> str:
    """Human-readable "{server} · {channel}" label."""
    if guild_name:
        server = guild_name
    elif guild_id:
        server = f"server {guild_id}"
    else:
        server = "unknown server"
    channel = f"#{channel_name}" if channel_name else f"channel {channel_id}"
    return f"{server} · {channel}"


def to_message(msg: discord.Message) -> Message:
    """Convert a discord.py message into a summary Message."""
    author = msg.author
    reply_to = msg.reference.message_id if msg.reference and msg.reference.message_id else None
    return Message(
        id=str(msg.id),
        timestamp=msg.created_at,
        text=msg.content or "",
        display_name=getattr(author, "nick", None),
        global_name=getattr(author, "global_name", None),
        username=getattr(author, "name", None),
        reply_to_id=str(reply_to) if reply_to else None,
        attachments=[Attachment(filename=a.filename, content_type=a.content_type) for a in msg.attachments],
        reactions=[_to_reaction(r) for r in msg.reactions],
    )


def _to_reaction(reaction) -> Reaction:
    emoji_id = getattr(reaction.emoji, "id", None)
    if emoji_id:
        return Reaction(emoji=reaction.emoji.name, count=reaction.count, emoji_id=str(emoji_id))
    return Reaction(emoji=str(reaction.emoji), count=reaction.count)


class DiscordHistoryFetcher:
    """Fetches channel metadata and message history through a discord.py client.

    Attributes:
        client: Logged-in discord.py client.
        max_pages: Upper bound on history pages of 100 messages.
    """

    def __init__(self, client: discord.Client, max_pages: int = MAX_FETCH_PAGES):
        self.client = client
        self.max_pages = max_pages

    async def _get_channel(self, channel_id: str):
        channel = self.client.get_channel(int(channel_id))
        if channel is not None:
            return channel
        try:
            return await self.client.fetch_channel(int(channel_id))
        except discord.HTTPException as e:
            logger.warning(f"Could not fetch channel {channel_id}: {e}")
            return None

    async def _get_guild_name(self, channel, guild_id: Optional[str]) -> Optional[str]:
        guild = getattr(channel, "guild", None)
        if guild is not None:
            return guild.name
        if not guild_id:
            return None
        guild = self.client.get_guild(int(guild_id))
        if guild is not None:
            return guild.name
        try:
            return (await self.client.fetch_guild(int(guild_id))).name
        except discord.HTTPException as e:
            logger.debug(f"Could not fetch guild {guild_id}: {e}")
            return None

    async def fetch_channel_label(self, channel_id: str, guild_id: Optional[str] = None) -> str:
        """Label like "My Server · #general", degrading to IDs when lookups fail."""
        channel = await self._get_channel(channel_id)
        guild_name = await self._get_guild_name(channel, guild_id)
        return channel_label(guild_name, guild_id, getattr(channel, "name", None), channel_id)

    async def fetch_messages(self, window: DiscordWindow) -> List[Message]:
        """Messages inside ``window``, oldest first.

        Raises:
            WindowError: The channel does not exist or the bot cannot read it.
        """
        channel = await self._get_channel(window.channel_id)
        if channel is None or not hasattr(channel, "history"):
            raise WindowError(f"Channel {window.channel_id} is not a readable text channel.")

        end_id = int(window.end_message_id) if window.end_message_id else None
        messages: List[Message] = []
        try:
            async for msg in channel.history(
                limit=self.max_pages * PAGE_SIZE,
                after=discord.Object(id=int(window.after_id)),
                oldest_first=True,
            ):
                if msg.created_at > window.end or (end_id is not None and msg.id > end_id):
                    break
                if msg.created_at < window.start:
                    continue
                messages.append(to_message(msg))
        except discord.Forbidden:
            if not messages:
                raise WindowError(f"Missing permission to read history in channel {window.channel_id}.")
            logger.warning(f"Lost access to channel {window.channel_id} mid-fetch; keeping {len(messages)} messages")
        except discord.HTTPException as e:
            logger.warning(f"History fetch for channel {window.channel_id} stopped early: {e}")

        logger.debug(f"Fetched {len(messages)} messages from channel {window.channel_id}")
        return messages
