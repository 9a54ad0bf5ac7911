"""
Location: summary/formatter.py
Summary: Conversation formatter. Turns an unordered list of Messages into a flat
         "Speaker: text" transcript (one line per message, oldest first) and the
         matching ConversationEntry list used by the bullet pipeline for
         question/answer lookups. Also converts Telegram store rows into
         Messages.

Used by: orchestrator.py, fallback.py
Uses: models.py (Message, ConversationEntry, Reaction), store/models.py (StoredMessage)
"""

import re
from datetime import datetime
from typing import Iterable, List, Tuple

import pytz

from summary.models import ConversationEntry, Message, Reaction

EMPTY_MESSAGE_PLACEHOLDER = "(no text content)"

_WHITESPACE = re.compile(r"\s+")


def sort_messages(messages: Iterable[Message]) -> List[Message]:
    """Sort messages oldest first. Python's sort is stable so ties keep input order."""
    return sorted(messages, key=lambda m: _sort_key(m.timestamp))


def _sort_key(timestamp: datetime) -> float:
    if timestamp.tzinfo is None:
        timestamp = pytz.UTC.localize(timestamp)
    return timestamp.timestamp()


def _attachment_notes(message: Message) -> str:
    notes = []
    for attachment in message.attachments:
        if attachment.content_type:
            notes.append(f"[attachment: {attachment.filename}, {attachment.content_type}]")
        else:
            notes.append(f"[attachment: {attachment.filename}]")
    return " ".join(notes)


def _reaction_label(reaction: Reaction) -> str:
    if reaction.emoji_id:
        return f"<:{reaction.emoji}:{reaction.emoji_id}> x{reaction.count}"
    return f"{reaction.emoji} x{reaction.count}"


def _reaction_notes(message: Message) -> str:
    return ", ".join(_reaction_label(r) for r in message.reactions)


def format_message_line(message: Message) -> str:
    """Render a single message as a transcript line."""
    parts = [message.text or "", _attachment_notes(message), _reaction_notes(message)]
    content = " ".join(part for part in parts if part)
    content = _WHITESPACE.sub(" ", content).strip()
    return f"{message.speaker_name}: {content or EMPTY_MESSAGE_PLACEHOLDER}"


def format_conversation(messages: Iterable[Message]) -> str:
    """Format messages as a newline-joined transcript, oldest first.

    Args:
        messages: Messages for a single conversation window, any order.

    Returns:
        Transcript with one "Speaker: content" line per message.
    """
    return "\n".join(format_message_line(m) for m in sort_messages(messages))


def extract_conversation_entries(conversation: str) -> List[ConversationEntry]:
    """Split a transcript back into speaker/content entries.

    Each non-blank line is split on its first colon. Lines without a colon
    are attributed to "Unknown". Entries whose content is empty are dropped.

    Args:
        conversation: Transcript produced by format_conversation.

    Returns:
        Ordered list of ConversationEntry.
    """
    entries = []
    for raw_line in re.split(r"\n+", conversation or ""):
        line = raw_line.strip()
        if not line:
            continue
        speaker, sep, content = line.partition(":")
        if not sep:
            entries.append(ConversationEntry(speaker="Unknown", content=line))
            continue
        content = content.strip()
        if content:
            entries.append(ConversationEntry(speaker=speaker.strip(), content=content))
    return entries


def build_transcript(messages: Iterable[Message]) -> Tuple[str, List[ConversationEntry]]:
    """Format messages and derive entries in one call."""
    conversation = format_conversation(messages)
    return conversation, extract_conversation_entries(conversation)


def telegram_speaker(stored) -> str:
    """Speaker label for a stored Telegram message."""
    if stored.author_display:
        return stored.author_display
    if stored.author_username:
        return f"@{stored.author_username}"
    if stored.author_id is not None:
        return f"user-{stored.author_id}"
    return "Member"


def messages_from_store(stored_messages) -> List[Message]:
    """Convert Telegram StoredMessage rows into Messages.

    Blank texts are skipped. A non-zero reaction count becomes a single
    aggregate reaction so it shows up in the transcript.
    """
    messages = []
    for stored in stored_messages:
        text = (stored.text or "").strip()
        if not text:
            continue
        reactions = []
        if stored.reaction_count:
            reactions.append(Reaction(emoji="reactions", count=stored.reaction_count))
        messages.append(Message(
            id=str(stored.message_id),
            timestamp=stored.timestamp,
            text=text,
            display_name=telegram_speaker(stored),
            reply_to_id=str(stored.reply_to_id) if stored.reply_to_id is not None else None,
            reactions=reactions,
        ))
    return messages
