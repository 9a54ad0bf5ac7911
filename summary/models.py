"""
Location: summary/models.py
Summary: Dataclasses for the summary pipeline. Defines the platform-neutral
         Message that both Discord and Telegram are converted into, the
         ConversationEntry lookup rows used for question/answer pairing, the
         transient bullet types used while ranking, and the SummaryResult
         handed to the delivery adapters.

Used by: formatter.py, bullets.py, questions.py, scoring.py, pipeline.py,
         fallback.py, orchestrator.py, discord_api.py
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Attachment:
    """A file attached to a chat message.

    Attributes:
        filename: Original file name.
        content_type: MIME type reported by the platform, if any.
    """
    filename: str
    content_type: Optional[str] = None


@dataclass
class Reaction:
    """An aggregated reaction on a chat message.

    Attributes:
        emoji: Unicode emoji, or the name of a custom emoji.
        count: Number of users who reacted.
        emoji_id: Custom emoji ID (Discord only).
    """
    emoji: str
    count: int
    emoji_id: Optional[str] = None


@dataclass
class Message:
    """A single chat message, independent of the platform it came from.

    The speaker fields mirror what the platforms hand us. Formatting picks
    the first non-empty one of display_name, global_name, username.

    Attributes:
        id: Platform message ID.
        timestamp: When the message was sent (timezone aware).
        text: Raw message text (may be empty).
        display_name: Server nickname / Telegram full name.
        global_name: Discord global display name.
        username: Account handle.
        reply_to_id: ID of the message this one replies to.
        attachments: Files attached to the message.
        reactions: Aggregated reactions.
    """
    id: str
    timestamp: datetime
    text: str
    display_name: Optional[str] = None
    global_name: Optional[str] = None
    username: Optional[str] = None
    reply_to_id: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)
    reactions: List[Reaction] = field(default_factory=list)

    @property
    def speaker_name(self) -> str:
        """Resolved speaker label for transcripts."""
        return self.display_name or self.global_name or self.username or "Unknown user"

    @property
    def reaction_total(self) -> int:
        return sum(r.count for r in self.reactions)


@dataclass
class ConversationEntry:
    """One transcript line split into speaker and content."""
    speaker: str
    content: str


@dataclass
class WindowDescriptor:
    """Describes the window a summary covers, for the greeting line.

    Attributes:
        lookback_minutes: Numeric lookback, when the window is time based.
        range_label: Free-form label (e.g. "message links A → B").
    """
    lookback_minutes: Optional[int] = None
    range_label: Optional[str] = None


@dataclass
class RawBullet:
    """A candidate summary line with its marker stripped.

    Attributes:
        text: Line text without the leading bullet marker.
        speaker: Speaker resolved from an explicit or implied prefix.
        statement: Text after the speaker prefix (equals text when no speaker).
    """
    text: str
    speaker: Optional[str] = None
    statement: str = ""


@dataclass
class ScoredBullet:
    """A finished bullet sentence and its heuristic score.

    Attributes:
        text: Sentence without bullet marker.
        score: Heuristic score (see scoring.score_bullet).
        index: Position in extraction order.
    """
    text: str
    score: int
    index: int


@dataclass
class SummaryResult:
    """Final output of a summary request.

    Attributes:
        summary: User-facing summary text.
        actionables: Follow-up action items, possibly empty.
        model: Which path produced the summary (model ID or fallback tag).
    """
    summary: str
    actionables: List[str] = field(default_factory=list)
    model: Optional[str] = None

    def to_dict(self) -> dict:
        return {"summary": self.summary, "actionables": list(self.actionables)}
