"""
Location: summary/__init__.py
Summary: Chat summary package. Formats conversations into transcripts, calls the
         LLM, and post-processes the answer into a greeting plus a short list of
         ranked, attributed bullets. Falls back to a deterministic summary when
         the LLM is unavailable.

Used by: web_server.py, main.py, delivery.py
"""

from summary.models import (
    Attachment,
    ConversationEntry,
    Message,
    Reaction,
    SummaryResult,
    WindowDescriptor,
)
from summary.formatter import build_transcript, format_conversation, extract_conversation_entries
from summary.pipeline import finalize, BULLET_MARKER
from summary.summarizer import (
    GeminiSummarizer,
    SummarizerError,
    SummarizerTimeout,
    ProviderError,
    SummarizerNotConfigured,
)
from summary.window import WindowError, LookbackError
from summary.orchestrator import SummaryOrchestrator

__all__ = [
    # Models
    'Attachment',
    'ConversationEntry',
    'Message',
    'Reaction',
    'SummaryResult',
    'WindowDescriptor',
    # Formatting and post-processing
    'build_transcript',
    'format_conversation',
    'extract_conversation_entries',
    'finalize',
    'BULLET_MARKER',
    # LLM
    'GeminiSummarizer',
    'SummarizerError',
    'SummarizerTimeout',
    'ProviderError',
    'SummarizerNotConfigured',
    # Windows
    'WindowError',
    'LookbackError',
    # Orchestration
    'SummaryOrchestrator',
]
