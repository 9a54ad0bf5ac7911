"""
Location: store/__init__.py
Summary: In-memory state owned by the running process: the short-term chat
         message buffer and the single-use pending payment callbacks.

Used by: main.py, telegram_bot.py, commands.py, web_server.py, summary/orchestrator.py
"""

from store.models import StoredMessage, PendingCallback, DISCORD, TELEGRAM
from store.buffer import ConversationStore
from store.pending import PendingCallbackStore

__all__ = [
    # Models
    'StoredMessage',
    'PendingCallback',
    'DISCORD',
    'TELEGRAM',
    # Stores
    'ConversationStore',
    'PendingCallbackStore',
]
