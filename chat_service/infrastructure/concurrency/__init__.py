"""
Управление конкурентностью.
"""

from .conversation_lock import ConversationLockManager

__all__ = [
    "ConversationLockManager",
]
