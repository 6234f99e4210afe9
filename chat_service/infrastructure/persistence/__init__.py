"""
Persistence layer: SQLAlchemy models, database engine, conversation stores.
"""

from .conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
    SqlConversationStore,
)
from .database import Database, to_async_url
from .models import Base, ConversationModel, MessageModel, UserModel

__all__ = [
    "ConversationStore",
    "InMemoryConversationStore",
    "SqlConversationStore",
    "Database",
    "to_async_url",
    "Base",
    "ConversationModel",
    "MessageModel",
    "UserModel",
]
