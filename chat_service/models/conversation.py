"""
Conversation and message models.

Field names on the wire are camelCase, matching the web client:
``type`` for the author kind, ``emotion`` for the sentiment tag.
"""
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthorKind(str, Enum):
    USER = "user"
    AI = "ai"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    QUESTION = "question"
    NEUTRAL = "neutral"


class Message(BaseModel):
    """Immutable conversation message"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    author: AuthorKind = Field(alias="type")
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    sentiment: Optional[Sentiment] = Field(default=None, alias="emotion")
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @classmethod
    def from_user(cls, content: str) -> "Message":
        return cls(author=AuthorKind.USER, content=content)

    @classmethod
    def from_ai(cls, content: str, sentiment: Sentiment, confidence: float) -> "Message":
        return cls(
            author=AuthorKind.AI,
            content=content,
            sentiment=sentiment,
            confidence=confidence,
        )

    def to_wire(self) -> Dict[str, Any]:
        """Serialize for the ``new-message`` event"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Conversation(BaseModel):
    """
    Conversation snapshot.

    Instances are never mutated in place: ``with_message`` returns a new
    snapshot, so a captured conversation stays valid after later appends.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_user_id: str = Field(alias="userId")
    title: str = "新对话"
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    def with_message(self, message: Message) -> "Conversation":
        """
        Return a new snapshot with ``message`` appended.

        ``updated_at`` strictly advances, even if the clock did not move.
        """
        if any(existing.id == message.id for existing in self.messages):
            raise ValueError(f"Duplicate message id {message.id}")
        updated_at = max(utcnow(), self.updated_at + timedelta(microseconds=1))
        return self.model_copy(
            update={
                "messages": [*self.messages, message],
                "updated_at": updated_at,
            }
        )

    def recent(self, count: int) -> tuple:
        """Immutable window of the last ``count`` messages"""
        if count <= 0:
            return ()
        return tuple(self.messages[-count:])

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
