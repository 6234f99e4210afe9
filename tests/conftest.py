"""
Pytest configuration and fixtures.
"""
import asyncio
import random
from typing import Any, List, Tuple

import pytest

from chat_service.infrastructure.concurrency import ConversationLockManager
from chat_service.infrastructure.persistence import InMemoryConversationStore
from chat_service.services import (
    ContentModerator,
    ConversationSession,
    ReplyGenerator,
    RoomRegistry,
)
from chat_service.services.room_registry import ConnectionHandle


class FakeConnection(ConnectionHandle):
    """Connection that records delivered events"""

    def __init__(self, connection_id: str, fail: bool = False, hang: bool = False):
        self.connection_id = connection_id
        self.fail = fail
        self.hang = hang
        self.sent: List[Tuple[str, Any]] = []

    async def send(self, event: str, payload: Any) -> None:
        if self.fail:
            raise ConnectionError("socket gone")
        if self.hang:
            await asyncio.Event().wait()
        self.sent.append((event, payload))

    def events(self, name: str) -> List[Any]:
        return [payload for event, payload in self.sent if event == name]


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def rooms():
    return RoomRegistry(send_timeout=0.2)


@pytest.fixture
def locks():
    return ConversationLockManager()


@pytest.fixture
def moderator():
    return ContentModerator()


@pytest.fixture
def generator():
    return ReplyGenerator(rng=random.Random(42))


@pytest.fixture
def make_session(store, rooms, moderator, generator, locks):
    """Factory for sessions with a short reply delay"""

    def factory(conversation_id: str, reply_delay=(0.0, 0.01)) -> ConversationSession:
        return ConversationSession(
            conversation_id=conversation_id,
            store=store,
            rooms=rooms,
            moderator=moderator,
            generator=generator,
            locks=locks,
            context_window=5,
            reply_delay=reply_delay,
            rng=random.Random(7),
        )

    return factory
