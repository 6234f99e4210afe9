"""
Unit тесты для ConversationSession и SessionRegistry.
"""
import asyncio
import random

import pytest
import pytest_asyncio

from chat_service.core.errors import (
    ConversationNotFoundError,
    ModerationRejection,
    PersistenceError,
)
from chat_service.infrastructure.persistence import InMemoryConversationStore
from chat_service.models import AuthorKind
from chat_service.services import (
    ConversationSession,
    ReplyGenerator,
    SessionRegistry,
    SessionState,
)


class RecordingGenerator(ReplyGenerator):
    """Генератор, запоминающий переданный контекст."""

    def __init__(self):
        super().__init__(rng=random.Random(0))
        self.calls = []

    def generate(self, message, context=()):
        self.calls.append((message, context))
        return super().generate(message, context)


class FailingAppendStore(InMemoryConversationStore):
    async def append(self, conversation_id, message):
        raise PersistenceError("disk full", conversation_id)


@pytest_asyncio.fixture
async def conversation(store):
    return await store.create("user-1")


@pytest.mark.asyncio
async def test_receive_broadcasts_and_stores(store, rooms, make_session, make_connection, conversation):
    """Тест что сообщение сохраняется и рассылается участникам комнаты."""
    client = make_connection("client")
    await rooms.join(conversation.id, client)
    session = make_session(conversation.id)

    message = await session.receive("你好")

    stored = await store.load(conversation.id)
    assert stored.messages[0] == message
    assert client.events("new-message")[0] == message.to_wire()
    await session.drain(timeout=2.0)


@pytest.mark.asyncio
async def test_concurrent_sends_are_not_lost(store, rooms, make_session, make_connection, conversation):
    """Тест что N конкурентных сообщений дают ровно N записей без потерь."""
    client = make_connection("client")
    await rooms.join(conversation.id, client)
    session = make_session(conversation.id)

    sent = await asyncio.gather(*(session.receive(f"message {i}") for i in range(20)))
    await session.drain(timeout=5.0)

    stored = await store.load(conversation.id)
    user_messages = [m for m in stored.messages if m.author == AuthorKind.USER]
    assert len(user_messages) == 20
    assert {m.id for m in user_messages} == {m.id for m in sent}
    assert len({m.id for m in stored.messages}) == len(stored.messages)


@pytest.mark.asyncio
async def test_broadcast_order_matches_stored_order(store, rooms, make_session, make_connection, conversation):
    """Тест что порядок событий в комнате совпадает с порядком в хранилище."""
    client = make_connection("client")
    await rooms.join(conversation.id, client)
    session = make_session(conversation.id)

    await asyncio.gather(*(session.receive(f"message {i}") for i in range(10)))
    await session.drain(timeout=5.0)

    stored = await store.load(conversation.id)
    broadcast_ids = [payload["id"] for payload in client.events("new-message")]
    assert broadcast_ids == [m.id for m in stored.messages]


@pytest.mark.asyncio
async def test_each_message_gets_exactly_one_reply(store, make_session, conversation):
    """Тест что на каждое принятое сообщение приходит ровно один ответ."""
    session = make_session(conversation.id)

    for i in range(5):
        await session.receive(f"question {i}?")
    await session.drain(timeout=5.0)

    stored = await store.load(conversation.id)
    replies = [m for m in stored.messages if m.author == AuthorKind.AI]
    assert len(replies) == 5
    for reply in replies:
        assert 0.7 <= reply.confidence < 1.0
        assert reply.sentiment is not None


@pytest.mark.asyncio
async def test_blocked_message_is_not_stored_or_broadcast(store, rooms, make_session, make_connection, conversation):
    """Тест что заблокированное сообщение не сохраняется и не рассылается."""
    client = make_connection("client")
    await rooms.join(conversation.id, client)
    session = make_session(conversation.id)

    with pytest.raises(ModerationRejection) as exc_info:
        await session.receive("buy spam now")

    assert exc_info.value.message == "Message contains inappropriate content"
    assert (await store.load(conversation.id)).messages == []
    assert client.sent == []
    assert session.pending_replies == 0


@pytest.mark.asyncio
async def test_unknown_conversation_raises(rooms, make_session, make_connection):
    client = make_connection("client")
    await rooms.join("missing", client)
    session = make_session("missing")

    with pytest.raises(ConversationNotFoundError):
        await session.receive("hello")

    assert client.sent == []
    assert session.pending_replies == 0


@pytest.mark.asyncio
async def test_awaiting_reply_accepts_new_messages(store, make_session, conversation):
    """Тест что в состоянии AWAITING_REPLY сообщения принимаются сразу."""
    session = make_session(conversation.id, reply_delay=(0.2, 0.2))
    assert session.state == SessionState.IDLE

    await session.receive("first")
    assert session.state == SessionState.AWAITING_REPLY

    await session.receive("second")
    assert session.pending_replies == 2
    assert len((await store.load(conversation.id)).messages) == 2

    await session.drain(timeout=5.0)
    assert session.state == SessionState.IDLE
    assert len((await store.load(conversation.id)).messages) == 4


@pytest.mark.asyncio
async def test_context_captured_at_schedule_time(store, rooms, moderator, locks, conversation):
    generator = RecordingGenerator()
    session = ConversationSession(
        conversation_id=conversation.id,
        store=store,
        rooms=rooms,
        moderator=moderator,
        generator=generator,
        locks=locks,
        context_window=5,
        reply_delay=(0.0, 0.0),
    )

    for i in range(4):
        await session.receive(f"message {i}")
        await session.drain(timeout=2.0)

    message, context = generator.calls[-1]
    assert message == "message 3"
    assert isinstance(context, tuple)
    assert len(context) == 5
    assert context[-1].content == "message 3"

    # The first job saw only its own message
    assert [m.content for m in generator.calls[0][1]] == ["message 0"]


@pytest.mark.asyncio
async def test_persistence_failure_is_counted_and_still_broadcast(rooms, moderator, generator, locks, make_connection):
    """Тест компромисса broadcast-before-persist: ошибка записи не откатывает рассылку."""
    store = FailingAppendStore()
    conversation = await store.create("user-1")
    client = make_connection("client")
    await rooms.join(conversation.id, client)
    session = ConversationSession(
        conversation_id=conversation.id,
        store=store,
        rooms=rooms,
        moderator=moderator,
        generator=generator,
        locks=locks,
        reply_delay=(0.0, 0.0),
    )

    message = await session.receive("hello")
    await session.drain(timeout=2.0)

    events = client.events("new-message")
    assert events[0]["id"] == message.id
    assert events[1]["type"] == "ai"
    assert session.persistence_failures == 2
    assert (await store.load(conversation.id)).messages == []


@pytest.mark.asyncio
async def test_drain_cancels_slow_jobs(make_session, conversation):
    session = make_session(conversation.id, reply_delay=(10.0, 10.0))
    await session.receive("hello")

    cancelled = await session.drain(timeout=0.01)

    assert cancelled == 1
    assert session.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_registry_reuses_sessions(make_session):
    registry = SessionRegistry(make_session)

    first = await registry.get("conv-1")
    second = await registry.get("conv-1")

    assert first is second
    assert len(registry) == 1
    assert registry.peek("conv-2") is None


@pytest.mark.asyncio
async def test_registry_evicts_only_idle_sessions(make_session, conversation):
    registry = SessionRegistry(lambda cid: make_session(cid, reply_delay=(10.0, 10.0)))
    busy = await registry.get(conversation.id)
    await registry.get("idle-conv")
    await busy.receive("hello")

    evicted = await registry.evict_idle(0)

    assert evicted == 1
    assert registry.peek("idle-conv") is None
    assert registry.peek(conversation.id) is busy

    await registry.shutdown(timeout=0.01)
    assert len(registry) == 0
    assert busy.pending_replies == 0


@pytest.mark.asyncio
async def test_registry_keeps_recent_sessions(make_session):
    registry = SessionRegistry(make_session)
    await registry.get("conv-1")

    assert await registry.evict_idle(3600) == 0
    assert len(registry) == 1
