"""
Tests for in-memory and SQL conversation stores.
"""
import pytest
import pytest_asyncio

from chat_service.core.errors import ConversationNotFoundError, PersistenceError
from chat_service.infrastructure.persistence import (
    Database,
    InMemoryConversationStore,
    SqlConversationStore,
)
from chat_service.models import Message, Sentiment


@pytest_asyncio.fixture(params=["memory", "sql"])
async def conversation_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryConversationStore()
        return

    database = Database(f"sqlite:///{tmp_path}/chat.db")
    await database.create_all()
    store = SqlConversationStore(database.session_maker)
    yield store
    await store.close()
    await database.close()


@pytest.mark.asyncio
async def test_create_and_load(conversation_store):
    created = await conversation_store.create("user-1")

    loaded = await conversation_store.load(created.id)

    assert loaded.id == created.id
    assert loaded.owner_user_id == "user-1"
    assert loaded.title == "新对话"
    assert loaded.messages == []


@pytest.mark.asyncio
async def test_create_with_title(conversation_store):
    created = await conversation_store.create("user-1", "Weekend plans")

    assert (await conversation_store.load(created.id)).title == "Weekend plans"


@pytest.mark.asyncio
async def test_load_missing_raises(conversation_store):
    with pytest.raises(ConversationNotFoundError):
        await conversation_store.load("does-not-exist")


@pytest.mark.asyncio
async def test_append_to_missing_raises(conversation_store):
    with pytest.raises(ConversationNotFoundError):
        await conversation_store.append("does-not-exist", Message.from_user("hello"))


@pytest.mark.asyncio
async def test_append_then_load_returns_last_message(conversation_store):
    conversation = await conversation_store.create("user-1")
    user_message = Message.from_user("我很开心")
    reply = Message.from_ai("我很高兴听到你这么说！", Sentiment.POSITIVE, 0.8125)

    await conversation_store.append(conversation.id, user_message)
    returned = await conversation_store.append(conversation.id, reply)
    loaded = await conversation_store.load(conversation.id)

    assert loaded.messages[-1] == reply
    assert loaded.messages == [user_message, reply]
    assert returned.messages == loaded.messages


@pytest.mark.asyncio
async def test_append_advances_updated_at(conversation_store):
    conversation = await conversation_store.create("user-1")

    first = await conversation_store.append(conversation.id, Message.from_user("one"))
    second = await conversation_store.append(conversation.id, Message.from_user("two"))

    assert first.updated_at > conversation.updated_at
    assert second.updated_at > first.updated_at
    assert second.created_at == conversation.created_at


@pytest.mark.asyncio
async def test_duplicate_message_id_rejected(conversation_store):
    conversation = await conversation_store.create("user-1")
    message = Message.from_user("hello")
    await conversation_store.append(conversation.id, message)

    with pytest.raises(PersistenceError):
        await conversation_store.append(conversation.id, message)

    assert len((await conversation_store.load(conversation.id)).messages) == 1


@pytest.mark.asyncio
async def test_list_for_owner(conversation_store):
    first = await conversation_store.create("user-1", "first")
    second = await conversation_store.create("user-1", "second")
    await conversation_store.create("user-2", "foreign")

    owned = await conversation_store.list_for_owner("user-1")

    assert [c.id for c in owned] == [first.id, second.id]
    assert await conversation_store.list_for_owner("nobody") == []


@pytest.mark.asyncio
async def test_wire_format(conversation_store):
    conversation = await conversation_store.create("user-1")
    await conversation_store.append(
        conversation.id, Message.from_ai("reply", Sentiment.QUESTION, 0.75)
    )

    wire = (await conversation_store.load(conversation.id)).to_wire()

    assert set(wire) == {"id", "userId", "title", "messages", "createdAt", "updatedAt"}
    message = wire["messages"][0]
    assert message["type"] == "ai"
    assert message["emotion"] == "question"
    assert message["confidence"] == 0.75


@pytest.mark.asyncio
async def test_sql_append_unencodable_text_raises_persistence_error(tmp_path):
    database = Database(f"sqlite:///{tmp_path}/chat.db")
    await database.create_all()
    store = SqlConversationStore(database.session_maker)
    try:
        conversation = await store.create("user-1")

        with pytest.raises(PersistenceError):
            await store.append(conversation.id, Message.from_user("bad \ud800 text"))

        assert (await store.load(conversation.id)).messages == []
    finally:
        await database.close()
