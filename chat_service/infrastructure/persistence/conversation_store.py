"""
Хранилище разговоров.

ConversationStore - абстракция, которую потребляет ConversationSession.
Атомарность append в пределах одного разговора обеспечивает сессия
(через блокировку на conversation_id), а не хранилище.
"""

import abc
import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from chat_service.core.errors import ConversationNotFoundError, PersistenceError
from chat_service.models.conversation import (
    AuthorKind,
    Conversation,
    Message,
    Sentiment,
    utcnow,
)

from .models import ConversationModel, MessageModel

logger = logging.getLogger("chat-service.infrastructure.conversation_store")


class ConversationStore(abc.ABC):
    """Контракт хранилища разговоров."""

    @abc.abstractmethod
    async def load(self, conversation_id: str) -> Conversation:
        """
        Загрузить разговор.

        Raises:
            ConversationNotFoundError: Если разговор не найден
        """

    @abc.abstractmethod
    async def append(self, conversation_id: str, message: Message) -> Conversation:
        """
        Добавить сообщение в конец разговора.

        Returns:
            Обновленный снимок разговора

        Raises:
            ConversationNotFoundError: Если разговор не найден
            PersistenceError: Если запись не удалась
        """

    @abc.abstractmethod
    async def create(self, owner_user_id: str, title: str | None = None) -> Conversation:
        """Создать пустой разговор."""

    @abc.abstractmethod
    async def list_for_owner(self, owner_user_id: str) -> List[Conversation]:
        """Разговоры пользователя в порядке создания."""

    async def close(self) -> None:
        """Освободить ресурсы хранилища."""


class InMemoryConversationStore(ConversationStore):
    """
    In-memory хранилище.

    Снимки Conversation неизменяемы, поэтому наружу отдаются как есть.
    """

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._lock = asyncio.Lock()

    async def load(self, conversation_id: str) -> Conversation:
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def append(self, conversation_id: str, message: Message) -> Conversation:
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                raise ConversationNotFoundError(conversation_id)
            try:
                updated = conversation.with_message(message)
            except ValueError as e:
                raise PersistenceError(str(e), conversation_id=conversation_id, cause=e)
            self._conversations[conversation_id] = updated
            return updated

    async def create(self, owner_user_id: str, title: str | None = None) -> Conversation:
        conversation = Conversation(owner_user_id=owner_user_id, title=title or "新对话")
        async with self._lock:
            self._conversations[conversation.id] = conversation
        logger.info(f"[{conversation.id}] Conversation created for user {owner_user_id}")
        return conversation

    async def list_for_owner(self, owner_user_id: str) -> List[Conversation]:
        async with self._lock:
            owned = [c for c in self._conversations.values() if c.owner_user_id == owner_user_id]
        return sorted(owned, key=lambda c: c.created_at)


def _aware(value: datetime) -> datetime:
    # SQLite returns naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_message(row: MessageModel) -> Message:
    return Message(
        id=row.id,
        author=AuthorKind(row.author),
        content=row.content,
        timestamp=_aware(row.timestamp),
        sentiment=Sentiment(row.sentiment) if row.sentiment else None,
        confidence=row.confidence,
    )


def _to_conversation(row: ConversationModel) -> Conversation:
    return Conversation(
        id=row.id,
        owner_user_id=row.owner_user_id,
        title=row.title,
        messages=[_to_message(m) for m in row.messages],
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


class SqlConversationStore(ConversationStore):
    """
    Хранилище на SQLAlchemy (async).

    Каждый вызов открывает собственную сессию БД, поэтому вызовы
    для разных разговоров могут выполняться конкурентно.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def _get_row(self, db: AsyncSession, conversation_id: str) -> ConversationModel:
        result = await db.execute(
            select(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .options(selectinload(ConversationModel.messages))
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        return row

    async def load(self, conversation_id: str) -> Conversation:
        try:
            async with self._session_maker() as db:
                row = await self._get_row(db, conversation_id)
                return _to_conversation(row)
        except (SQLAlchemyError, UnicodeError) as e:
            raise PersistenceError("Failed to load conversation", conversation_id, cause=e)

    async def append(self, conversation_id: str, message: Message) -> Conversation:
        try:
            async with self._session_maker() as db:
                async with db.begin():
                    header = await db.get(ConversationModel, conversation_id)
                    if header is None:
                        raise ConversationNotFoundError(conversation_id)

                    last_position = await db.scalar(
                        select(func.max(MessageModel.position)).where(
                            MessageModel.conversation_id == conversation_id
                        )
                    )
                    db.add(
                        MessageModel(
                            id=message.id,
                            conversation_id=conversation_id,
                            position=(last_position or 0) + 1,
                            author=message.author.value,
                            content=message.content,
                            timestamp=message.timestamp,
                            sentiment=message.sentiment.value if message.sentiment else None,
                            confidence=message.confidence,
                        )
                    )
                    previous = _aware(header.updated_at)
                    header.updated_at = max(utcnow(), previous + timedelta(microseconds=1))

                row = await self._get_row(db, conversation_id)
                return _to_conversation(row)
        except (SQLAlchemyError, UnicodeError) as e:
            raise PersistenceError("Failed to append message", conversation_id, cause=e)

    async def create(self, owner_user_id: str, title: str | None = None) -> Conversation:
        now = utcnow()
        try:
            async with self._session_maker() as db:
                async with db.begin():
                    row = ConversationModel(
                        id=str(uuid.uuid4()),
                        owner_user_id=owner_user_id,
                        title=title or "新对话",
                        created_at=now,
                        updated_at=now,
                    )
                    db.add(row)
                conversation = Conversation(
                    id=row.id,
                    owner_user_id=owner_user_id,
                    title=row.title,
                    created_at=now,
                    updated_at=now,
                )
        except (SQLAlchemyError, UnicodeError) as e:
            raise PersistenceError("Failed to create conversation", cause=e)

        logger.info(f"[{conversation.id}] Conversation created for user {owner_user_id}")
        return conversation

    async def list_for_owner(self, owner_user_id: str) -> List[Conversation]:
        try:
            async with self._session_maker() as db:
                result = await db.execute(
                    select(ConversationModel)
                    .where(ConversationModel.owner_user_id == owner_user_id)
                    .options(selectinload(ConversationModel.messages))
                    .order_by(ConversationModel.created_at)
                )
                return [_to_conversation(row) for row in result.scalars().all()]
        except (SQLAlchemyError, UnicodeError) as e:
            raise PersistenceError("Failed to list conversations", cause=e)
