"""
Контейнер сервисов приложения.

Все stateful компоненты (реестр комнат, сессии, хранилище) создаются
при старте приложения в build_container() и живут в app.state.container.
"""

import logging
import random
from dataclasses import dataclass

from fastapi import Request

from chat_service.core.config import AppConfig
from chat_service.infrastructure.cleanup import SessionCleanupService
from chat_service.infrastructure.concurrency import ConversationLockManager
from chat_service.infrastructure.persistence import (
    ConversationStore,
    Database,
    InMemoryConversationStore,
    SqlConversationStore,
)
from chat_service.services import (
    ContentModerator,
    ConversationSession,
    IdentityVerifier,
    JWTIdentityVerifier,
    ReplyGenerator,
    RoomRegistry,
    SessionRegistry,
    TokenService,
    UserService,
)
from chat_service.services.websocket import ConnectionGateway, WebSocketMessageParser
from chat_service.utils import PasswordHasher

logger = logging.getLogger("chat-service.dependencies")


@dataclass
class ServiceContainer:
    config: AppConfig
    database: Database
    store: ConversationStore
    rooms: RoomRegistry
    sessions: SessionRegistry
    verifier: IdentityVerifier
    users: UserService
    gateway: ConnectionGateway
    cleanup: SessionCleanupService

    async def start(self) -> None:
        await self.database.create_all()
        await self.cleanup.start()

    async def stop(self) -> None:
        await self.cleanup.stop()
        await self.sessions.shutdown(self.config.shutdown_timeout)
        await self.rooms.close()
        await self.store.close()
        await self.database.close()


def build_container(
    config: AppConfig,
    generator: ReplyGenerator | None = None,
    rng: random.Random | None = None
) -> ServiceContainer:
    """
    Собрать граф сервисов.

    Args:
        config: Настройки приложения
        generator: Генератор ответов (по умолчанию заглушка ReplyGenerator)
        rng: Источник случайности для задержек ответа
    """
    database = Database(config.database_url)
    if config.conversation_backend == "memory":
        store: ConversationStore = InMemoryConversationStore()
    else:
        store = SqlConversationStore(database.session_maker)

    rooms = RoomRegistry(send_timeout=config.broadcast_send_timeout)
    locks = ConversationLockManager()
    moderator = ContentModerator(config.blocked_terms)
    generator = generator or ReplyGenerator()

    def session_factory(conversation_id: str) -> ConversationSession:
        return ConversationSession(
            conversation_id=conversation_id,
            store=store,
            rooms=rooms,
            moderator=moderator,
            generator=generator,
            locks=locks,
            context_window=config.context_window,
            reply_delay=(config.reply_delay_min, config.reply_delay_max),
            rng=rng,
        )

    sessions = SessionRegistry(session_factory)
    verifier = JWTIdentityVerifier(config.jwt_secret, config.jwt_algorithm)
    tokens = TokenService(config.jwt_secret, config.jwt_algorithm, config.access_token_lifetime)
    users = UserService(database.session_maker, PasswordHasher(config.bcrypt_rounds), tokens)
    gateway = ConnectionGateway(
        verifier=verifier,
        rooms=rooms,
        sessions=sessions,
        parser=WebSocketMessageParser(),
        max_message_length=config.max_message_length,
    )
    cleanup = SessionCleanupService(
        sessions,
        interval=config.session_cleanup_interval,
        max_idle=config.session_idle_timeout,
    )

    logger.info(f"Service container built (conversation_backend={config.conversation_backend})")
    return ServiceContainer(
        config=config,
        database=database,
        store=store,
        rooms=rooms,
        sessions=sessions,
        verifier=verifier,
        users=users,
        gateway=gateway,
        cleanup=cleanup,
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_store(request: Request) -> ConversationStore:
    return get_container(request).store


def get_user_service(request: Request) -> UserService:
    return get_container(request).users
