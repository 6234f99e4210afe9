"""
Сессия разговора: граница сериализации изменений одного разговора.

Гарантии:
- append-операции одного разговора линеаризованы блокировкой
  ConversationLockManager (единая точка изменения _append_and_broadcast);
- broadcast выполняется внутри той же блокировки, поэтому порядок
  событий в комнате совпадает с порядком append;
- генерация ответа выполняется отдельной задачей и не удерживает
  блокировку во время "обдумывания".

Компромисс broadcast-before-persist: сообщение рассылается клиентам
до записи в хранилище. Если запись не удалась, рассылка не откатывается,
ошибка логируется и учитывается в persistence_failures. Переподключившийся
клиент такого сообщения не увидит (durability at-most-once).
"""

import asyncio
import logging
import random
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Set, Tuple

from chat_service.core.errors import ModerationRejection, PersistenceError
from chat_service.infrastructure.concurrency import ConversationLockManager
from chat_service.infrastructure.persistence import ConversationStore
from chat_service.models.conversation import Message
from chat_service.models.websocket import NEW_MESSAGE

from .moderation import ContentModerator
from .reply_generator import ReplyGenerator
from .room_registry import RoomRegistry

logger = logging.getLogger("chat-service.services.conversation_session")


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"


@dataclass(frozen=True)
class ReplyJob:
    """
    Задача генерации ответа.

    Контекст фиксируется в момент планирования, а не завершения:
    несколько одновременных задач одного разговора не видят
    ответы друг друга.
    """

    job_id: str
    conversation_id: str
    source_message: Message
    context: Tuple[Message, ...]
    delay: float


class ConversationSession:
    """
    Логическая сессия одного разговора.

    Состояния:
        IDLE: нет незавершенных задач ответа
        AWAITING_REPLY: есть хотя бы одна задача ответа

    Атрибуты:
        conversation_id: ID разговора
        persistence_failures: Количество неудачных записей в хранилище
    """

    def __init__(
        self,
        conversation_id: str,
        store: ConversationStore,
        rooms: RoomRegistry,
        moderator: ContentModerator,
        generator: ReplyGenerator,
        locks: ConversationLockManager,
        context_window: int = 5,
        reply_delay: Tuple[float, float] = (1.0, 3.0),
        rng: Optional[random.Random] = None
    ):
        self.conversation_id = conversation_id
        self._store = store
        self._rooms = rooms
        self._moderator = moderator
        self._generator = generator
        self._locks = locks
        self._context_window = context_window
        self._reply_delay = reply_delay
        self._rng = rng or random.Random()

        self._jobs: Set[asyncio.Task] = set()
        self._in_flight = 0
        self._last_activity = time.monotonic()
        self.persistence_failures = 0

    @property
    def state(self) -> SessionState:
        return SessionState.AWAITING_REPLY if self._jobs else SessionState.IDLE

    @property
    def pending_replies(self) -> int:
        return len(self._jobs)

    @property
    def last_activity(self) -> float:
        return self._last_activity

    def is_evictable(self, max_idle_seconds: float, now: Optional[float] = None) -> bool:
        """Сессию можно выгрузить: нет задач, нет активных вызовов, давно не использовалась."""
        now = time.monotonic() if now is None else now
        return (
            not self._jobs
            and self._in_flight == 0
            and not self._locks.is_locked(self.conversation_id)
            and now - self._last_activity >= max_idle_seconds
        )

    async def receive(self, content: str) -> Message:
        """
        Принять сообщение пользователя.

        Одинаково работает в IDLE и AWAITING_REPLY: сообщение не ждет
        ответа на предыдущее, для него планируется собственная задача.

        Args:
            content: Текст сообщения (уже провалидирован gateway)

        Returns:
            Добавленное сообщение

        Raises:
            ModerationRejection: Сообщение не прошло модерацию
            ConversationNotFoundError: Разговор не существует
        """
        self._in_flight += 1
        self._last_activity = time.monotonic()
        try:
            moderation = self._moderator.check(content)
            if not moderation.safe:
                logger.info(f"[{self.conversation_id}] Message rejected by moderation")
                raise ModerationRejection(moderation.reason or ContentModerator.REJECTION_REASON)

            message = Message.from_user(content)
            context = await self._append_and_broadcast(message)
            self._schedule_reply(message, context)
            return message
        finally:
            self._in_flight -= 1

    async def _append_and_broadcast(self, message: Message) -> Tuple[Message, ...]:
        """
        Единственная точка изменения разговора.

        Под блокировкой разговора: загрузить актуальный снимок,
        разослать сообщение, записать его в хранилище.

        Returns:
            Окно контекста (последние сообщения), включая добавленное
        """
        async with self._locks.lock(self.conversation_id):
            conversation = await self._store.load(self.conversation_id)

            await self._rooms.broadcast(self.conversation_id, NEW_MESSAGE, message.to_wire())

            try:
                conversation = await self._store.append(self.conversation_id, message)
            except Exception as e:
                # broadcast-before-persist: already delivered, not rolled back
                error = e if isinstance(e, PersistenceError) else PersistenceError(
                    "Failed to persist message", self.conversation_id, cause=e
                )
                self.persistence_failures += 1
                logger.error(
                    f"[{self.conversation_id}] Durability gap: message {message.id} "
                    f"was broadcast but not persisted: {error}"
                )
                conversation = conversation.with_message(message)

            return conversation.recent(self._context_window)

    def _schedule_reply(self, source: Message, context: Tuple[Message, ...]) -> ReplyJob:
        job = ReplyJob(
            job_id=str(uuid.uuid4()),
            conversation_id=self.conversation_id,
            source_message=source,
            context=context,
            delay=self._rng.uniform(*self._reply_delay),
        )
        task = asyncio.create_task(self._run_reply_job(job), name=f"reply-{job.job_id}")
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)
        logger.debug(
            f"[{self.conversation_id}] Reply job {job.job_id} scheduled "
            f"(delay={job.delay:.2f}s, pending={len(self._jobs)})"
        )
        return job

    async def _run_reply_job(self, job: ReplyJob) -> None:
        try:
            await asyncio.sleep(job.delay)
            reply = self._generator.generate(job.source_message.content, job.context)
            message = Message.from_ai(reply.text, reply.sentiment, reply.confidence)
            await self._append_and_broadcast(message)
            self._last_activity = time.monotonic()
            logger.info(
                f"[{self.conversation_id}] Reply job {job.job_id} completed "
                f"(sentiment={reply.sentiment.value})"
            )
        except asyncio.CancelledError:
            logger.warning(f"[{self.conversation_id}] Reply job {job.job_id} cancelled")
            raise
        except Exception as e:
            logger.error(
                f"[{self.conversation_id}] Reply job {job.job_id} failed: {e}",
                exc_info=True
            )

    async def drain(self, timeout: float) -> int:
        """
        Дождаться завершения задач ответа, оставшиеся отменить.

        Returns:
            Количество отмененных задач
        """
        jobs = set(self._jobs)
        if not jobs:
            return 0
        _, pending = await asyncio.wait(jobs, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return len(pending)


SessionFactory = Callable[[str], ConversationSession]


class SessionRegistry:
    """
    Сессии по conversation_id.

    Сессия создается лениво при первом обращении. Выгружаются только
    сессии без задач и активных вызовов: все состояние разговора
    находится в хранилище, поэтому при выгрузке ничего не теряется.
    """

    def __init__(self, factory: SessionFactory):
        self._factory = factory
        self._sessions: Dict[str, ConversationSession] = {}
        self._lock = asyncio.Lock()

    async def get(self, conversation_id: str) -> ConversationSession:
        async with self._lock:
            session = self._sessions.get(conversation_id)
            if session is None:
                session = self._factory(conversation_id)
                self._sessions[conversation_id] = session
                logger.debug(f"[{conversation_id}] Session created")
            return session

    def peek(self, conversation_id: str) -> Optional[ConversationSession]:
        return self._sessions.get(conversation_id)

    def __len__(self) -> int:
        return len(self._sessions)

    async def evict_idle(self, max_idle_seconds: float) -> int:
        """
        Выгрузить неактивные сессии.

        Returns:
            Количество выгруженных сессий
        """
        now = time.monotonic()
        async with self._lock:
            idle = [
                conversation_id
                for conversation_id, session in self._sessions.items()
                if session.is_evictable(max_idle_seconds, now)
            ]
            for conversation_id in idle:
                del self._sessions[conversation_id]
        if idle:
            logger.info(f"Evicted {len(idle)} idle session(s)")
        return len(idle)

    async def shutdown(self, timeout: float) -> None:
        """Дождаться незавершенных задач ответа всех сессий."""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        cancelled = sum(await asyncio.gather(*(session.drain(timeout) for session in sessions)))
        logger.info(f"SessionRegistry shut down ({len(sessions)} session(s), {cancelled} job(s) cancelled)")
