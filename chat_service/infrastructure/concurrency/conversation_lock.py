"""
Блокировки на уровне разговоров.

Обеспечивают линеаризацию append-операций для одного разговора.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict

logger = logging.getLogger("chat-service.infrastructure.conversation_lock")


class ConversationLockManager:
    """
    Менеджер блокировок на уровне разговоров.

    Использует отдельную блокировку для каждого conversation_id,
    что позволяет параллельно обрабатывать разные разговоры.

    Блокировка живет, пока ее кто-то удерживает или ожидает:
    счетчик пользователей увеличивается до захвата и уменьшается
    после освобождения, запись удаляется при нуле. Поэтому два
    конкурирующих вызова всегда получают один и тот же объект Lock.

    Атрибуты:
        _locks: Словарь блокировок по conversation_id
        _users: Количество удерживающих/ожидающих по conversation_id
        _global_lock: Глобальная блокировка для управления словарями

    Пример:
        >>> lock_manager = ConversationLockManager()
        >>> async with lock_manager.lock("conv-1"):
        ...     conversation = await store.load("conv-1")
        ...     await store.append("conv-1", message)
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}
        self._global_lock = asyncio.Lock()
        logger.info("ConversationLockManager initialized")

    @asynccontextmanager
    async def lock(self, conversation_id: str):
        """
        Получить эксклюзивную блокировку разговора.

        Args:
            conversation_id: ID разговора

        Yields:
            None
        """
        async with self._global_lock:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[conversation_id] = lock
                logger.debug(f"Created new lock for conversation {conversation_id}")
            self._users[conversation_id] = self._users.get(conversation_id, 0) + 1

        try:
            async with lock:
                yield
        finally:
            async with self._global_lock:
                remaining = self._users[conversation_id] - 1
                if remaining:
                    self._users[conversation_id] = remaining
                else:
                    del self._users[conversation_id]
                    del self._locks[conversation_id]

    def get_lock_count(self) -> int:
        """
        Получить количество активных блокировок.

        Returns:
            Количество блокировок
        """
        return len(self._locks)

    def is_locked(self, conversation_id: str) -> bool:
        """
        Проверить, заблокирован ли разговор.

        Args:
            conversation_id: ID разговора

        Returns:
            True если разговор заблокирован
        """
        lock = self._locks.get(conversation_id)
        return lock.locked() if lock else False
