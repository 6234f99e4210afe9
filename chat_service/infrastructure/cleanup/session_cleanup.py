"""
Фоновая выгрузка неактивных сессий разговоров.
"""

import asyncio
import logging

from chat_service.services.conversation_session import SessionRegistry

logger = logging.getLogger("chat-service.infrastructure.session_cleanup")


class SessionCleanupService:
    """
    Периодически выгружает неактивные сессии из SessionRegistry.

    Атрибуты:
        _sessions: Реестр сессий
        _interval: Интервал между очистками (секунды)
        _max_idle: Время простоя, после которого сессия выгружается (секунды)
        _task: Фоновая задача

    Пример:
        >>> cleanup_service = SessionCleanupService(sessions, interval=300, max_idle=1800)
        >>> await cleanup_service.start()
    """

    def __init__(self, sessions: SessionRegistry, interval: float = 300.0, max_idle: float = 1800.0):
        self._sessions = sessions
        self._interval = interval
        self._max_idle = max_idle
        self._task: asyncio.Task | None = None
        self._running = False

        logger.info(
            f"SessionCleanupService initialized (interval={interval}s, max_idle={max_idle}s)"
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Запустить фоновую очистку."""
        if self._running:
            logger.warning("SessionCleanupService already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop())
        logger.info("SessionCleanupService started")

    async def stop(self):
        """Остановить фоновую очистку и дождаться завершения задачи."""
        if not self._running:
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("SessionCleanupService stopped")

    async def run_once(self) -> int:
        """Выполнить одну очистку."""
        return await self._sessions.evict_idle(self._max_idle)

    async def _cleanup_loop(self):
        while self._running:
            try:
                await asyncio.sleep(self._interval)
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in cleanup loop: {e}", exc_info=True)
