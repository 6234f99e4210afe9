"""
Реестр комнат: conversation_id -> подписанные соединения.

Создается при старте приложения и закрывается при остановке.
"""

import abc
import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger("chat-service.services.room_registry")


class ConnectionHandle(abc.ABC):
    """Исходящая сторона клиентского соединения."""

    connection_id: str

    @abc.abstractmethod
    async def send(self, event: str, payload: Any) -> None:
        """
        Отправить событие клиенту.

        Raises:
            Exception: Если соединение больше недоступно
        """


class RoomRegistry:
    """
    Управляет членством соединений в комнатах и рассылкой событий.

    Членство защищено одной asyncio-блокировкой, отправка выполняется
    вне нее. Рассылка в одну комнату идет последовательно, поэтому
    события одного разговора доставляются в порядке вызовов broadcast.

    Соединение, отправка в которое завершилась ошибкой или таймаутом,
    удаляется из комнаты после неудачной попытки.

    Атрибуты:
        _rooms: conversation_id -> {connection_id: ConnectionHandle}
        _memberships: connection_id -> множество conversation_id
        _send_timeout: Таймаут одной отправки (секунды)
    """

    def __init__(self, send_timeout: float = 5.0):
        self._rooms: Dict[str, Dict[str, ConnectionHandle]] = {}
        self._memberships: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()
        self._send_timeout = send_timeout

    async def join(self, conversation_id: str, connection: ConnectionHandle) -> None:
        async with self._lock:
            self._rooms.setdefault(conversation_id, {})[connection.connection_id] = connection
            self._memberships.setdefault(connection.connection_id, set()).add(conversation_id)
        logger.info(f"[{connection.connection_id}] Joined conversation {conversation_id}")

    async def leave(self, conversation_id: str, connection: ConnectionHandle) -> None:
        """Покинуть комнату. Повторный вызов ничего не делает."""
        async with self._lock:
            self._remove(conversation_id, connection.connection_id)

    async def leave_all(self, connection: ConnectionHandle) -> List[str]:
        """
        Удалить соединение из всех комнат.

        Returns:
            Список комнат, из которых соединение было удалено
        """
        async with self._lock:
            rooms = list(self._memberships.get(connection.connection_id, ()))
            for conversation_id in rooms:
                self._remove(conversation_id, connection.connection_id)
        if rooms:
            logger.info(f"[{connection.connection_id}] Left {len(rooms)} room(s)")
        return rooms

    async def broadcast(
        self,
        conversation_id: str,
        event: str,
        payload: Any,
        exclude: Optional[ConnectionHandle] = None
    ) -> int:
        """
        Разослать событие всем участникам комнаты.

        Args:
            conversation_id: ID комнаты
            event: Имя события
            payload: Данные события
            exclude: Соединение, которому не отправлять (отправитель)

        Returns:
            Количество успешных доставок
        """
        async with self._lock:
            members = list(self._rooms.get(conversation_id, {}).values())

        delivered = 0
        failed: List[ConnectionHandle] = []
        for connection in members:
            if exclude is not None and connection.connection_id == exclude.connection_id:
                continue
            try:
                await asyncio.wait_for(connection.send(event, payload), timeout=self._send_timeout)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"[{connection.connection_id}] Failed to deliver {event} "
                    f"to conversation {conversation_id}: {type(e).__name__}: {e}"
                )
                failed.append(connection)

        if failed:
            async with self._lock:
                for connection in failed:
                    self._remove(conversation_id, connection.connection_id)

        logger.debug(f"[{conversation_id}] Broadcast {event} to {delivered}/{len(members)} connection(s)")
        return delivered

    async def members(self, conversation_id: str) -> List[str]:
        async with self._lock:
            return list(self._rooms.get(conversation_id, {}))

    def rooms_of(self, connection: ConnectionHandle) -> Set[str]:
        return set(self._memberships.get(connection.connection_id, ()))

    async def close(self) -> None:
        async with self._lock:
            self._rooms.clear()
            self._memberships.clear()
        logger.info("RoomRegistry closed")

    def _remove(self, conversation_id: str, connection_id: str) -> None:
        room = self._rooms.get(conversation_id)
        if room is not None:
            room.pop(connection_id, None)
            if not room:
                del self._rooms[conversation_id]
        rooms = self._memberships.get(connection_id)
        if rooms is not None:
            rooms.discard(conversation_id)
            if not rooms:
                del self._memberships[connection_id]
