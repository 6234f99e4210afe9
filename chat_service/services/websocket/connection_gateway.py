"""
Главный обработчик WebSocket соединений.

Аутентифицирует соединение, декодирует входящие события и направляет их
в RoomRegistry и ConversationSession, кодирует исходящие события.
"""

import asyncio
import logging
import uuid
from typing import Any

from fastapi import WebSocket, status
from starlette.websockets import WebSocketDisconnect

from chat_service.core.errors import AuthError, ChatServiceError, MessageValidationError
from chat_service.models.websocket import (
    MESSAGE_ERROR,
    USER_TYPING,
    WSInboundEvent,
    WSJoinConversation,
    WSMessageError,
    WSSendMessage,
    WSTyping,
    WSUserTyping,
    frame,
)
from chat_service.services.conversation_session import SessionRegistry
from chat_service.services.identity import Identity, IdentityVerifier
from chat_service.services.room_registry import ConnectionHandle, RoomRegistry

from .message_parser import WebSocketMessageParser

logger = logging.getLogger("chat-service.websocket.gateway")


class WebSocketConnection(ConnectionHandle):
    """
    Аутентифицированное WebSocket соединение.

    Отправки сериализуются собственной блокировкой: в одно соединение
    одновременно пишут цикл обработки и задачи ответа.
    """

    def __init__(self, websocket: WebSocket, identity: Identity):
        self.connection_id = str(uuid.uuid4())
        self.websocket = websocket
        self.identity = identity
        self.closed = False
        self._send_lock = asyncio.Lock()

    async def send(self, event: str, payload: Any) -> None:
        if self.closed:
            raise ConnectionError("Connection closed")
        async with self._send_lock:
            await self.websocket.send_json(frame(event, payload))


class ConnectionGateway:
    """Жизненный цикл клиентских соединений."""

    GENERIC_ERROR = "Failed to send message"
    BINARY_FRAME_ERROR = "Binary frames are not supported"

    def __init__(
        self,
        verifier: IdentityVerifier,
        rooms: RoomRegistry,
        sessions: SessionRegistry,
        parser: WebSocketMessageParser,
        max_message_length: int = 2000
    ):
        """
        Args:
            verifier: Проверка токена соединения
            rooms: Реестр комнат
            sessions: Реестр сессий разговоров
            parser: Парсер входящих событий
            max_message_length: Максимальная длина сообщения (code points)
        """
        self._verifier = verifier
        self._rooms = rooms
        self._sessions = sessions
        self._parser = parser
        self._max_message_length = max_message_length

    async def handle_connection(self, websocket: WebSocket) -> None:
        """
        Обработать WebSocket соединение.

        Flow:
        1. Проверка токена (до accept); неудача - закрытие с кодом 1008
        2. Цикл чтения событий; ошибки события уходят только отправителю
        3. При отключении соединение удаляется из всех комнат,
           незавершенные задачи ответа продолжают работу
        """
        try:
            identity = self._verifier.verify(self._extract_token(websocket))
        except AuthError as e:
            logger.warning(f"WebSocket rejected: {e.message}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        connection = WebSocketConnection(websocket, identity)
        logger.info(f"[{connection.connection_id}] WebSocket connected (user={identity.user_id})")

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))

                raw_msg = message.get("text")
                if raw_msg is None:
                    logger.warning(f"[{connection.connection_id}] Binary frame ignored")
                    await self._send_error(connection, self.BINARY_FRAME_ERROR)
                    continue
                logger.debug(f"[{connection.connection_id}] Received WS frame: {raw_msg!r}")

                try:
                    event = self._parser.parse(raw_msg)
                except ValueError as e:
                    logger.warning(f"[{connection.connection_id}] Failed to parse frame: {e}")
                    await self._send_error(connection, str(e))
                    continue

                await self._dispatch(connection, event)

        except WebSocketDisconnect:
            logger.info(f"[{connection.connection_id}] WebSocket disconnected")
        except Exception as e:
            logger.error(f"[{connection.connection_id}] WS fatal error: {e}", exc_info=True)
        finally:
            connection.closed = True
            await self._rooms.leave_all(connection)

    async def _dispatch(self, connection: WebSocketConnection, event: WSInboundEvent) -> None:
        try:
            if isinstance(event, WSJoinConversation):
                await self._rooms.join(event.conversation_id, connection)
            elif isinstance(event, WSSendMessage):
                await self._handle_send_message(connection, event)
            elif isinstance(event, WSTyping):
                await self._handle_typing(connection, event)
        except ChatServiceError as e:
            logger.info(
                f"[{connection.connection_id}] {event.event} rejected: {e.error_code}: {e.message}"
            )
            await self._send_error(connection, e.message)
        except Exception as e:
            logger.error(
                f"[{connection.connection_id}] Error handling {event.event}: {e}",
                exc_info=True
            )
            await self._send_error(connection, self.GENERIC_ERROR)

    async def _handle_send_message(self, connection: WebSocketConnection, event: WSSendMessage) -> None:
        if event.user_id and event.user_id != connection.identity.user_id:
            logger.warning(
                f"[{connection.connection_id}] Payload userId {event.user_id} "
                f"differs from token user {connection.identity.user_id}"
            )
        self._validate_content(event.message)
        session = await self._sessions.get(event.conversation_id)
        await session.receive(event.message)

    async def _handle_typing(self, connection: WebSocketConnection, event: WSTyping) -> None:
        # Ephemeral: relayed to the room, never stored
        payload = WSUserTyping(
            user_id=event.user_id or connection.identity.user_id,
            is_typing=event.is_typing,
        )
        await self._rooms.broadcast(
            event.conversation_id,
            USER_TYPING,
            payload.model_dump(by_alias=True),
            exclude=connection,
        )

    def _validate_content(self, content: str) -> None:
        if not content or not content.strip():
            raise MessageValidationError("Message must not be empty")
        if len(content) > self._max_message_length:
            raise MessageValidationError(
                f"Message exceeds {self._max_message_length} characters",
                length=len(content),
            )
        try:
            content.encode("utf-8")
        except UnicodeEncodeError:
            raise MessageValidationError("Message contains invalid characters")

    @staticmethod
    def _extract_token(websocket: WebSocket) -> str:
        token = websocket.query_params.get("token")
        if token:
            return token
        auth_header = websocket.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:]
        return ""

    async def _send_error(self, connection: WebSocketConnection, message: str) -> None:
        """Отправить message-error только этому соединению."""
        error = WSMessageError(error=message)
        await connection.send(MESSAGE_ERROR, error.model_dump())
