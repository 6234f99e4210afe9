"""
Парсер входящих WebSocket событий с валидацией.

Формат кадра: {"event": "<имя>", "data": <payload>}.
"""

import json
import logging

from pydantic import ValidationError

from chat_service.models.websocket import (
    JOIN_CONVERSATION,
    SEND_MESSAGE,
    TYPING,
    WSInboundEvent,
    WSJoinConversation,
    WSSendMessage,
    WSTyping,
)

logger = logging.getLogger("chat-service.websocket.parser")


class WebSocketMessageParser:
    """Парсер входящих событий."""

    def parse(self, raw_message: str) -> WSInboundEvent:
        """
        Распарсить и провалидировать кадр от клиента.

        Args:
            raw_message: Сырой JSON кадр

        Returns:
            Валидированное событие соответствующего типа

        Raises:
            ValueError: Если кадр невалиден или событие неизвестно
        """
        try:
            frame = json.loads(raw_message)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}")

        if not isinstance(frame, dict):
            raise ValueError("Frame must be a JSON object")

        event = frame.get("event")
        if not event:
            raise ValueError("Event name is required")
        data = frame.get("data")

        try:
            if event == JOIN_CONVERSATION:
                # The web client sends the bare conversation id
                if isinstance(data, str):
                    data = {"conversationId": data}
                return WSJoinConversation.model_validate(data)
            elif event == SEND_MESSAGE:
                return WSSendMessage.model_validate(data)
            elif event == TYPING:
                return WSTyping.model_validate(data)
            else:
                raise ValueError(f"Unknown event: {event}")
        except ValidationError as e:
            raise ValueError(f"Validation error: {e}")
