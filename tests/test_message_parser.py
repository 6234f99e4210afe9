"""
Unit тесты для WebSocketMessageParser.
"""
import json

import pytest

from chat_service.models.websocket import WSJoinConversation, WSSendMessage, WSTyping
from chat_service.services.websocket import WebSocketMessageParser


@pytest.fixture
def parser():
    return WebSocketMessageParser()


def test_parse_join_with_bare_id(parser):
    """Тест парсинга join-conversation с идентификатором-строкой."""
    event = parser.parse(json.dumps({"event": "join-conversation", "data": "conv-1"}))

    assert isinstance(event, WSJoinConversation)
    assert event.conversation_id == "conv-1"


def test_parse_join_with_object(parser):
    event = parser.parse(json.dumps({"event": "join-conversation", "data": {"conversationId": "conv-1"}}))

    assert isinstance(event, WSJoinConversation)
    assert event.conversation_id == "conv-1"


def test_parse_send_message(parser):
    """Тест парсинга send-message."""
    raw = json.dumps({
        "event": "send-message",
        "data": {"conversationId": "conv-1", "message": "你好", "userId": "user-1"},
    })

    event = parser.parse(raw)

    assert isinstance(event, WSSendMessage)
    assert event.conversation_id == "conv-1"
    assert event.message == "你好"
    assert event.user_id == "user-1"


def test_parse_typing(parser):
    raw = json.dumps({
        "event": "typing",
        "data": {"conversationId": "conv-1", "userId": "user-1", "isTyping": True},
    })

    event = parser.parse(raw)

    assert isinstance(event, WSTyping)
    assert event.is_typing is True


def test_parse_invalid_json(parser):
    """Тест обработки невалидного JSON."""
    with pytest.raises(ValueError, match="Invalid JSON"):
        parser.parse("{not json")


def test_parse_non_object_frame(parser):
    with pytest.raises(ValueError, match="JSON object"):
        parser.parse("[1, 2, 3]")


def test_parse_missing_event(parser):
    with pytest.raises(ValueError, match="Event name is required"):
        parser.parse(json.dumps({"data": {}}))


def test_parse_unknown_event(parser):
    """Тест обработки неизвестного события."""
    with pytest.raises(ValueError, match="Unknown event"):
        parser.parse(json.dumps({"event": "leave-everything", "data": {}}))


def test_parse_send_message_missing_fields(parser):
    with pytest.raises(ValueError, match="Validation error"):
        parser.parse(json.dumps({"event": "send-message", "data": {"conversationId": "conv-1"}}))


def test_parse_join_with_empty_id(parser):
    with pytest.raises(ValueError, match="Validation error"):
        parser.parse(json.dumps({"event": "join-conversation", "data": ""}))
