"""
WebSocket wire events.

Every frame is ``{"event": <name>, "data": <payload>}``. Event names and
payload keys match the web client.
"""
from typing import Any, Dict, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# Inbound
JOIN_CONVERSATION = "join-conversation"
SEND_MESSAGE = "send-message"
TYPING = "typing"

# Outbound
NEW_MESSAGE = "new-message"
MESSAGE_ERROR = "message-error"
USER_TYPING = "user-typing"


class _WirePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WSJoinConversation(_WirePayload):
    event: Literal["join-conversation"] = JOIN_CONVERSATION
    conversation_id: str = Field(alias="conversationId", min_length=1)


class WSSendMessage(_WirePayload):
    event: Literal["send-message"] = SEND_MESSAGE
    conversation_id: str = Field(alias="conversationId", min_length=1)
    message: str
    user_id: str | None = Field(default=None, alias="userId")


class WSTyping(_WirePayload):
    event: Literal["typing"] = TYPING
    conversation_id: str = Field(alias="conversationId", min_length=1)
    user_id: str | None = Field(default=None, alias="userId")
    is_typing: bool = Field(alias="isTyping")


WSInboundEvent = Union[WSJoinConversation, WSSendMessage, WSTyping]


class WSMessageError(_WirePayload):
    error: str


class WSUserTyping(_WirePayload):
    user_id: str = Field(alias="userId")
    is_typing: bool = Field(alias="isTyping")


def frame(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Outbound frame envelope"""
    return {"event": event, "data": payload}
