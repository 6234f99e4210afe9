from .conversation import AuthorKind, Conversation, Message, Sentiment
from .rest import (
    AuthResponse,
    CreateConversationRequest,
    HealthResponse,
    LoginRequest,
    RegisterRequest,
    User,
    UserResponse,
)
from .websocket import (
    WSInboundEvent,
    WSJoinConversation,
    WSMessageError,
    WSSendMessage,
    WSTyping,
    WSUserTyping,
)
