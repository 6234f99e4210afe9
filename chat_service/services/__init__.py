from .conversation_session import (
    ConversationSession,
    ReplyJob,
    SessionRegistry,
    SessionState,
)
from .identity import Identity, IdentityVerifier, JWTIdentityVerifier, TokenService
from .moderation import ContentModerator, ModerationResult
from .reply_generator import GeneratedReply, ReplyGenerator
from .room_registry import ConnectionHandle, RoomRegistry
from .user_service import UserService
