"""
Иерархия исключений Chat Service.
"""

from .base import ChatServiceError, DomainError, InfrastructureError
from .domain_errors import (
    AuthError,
    ConversationNotFoundError,
    InvalidCredentialsError,
    MessageValidationError,
    ModerationRejection,
    UserAlreadyExistsError,
)
from .infrastructure_errors import PersistenceError

__all__ = [
    "ChatServiceError",
    "DomainError",
    "InfrastructureError",
    "AuthError",
    "ConversationNotFoundError",
    "InvalidCredentialsError",
    "MessageValidationError",
    "ModerationRejection",
    "UserAlreadyExistsError",
    "PersistenceError",
]
