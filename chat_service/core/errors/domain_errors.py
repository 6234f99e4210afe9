"""
Доменные исключения.

Все они доставляются только исходному соединению через событие message-error.
"""

from typing import Optional

from .base import ChatServiceError, DomainError


class MessageValidationError(DomainError):
    """
    Сообщение пустое или превышает допустимую длину.

    Отклоняется до передачи в ConversationSession.
    """

    def __init__(self, message: str, length: Optional[int] = None):
        details = {"length": length} if length is not None else None
        super().__init__(message=message, details=details, error_code="VALIDATION_ERROR")


class ModerationRejection(DomainError):
    """
    Сообщение отклонено модератором контента.

    Состояние разговора не меняется, broadcast не выполняется.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(message=reason, error_code="MODERATION_REJECTED")


class ConversationNotFoundError(DomainError):
    """Разговор с указанным ID не существует."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(
            message="Conversation not found",
            details={"conversation_id": conversation_id},
            error_code="CONVERSATION_NOT_FOUND"
        )


class AuthError(ChatServiceError):
    """
    Невалидный или просроченный токен.

    Ошибка уровня соединения: соединение отклоняется,
    доступ к комнатам не выдается.
    """

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message=message, error_code="AUTH_ERROR")


class UserAlreadyExistsError(DomainError):
    """Пользователь с таким email уже зарегистрирован."""

    def __init__(self, email: str):
        super().__init__(
            message="User already exists",
            details={"email": email},
            error_code="USER_EXISTS"
        )


class InvalidCredentialsError(DomainError):
    """Неверный email или пароль."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message=message, error_code="INVALID_CREDENTIALS")
