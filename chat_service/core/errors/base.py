"""
Базовые исключения для Chat Service.

Определяет иерархию исключений для различных слоев приложения.
"""

from typing import Any, Dict, Optional


class ChatServiceError(Exception):
    """
    Базовое исключение для всех ошибок Chat Service.

    Атрибуты:
        message: Сообщение об ошибке
        details: Дополнительные детали ошибки
        error_code: Код ошибки для идентификации

    Пример:
        >>> try:
        ...     raise ChatServiceError("Something went wrong")
        ... except ChatServiceError as e:
        ...     print(f"Error: {e}")
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Преобразовать исключение в словарь.

        Returns:
            Словарь с информацией об ошибке
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class DomainError(ChatServiceError):
    """
    Ошибки доменного слоя: нарушение бизнес-правил и инвариантов.

    Такие ошибки сообщаются только отправителю сообщения
    и никогда не закрывают соединение.
    """
    pass


class InfrastructureError(ChatServiceError):
    """
    Ошибки инфраструктурного слоя: база данных, сеть и т.д.
    """
    pass
