"""
Инфраструктурные исключения.
"""

from typing import Optional

from .base import InfrastructureError


class PersistenceError(InfrastructureError):
    """
    Ошибка записи в ConversationStore.

    Broadcast к этому моменту уже доставлен клиентам и не откатывается
    (broadcast-before-persist). Ошибка логируется.
    """

    def __init__(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        details = {}
        if conversation_id:
            details["conversation_id"] = conversation_id
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message=message, details=details, error_code="PERSISTENCE_ERROR")
