"""
Модерация контента.

Чистая функция без состояния: регистронезависимый поиск подстрок
из списка запрещенных слов.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger("chat-service.services.moderation")

DEFAULT_BLOCKED_TERMS = ("spam", "垃圾", "广告", "违法")


@dataclass(frozen=True)
class ModerationResult:
    safe: bool
    reason: Optional[str] = None


class ContentModerator:
    """
    Классификатор сообщений safe/unsafe по списку запрещенных слов.

    Пример:
        >>> moderator = ContentModerator(["spam"])
        >>> moderator.check("Buy SPAM now").safe
        False
    """

    REJECTION_REASON = "Message contains inappropriate content"

    def __init__(self, blocked_terms: Iterable[str] = DEFAULT_BLOCKED_TERMS):
        self._blocked_terms = tuple(term.lower() for term in blocked_terms if term)

    @property
    def blocked_terms(self) -> tuple:
        return self._blocked_terms

    def check(self, text: str) -> ModerationResult:
        """
        Проверить текст сообщения.

        Args:
            text: Текст сообщения

        Returns:
            ModerationResult с safe=False и причиной, если найдено запрещенное слово
        """
        lowered = text.lower()
        for term in self._blocked_terms:
            if term in lowered:
                logger.debug(f"Blocked term matched: {term!r}")
                return ModerationResult(safe=False, reason=self.REJECTION_REASON)
        return ModerationResult(safe=True)
