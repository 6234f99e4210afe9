"""
Генератор ответов (заглушка вместо вызова LLM).

Классифицирует тональность сообщения по спискам ключевых слов
и собирает ответ из фиксированного пула шаблонов.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from chat_service.models.conversation import Message, Sentiment

logger = logging.getLogger("chat-service.services.reply_generator")

# Priority order matters: the first matching category wins
DEFAULT_KEYWORDS: Dict[Sentiment, Tuple[str, ...]] = {
    Sentiment.POSITIVE: ("开心", "高兴", "喜欢", "好", "棒", "优秀", "完美"),
    Sentiment.NEGATIVE: ("难过", "生气", "讨厌", "坏", "糟糕", "失望", "沮丧"),
    Sentiment.QUESTION: ("什么", "为什么", "怎么", "如何", "?", "？"),
}

RESPONSE_TEMPLATES: Tuple[str, ...] = (
    "这是一个很有趣的问题。让我来分析一下...",
    "根据你提供的信息，我认为...",
    "我理解你的观点。从另一个角度来看...",
    "这让我想到了一个相关的概念...",
    "你提出了一个很好的问题。让我详细解释一下...",
    "基于我的理解，这个问题可以这样看待...",
    "我注意到你之前提到了相关的内容，让我结合起来回答...",
    "这是一个复杂的话题，让我们一步步来分析...",
)

SENTIMENT_PREFIXES: Dict[Sentiment, str] = {
    Sentiment.POSITIVE: "我很高兴听到你这么说！",
    Sentiment.NEGATIVE: "我理解你的感受，让我来帮助你。",
    Sentiment.QUESTION: "这是一个很好的问题！",
    Sentiment.NEUTRAL: "",
}

FOLLOW_UP = " 你还有其他想了解的吗？"

MIN_CONFIDENCE = 0.7
# Largest float strictly below 1.0
MAX_CONFIDENCE = math.nextafter(1.0, 0.0)


@dataclass(frozen=True)
class GeneratedReply:
    text: str
    sentiment: Sentiment
    confidence: float


class ReplyGenerator:
    """
    Генератор ответов с простой разметкой тональности.

    Это граница подключаемого компонента: реальная система подставит
    сюда вызов модели. Сессия требует только сигнатуру generate()
    и вызывает ее вне блокировки разговора.

    Атрибуты:
        _keywords: Списки ключевых слов по категориям (в порядке приоритета)
        _templates: Пул шаблонов ответа
        _rng: Источник случайности (подменяется в тестах)
    """

    def __init__(
        self,
        keywords: Optional[Dict[Sentiment, Sequence[str]]] = None,
        templates: Sequence[str] = RESPONSE_TEMPLATES,
        rng: Optional[random.Random] = None
    ):
        source = keywords if keywords is not None else DEFAULT_KEYWORDS
        self._keywords = {
            category: tuple(word.lower() for word in source.get(category, ()))
            for category in (Sentiment.POSITIVE, Sentiment.NEGATIVE, Sentiment.QUESTION)
        }
        if not templates:
            raise ValueError("templates must not be empty")
        self._templates = tuple(templates)
        self._rng = rng or random.Random()

    def classify(self, text: str) -> Sentiment:
        """
        Определить тональность текста.

        Приоритет: positive -> negative -> question -> neutral.
        """
        lowered = text.lower()
        for category, words in self._keywords.items():
            if any(word in lowered for word in words):
                return category
        return Sentiment.NEUTRAL

    def generate(self, message: str, context: Sequence[Message] = ()) -> GeneratedReply:
        """
        Сгенерировать ответ на сообщение.

        Args:
            message: Текст сообщения пользователя
            context: Последние сообщения разговора (окно контекста)

        Returns:
            GeneratedReply с текстом, тональностью и уверенностью в [0.7, 1.0)
        """
        sentiment = self.classify(message)
        base = self._rng.choice(self._templates)
        text = SENTIMENT_PREFIXES[sentiment] + base + FOLLOW_UP
        confidence = min(MIN_CONFIDENCE + self._rng.random() * 0.3, MAX_CONFIDENCE)

        logger.debug(
            f"Generated reply: sentiment={sentiment.value}, "
            f"confidence={confidence:.3f}, context_size={len(context)}"
        )
        return GeneratedReply(text=text, sentiment=sentiment, confidence=confidence)
