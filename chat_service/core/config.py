import logging
from typing import List, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class AppConfig(BaseSettings):
    """Настройки сервиса. Читаются из переменных окружения CHAT_SERVICE__*."""

    model_config = SettingsConfigDict(
        env_prefix="CHAT_SERVICE__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    version: str = "0.1.0"
    cors_origins: List[str] = ["http://localhost:5173"]

    # Storage
    database_url: str = "sqlite:///data/chat.db"
    conversation_backend: Literal["sql", "memory"] = "sql"

    # Identity
    jwt_secret: str = "change-me-jwt-secret"
    jwt_algorithm: str = "HS256"
    access_token_lifetime: int = Field(default=86400, ge=60)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # Conversation engine
    max_message_length: int = Field(default=2000, ge=1)
    context_window: int = Field(default=5, ge=1)
    reply_delay_min: float = Field(default=1.0, ge=0.0)
    reply_delay_max: float = Field(default=3.0, ge=0.0)
    blocked_terms: List[str] = ["spam", "垃圾", "广告", "违法"]
    broadcast_send_timeout: float = Field(default=5.0, gt=0.0, le=60.0)

    # Session lifecycle
    session_idle_timeout: float = Field(default=1800.0, gt=0.0)
    session_cleanup_interval: float = Field(default=300.0, gt=0.0)
    shutdown_timeout: float = Field(default=5.0, ge=0.0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def validate_reply_delay(self) -> "AppConfig":
        if self.reply_delay_min > self.reply_delay_max:
            raise ValueError("reply_delay_min must not exceed reply_delay_max")
        return self


config = AppConfig()

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger("chat-service")
