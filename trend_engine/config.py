"""Конфигурация движка трендов."""

import json
from datetime import timedelta
from functools import lru_cache
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrendOptions(BaseModel):
    """
    Неизменяемые параметры скоринга для одного экземпляра движка.

    Context7: вместо мутабельных глобальных default options каждый движок
    получает свой экземпляр; переопределение через ``with_overrides``.
    """

    model_config = ConfigDict(frozen=True)

    threshold: int = Field(default=5, ge=0, description="Минимум уникальных авторов за сутки")
    review_threshold: int = Field(default=3, ge=1, description="Позиция в рейтинге для порога модерации")
    max_score_cooldown: timedelta = Field(default=timedelta(days=2))
    max_score_halflife: timedelta = Field(default=timedelta(hours=4))
    decay_threshold: float = Field(default=1.0, ge=0)
    batch_size: int = Field(default=100, ge=1)

    @field_validator("max_score_cooldown", "max_score_halflife")
    @classmethod
    def validate_positive_interval(cls, v: timedelta) -> timedelta:
        if v.total_seconds() <= 0:
            raise ValueError("interval must be positive")
        return v

    def with_overrides(self, **overrides: Any) -> "TrendOptions":
        """Новый экземпляр с переопределёнными значениями (с валидацией)."""
        if not overrides:
            return self
        return TrendOptions(**{**self.model_dump(), **overrides})


DEFAULT_OPTIONS = TrendOptions()


class TrendSettings(BaseSettings):
    """Настройки приложения (переменные окружения TRENDS_*)."""

    model_config = SettingsConfigDict(
        env_prefix="TRENDS_",
        case_sensitive=False,
    )

    # Storage
    database_url: str = "sqlite:///./trends.db"
    redis_url: str = "redis://redis:6379/0"

    # Application
    enabled: bool = True
    kinds: str = "tags,links,statuses"
    log_level: str = "INFO"
    log_format: str = "json"

    # Scoring defaults
    threshold: int = 5
    review_threshold: int = 3
    max_score_cooldown_hours: float = 48.0
    max_score_halflife_hours: float = 4.0
    decay_threshold: float = 1.0
    batch_size: int = 100

    # History / activity
    history_retention_days: int = 14
    redis_namespace: str = "trends"

    # Scheduling
    refresh_minute: str = "0"  # каждый час
    review_minute: str = "30"
    lock_ttl_seconds: int = 15 * 60
    retry_max_attempts: int = 3

    # Review notifications
    review_notifications_enabled: bool = True

    @property
    def kind_names(self) -> List[str]:
        """Context7: поддержка JSON массива и строки через запятую."""
        cleaned = self.kinds.strip()
        if not cleaned:
            return []
        try:
            parsed = json.loads(cleaned)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except (json.JSONDecodeError, TypeError):
            pass
        return [item.strip() for item in cleaned.split(",") if item.strip()]

    def to_options(self) -> TrendOptions:
        return TrendOptions(
            threshold=self.threshold,
            review_threshold=self.review_threshold,
            max_score_cooldown=timedelta(hours=self.max_score_cooldown_hours),
            max_score_halflife=timedelta(hours=self.max_score_halflife_hours),
            decay_threshold=self.decay_threshold,
            batch_size=self.batch_size,
        )


@lru_cache(maxsize=1)
def get_settings() -> TrendSettings:
    return TrendSettings()
