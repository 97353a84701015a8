"""
Redis key schema for trend engine.

Context7: единообразные имена ключей для истории использования,
индекса недавней активности, блокировок и стрима review-уведомлений.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .utils.time_utils import day_timestamp

TRENDS_REVIEW_STREAM = "stream:trends.review_requested"


@dataclass(frozen=True)
class TrendRedisSchema:
    """Хелперы для генерации ключей Redis."""

    namespace: str = "trends"

    def history_key(self, kind: str, entity_id: str, at_time: datetime, language: Optional[str] = None) -> str:
        """Дневной bucket истории; без языка - история для отображения."""
        scope = f"{entity_id}:{language}" if language is not None else entity_id
        return f"{self.namespace}:{kind}:history:{scope}:{day_timestamp(at_time)}"

    def accounts_key(self, history_key: str) -> str:
        """HyperLogLog уникальных авторов внутри дневного bucket."""
        return f"{history_key}:accounts"

    def uses_key(self, history_key: str) -> str:
        return f"{history_key}:uses"

    def used_key(self, kind: str, at_time: datetime) -> str:
        """Sorted set `entity_id:language` -> timestamp за текущие сутки."""
        return f"{self.namespace}:{kind}:used:{day_timestamp(at_time)}"

    def lock_key(self, kind: str) -> str:
        return f"{self.namespace}:{kind}:refresh_lock"

    def review_stream(self) -> str:
        return TRENDS_REVIEW_STREAM


def activity_member(entity_id: str, language: Optional[str]) -> str:
    """Элемент индекса активности: `entity_id:language` (язык может быть пустым)."""
    return f"{entity_id}:{language or ''}"


def parse_activity_member(member: str) -> tuple[str, str]:
    entity_id, _, language = member.rpartition(":")
    return entity_id, language
