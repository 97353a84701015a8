"""
RecentActivityIndex - какие пары (entity, language) использовались сегодня.

Context7: по этому индексу refresh находит новых кандидатов, которых ещё
нет в trend_records (cold start). Запись живёт около суток.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterator, List, Optional, Protocol

from redis import Redis

from .domain import Candidate
from .redis_schema import TrendRedisSchema, activity_member, parse_activity_member
from .utils.time_utils import day_end

ACTIVITY_TTL = timedelta(days=1)


class ExpiringSetStore(Protocol):
    """Множество с TTL: member -> последний timestamp."""

    def touch(self, key: str, member: str, at_time: datetime, ttl_seconds: int) -> None: ...

    def scan_active(self, key: str) -> Iterator[str]: ...


class RedisExpiringSetStore:
    """Redis backend: sorted set (score = unix timestamp) + EXPIRE на ключ."""

    def __init__(self, redis: Redis):
        self._redis = redis

    def touch(self, key: str, member: str, at_time: datetime, ttl_seconds: int) -> None:
        pipe = self._redis.pipeline(transaction=False)
        pipe.zadd(key, {member: at_time.timestamp()})
        pipe.expire(key, ttl_seconds)
        pipe.execute()

    def scan_active(self, key: str) -> Iterator[str]:
        # zscan_iter - курсорная итерация, не блокирует Redis на больших множествах
        for member, _score in self._redis.zscan_iter(key):
            yield member.decode() if isinstance(member, bytes) else member


class RecentActivityIndex:
    def __init__(self, store: ExpiringSetStore, kind: str, schema: Optional[TrendRedisSchema] = None):
        self.store = store
        self.kind = kind
        self.schema = schema or TrendRedisSchema()

    def record(self, entity_id: str, language: Optional[str], at_time: datetime) -> None:
        """Отмечает использование `entity_id:language` в сутках ``at_time``."""
        key = self.schema.used_key(self.kind, at_time)
        # Ключ живёт до конца суток плюс ACTIVITY_TTL
        ttl = int((day_end(at_time) - at_time + ACTIVITY_TTL).total_seconds())
        self.store.touch(key, activity_member(entity_id, language), at_time, max(ttl, 1))

    def active(self, at_time: datetime) -> List[Candidate]:
        """Кандидаты, активные в сутках ``at_time`` (без дубликатов, в порядке обхода)."""
        key = self.schema.used_key(self.kind, at_time)
        seen = set()
        result: List[Candidate] = []
        for member in self.store.scan_active(key):
            entity_id, language = parse_activity_member(member)
            candidate = Candidate(entity_id=entity_id, language=language)
            if candidate in seen:
                continue
            seen.add(candidate)
            result.append(candidate)
        return result
