"""
UsageHistory - дневные счётчики уникальных авторов.

Context7: для каждой сущности ведутся две независимые истории:
- без языка (только для отображения, скорер её не читает),
- с языком (используется для расчёта score).
Отсутствие данных - валидный ноль, а не ошибка.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Protocol, Sequence, Tuple

from redis import Redis

from .domain import HistoryDay
from .redis_schema import TrendRedisSchema
from .utils.time_utils import day_start

DEFAULT_RETENTION = timedelta(days=14)


class HistoryStore(Protocol):
    """Хранилище дневных bucket'ов (Redis или in-memory)."""

    def add_unique(self, bucket_key: str, actor_id: str, ttl_seconds: int) -> None: ...

    def unique_count(self, bucket_key: str) -> int: ...

    def unique_counts(self, bucket_keys: Sequence[str]) -> List[int]: ...

    def incr_uses(self, bucket_key: str, ttl_seconds: int) -> None: ...

    def uses(self, bucket_key: str) -> int: ...


class RedisHistoryStore:
    """
    Redis backend: HyperLogLog (PFADD/PFCOUNT) для уникальных авторов,
    INCR для общего числа использований. Атомарность обеспечивает Redis.
    """

    def __init__(self, redis: Redis, schema: Optional[TrendRedisSchema] = None):
        self._redis = redis
        self._schema = schema or TrendRedisSchema()

    def add_unique(self, bucket_key: str, actor_id: str, ttl_seconds: int) -> None:
        key = self._schema.accounts_key(bucket_key)
        pipe = self._redis.pipeline(transaction=False)
        pipe.pfadd(key, actor_id)
        pipe.expire(key, ttl_seconds)
        pipe.execute()

    def unique_count(self, bucket_key: str) -> int:
        return int(self._redis.pfcount(self._schema.accounts_key(bucket_key)) or 0)

    def unique_counts(self, bucket_keys: Sequence[str]) -> List[int]:
        if not bucket_keys:
            return []
        pipe = self._redis.pipeline(transaction=False)
        for bucket_key in bucket_keys:
            pipe.pfcount(self._schema.accounts_key(bucket_key))
        return [int(value or 0) for value in pipe.execute()]

    def incr_uses(self, bucket_key: str, ttl_seconds: int) -> None:
        key = self._schema.uses_key(bucket_key)
        pipe = self._redis.pipeline(transaction=False)
        pipe.incr(key)
        pipe.expire(key, ttl_seconds)
        pipe.execute()

    def uses(self, bucket_key: str) -> int:
        value = self._redis.get(self._schema.uses_key(bucket_key))
        return int(value) if value is not None else 0


class UsageHistory:
    """Дневная история использования сущностей одного вида трендов."""

    def __init__(
        self,
        store: HistoryStore,
        kind: str,
        schema: Optional[TrendRedisSchema] = None,
        retention: timedelta = DEFAULT_RETENTION,
    ):
        self.store = store
        self.kind = kind
        self.schema = schema or TrendRedisSchema()
        self.retention = retention

    def _bucket(self, entity_id: str, at_time: datetime, language: Optional[str]) -> str:
        return self.schema.history_key(self.kind, entity_id, at_time, language)

    def _ttl_seconds(self) -> int:
        return int(self.retention.total_seconds())

    def add(self, entity_id: str, actor_id: str, at_time: datetime, language: Optional[str] = None) -> None:
        """Фиксирует использование; повтор того же автора в те же сутки не меняет счётчик."""
        bucket = self._bucket(entity_id, at_time, language)
        self.store.add_unique(bucket, str(actor_id), self._ttl_seconds())
        self.store.incr_uses(bucket, self._ttl_seconds())

    def get(self, entity_id: str, at_time: datetime, language: Optional[str] = None) -> int:
        """Число уникальных авторов за сутки, содержащие ``at_time`` (0 если данных нет)."""
        return self.store.unique_count(self._bucket(entity_id, at_time, language))

    def get_many(
        self,
        scopes: Sequence[Tuple[str, Optional[str]]],
        at_time: datetime,
    ) -> List[int]:
        """Пакетный вариант ``get`` для списка пар (entity_id, language)."""
        buckets = [self._bucket(entity_id, at_time, language) for entity_id, language in scopes]
        return self.store.unique_counts(buckets)

    def days(
        self,
        entity_id: str,
        at_time: datetime,
        days: int = 7,
        language: Optional[str] = None,
    ) -> List[HistoryDay]:
        """История для отображения, от последних суток к более ранним."""
        today = day_start(at_time)
        result: List[HistoryDay] = []
        for offset in range(days):
            moment = today - timedelta(days=offset)
            bucket = self._bucket(entity_id, moment, language)
            result.append(
                HistoryDay(
                    day=moment.date(),
                    uses=self.store.uses(bucket),
                    accounts=self.store.unique_count(bucket),
                )
            )
        return result
