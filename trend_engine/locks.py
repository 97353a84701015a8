"""
Блокировка пересчёта трендов.

Context7: refresh читает и пишет max_score без блокировок на уровне движка,
поэтому плановые запуски одного вида сериализуются через Redis lock
(SET NX EX + освобождение только владельцем токена).
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import structlog
from redis import Redis
from redis.exceptions import RedisError

from .redis_schema import TrendRedisSchema

logger = structlog.get_logger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 15 * 60

_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


@dataclass(frozen=True)
class RefreshLockToken:
    """Информация о захваченной блокировке."""

    key: str
    token: str
    ttl_seconds: int


class RefreshLock:
    def __init__(
        self,
        redis: Redis,
        schema: Optional[TrendRedisSchema] = None,
        ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ):
        self._redis = redis
        self._schema = schema or TrendRedisSchema()
        self.ttl_seconds = ttl_seconds

    def acquire(self, kind: str) -> Optional[RefreshLockToken]:
        """None - блокировка уже занята другим процессом."""
        key = self._schema.lock_key(kind)
        token = uuid.uuid4().hex
        if self._redis.set(key, token, nx=True, ex=self.ttl_seconds):
            return RefreshLockToken(key=key, token=token, ttl_seconds=self.ttl_seconds)
        logger.info("trends.lock.busy", kind=kind, key=key)
        return None

    def release(self, lock: Optional[RefreshLockToken]) -> None:
        if not lock:
            return
        try:
            self._redis.eval(_RELEASE_SCRIPT, 1, lock.key, lock.token)
        except RedisError as exc:
            # Ключ всё равно истечёт по TTL
            logger.warning("trends.lock.release_failed", key=lock.key, error=str(exc))

    @contextmanager
    def hold(self, kind: str) -> Iterator[Optional[RefreshLockToken]]:
        lock = self.acquire(kind)
        try:
            yield lock
        finally:
            self.release(lock)
