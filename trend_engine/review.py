"""
Уведомления модераторов о трендах, ожидающих проверки.

Context7: публикация TrendReviewRequestedEventV1 в Redis Stream
`stream:trends.review_requested`; потребитель (админка, бот) вне движка.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

import structlog
from redis import Redis

from .domain import TrendableEntity
from .events import ReviewedEntity, TrendReviewRequestedEventV1
from .redis_schema import TrendRedisSchema

logger = structlog.get_logger(__name__)


class ReviewNotifier(Protocol):
    def notify(self, kind: str, entities: Sequence[TrendableEntity], at_time: datetime) -> Optional[str]: ...


class RedisStreamReviewNotifier:
    def __init__(self, redis: Redis, schema: Optional[TrendRedisSchema] = None, maxlen: int = 10000):
        self._redis = redis
        self._schema = schema or TrendRedisSchema()
        self._maxlen = maxlen

    def notify(self, kind: str, entities: Sequence[TrendableEntity], at_time: datetime) -> Optional[str]:
        if not entities:
            return None
        event = TrendReviewRequestedEventV1(
            idempotency_key=f"trends.review:{kind}:{int(at_time.timestamp())}",
            kind=kind,
            entities=[ReviewedEntity(id=entity.id, attributes=dict(entity.attributes)) for entity in entities],
            requested_at=at_time,
        )
        stream = self._schema.review_stream()
        message_id = self._redis.xadd(stream, {"data": event.model_dump_json()}, maxlen=self._maxlen)
        logger.info(
            "trends.review.notification_published",
            kind=kind,
            stream=stream,
            entities=len(entities),
            message_id=message_id,
            trace_id=event.trace_id,
        )
        return message_id
