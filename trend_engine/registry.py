"""
Trends - фасад над движками всех зарегистрированных видов трендов.

Context7: одно событие статуса раздаётся всем видам; пересчёт и
модерация выполняются по видам независимо.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional

import structlog
from redis import Redis

from .activity import ExpiringSetStore, RedisExpiringSetStore
from .config import DEFAULT_OPTIONS, TrendOptions, TrendSettings
from .domain import RefreshStats, TrendableEntity
from .engine import TrendEngine
from .entities import EntitySource
from .events import StatusEvent
from .exceptions import UnknownTrendKindError
from .history import DEFAULT_RETENTION, HistoryStore, RedisHistoryStore
from .kinds import BUILTIN_KINDS, TrendKind, get_kind
from .redis_schema import TrendRedisSchema
from .review import RedisStreamReviewNotifier, ReviewNotifier
from .storage.database import build_engine, build_session_factory, create_schema
from .storage.repository import TrendRepository
from .utils.time_utils import ensure_dt_utc, utcnow

logger = structlog.get_logger(__name__)


class Trends:
    def __init__(self, engines: Iterable[TrendEngine], redis: Optional[Redis] = None):
        self._engines: Dict[str, TrendEngine] = {engine.name: engine for engine in engines}
        # Клиент Redis production-сборки (нужен для RefreshLock)
        self.redis = redis

    @classmethod
    def build(
        cls,
        history_store: HistoryStore,
        activity_store: ExpiringSetStore,
        repository: TrendRepository,
        entity_source: EntitySource,
        kinds: Optional[Iterable[TrendKind]] = None,
        options: TrendOptions = DEFAULT_OPTIONS,
        schema: Optional[TrendRedisSchema] = None,
        notifier: Optional[ReviewNotifier] = None,
        retention=DEFAULT_RETENTION,
    ) -> "Trends":
        """Движки для ``kinds`` (по умолчанию все встроенные) над общими хранилищами."""
        kinds = list(kinds) if kinds is not None else list(BUILTIN_KINDS.values())
        return cls(
            TrendEngine(
                kind=kind,
                history_store=history_store,
                activity_store=activity_store,
                repository=repository,
                entity_source=entity_source,
                options=options,
                schema=schema,
                retention=retention,
                notifier=notifier,
            )
            for kind in kinds
        )

    @classmethod
    def from_settings(
        cls,
        settings: TrendSettings,
        entity_source: EntitySource,
        redis: Optional[Redis] = None,
    ) -> "Trends":
        """
        Production-сборка: Redis для истории и активности, SQLAlchemy для записей.

        Context7: схема БД создаётся идемпотентно (create_all).
        """
        redis = redis or Redis.from_url(settings.redis_url, decode_responses=True)
        schema = TrendRedisSchema(namespace=settings.redis_namespace)

        engine = build_engine(settings.database_url)
        create_schema(engine)
        repository = TrendRepository(build_session_factory(engine))

        notifier = RedisStreamReviewNotifier(redis, schema) if settings.review_notifications_enabled else None

        trends = cls.build(
            history_store=RedisHistoryStore(redis, schema),
            activity_store=RedisExpiringSetStore(redis),
            repository=repository,
            entity_source=entity_source,
            kinds=[get_kind(name) for name in settings.kind_names],
            options=settings.to_options(),
            schema=schema,
            notifier=notifier,
            retention=timedelta(days=settings.history_retention_days),
        )
        trends.redis = redis
        logger.info("trends.initialized", kinds=trends.kinds, database=engine.url.render_as_string())
        return trends

    @property
    def kinds(self) -> List[str]:
        return list(self._engines)

    def __getitem__(self, kind: str) -> TrendEngine:
        try:
            return self._engines[kind]
        except KeyError:
            raise UnknownTrendKindError(kind) from None

    def __contains__(self, kind: str) -> bool:
        return kind in self._engines

    def __iter__(self) -> Iterator[TrendEngine]:
        return iter(self._engines.values())

    @property
    def tags(self) -> TrendEngine:
        return self["tags"]

    @property
    def links(self) -> TrendEngine:
        return self["links"]

    @property
    def statuses(self) -> TrendEngine:
        return self["statuses"]

    def register(self, event: StatusEvent, at_time: Optional[datetime] = None) -> Dict[str, int]:
        """Передаёт событие всем видам; возвращает число записанных использований по видам."""
        at_time = ensure_dt_utc(at_time) or utcnow()
        return {engine.name: engine.register(event, at_time) for engine in self}

    def refresh(self, at_time: Optional[datetime] = None) -> Dict[str, RefreshStats]:
        at_time = ensure_dt_utc(at_time) or utcnow()
        return {engine.name: engine.refresh(at_time) for engine in self}

    def request_review(self, at_time: Optional[datetime] = None) -> Dict[str, List[TrendableEntity]]:
        at_time = ensure_dt_utc(at_time) or utcnow()
        return {engine.name: engine.request_review(at_time) for engine in self}
