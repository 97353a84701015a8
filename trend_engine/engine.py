"""
TrendEngine - общий движок трендов, параметризованный видом (TrendKind).

Context7: поток данных
    register(event) -> add() -> UsageHistory + RecentActivityIndex
    refresh()       -> ScoringEngine -> trend_records (upsert/delete) -> ranks
    query() / request_review() - только чтение trend_records (+ отметки review)
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional, Sequence

import structlog
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from .activity import ExpiringSetStore, RecentActivityIndex
from .config import DEFAULT_OPTIONS, TrendOptions
from .domain import Candidate, HistoryDay, RefreshStats, ScoredCandidate, TrendableEntity
from .entities import EntitySource
from .events import StatusEvent
from .history import DEFAULT_RETENTION, HistoryStore, UsageHistory
from .kinds import TrendKind
from .metrics import (
    trend_events_registered_total,
    trend_records_deleted_total,
    trend_records_ranked,
    trend_records_upserted_total,
    trend_refresh_candidates_total,
    trend_refresh_duration_seconds,
    trend_review_requested_total,
    trend_usage_added_total,
)
from .query import TrendQuery
from .redis_schema import TrendRedisSchema
from .review import ReviewNotifier
from .scoring import ScoringEngine
from .storage.repository import TrendRepository
from .utils.time_utils import ensure_dt_utc, utcnow

logger = structlog.get_logger(__name__)


def _chunked(items: Sequence[Candidate], size: int) -> Iterator[List[Candidate]]:
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


class TrendEngine:
    """Ingestion, пересчёт, выдача и модерация трендов одного вида."""

    def __init__(
        self,
        kind: TrendKind,
        history_store: HistoryStore,
        activity_store: ExpiringSetStore,
        repository: TrendRepository,
        entity_source: EntitySource,
        options: TrendOptions = DEFAULT_OPTIONS,
        schema: Optional[TrendRedisSchema] = None,
        retention: timedelta = DEFAULT_RETENTION,
        notifier: Optional[ReviewNotifier] = None,
    ):
        self.kind = kind
        self.options = options
        self.repository = repository
        self.entity_source = entity_source
        self.notifier = notifier
        self._history_store = history_store
        self._activity_store = activity_store
        self._schema = schema or TrendRedisSchema()
        self._retention = retention

        self.history = UsageHistory(history_store, kind.name, self._schema, retention)
        self.activity = RecentActivityIndex(activity_store, kind.name, self._schema)
        self.scoring = ScoringEngine(self.history, options)

    @property
    def name(self) -> str:
        return self.kind.name

    def with_options(self, **overrides: Any) -> "TrendEngine":
        """Новый движок с теми же хранилищами и переопределёнными параметрами."""
        return TrendEngine(
            kind=self.kind,
            history_store=self._history_store,
            activity_store=self._activity_store,
            repository=self.repository,
            entity_source=self.entity_source,
            options=self.options.with_overrides(**overrides),
            schema=self._schema,
            retention=self._retention,
            notifier=self.notifier,
        )

    # ------------------------------------------------------------------ #
    # Ingestion
    # ------------------------------------------------------------------ #

    def register(self, event: StatusEvent, at_time: Optional[datetime] = None) -> int:
        """
        Точка входа из окружающей системы.

        Репосты, непубличные статусы и статусы ограниченных авторов
        отбрасываются без ошибки.

        Returns:
            Количество записанных использований
        """
        if event.reblog:
            reason = "reblog"
        elif not event.is_public:
            reason = "not_public"
        elif event.account_silenced:
            reason = "silenced"
        else:
            reason = None

        if reason is not None:
            trend_events_registered_total.labels(kind=self.name, status=reason).inc()
            logger.debug("trends.register.skipped", kind=self.name, status_id=event.status_id, reason=reason)
            return 0

        at_time = ensure_dt_utc(at_time) or utcnow()
        added = 0
        for entity in self.kind.extract(event):
            if not self.kind.is_eligible(entity):
                continue
            self.add(entity, event.account_id, event.language, at_time)
            added += 1

        trend_events_registered_total.labels(kind=self.name, status="accepted").inc()
        return added

    def add(
        self,
        entity: TrendableEntity,
        actor_id: str,
        language: Optional[str],
        at_time: Optional[datetime] = None,
    ) -> None:
        """Три записи: история для отображения, языковая история, индекс активности."""
        at_time = ensure_dt_utc(at_time) or utcnow()
        self.history.add(entity.id, actor_id, at_time)
        self.history.add(entity.id, actor_id, at_time, language=language or "")
        self.activity.record(entity.id, language, at_time)
        trend_usage_added_total.labels(kind=self.name).inc()

    def history_for(self, entity_id: str, at_time: Optional[datetime] = None, days: int = 7) -> List[HistoryDay]:
        """История использования для отображения (без разбивки по языкам)."""
        return self.history.days(entity_id, ensure_dt_utc(at_time) or utcnow(), days=days)

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, at_time: Optional[datetime] = None) -> RefreshStats:
        """
        Пересчитывает score всех кандидатов и ранги.

        Проход 1 - сущности, уже имеющие запись; проход 2 - активные сегодня.
        Повторная обработка кандидата в обоих проходах идемпотентна.
        """
        at_time = ensure_dt_utc(at_time) or utcnow()
        started = time.time()
        stats = RefreshStats(kind=self.name)
        batch_size = self.options.batch_size

        logger.info("trends.refresh.started", kind=self.name, at_time=at_time.isoformat())

        for batch in self.repository.iter_trending_candidates(self.name, batch_size):
            self._refresh_batch(batch, at_time, stats, source="trending")

        recent = self.activity.active(at_time)
        for batch in _chunked(recent, batch_size):
            self._refresh_batch(batch, at_time, stats, source="recent")

        # Пик старше cooldown уже читается как 0
        stats.peaks_pruned = self.repository.prune_peaks(self.name, at_time - self.options.max_score_cooldown)

        # Ранги считаются только после того, как все пачки записаны
        stats.ranked = self.repository.recalculate_ranks(self.name)
        trend_records_ranked.labels(kind=self.name).set(stats.ranked)

        took = time.time() - started
        trend_refresh_duration_seconds.labels(kind=self.name).observe(took)
        logger.info("trends.refresh.completed", took=round(took, 3), **stats.as_dict())
        return stats

    def _refresh_batch(
        self,
        batch: List[Candidate],
        at_time: datetime,
        stats: RefreshStats,
        source: str,
    ) -> None:
        trend_refresh_candidates_total.labels(kind=self.name, source=source).inc(len(batch))
        stats.candidates += len(batch)
        try:
            entities = self.entity_source.resolve(self.name, {candidate.entity_id for candidate in batch})
            items = [(candidate, entities[candidate.entity_id]) for candidate in batch if candidate.entity_id in entities]
            # Сущность удалена из источника - её тренд тоже удаляется
            missing = [candidate for candidate in batch if candidate.entity_id not in entities]

            peaks = self.repository.load_peaks(self.name, [candidate for candidate, _ in items])
            scored, new_peaks = self.scoring.score_batch(items, peaks, at_time)
            self.repository.save_peaks(self.name, new_peaks)

            to_keep = [item for item in scored if item.keep]
            to_expire = [item.candidate for item in scored if not item.keep] + missing

            upserted = self.repository.upsert_records(self.name, [self._record_values(item) for item in to_keep])
            deleted = self.repository.delete_records(self.name, to_expire)
        except (SQLAlchemyError, RedisError) as exc:
            logger.error(
                "trends.refresh.batch_failed",
                kind=self.name,
                source=source,
                batch_size=len(batch),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise

        stats.kept += len(to_keep)
        stats.expired += len(to_expire)
        trend_records_upserted_total.labels(kind=self.name).inc(upserted)
        trend_records_deleted_total.labels(kind=self.name).inc(deleted)
        logger.debug(
            "trends.refresh.batch_applied",
            kind=self.name,
            source=source,
            kept=len(to_keep),
            expired=len(to_expire),
            missing=len(missing),
        )

    def _record_values(self, item: ScoredCandidate) -> Dict[str, Any]:
        language = item.candidate.language
        return {
            "entity_id": item.candidate.entity_id,
            "language": language,
            "score": item.score,
            "allowed": bool(item.entity.trendable),
            "languages": [language] if language else [],
            "attributes": self.kind.attributes(item.entity),
        }

    # ------------------------------------------------------------------ #
    # Query / review
    # ------------------------------------------------------------------ #

    def query(self) -> TrendQuery:
        return TrendQuery(repository=self.repository, kind=self.name)

    def request_review(self, at_time: Optional[datetime] = None) -> List[TrendableEntity]:
        """
        Отмечает для модерации неразрешённые сущности, чей score выше
        score разрешённых записей с dense rank review_threshold.

        Returns:
            Сущности, отмеченные в этом вызове (повторно не возвращаются)
        """
        at_time = ensure_dt_utc(at_time) or utcnow()
        score_at_threshold = self.repository.score_at_rank(self.name, self.options.review_threshold)

        entity_ids: List[str] = []
        for record in self.repository.pending_records(self.name):
            if record.score > score_at_threshold and record.entity_id not in entity_ids:
                entity_ids.append(record.entity_id)
        if not entity_ids:
            return []

        entities = self.entity_source.resolve(self.name, entity_ids)
        already_requested = self.repository.review_requested_ids(self.name, entity_ids)

        flagged = [
            entities[entity_id]
            for entity_id in entity_ids
            if entity_id in entities
            and not entities[entity_id].trendable
            and entities[entity_id].requires_review
            and entity_id not in already_requested
        ]
        if not flagged:
            return []

        self.repository.mark_review_requested(self.name, [entity.id for entity in flagged], at_time)
        trend_review_requested_total.labels(kind=self.name).inc(len(flagged))
        logger.info(
            "trends.review.requested",
            kind=self.name,
            entities=len(flagged),
            score_at_threshold=score_at_threshold,
        )

        if self.notifier is not None:
            self.notifier.notify(self.name, flagged, at_time)
        return flagged
