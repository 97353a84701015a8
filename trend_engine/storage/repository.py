"""
TrendRepository - реляционное хранилище trend_records / trend_peaks.

Context7 best practice: пакетные upsert через ON CONFLICT(kind, entity_id, language)
для идемпотентности, курсорная итерация по id, пересчёт рангов одним проходом.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set

import structlog
from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from ..domain import Candidate, PeakState, TrendRecord
from ..exceptions import TrendEngineError
from ..utils.time_utils import ensure_dt_utc
from .models import TrendPeak, TrendRecordRow, TrendReviewRequest

logger = structlog.get_logger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _to_record(row: TrendRecordRow) -> TrendRecord:
    return TrendRecord(
        kind=row.kind,
        entity_id=row.entity_id,
        language=row.language,
        score=row.score,
        allowed=row.allowed,
        rank=row.rank,
        languages=list(row.languages or []),
        attributes=dict(row.attributes or {}),
    )


def _candidate_filter(model, candidates: Sequence[Candidate]):
    return or_(
        *[
            and_(model.entity_id == candidate.entity_id, model.language == candidate.language)
            for candidate in candidates
        ]
    )


class TrendRepository:
    """Доступ к таблицам движка; каждая операция - отдельная транзакция."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _insert(self, session: Session, model):
        dialect = session.get_bind().dialect.name
        try:
            return _UPSERT_DIALECTS[dialect](model)
        except KeyError:
            raise TrendEngineError(f"Upsert is not supported for dialect {dialect}") from None

    # ------------------------------------------------------------------ #
    # Candidates
    # ------------------------------------------------------------------ #

    def iter_trending_candidates(self, kind: str, batch_size: int) -> Iterator[List[Candidate]]:
        """Курсорная (keyset по id) итерация по текущим записям вида."""
        last_id = 0
        while True:
            with self._session_factory() as session:
                rows = session.execute(
                    select(TrendRecordRow.id, TrendRecordRow.entity_id, TrendRecordRow.language)
                    .where(TrendRecordRow.kind == kind, TrendRecordRow.id > last_id)
                    .order_by(TrendRecordRow.id)
                    .limit(batch_size)
                ).all()
            if not rows:
                return
            last_id = rows[-1].id
            yield [Candidate(entity_id=row.entity_id, language=row.language) for row in rows]

    # ------------------------------------------------------------------ #
    # Peaks
    # ------------------------------------------------------------------ #

    def load_peaks(self, kind: str, candidates: Sequence[Candidate]) -> Dict[Candidate, PeakState]:
        if not candidates:
            return {}
        wanted = set(candidates)
        with self._session_factory() as session:
            rows = session.execute(
                select(TrendPeak).where(
                    TrendPeak.kind == kind,
                    TrendPeak.entity_id.in_(sorted({candidate.entity_id for candidate in candidates})),
                )
            ).scalars().all()
        peaks: Dict[Candidate, PeakState] = {}
        for row in rows:
            candidate = Candidate(entity_id=row.entity_id, language=row.language)
            if candidate in wanted:
                peaks[candidate] = PeakState(
                    max_score=row.max_score,
                    max_score_at=ensure_dt_utc(row.max_score_at),
                )
        return peaks

    def save_peaks(self, kind: str, peaks: Mapping[Candidate, PeakState]) -> None:
        if not peaks:
            return
        values = [
            {
                "kind": kind,
                "entity_id": candidate.entity_id,
                "language": candidate.language,
                "max_score": peak.max_score,
                "max_score_at": peak.max_score_at,
            }
            for candidate, peak in peaks.items()
        ]
        with self._session_factory() as session, session.begin():
            stmt = self._insert(session, TrendPeak).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["kind", "entity_id", "language"],
                set_={
                    "max_score": stmt.excluded.max_score,
                    "max_score_at": stmt.excluded.max_score_at,
                },
            )
            session.execute(stmt)

    def prune_peaks(self, kind: str, older_than: datetime) -> int:
        """Удаляет пики с max_score_at <= older_than (их cooldown истёк)."""
        with self._session_factory() as session, session.begin():
            result = session.execute(
                delete(TrendPeak).where(
                    TrendPeak.kind == kind,
                    TrendPeak.max_score_at <= older_than,
                )
            )
        return result.rowcount or 0

    # ------------------------------------------------------------------ #
    # Records
    # ------------------------------------------------------------------ #

    def upsert_records(self, kind: str, values: Sequence[Dict[str, Any]]) -> int:
        """
        Пакетный upsert записей.

        Args:
            values: словари с ключами entity_id, language, score, allowed,
                languages, attributes
        """
        if not values:
            return 0
        rows = [{"kind": kind, **value} for value in values]
        with self._session_factory() as session, session.begin():
            stmt = self._insert(session, TrendRecordRow).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=["kind", "entity_id", "language"],
                set_={
                    "score": stmt.excluded.score,
                    "allowed": stmt.excluded.allowed,
                    "languages": stmt.excluded.languages,
                    "attributes": stmt.excluded.attributes,
                    "updated_at": func.now(),
                },
            )
            session.execute(stmt)
        return len(rows)

    def delete_records(self, kind: str, candidates: Sequence[Candidate]) -> int:
        if not candidates:
            return 0
        with self._session_factory() as session, session.begin():
            result = session.execute(
                delete(TrendRecordRow).where(
                    TrendRecordRow.kind == kind,
                    _candidate_filter(TrendRecordRow, candidates),
                )
            )
        return result.rowcount or 0

    def recalculate_ranks(self, kind: str) -> int:
        """Dense rank по score (desc) среди allowed; у остальных rank = NULL."""
        with self._session_factory() as session, session.begin():
            rank_column = func.dense_rank().over(order_by=TrendRecordRow.score.desc()).label("rank")
            ranked = session.execute(
                select(TrendRecordRow.id, rank_column).where(
                    TrendRecordRow.kind == kind,
                    TrendRecordRow.allowed.is_(True),
                )
            ).all()
            session.execute(
                update(TrendRecordRow)
                .where(TrendRecordRow.kind == kind, TrendRecordRow.allowed.is_(False))
                .values(rank=None)
                .execution_options(synchronize_session=False)
            )
            if ranked:
                session.execute(
                    update(TrendRecordRow),
                    [{"id": row.id, "rank": row.rank} for row in ranked],
                )
        logger.debug("trends.ranks.recalculated", kind=kind, ranked=len(ranked))
        return len(ranked)

    def ranked_records(
        self,
        kind: str,
        allowed_only: bool = False,
        preferred_languages: Iterable[str] = (),
    ) -> List[TrendRecord]:
        """Записи вида: сначала предпочитаемые языки, внутри группы - по score."""
        preferred = [language for language in preferred_languages if language]
        stmt = select(TrendRecordRow).where(TrendRecordRow.kind == kind)
        if allowed_only:
            stmt = stmt.where(TrendRecordRow.allowed.is_(True))

        ordering = []
        if preferred:
            ordering.append(case((TrendRecordRow.language.in_(preferred), 1), else_=0).desc())
        ordering.extend([TrendRecordRow.score.desc(), TrendRecordRow.entity_id, TrendRecordRow.language])

        with self._session_factory() as session:
            rows = session.execute(stmt.order_by(*ordering)).scalars().all()
        return [_to_record(row) for row in rows]

    def score_at_rank(self, kind: str, rank: int) -> float:
        """
        Score allowed-записей с dense rank ``rank`` или 0.

        Context7: у записей одного ранга score совпадает; ранги
        актуальны на момент последнего recalculate_ranks.
        """
        with self._session_factory() as session:
            score = session.execute(
                select(func.max(TrendRecordRow.score)).where(
                    TrendRecordRow.kind == kind,
                    TrendRecordRow.allowed.is_(True),
                    TrendRecordRow.rank == rank,
                )
            ).scalar_one_or_none()
        return float(score) if score is not None else 0.0

    def pending_records(self, kind: str) -> List[TrendRecord]:
        with self._session_factory() as session:
            rows = session.execute(
                select(TrendRecordRow)
                .where(TrendRecordRow.kind == kind, TrendRecordRow.allowed.is_(False))
                .order_by(TrendRecordRow.score.desc(), TrendRecordRow.entity_id)
            ).scalars().all()
        return [_to_record(row) for row in rows]

    def get_record(self, kind: str, entity_id: str, language: str = "") -> Optional[TrendRecord]:
        with self._session_factory() as session:
            row = session.execute(
                select(TrendRecordRow).where(
                    TrendRecordRow.kind == kind,
                    TrendRecordRow.entity_id == entity_id,
                    TrendRecordRow.language == language,
                )
            ).scalar_one_or_none()
        return _to_record(row) if row is not None else None

    # ------------------------------------------------------------------ #
    # Review requests
    # ------------------------------------------------------------------ #

    def review_requested_ids(self, kind: str, entity_ids: Iterable[str]) -> Set[str]:
        ids = set(entity_ids)
        if not ids:
            return set()
        with self._session_factory() as session:
            rows = session.execute(
                select(TrendReviewRequest.entity_id).where(
                    TrendReviewRequest.kind == kind,
                    TrendReviewRequest.entity_id.in_(sorted(ids)),
                )
            ).scalars().all()
        return set(rows)

    def mark_review_requested(self, kind: str, entity_ids: Sequence[str], at_time: datetime) -> None:
        if not entity_ids:
            return
        with self._session_factory() as session, session.begin():
            stmt = self._insert(session, TrendReviewRequest).values(
                [{"kind": kind, "entity_id": entity_id, "requested_at": at_time} for entity_id in entity_ids]
            )
            session.execute(stmt.on_conflict_do_nothing(index_elements=["kind", "entity_id"]))
