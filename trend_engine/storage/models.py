"""Модели базы данных движка трендов."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class TrendRecordRow(Base):
    """Текущее состояние трендовой сущности (существует, пока score >= decay_threshold)."""
    __tablename__ = "trend_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(32), nullable=False)  # tags/links/statuses
    entity_id = Column(String(255), nullable=False)
    language = Column(String(16), nullable=False, default="")  # "" - язык неизвестен
    score = Column(Float, nullable=False, default=0.0)
    allowed = Column(Boolean, nullable=False, default=False)
    rank = Column(Integer, nullable=True)  # dense rank среди allowed, NULL для остальных
    languages = Column(JSON, nullable=False, default=list)
    attributes = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("kind", "entity_id", "language", name="uq_trend_records_kind_entity_language"),
        Index("idx_trend_records_kind_allowed_score", "kind", "allowed", "score"),
        Index("idx_trend_records_kind_rank", "kind", "rank"),
    )


class TrendPeak(Base):
    """Последний пик anomaly score (max_score / max_score_at) по кандидату."""
    __tablename__ = "trend_peaks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(32), nullable=False)
    entity_id = Column(String(255), nullable=False)
    language = Column(String(16), nullable=False, default="")
    max_score = Column(Float, nullable=False, default=0.0)
    max_score_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("kind", "entity_id", "language", name="uq_trend_peaks_kind_entity_language"),
    )


class TrendReviewRequest(Base):
    """Отметка о том, что сущность уже отправлена модераторам."""
    __tablename__ = "trend_review_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(32), nullable=False)
    entity_id = Column(String(255), nullable=False)
    requested_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("kind", "entity_id", name="uq_trend_review_requests_kind_entity"),
    )
