"""Доменные модели движка трендов."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class TrendableEntity:
    """
    Сущность, которая может попасть в тренды (тег, ссылка, статус).

    ``trendable`` - разрешение на публичный показ независимо от score;
    ``requires_review`` становится False после ручной модерации.
    """

    id: str
    kind: str
    trendable: bool = False
    language: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    requires_review: bool = True


@dataclass(frozen=True)
class Viewer:
    """Пользователь, для которого строится выдача трендов."""

    account_id: str
    chosen_languages: Tuple[str, ...] = ()
    locale: Optional[str] = None


@dataclass(frozen=True)
class Candidate:
    """Кандидат на пересчёт: сущность в конкретном языке ("" - язык неизвестен)."""

    entity_id: str
    language: str = ""


@dataclass
class PeakState:
    max_score: float = 0.0
    max_score_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    entity: TrendableEntity
    anomaly: float
    score: float
    keep: bool


@dataclass(frozen=True)
class TrendRecord:
    """Проекция строки trend_records для чтения."""

    kind: str
    entity_id: str
    language: str
    score: float
    allowed: bool
    rank: Optional[int] = None
    languages: List[str] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HistoryDay:
    """Один день истории для отображения."""

    day: date
    uses: int
    accounts: int


@dataclass
class RefreshStats:
    kind: str
    candidates: int = 0
    kept: int = 0
    expired: int = 0
    ranked: int = 0
    peaks_pruned: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "candidates": self.candidates,
            "kept": self.kept,
            "expired": self.expired,
            "ranked": self.ranked,
            "peaks_pruned": self.peaks_pruned,
        }
