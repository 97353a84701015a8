"""
TrendQuery - неизменяемый построитель выдачи трендов.

Context7: каждый setter возвращает новый экземпляр, базовый запрос не меняется.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator, List, Optional, Tuple

from .domain import TrendRecord, Viewer
from .storage.repository import TrendRepository


@dataclass(frozen=True)
class TrendQuery:
    repository: TrendRepository
    kind: str
    allowed_only: bool = False
    viewer: Optional[Viewer] = None
    locale: Optional[str] = None
    skip: Optional[int] = None
    take: Optional[int] = None

    def allowed(self) -> "TrendQuery":
        """Только записи, разрешённые для публичного показа."""
        return replace(self, allowed_only=True)

    def filtered_for(self, viewer: Optional[Viewer]) -> "TrendQuery":
        return replace(self, viewer=viewer)

    def in_locale(self, locale: Optional[str]) -> "TrendQuery":
        return replace(self, locale=locale)

    def offset(self, value: int) -> "TrendQuery":
        if value < 0:
            raise ValueError("offset must be >= 0")
        return replace(self, skip=value)

    def limit(self, value: int) -> "TrendQuery":
        if value < 0:
            raise ValueError("limit must be >= 0")
        return replace(self, take=value)

    @property
    def preferred_languages(self) -> Tuple[str, ...]:
        """Языки зрителя; если он их не выбрал - локаль запроса."""
        if self.viewer is not None and self.viewer.chosen_languages:
            return tuple(self.viewer.chosen_languages)
        locale = self.locale or (self.viewer.locale if self.viewer is not None else None)
        return (locale,) if locale else ()

    def _ordered(self) -> List[TrendRecord]:
        records = self.repository.ranked_records(
            self.kind,
            allowed_only=self.allowed_only,
            preferred_languages=self.preferred_languages,
        )
        # Одна позиция на сущность: побеждает первая (лучшая) языковая запись
        seen = set()
        unique: List[TrendRecord] = []
        for record in records:
            if record.entity_id in seen:
                continue
            seen.add(record.entity_id)
            unique.append(record)
        return unique

    def all(self) -> List[TrendRecord]:
        records = self._ordered()
        start = self.skip or 0
        end = start + self.take if self.take is not None else None
        return records[start:end]

    def count(self) -> int:
        return len(self.all())

    def __iter__(self) -> Iterator[TrendRecord]:
        return iter(self.all())
