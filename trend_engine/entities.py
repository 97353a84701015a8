"""
EntitySource - чтение текущих свойств сущностей (trendable, атрибуты).

Context7: движок только читает источник; флаг trendable на момент upsert
определяет allowed у записи тренда.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Protocol

from .domain import TrendableEntity


class EntitySource(Protocol):
    def resolve(self, kind: str, entity_ids: Iterable[str]) -> Dict[str, TrendableEntity]:
        """Возвращает найденные сущности; отсутствующие id просто не попадают в ответ."""
        ...


class StaticEntitySource:
    """Entity source на словаре: для локального запуска и тестов."""

    def __init__(self, entities: Iterable[TrendableEntity] = ()):
        self._lock = threading.Lock()
        self._entities: Dict[tuple, TrendableEntity] = {}
        for entity in entities:
            self.put(entity)

    def put(self, entity: TrendableEntity) -> None:
        with self._lock:
            self._entities[(entity.kind, entity.id)] = entity

    def remove(self, kind: str, entity_id: str) -> None:
        with self._lock:
            self._entities.pop((kind, entity_id), None)

    def resolve(self, kind: str, entity_ids: Iterable[str]) -> Dict[str, TrendableEntity]:
        with self._lock:
            return {
                entity_id: self._entities[(kind, entity_id)]
                for entity_id in entity_ids
                if (kind, entity_id) in self._entities
            }
