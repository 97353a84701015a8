"""
Глобальные фикстуры для pytest.

Context7: SQLite in-memory (StaticPool) вместо PostgreSQL, in-memory
backends вместо Redis; время фиксировано, чтобы границы суток были
предсказуемы.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest


def _extend_sys_path() -> None:
    # Запуск тестов без editable install
    root = Path(__file__).resolve().parent.parent
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))


_extend_sys_path()

from trend_engine.config import DEFAULT_OPTIONS  # noqa: E402
from trend_engine.domain import TrendableEntity  # noqa: E402
from trend_engine.engine import TrendEngine  # noqa: E402
from trend_engine.entities import StaticEntitySource  # noqa: E402
from trend_engine.kinds import TAGS  # noqa: E402
from trend_engine.logging_config import configure_logging  # noqa: E402
from trend_engine.storage.database import build_engine, build_session_factory, create_schema  # noqa: E402
from trend_engine.storage.memory import InMemoryExpiringSetStore, InMemoryHistoryStore  # noqa: E402
from trend_engine.storage.repository import TrendRepository  # noqa: E402

# structlog через stdlib logging (stderr), stdout остаётся для вывода CLI
configure_logging(log_level="INFO", log_format="console")

# Полдень UTC: +4 часа остаются в тех же сутках
T0 = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repository(db_engine):
    return TrendRepository(build_session_factory(db_engine))


@pytest.fixture
def history_store():
    return InMemoryHistoryStore()


@pytest.fixture
def activity_store():
    return InMemoryExpiringSetStore()


@pytest.fixture
def entities():
    return StaticEntitySource()


@pytest.fixture
def make_engine(history_store, activity_store, repository, entities):
    """Фабрика TrendEngine над общими in-memory хранилищами."""

    def _make(kind=TAGS, notifier=None, **overrides):
        return TrendEngine(
            kind=kind,
            history_store=history_store,
            activity_store=activity_store,
            repository=repository,
            entity_source=entities,
            options=DEFAULT_OPTIONS.with_overrides(**overrides),
            notifier=notifier,
        )

    return _make


@pytest.fixture
def tag_engine(make_engine):
    return make_engine()


@pytest.fixture
def make_tag(entities):
    """Регистрирует тег в entity source."""

    def _make(entity_id, trendable=True, requires_review=True, name=None):
        entity = TrendableEntity(
            id=entity_id,
            kind="tags",
            trendable=trendable,
            attributes={"name": name or entity_id, "usable": True},
            requires_review=requires_review,
        )
        entities.put(entity)
        return entity

    return _make


@pytest.fixture
def use():
    """``use(engine, entity, actors, at_time, language)`` - N уникальных авторов."""

    def _use(engine, entity, actors, at_time, language="en", prefix="acct"):
        for index in range(actors):
            engine.add(entity, f"{prefix}-{index}", language, at_time)

    return _use


@pytest.fixture
def redis_mock():
    """Redis клиент с pipeline, возвращающим тот же mock."""
    redis = MagicMock()
    pipe = MagicMock()
    redis.pipeline.return_value = pipe
    return redis
