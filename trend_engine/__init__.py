"""
Trend engine: обнаружение трендовых тегов, ссылок и статусов
по аномальному росту числа уникальных авторов.
"""

from .config import DEFAULT_OPTIONS, TrendOptions, TrendSettings, get_settings  # noqa: F401
from .domain import Candidate, HistoryDay, RefreshStats, TrendableEntity, TrendRecord, Viewer  # noqa: F401
from .engine import TrendEngine  # noqa: F401
from .entities import EntitySource, StaticEntitySource  # noqa: F401
from .events import StatusEvent, TrendReviewRequestedEventV1  # noqa: F401
from .exceptions import TrendEngineError, UnknownTrendKindError  # noqa: F401
from .kinds import BUILTIN_KINDS, LINKS, STATUSES, TAGS, TrendKind, get_kind  # noqa: F401
from .query import TrendQuery  # noqa: F401
from .registry import Trends  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "TrendEngine",
    "Trends",
    "TrendQuery",
    "TrendKind",
    "TAGS",
    "LINKS",
    "STATUSES",
    "BUILTIN_KINDS",
    "get_kind",
    "TrendOptions",
    "TrendSettings",
    "DEFAULT_OPTIONS",
    "get_settings",
    "TrendableEntity",
    "TrendRecord",
    "Viewer",
    "Candidate",
    "HistoryDay",
    "RefreshStats",
    "StatusEvent",
    "TrendReviewRequestedEventV1",
    "EntitySource",
    "StaticEntitySource",
    "TrendEngineError",
    "UnknownTrendKindError",
]
