from .database import build_engine, build_session_factory, create_schema  # noqa: F401
from .memory import InMemoryExpiringSetStore, InMemoryHistoryStore  # noqa: F401
from .models import Base, TrendPeak, TrendRecordRow, TrendReviewRequest  # noqa: F401
from .repository import TrendRepository  # noqa: F401

__all__ = [
    "Base",
    "TrendRecordRow",
    "TrendPeak",
    "TrendReviewRequest",
    "TrendRepository",
    "InMemoryHistoryStore",
    "InMemoryExpiringSetStore",
    "build_engine",
    "build_session_factory",
    "create_schema",
]
