from .time_utils import ensure_dt_utc, utcnow, day_start, day_end, day_timestamp  # noqa: F401
from .retry import RetryPolicy, retry_sync  # noqa: F401

__all__ = [
    "ensure_dt_utc",
    "utcnow",
    "day_start",
    "day_end",
    "day_timestamp",
    "RetryPolicy",
    "retry_sync",
]
