"""
Retry utilities для плановых задач пересчёта трендов.

Context7: движок сам не ретраит операции хранилищ; повторы с backoff
выполняет вызывающая сторона (scheduler job).
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Tuple, Type

import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy.exc import OperationalError

logger = structlog.get_logger(__name__)


DEFAULT_RETRY_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    RedisConnectionError,
    RedisTimeoutError,
    OperationalError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration (exponential backoff + jitter)."""

    initial_interval: float = 0.5
    backoff_factor: float = 2.0
    max_interval: float = 30.0
    max_attempts: int = 3
    jitter: bool = True
    retry_on: Tuple[Type[BaseException], ...] = DEFAULT_RETRY_EXCEPTIONS

    def should_retry(self, error: BaseException) -> bool:
        return isinstance(error, self.retry_on)


def retry_sync(
    func: Callable[..., Any],
    *,
    policy: RetryPolicy,
    args: Optional[Sequence[Any]] = None,
    kwargs: Optional[dict[str, Any]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Синхронный retry с экспоненциальным backoff и джиттером."""
    args = tuple(args or ())
    kwargs = dict(kwargs or {})

    attempt = 0
    interval = policy.initial_interval

    while True:
        try:
            return func(*args, **kwargs)
        except Exception as exc:  # pylint: disable=broad-except
            attempt += 1
            if attempt >= policy.max_attempts or not policy.should_retry(exc):
                raise
            sleep_for = interval
            if policy.jitter:
                sleep_for += random.uniform(0, interval)  # noqa: S311 (non-crypto jitter)
            logger.warning(
                "retry_sync",
                attempt=attempt,
                max_attempts=policy.max_attempts,
                sleep=round(sleep_for, 2),
                error=str(exc),
            )
            sleep(sleep_for)
            interval = min(policy.max_interval, interval * policy.backoff_factor)
