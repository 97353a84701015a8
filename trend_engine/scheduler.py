"""
Плановые задачи пересчёта трендов и запроса модерации.

Context7: Используем APScheduler (BackgroundScheduler + CronTrigger).
Каждый запуск защищён RefreshLock (один refresh на вид одновременно)
и обёрнут в retry_sync для временных сбоев Redis/БД.
"""

from __future__ import annotations

import time
from typing import Optional

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import TrendSettings
from .locks import RefreshLock
from .metrics import trend_refresh_runs_total
from .registry import Trends
from .utils.retry import RetryPolicy, retry_sync

logger = structlog.get_logger(__name__)

scheduler: Optional[BackgroundScheduler] = None


def init_scheduler() -> BackgroundScheduler:
    """Инициализация APScheduler."""
    global scheduler
    if scheduler is None:
        scheduler = BackgroundScheduler(timezone="UTC")
        logger.info("APScheduler initialized")
    return scheduler


def refresh_job(trends: Trends, kind: str, lock: RefreshLock, settings: TrendSettings) -> str:
    """
    Пересчёт одного вида трендов.

    Returns:
        outcome: success | locked | disabled | error
    """
    if not settings.enabled:
        logger.debug("trends.refresh_job.disabled", kind=kind)
        trend_refresh_runs_total.labels(kind=kind, outcome="disabled").inc()
        return "disabled"

    task_start = time.time()
    policy = RetryPolicy(max_attempts=settings.retry_max_attempts)
    outcome = "success"
    with lock.hold(kind) as token:
        if token is None:
            trend_refresh_runs_total.labels(kind=kind, outcome="locked").inc()
            return "locked"
        try:
            stats = retry_sync(trends[kind].refresh, policy=policy)
            logger.info(
                "trends.refresh_job.completed",
                duration=round(time.time() - task_start, 3),
                **stats.as_dict(),
            )
        except Exception as exc:  # pylint: disable=broad-except
            # Граница задачи: ошибка не должна останавливать scheduler
            outcome = "error"
            logger.error(
                "trends.refresh_job.failed",
                kind=kind,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
    trend_refresh_runs_total.labels(kind=kind, outcome=outcome).inc()
    return outcome


def review_job(trends: Trends, kind: str, settings: TrendSettings) -> str:
    if not settings.enabled:
        return "disabled"
    policy = RetryPolicy(max_attempts=settings.retry_max_attempts)
    try:
        flagged = retry_sync(trends[kind].request_review, policy=policy)
    except Exception as exc:  # pylint: disable=broad-except
        logger.error(
            "trends.review_job.failed",
            kind=kind,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )
        return "error"
    logger.info("trends.review_job.completed", kind=kind, flagged=len(flagged))
    return "success"


def setup_scheduled_tasks(trends: Trends, lock: RefreshLock, settings: TrendSettings) -> BackgroundScheduler:
    """
    Настройка периодических задач.

    Context7:
    - refresh: каждый час в минуту ``refresh_minute`` для каждого вида
    - review: каждый час в минуту ``review_minute``
    """
    current = init_scheduler()

    for kind in trends.kinds:
        current.add_job(
            refresh_job,
            trigger=CronTrigger(minute=settings.refresh_minute),
            args=[trends, kind, lock, settings],
            id=f"trends_refresh_{kind}",
            name=f"Refresh {kind} trends",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        current.add_job(
            review_job,
            trigger=CronTrigger(minute=settings.review_minute),
            args=[trends, kind, settings],
            id=f"trends_review_{kind}",
            name=f"Request review for {kind} trends",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    logger.info(
        "Scheduled tasks configured",
        tasks=[job.id for job in current.get_jobs()],
    )
    return current


def start_scheduler(trends: Trends, lock: RefreshLock, settings: TrendSettings) -> BackgroundScheduler:
    current = setup_scheduled_tasks(trends, lock, settings)
    if not current.running:
        current.start()
        logger.info("Scheduler started")
    else:
        logger.warning("Scheduler already running")
    return current


def stop_scheduler() -> None:
    """Остановка scheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
    scheduler = None
