"""
Command-line entry point.

Usage:
    python -m trend_engine --entities entities.json refresh --kind tags
    python -m trend_engine --entities entities.json review
    python -m trend_engine top --kind links --limit 10 --locale de
    python -m trend_engine --entities entities.json scheduler
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

import structlog

from .config import get_settings
from .domain import TrendableEntity
from .entities import StaticEntitySource
from .exceptions import UnknownTrendKindError
from .locks import RefreshLock
from .logging_config import configure_logging
from .redis_schema import TrendRedisSchema
from .registry import Trends
from .scheduler import start_scheduler, stop_scheduler

logger = structlog.get_logger(__name__)


def load_entities(path: Optional[str]) -> StaticEntitySource:
    """Entity source из JSON файла: список объектов с полями TrendableEntity."""
    if not path:
        return StaticEntitySource()
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    entities = [
        TrendableEntity(
            id=str(item["id"]),
            kind=item["kind"],
            trendable=bool(item.get("trendable", False)),
            language=item.get("language"),
            attributes=dict(item.get("attributes") or {}),
            requires_review=bool(item.get("requires_review", True)),
        )
        for item in raw
    ]
    logger.info("trends.cli.entities_loaded", path=path, count=len(entities))
    return StaticEntitySource(entities)


def _selected_kinds(trends: Trends, kind: Optional[str]) -> List[str]:
    if kind is None:
        return trends.kinds
    if kind not in trends:
        raise UnknownTrendKindError(kind)
    return [kind]


def cmd_refresh(trends: Trends, args: argparse.Namespace) -> int:
    for kind in _selected_kinds(trends, args.kind):
        stats = trends[kind].refresh()
        print(json.dumps(stats.as_dict()))
    return 0


def cmd_review(trends: Trends, args: argparse.Namespace) -> int:
    for kind in _selected_kinds(trends, args.kind):
        flagged = trends[kind].request_review()
        print(json.dumps({"kind": kind, "flagged": [entity.id for entity in flagged]}))
    return 0


def cmd_top(trends: Trends, args: argparse.Namespace) -> int:
    [kind] = _selected_kinds(trends, args.kind)
    query = trends[kind].query().in_locale(args.locale).limit(args.limit)
    if not args.all:
        query = query.allowed()
    for record in query:
        print(
            json.dumps(
                {
                    "entity_id": record.entity_id,
                    "language": record.language,
                    "score": round(record.score, 4),
                    "rank": record.rank,
                    "allowed": record.allowed,
                    "attributes": record.attributes,
                },
                ensure_ascii=False,
            )
        )
    return 0


def cmd_scheduler(trends: Trends, args: argparse.Namespace) -> int:
    settings = get_settings()
    lock = RefreshLock(
        trends.redis,
        TrendRedisSchema(namespace=settings.redis_namespace),
        ttl_seconds=settings.lock_ttl_seconds,
    )
    start_scheduler(trends, lock, settings)

    stopped = threading.Event()

    def _shutdown(signum, _frame):
        logger.info("trends.cli.shutdown", signal=signum)
        stopped.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    try:
        stopped.wait()
    finally:
        stop_scheduler()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trend-engine", description="Trending tags, links and statuses")
    parser.add_argument("--entities", help="JSON file with trendable entities (local runs)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    refresh = subparsers.add_parser("refresh", help="Recalculate scores and ranks")
    refresh.add_argument("--kind", help="Trend kind (default: all configured kinds)")
    refresh.set_defaults(handler=cmd_refresh, needs_entities=True)

    review = subparsers.add_parser("review", help="Flag pending trends for moderator review")
    review.add_argument("--kind", help="Trend kind (default: all configured kinds)")
    review.set_defaults(handler=cmd_review, needs_entities=True)

    top = subparsers.add_parser("top", help="Print the current top trends")
    top.add_argument("--kind", default="tags")
    top.add_argument("--limit", type=int, default=10)
    top.add_argument("--locale", default=None)
    top.add_argument("--all", action="store_true", help="Include trends not yet allowed")
    top.set_defaults(handler=cmd_top)

    sched = subparsers.add_parser("scheduler", help="Run periodic refresh and review jobs")
    sched.set_defaults(handler=cmd_scheduler, needs_entities=True)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    # Без entity source все кандидаты неразрешимы и refresh удалил бы все записи
    if getattr(args, "needs_entities", False) and not args.entities:
        parser.error(f"--entities is required for {args.command}")

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    trends = Trends.from_settings(settings, load_entities(args.entities))
    try:
        return args.handler(trends, args)
    except UnknownTrendKindError as exc:
        parser.error(str(exc))


if __name__ == "__main__":
    sys.exit(main())
