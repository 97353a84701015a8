"""
Trend Engine Metrics Module
===========================

Prometheus метрики для ingestion, refresh и review.
"""

from prometheus_client import REGISTRY, Counter, Gauge, Histogram


def _get_or_create_metric(metric_type, name, *args, **kwargs):
    """Создает метрику только если она еще не существует в REGISTRY."""
    existing = REGISTRY._names_to_collectors.get(name)
    if existing is not None:
        return existing
    return metric_type(name, *args, **kwargs)


trend_events_registered_total = _get_or_create_metric(
    Counter,
    "trend_events_registered_total",
    "Usage events passed to register()",
    ["kind", "status"],  # status: accepted|reblog|not_public|silenced
)

trend_usage_added_total = _get_or_create_metric(
    Counter,
    "trend_usage_added_total",
    "Usage records written to history and activity index",
    ["kind"],
)

trend_refresh_duration_seconds = _get_or_create_metric(
    Histogram,
    "trend_refresh_duration_seconds",
    "Duration of a full trend refresh",
    ["kind"],
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

trend_refresh_candidates_total = _get_or_create_metric(
    Counter,
    "trend_refresh_candidates_total",
    "Candidates scored during refresh",
    ["kind", "source"],  # source: trending|recent
)

trend_records_upserted_total = _get_or_create_metric(
    Counter,
    "trend_records_upserted_total",
    "Trend records upserted by refresh",
    ["kind"],
)

trend_records_deleted_total = _get_or_create_metric(
    Counter,
    "trend_records_deleted_total",
    "Trend records deleted by refresh",
    ["kind"],
)

trend_records_ranked = _get_or_create_metric(
    Gauge,
    "trend_records_ranked",
    "Allowed trend records after the last rank recalculation",
    ["kind"],
)

trend_review_requested_total = _get_or_create_metric(
    Counter,
    "trend_review_requested_total",
    "Entities flagged for moderator review",
    ["kind"],
)

trend_refresh_runs_total = _get_or_create_metric(
    Counter,
    "trend_refresh_runs_total",
    "Scheduled refresh job runs",
    ["kind", "outcome"],  # outcome: success|error|locked|disabled
)
