"""
Unit тесты для UsageHistory и RecentActivityIndex (in-memory backends).
"""

from datetime import timedelta
from unittest.mock import MagicMock

from trend_engine.activity import RecentActivityIndex
from trend_engine.domain import Candidate
from trend_engine.history import UsageHistory


def test_distinct_actor_increments_once(history_store, t0):
    history = UsageHistory(history_store, "tags")

    history.add("python", "alice", t0)
    assert history.get("python", t0) == 1

    history.add("python", "alice", t0 + timedelta(minutes=5))
    assert history.get("python", t0) == 1

    history.add("python", "bob", t0)
    assert history.get("python", t0) == 2


def test_absent_history_is_zero(history_store, t0):
    history = UsageHistory(history_store, "tags")
    assert history.get("missing", t0) == 0
    assert history.get_many([("missing", "en"), ("other", "")], t0) == [0, 0]


def test_days_are_separate_buckets(history_store, t0):
    history = UsageHistory(history_store, "tags")
    history.add("python", "alice", t0 - timedelta(days=1))
    history.add("python", "alice", t0)
    history.add("python", "bob", t0)

    assert history.get("python", t0 - timedelta(days=1)) == 1
    assert history.get("python", t0) == 2


def test_language_scopes_are_independent(history_store, t0):
    history = UsageHistory(history_store, "tags")
    history.add("python", "alice", t0, language="en")
    history.add("python", "bob", t0, language="")

    assert history.get("python", t0, language="en") == 1
    assert history.get("python", t0, language="") == 1
    assert history.get("python", t0) == 0


def test_days_newest_first_with_uses(history_store, t0):
    history = UsageHistory(history_store, "tags")
    history.add("python", "alice", t0)
    history.add("python", "alice", t0)
    history.add("python", "bob", t0 - timedelta(days=2))

    days = history.days("python", t0, days=3)

    assert [day.day for day in days] == [t0.date() - timedelta(days=offset) for offset in range(3)]
    assert (days[0].uses, days[0].accounts) == (2, 1)
    assert (days[1].uses, days[1].accounts) == (0, 0)
    assert (days[2].uses, days[2].accounts) == (1, 1)


def test_activity_index_dedupes_candidates(activity_store, t0):
    index = RecentActivityIndex(activity_store, "tags")
    index.record("python", "en", t0)
    index.record("python", "en", t0 + timedelta(hours=1))
    index.record("python", None, t0)
    index.record("rust", "de", t0)

    assert index.active(t0) == [Candidate("python", "en"), Candidate("python", ""), Candidate("rust", "de")]
    assert index.active(t0 + timedelta(days=1)) == []


def test_activity_ttl_covers_rest_of_day(t0):
    store = MagicMock()
    index = RecentActivityIndex(store, "tags")

    index.record("python", "en", t0)

    key, member, at_time, ttl = store.touch.call_args.args
    assert key.startswith("trends:tags:used:")
    assert member == "python:en"
    assert at_time == t0
    # 12 часов до конца суток + сутки
    assert ttl == 36 * 3600
