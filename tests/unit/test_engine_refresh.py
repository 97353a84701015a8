"""
Unit тесты для TrendEngine.refresh.

Context7: SQLite in-memory + in-memory Redis backends, фиксированное время.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from trend_engine.domain import Candidate


def _snapshot(repository, kind="tags"):
    return [
        (record.entity_id, record.language, round(record.score, 6), record.allowed, record.rank)
        for record in repository.ranked_records(kind)
    ]


def test_cold_start_creates_record_from_activity(tag_engine, make_tag, use, repository, t0):
    python = make_tag("python")
    use(tag_engine, python, 10, t0)

    stats = tag_engine.refresh(t0)

    record = repository.get_record("tags", "python", "en")
    assert record is not None
    assert record.score == pytest.approx(81.0)
    assert record.allowed is True
    assert record.rank == 1
    assert record.languages == ["en"]
    assert record.attributes == {"name": "python"}
    assert stats.kept == 1
    assert stats.ranked == 1


def test_refresh_is_idempotent(tag_engine, make_tag, use, repository, t0):
    use(tag_engine, make_tag("python"), 10, t0)
    use(tag_engine, make_tag("rust"), 6, t0)
    use(tag_engine, make_tag("go", trendable=False), 8, t0)

    tag_engine.refresh(t0)
    first = _snapshot(repository)
    tag_engine.refresh(t0)

    assert _snapshot(repository) == first


def test_threshold_boundary(tag_engine, make_tag, use, repository, t0):
    use(tag_engine, make_tag("below"), 4, t0)
    use(tag_engine, make_tag("exact"), 5, t0)

    tag_engine.refresh(t0)

    assert repository.get_record("tags", "below", "en") is None
    assert repository.get_record("tags", "exact", "en").score == pytest.approx(16.0)


def test_dense_rank_among_allowed(tag_engine, make_tag, use, repository, t0):
    use(tag_engine, make_tag("a"), 10, t0)
    use(tag_engine, make_tag("b"), 10, t0, prefix="other")
    use(tag_engine, make_tag("c"), 6, t0)
    use(tag_engine, make_tag("hidden", trendable=False), 8, t0)

    tag_engine.refresh(t0)

    ranks = {record.entity_id: record.rank for record in repository.ranked_records("tags")}
    assert ranks == {"a": 1, "b": 1, "c": 2, "hidden": None}


def test_score_decays_with_halflife(tag_engine, make_tag, use, repository, t0):
    use(tag_engine, make_tag("python"), 10, t0)
    tag_engine.refresh(t0)

    tag_engine.refresh(t0 + timedelta(hours=4))

    assert repository.get_record("tags", "python", "en").score == pytest.approx(40.5)


def test_decayed_record_is_deleted(tag_engine, make_tag, use, repository, t0):
    use(tag_engine, make_tag("python"), 10, t0)
    tag_engine.refresh(t0)

    tag_engine.refresh(t0 + timedelta(hours=24))
    assert repository.get_record("tags", "python", "en").score == pytest.approx(81 / 64)

    stats = tag_engine.refresh(t0 + timedelta(hours=30))
    assert repository.get_record("tags", "python", "en") is None
    assert stats.expired == 1


def test_peak_is_pruned_after_cooldown(tag_engine, make_tag, use, repository, t0):
    use(tag_engine, make_tag("python"), 10, t0)
    tag_engine.refresh(t0)

    stats = tag_engine.refresh(t0 + timedelta(hours=30))
    assert repository.get_record("tags", "python", "en") is None
    assert Candidate("python", "en") in repository.load_peaks("tags", [Candidate("python", "en")])
    assert stats.peaks_pruned == 0

    stats = tag_engine.refresh(t0 + timedelta(days=2))
    assert repository.load_peaks("tags", [Candidate("python", "en")]) == {}
    assert stats.peaks_pruned == 1
    assert stats.as_dict()["peaks_pruned"] == 1


def test_cooldown_drops_record_through_refresh(make_engine, make_tag, use, repository, t0):
    # Почти без затухания запись держится только за счёт пика
    engine = make_engine(max_score_halflife=timedelta(hours=1000))
    use(engine, make_tag("python"), 10, t0)
    engine.refresh(t0)

    engine.refresh(t0 + timedelta(days=2) - timedelta(minutes=1))
    assert repository.get_record("tags", "python", "en").score > 1

    engine.refresh(t0 + timedelta(days=2))
    assert repository.get_record("tags", "python", "en") is None


def test_concurrent_add_counts_unique_actors(tag_engine, make_tag, repository, t0):
    python = make_tag("python")

    def _add(index):
        tag_engine.add(python, f"acct-{index}", "en", t0)
        tag_engine.add(python, "shared", "en", t0)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(_add, range(20)))

    assert tag_engine.history.get("python", t0, language="en") == 21
    assert tag_engine.history_for(t0)[0].uses == 40
    assert tag_engine.activity.active(t0) == [Candidate("python", "en")]

    tag_engine.refresh(t0)
    assert repository.get_record("tags", "python", "en").score == pytest.approx(400.0)


def test_peaks_are_persisted(tag_engine, make_tag, use, repository, t0):
    use(tag_engine, make_tag("python"), 10, t0)
    tag_engine.refresh(t0)

    peaks = repository.load_peaks("tags", [Candidate("python", "en")])

    assert peaks[Candidate("python", "en")].max_score == pytest.approx(81.0)
    assert peaks[Candidate("python", "en")].max_score_at == t0


def test_languages_are_scored_separately(tag_engine, make_tag, use, repository, t0):
    python = make_tag("python")
    use(tag_engine, python, 10, t0, language="en")
    use(tag_engine, python, 6, t0, language="de", prefix="de")
    use(tag_engine, python, 5, t0, language=None, prefix="unknown")

    tag_engine.refresh(t0)

    assert repository.get_record("tags", "python", "en").score == pytest.approx(81.0)
    assert repository.get_record("tags", "python", "de").score == pytest.approx(25.0)
    unknown = repository.get_record("tags", "python", "")
    assert unknown.score == pytest.approx(16.0)
    assert unknown.languages == []


def test_unresolved_entity_is_removed(tag_engine, make_tag, use, repository, entities, t0):
    use(tag_engine, make_tag("python"), 10, t0)
    tag_engine.refresh(t0)

    entities.remove("tags", "python")
    tag_engine.refresh(t0 + timedelta(minutes=10))

    assert repository.get_record("tags", "python", "en") is None


def test_allowed_follows_entity_trendable(tag_engine, make_tag, use, repository, t0):
    use(tag_engine, make_tag("python", trendable=False), 10, t0)
    tag_engine.refresh(t0)
    assert repository.get_record("tags", "python", "en").allowed is False

    make_tag("python", trendable=True)
    tag_engine.refresh(t0)
    record = repository.get_record("tags", "python", "en")
    assert record.allowed is True
    assert record.rank == 1


def test_small_batches_cover_all_candidates(make_engine, make_tag, use, repository, t0):
    engine = make_engine(batch_size=2)
    for name in ("a", "b", "c", "d", "e"):
        use(engine, make_tag(name), 6, t0, prefix=name)

    engine.refresh(t0)
    engine.refresh(t0)

    assert len(repository.ranked_records("tags")) == 5


def test_storage_error_propagates(tag_engine, make_tag, use, repository, monkeypatch, t0):
    use(tag_engine, make_tag("python"), 10, t0)

    def _fail(*args, **kwargs):
        raise OperationalError("UPSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(repository, "upsert_records", _fail)

    with pytest.raises(OperationalError):
        tag_engine.refresh(t0)


def test_with_options_returns_new_engine(tag_engine):
    strict = tag_engine.with_options(threshold=50)

    assert strict is not tag_engine
    assert strict.options.threshold == 50
    assert tag_engine.options.threshold == 5
    assert strict.repository is tag_engine.repository
