"""
Unit тесты для формулы decaying anomaly score.
"""

from datetime import timedelta

import pytest

from trend_engine.config import DEFAULT_OPTIONS
from trend_engine.domain import Candidate, PeakState, TrendableEntity
from trend_engine.history import UsageHistory
from trend_engine.scoring import ScoringEngine, anomaly_score, decayed_score, effective_peak


@pytest.mark.parametrize(
    "expected,observed",
    [(0, 0), (0, 3), (10, 4), (10, 10), (1, 100), (3, 7)],
)
def test_anomaly_is_never_negative(expected, observed):
    assert anomaly_score(expected, observed, threshold=5) >= 0


def test_anomaly_below_threshold_is_zero():
    assert anomaly_score(0, 4, threshold=5) == 0
    assert anomaly_score(0, 5, threshold=5) == 16


def test_anomaly_zero_when_usage_drops():
    assert anomaly_score(20, 10, threshold=5) == 0


def test_anomaly_expected_floored_to_one():
    """0 авторов вчера и 10 сегодня: (10 - 1)^2 / 1 = 81."""
    assert anomaly_score(0, 10, threshold=5) == 81


def test_cooldown_resets_peak_at_boundary(t0):
    peak = PeakState(max_score=81.0, max_score_at=t0)
    cooldown = timedelta(days=2)

    assert effective_peak(peak, t0 + cooldown - timedelta(seconds=1), cooldown) == 81.0
    assert effective_peak(peak, t0 + cooldown, cooldown) == 0.0
    assert effective_peak(None, t0, cooldown) == 0.0


def test_decay_law(t0):
    halflife = timedelta(hours=4)
    assert decayed_score(80.0, t0, t0, halflife) == 80.0
    assert decayed_score(80.0, t0, t0 + halflife, halflife) == pytest.approx(40.0)
    assert decayed_score(80.0, t0, t0 + 2 * halflife, halflife) == pytest.approx(20.0)
    assert decayed_score(0.0, t0, t0, halflife) == 0.0
    assert decayed_score(10.0, None, t0, halflife) == 0.0


def _scoring(history_store, **overrides):
    history = UsageHistory(history_store, "tags")
    return history, ScoringEngine(history, DEFAULT_OPTIONS.with_overrides(**overrides))


def test_score_batch_records_new_peak(history_store, t0):
    history, scoring = _scoring(history_store)
    for index in range(10):
        history.add("python", f"acct-{index}", t0, language="en")

    candidate = Candidate("python", "en")
    entity = TrendableEntity(id="python", kind="tags", trendable=True)
    results, peaks = scoring.score_batch([(candidate, entity)], {}, t0)

    assert results[0].anomaly == 81
    assert results[0].score == 81
    assert results[0].keep is True
    assert peaks == {candidate: PeakState(max_score=81.0, max_score_at=t0)}


def test_score_batch_keeps_higher_stored_peak(history_store, t0):
    history, scoring = _scoring(history_store)
    for index in range(6):
        history.add("python", f"acct-{index}", t0, language="en")

    candidate = Candidate("python", "en")
    entity = TrendableEntity(id="python", kind="tags")
    stored = {candidate: PeakState(max_score=100.0, max_score_at=t0 - timedelta(hours=4))}
    results, peaks = scoring.score_batch([(candidate, entity)], stored, t0)

    assert results[0].anomaly == 25
    assert results[0].score == pytest.approx(50.0)
    assert peaks == {}


def test_score_batch_uses_language_scoped_history(history_store, t0):
    history, scoring = _scoring(history_store)
    for index in range(10):
        history.add("python", f"acct-{index}", t0)  # только история для отображения

    candidate = Candidate("python", "en")
    entity = TrendableEntity(id="python", kind="tags")
    results, _ = scoring.score_batch([(candidate, entity)], {}, t0)

    assert results[0].score == 0
    assert results[0].keep is False
