"""
Scoring Engine - decaying anomaly score.

Context7: score = (observed - expected)^2 / expected с абсолютным порогом
по объёму, пик держится не дольше cooldown и экспоненциально затухает
с периодом полураспада halflife.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from .config import TrendOptions
from .domain import Candidate, PeakState, ScoredCandidate, TrendableEntity
from .history import UsageHistory

logger = structlog.get_logger(__name__)

ONE_DAY = timedelta(days=1)


def anomaly_score(expected: float, observed: float, threshold: float) -> float:
    """Сырой anomaly score; всегда >= 0."""
    expected = float(expected) or 1.0
    observed = float(observed)
    if expected > observed or observed < threshold:
        return 0.0
    return ((observed - expected) ** 2) / expected


def effective_peak(peak: Optional[PeakState], at_time: datetime, cooldown: timedelta) -> float:
    """Сохранённый пик с учётом cooldown: на границе ``max_score_at + cooldown`` уже 0."""
    if peak is None or peak.max_score_at is None:
        return 0.0
    if peak.max_score_at <= at_time - cooldown:
        return 0.0
    return peak.max_score


def decayed_score(
    max_score: float,
    max_score_at: Optional[datetime],
    at_time: datetime,
    halflife: timedelta,
) -> float:
    if max_score_at is None or max_score == 0:
        return 0.0
    elapsed = (at_time - max_score_at).total_seconds()
    return max_score * (0.5 ** (elapsed / halflife.total_seconds()))


class ScoringEngine:
    """Пересчёт score для пачки кандидатов одного вида трендов."""

    def __init__(self, history: UsageHistory, options: TrendOptions):
        self.history = history
        self.options = options

    def score_batch(
        self,
        items: Sequence[Tuple[Candidate, TrendableEntity]],
        peaks: Mapping[Candidate, PeakState],
        at_time: datetime,
    ) -> Tuple[List[ScoredCandidate], Dict[Candidate, PeakState]]:
        """
        Считает decayed score для каждого кандидата.

        Returns:
            (результаты, новые пики) - новые пики вызывающая сторона
            сохраняет сразу, независимо от того, останется ли запись.
        """
        if not items:
            return [], {}

        scopes = [(candidate.entity_id, candidate.language) for candidate, _ in items]
        expected_counts = self.history.get_many(scopes, at_time - ONE_DAY)
        observed_counts = self.history.get_many(scopes, at_time)

        results: List[ScoredCandidate] = []
        new_peaks: Dict[Candidate, PeakState] = {}

        for (candidate, entity), expected, observed in zip(items, expected_counts, observed_counts):
            stored = peaks.get(candidate)
            max_score = effective_peak(stored, at_time, self.options.max_score_cooldown)
            max_score_at = stored.max_score_at if stored is not None else None

            anomaly = anomaly_score(expected, observed, self.options.threshold)
            if anomaly > max_score:
                max_score = anomaly
                max_score_at = at_time
                new_peaks[candidate] = PeakState(max_score=max_score, max_score_at=max_score_at)

            score = decayed_score(max_score, max_score_at, at_time, self.options.max_score_halflife)
            results.append(
                ScoredCandidate(
                    candidate=candidate,
                    entity=entity,
                    anomaly=anomaly,
                    score=score,
                    keep=score >= self.options.decay_threshold,
                )
            )

        logger.debug(
            "trends.scoring.batch_scored",
            kind=self.history.kind,
            size=len(results),
            new_peaks=len(new_peaks),
        )
        return results, new_peaks
