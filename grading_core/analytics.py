# grading_core/analytics.py
from __future__ import annotations
import logging
from statistics import mean
from typing import Dict, List, Optional

from .config import (
    STRONG_SECTION_PCT, TIME_EFFICIENCY_BUCKETS, TREND_DELTA, TREND_MIN_ATTEMPTS, TREND_WINDOW,
    WEAK_SECTION_PCT,
)
from .store import AttemptStore
from .types import PerformanceAnalytics, TestResultSummary, TimeEfficiency, TimeManagement, Trend

log = logging.getLogger(__name__)


def time_efficiency(avg_time_per_question: float) -> TimeEfficiency:
    # ignores per-type expected durations; one scale for every question
    excellent, good, fair = TIME_EFFICIENCY_BUCKETS
    if avg_time_per_question < excellent: return "excellent"
    if avg_time_per_question < good: return "good"
    if avg_time_per_question < fair: return "needs_improvement"
    return "poor"


def _accuracy_by(result: TestResultSummary, attr: str) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for s in result.section_breakdowns:
        tag = getattr(s, attr)
        if tag:
            out[tag] = s.accuracy  # last section with the tag wins
    return out


def analyze_trend(store: Optional[AttemptStore], result: TestResultSummary) -> Trend:
    if store is None:
        return "stable"
    try:
        recent = store.recent_completed_attempts(result.user_id, limit=TREND_WINDOW)
    except Exception as exc:
        log.warning("trend lookup failed for user %s: %s", result.user_id, exc)
        return "stable"
    if len(recent) < TREND_MIN_ATTEMPTS:
        return "stable"
    previous = [a.score for a in recent if a.test_id == result.test_id and a.id != result.attempt_id]
    if not previous:
        return "stable"
    delta = result.percentage - mean(previous)
    if delta > TREND_DELTA: return "improving"
    if delta < -TREND_DELTA: return "declining"
    return "stable"


def generate_performance_analytics(
    result: TestResultSummary,
    store: Optional[AttemptStore] = None,
) -> PerformanceAnalytics:
    """Derive weak/strong sections, timing and trend from a finished result.

    Reads the user's history from ``store`` for the trend; never writes.
    """
    weak: List[str] = []
    strong: List[str] = []
    suggestions: List[str] = []
    for s in result.section_breakdowns:
        if s.percentage < WEAK_SECTION_PCT:
            weak.append(s.section_name)
            suggestions.append(f"Focus on improving {s.section_name} - scored {int(s.percentage + 0.5)}%")
        elif s.percentage >= STRONG_SECTION_PCT:
            strong.append(s.section_name)

    per_section = {
        s.section_name: (s.time_spent / s.total_questions if s.total_questions else 0.0)
        for s in result.section_breakdowns
    }
    return PerformanceAnalytics(
        weak_areas=weak,
        strong_areas=strong,
        improvement_suggestions=suggestions,
        time_management=TimeManagement(
            average_time_per_section=per_section,
            time_efficiency=time_efficiency(result.result_metadata.average_time_per_question),
        ),
        accuracy_by_difficulty=_accuracy_by(result, "difficulty"),
        accuracy_by_language=_accuracy_by(result, "language"),
        trend_analysis=analyze_trend(store, result),
    )
