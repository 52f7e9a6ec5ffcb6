# grading_core/statistics.py
from __future__ import annotations
from datetime import datetime, timezone
from statistics import mean
from typing import Any, Dict, List, Optional

from .config import HISTORY_RECENT_LIMIT, HISTORY_TREND_DELTA, HISTORY_TREND_MIN_ATTEMPTS, SCORE_RANGES
from .store import AttemptStore
from .types import Attempt


def _r2(x: float) -> float:
    return round(x * 100) / 100


def _bucket(score: float) -> str:
    for label, lo, hi in SCORE_RANGES:
        if score <= hi and (lo == 0 or score > lo):
            return label
    return SCORE_RANGES[-1][0]


def get_test_statistics(store: AttemptStore, test_id: str) -> Dict[str, Any]:
    attempts = store.list_attempts(test_id=test_id)
    dist = [{"range": label, "count": 0} for label, _, _ in SCORE_RANGES]
    if not attempts:
        return {"total_submissions": 0, "average_score": 0, "pass_rate": 0, "score_distribution": dist}
    index = {row["range"]: row for row in dist}
    for a in attempts:
        index[_bucket(a.score)]["count"] += 1
    return {
        "total_submissions": len(attempts),
        "average_score": _r2(mean(a.score for a in attempts)),
        "pass_rate": _r2(sum(1 for a in attempts if a.passed) / len(attempts) * 100),
        "score_distribution": dist,
    }


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _started(a: Attempt) -> datetime:
    return _aware(a.started_at or a.completed_at or datetime.min)


def improvement_trend(attempts: List[Attempt]) -> str:
    """Newer half of the history against the older half."""
    if len(attempts) < HISTORY_TREND_MIN_ATTEMPTS:
        return "insufficient_data"
    ordered = sorted(attempts, key=_started)
    half = len(ordered) // 2
    older, newer = ordered[:half], ordered[-half:]
    delta = mean(a.score for a in newer) - mean(a.score for a in older)
    if delta > HISTORY_TREND_DELTA: return "improving"
    if delta < -HISTORY_TREND_DELTA: return "declining"
    return "stable"


def get_user_performance(
    store: AttemptStore,
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[str, Any]:
    attempts = store.list_attempts(user_id=user_id)
    if start is not None or end is not None:
        lo = _aware(start) if start else None
        hi = _aware(end) if end else None
        attempts = [
            a for a in attempts
            if (lo is None or _started(a) >= lo) and (hi is None or _started(a) <= hi)
        ]
    attempts.sort(key=_started, reverse=True)
    recent = [
        {
            "test_id": a.test_id,
            "test_title": a.test.title if a.test else "Unknown Test",
            "score": a.score,
            "passed": a.passed,
            "date": a.completed_at or a.started_at,
        }
        for a in attempts[:HISTORY_RECENT_LIMIT]
    ]
    return {
        "total_tests": len(attempts),
        "average_score": _r2(mean(a.score for a in attempts)) if attempts else 0,
        "recent_tests": recent,
        "improvement_trend": improvement_trend(attempts),
    }
