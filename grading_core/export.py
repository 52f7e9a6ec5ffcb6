"""Helpers to export per-question evaluation results in JSON/CSV formats."""
from __future__ import annotations

from typing import Iterable, List, Dict, Any, Union
import csv
import io

from .types import EvaluationResult, to_basic

_FIELDS: tuple[str, ...] = (
    "question_id",
    "question_type",
    "status",
    "is_correct",
    "score",
    "max_score",
    "partial_credit",
    "time_spent",
)

Row = Union[EvaluationResult, Dict[str, Any]]


def _normalize_result(result: Row) -> Dict[str, Any]:
    raw = to_basic(result) if isinstance(result, EvaluationResult) else (result or {})
    out: Dict[str, Any] = {}
    for key in _FIELDS:
        val = raw.get(key)
        if key == "is_correct":
            out[key] = bool(val)
        elif key in {"score", "max_score", "partial_credit", "time_spent"}:
            try:
                out[key] = float(val)
            except (TypeError, ValueError):
                out[key] = 0.0
        else:
            out[key] = "" if val is None else str(val)
    return out


def to_json(results: Iterable[Row]) -> Dict[str, Any]:
    """Return a JSON-safe payload for result export."""

    normalized: List[Dict[str, Any]] = [_normalize_result(r) for r in results]
    return {"results": normalized}


def to_csv(results: Iterable[Row]) -> str:
    """Render evaluation results as CSV with a fixed header."""

    normalized = [_normalize_result(r) for r in results]
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for row in normalized:
        writer.writerow(row)
    return buf.getvalue()


__all__ = ["to_json", "to_csv"]
