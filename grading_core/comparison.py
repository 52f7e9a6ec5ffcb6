# grading_core/comparison.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

from .config import load_synonyms
from .types import EvaluationConfig


def _fold(value: str, config: EvaluationConfig) -> str:
    return value if config.case_sensitive else value.lower()


def check_synonyms(expected: str, provided: str, table: Optional[Dict[str, List[str]]] = None) -> bool:
    # directional: only table[expected] is consulted, never table[provided]
    table = load_synonyms() if table is None else table
    return provided in table.get(expected, ())


def compare_answers(
    expected: Any,
    provided: Any,
    config: EvaluationConfig,
    synonyms: Optional[Dict[str, List[str]]] = None,
) -> bool:
    """Exact match after case folding, then an optional synonym lookup.

    Missing or empty values on either side never match.
    """
    if expected is None or provided is None:
        return False
    e = str(expected); p = str(provided)
    if not e or not p:
        return False
    e = _fold(e, config); p = _fold(p, config)
    if e == p:
        return True
    if not config.synonym_support:
        return False
    return check_synonyms(e, p, synonyms)


__all__ = ["compare_answers", "check_synonyms"]
