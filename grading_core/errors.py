"""Exception taxonomy for evaluation and result generation.

Per-answer failures carry one of the three batch error codes so the batch
evaluator can record them without aborting. Result-generation failures
(missing attempt/test, already finalized) are raised to the caller.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class GradingError(Exception):
    code: str = "EVALUATION_FAILED"

    def __init__(self, message: str, *, question_id: Optional[str] = None, **details: Any) -> None:
        super().__init__(message)
        self.question_id = question_id
        self.details: Dict[str, Any] = details


class InvalidAnswer(GradingError):
    code = "INVALID_ANSWER"


class EvaluationFailed(GradingError):
    code = "EVALUATION_FAILED"


class QuestionTypeMismatch(EvaluationFailed):
    pass


class ConfigurationError(GradingError):
    code = "CONFIGURATION_ERROR"


class AttemptNotFound(GradingError):
    pass


class TestNotFound(GradingError):
    pass


class AttemptAlreadyFinalized(GradingError):
    pass


__all__ = [
    "GradingError",
    "InvalidAnswer",
    "EvaluationFailed",
    "QuestionTypeMismatch",
    "ConfigurationError",
    "AttemptNotFound",
    "TestNotFound",
    "AttemptAlreadyFinalized",
]
