from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .errors import ConfigurationError, GradingError
from .scorers import ContentScorer, get_scorer
from .scoring import evaluate_answer, resolve_config, validate_config
from .types import (
    AnswerPayload, BatchEvaluationResult, BatchSummary, EvaluationConfig, EvaluationContext,
    EvaluationError, EvaluationResult, Question,
)

log = logging.getLogger(__name__)


def error_entry(question_id: str, exc: Exception) -> EvaluationError:
    code = exc.code if isinstance(exc, GradingError) else "EVALUATION_FAILED"
    details: Dict[str, Any] = {"exception": type(exc).__name__}
    if isinstance(exc, GradingError):
        details.update(exc.details)
    return EvaluationError(question_id=question_id, error=str(exc), code=code, details=details)


def evaluate_batch(
    questions: Sequence[Question],
    answers: Sequence[AnswerPayload],
    context: Union[EvaluationContext, Mapping[str, Any], None] = None,
    scorer: Optional[ContentScorer] = None,
) -> BatchEvaluationResult:
    """Evaluate every answer, collecting per-answer failures instead of raising.

    Results and errors keep the order of ``answers``.
    """
    results: List[EvaluationResult] = []
    errors: List[EvaluationError] = []

    try:
        config: Optional[EvaluationConfig] = validate_config(resolve_config(context))
    except ConfigurationError as exc:
        log.warning("batch rejected: %s", exc)
        config = None
        errors = [error_entry(a.question_id, exc) for a in answers]

    if config is not None:
        scorer = scorer or get_scorer()
        by_id: Dict[str, Question] = {}
        for q in questions:
            by_id.setdefault(q.id, q)
        for answer in answers:
            question = by_id.get(answer.question_id)
            if question is None:
                errors.append(EvaluationError(
                    question_id=answer.question_id,
                    error="Question not found",
                    code="EVALUATION_FAILED",
                    details={"question_id": answer.question_id},
                ))
                continue
            try:
                results.append(evaluate_answer(question, answer, config, scorer))
            except Exception as exc:
                log.warning("evaluation failed for %s: %s", answer.question_id, exc)
                errors.append(error_entry(answer.question_id, exc))

    summary = BatchSummary(
        total_questions=len(answers),
        evaluated=len(results),
        errors=len(errors),
        skipped=len(answers) - len(results) - len(errors),
    )
    log.info("batch evaluated=%d errors=%d total=%d", summary.evaluated, summary.errors, summary.total_questions)
    return BatchEvaluationResult(success=not errors, results=results, errors=errors, summary=summary)
