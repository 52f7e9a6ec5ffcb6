from __future__ import annotations
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
import logging

from .comparison import compare_answers
from .config import AUDIO_PASS_RATIO, SPEAKING_PASS_BAND, WRITING_PASS_RATIO
from .errors import ConfigurationError, EvaluationFailed, InvalidAnswer, QuestionTypeMismatch
from .heuristics import filler_word_count, word_count, words_per_minute
from .scorers import ContentScorer, get_scorer
from .types import (
    RESPONSE_TYPES, SPEAKING_TYPES,
    AnswerPayload, AudioAnalysis, AudioDetails, ChoiceDetails, ComprehensionDetails,
    EvalStatus, EvaluationConfig, EvaluationContext, EvaluationResult, FillBlankDetails,
    MatchingDetails, Question, QuestionType, SpeakingDetails, TrueFalseDetails, WritingDetails,
)

log = logging.getLogger(__name__)

Evaluator = Callable[[Question, AnswerPayload, EvaluationConfig, ContentScorer], EvaluationResult]


def _max_score(question: Question) -> float:
    pts = question.points if question.points is not None else 1
    return float(pts)


def _bounded(score: float, max_score: float) -> float:
    return max(0.0, min(float(max_score), float(score)))


def _ratio_score(ratio: float, max_score: float, config: EvaluationConfig) -> float:
    if config.allow_partial_credit:
        return _bounded(ratio * max_score, max_score)
    return max_score if ratio == 1 else 0.0


def _fold(value: Any, config: EvaluationConfig) -> Any:
    if isinstance(value, str) and not config.case_sensitive:
        return value.lower()
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "t"}
    return bool(value)


def _base(question: Question, answer: AnswerPayload, **kw: Any) -> EvaluationResult:
    max_score = _max_score(question)
    kw["score"] = _bounded(kw.get("score", 0.0), max_score)
    return EvaluationResult(
        question_id=answer.question_id,
        question_type=answer.question_type,
        max_score=max_score,
        time_spent=answer.time_spent or 0.0,
        **kw,
    )


# ---------------------------------------------------------------- choice types
def _expected_option(question: Question) -> Optional[str]:
    if question.correct_answer is not None:
        return str(question.correct_answer)
    flagged = next((o for o in question.options if o.is_correct), None)
    return flagged.id if flagged else None


def evaluate_multiple_choice(question, answer, config, scorer=None) -> EvaluationResult:
    expected = _expected_option(question)
    selected = answer.user_answer.selected_option
    is_correct = expected is not None and selected is not None and _fold(expected, config) == _fold(selected, config)
    options = [{"id": o.id, "text": o.text, "is_correct": o.id == expected} for o in question.options]
    return _base(
        question, answer,
        is_correct=is_correct,
        score=_max_score(question) if is_correct else 0.0,
        status=EvalStatus.COMPLETED,
        details=ChoiceDetails(expected_option=expected, selected_option=selected, all_options=options),
    )


def evaluate_true_false(question, answer, config, scorer=None) -> EvaluationResult:
    expected = _as_bool(question.correct_answer)
    selected = answer.user_answer.value
    is_correct = selected is not None and _as_bool(selected) == expected
    return _base(
        question, answer,
        is_correct=is_correct,
        score=_max_score(question) if is_correct else 0.0,
        status=EvalStatus.COMPLETED,
        details=TrueFalseDetails(expected_value=expected, selected_value=selected),
    )


# --------------------------------------------------------- partial-credit types
def evaluate_fill_blank(question, answer, config, scorer=None) -> EvaluationResult:
    ca = question.correct_answer
    expected: List[str] = list(ca) if isinstance(ca, (list, tuple)) else [ca]
    provided = answer.user_answer.answers or {}
    correct = sum(1 for idx, exp in enumerate(expected) if compare_answers(exp, provided.get(idx), config))
    total = len(expected) or 1
    ratio = correct / total
    max_score = _max_score(question)
    return _base(
        question, answer,
        is_correct=correct == total,
        score=_ratio_score(ratio, max_score, config),
        status=EvalStatus.COMPLETED,
        partial_credit=ratio,
        details=FillBlankDetails(
            expected_answers=expected,
            provided_answers=[provided.get(i) for i in range(len(expected))],
            correct_blanks=correct, total_blanks=total,
            case_sensitive=config.case_sensitive, synonym_support=config.synonym_support,
        ),
    )


def evaluate_matching(question, answer, config, scorer=None) -> EvaluationResult:
    expected: Dict[str, str] = dict(question.correct_answer or {})
    provided: Dict[str, str] = dict(answer.user_answer.matches or {})
    correct = sum(1 for left, right in expected.items() if provided.get(left) == right)
    total = len(expected) or 1
    ratio = correct / total
    max_score = _max_score(question)
    return _base(
        question, answer,
        is_correct=correct == total,
        score=_ratio_score(ratio, max_score, config),
        status=EvalStatus.COMPLETED,
        partial_credit=ratio,
        details=MatchingDetails(
            expected_matches=expected, provided_matches=provided,
            correct_matches=correct, total_matches=total,
            partial_credit_enabled=config.allow_partial_credit,
        ),
    )


def _evaluate_comprehension(question, answer, config) -> EvaluationResult:
    answers = answer.user_answer.answers or {}
    nested: List[EvaluationResult] = []
    for sub in question.questions:
        ok = compare_answers(sub.correct_answer, answers.get(sub.id), config)
        nested.append(EvaluationResult(
            question_id=sub.id, question_type=answer.question_type, is_correct=ok,
            score=float(sub.points) if ok else 0.0, max_score=float(sub.points),
            time_spent=0.0, status=EvalStatus.COMPLETED, partial_credit=1.0 if ok else 0.0,
        ))
    correct = sum(1 for n in nested if n.is_correct)
    total = len(nested) or 1
    ratio = correct / total
    return _base(
        question, answer,
        is_correct=correct == total,
        score=ratio * _max_score(question),
        status=EvalStatus.COMPLETED,
        partial_credit=ratio,
        details=ComprehensionDetails(source_id=answer.user_answer.source_id, nested_evaluations=nested),
    )


def evaluate_reading_comprehension(question, answer, config, scorer=None) -> EvaluationResult:
    return _evaluate_comprehension(question, answer, config)


def evaluate_listening_comprehension(question, answer, config, scorer=None) -> EvaluationResult:
    return _evaluate_comprehension(question, answer, config)


# ------------------------------------------------------- manual-review types
def evaluate_audio_question(question, answer, config, scorer=None) -> EvaluationResult:
    scorer = scorer or get_scorer()
    audio = answer.user_answer.audio_response
    if audio is None:
        return _base(
            question, answer,
            is_correct=False, score=0.0,
            status=EvalStatus.MANUAL_REVIEW,
            details=AudioDetails(has_audio_response=False),
            metadata={"manual_review_required": True},
        )
    quality = scorer.score_audio(audio)
    max_score = _max_score(question)
    score = quality * max_score
    return _base(
        question, answer,
        is_correct=score >= max_score * AUDIO_PASS_RATIO,
        score=score,
        status=EvalStatus.MANUAL_REVIEW,
        partial_credit=quality,
        details=AudioDetails(has_audio_response=True, quality=quality,
                             clarity=quality * 0.8, relevance=quality * 0.9),
        metadata={"manual_review_required": True},
    )


def evaluate_writing(question, answer, config, scorer=None) -> EvaluationResult:
    scorer = scorer or get_scorer()
    resp = answer.user_answer
    content = resp.content or ""
    words = word_count(content)
    ws = scorer.score_writing(content, words, question.expected_word_count, resp.essay_type, question.text)
    return _base(
        question, answer,
        is_correct=ws.overall >= WRITING_PASS_RATIO,
        score=ws.overall * _max_score(question),
        status=EvalStatus.MANUAL_REVIEW,
        partial_credit=ws.overall,
        details=WritingDetails(essay_type=resp.essay_type, word_count=words,
                               criteria_scores=ws.criteria, confidence=ws.confidence,
                               scored_by=ws.scored_by),
        metadata={"manual_review_required": True},
    )


_SPEAKING_PART = {
    QuestionType.SPEAKING_PART1: 1,
    QuestionType.SPEAKING_PART2: 2,
    QuestionType.SPEAKING_PART3: 3,
}


def evaluate_speaking(question, answer, config, scorer=None) -> EvaluationResult:
    scorer = scorer or get_scorer()
    resp = answer.user_answer
    duration = float(resp.duration or 0.0)
    transcript = resp.transcript or ""
    bands = scorer.score_speaking(duration, transcript)
    band = bands.overall
    return _base(
        question, answer,
        is_correct=band >= SPEAKING_PASS_BAND,
        score=(band / 9) * _max_score(question),
        status=EvalStatus.MANUAL_REVIEW,
        partial_credit=band / 9,
        details=SpeakingDetails(
            part=_SPEAKING_PART[answer.question_type],
            ielts_bands=bands,
            audio_analysis=AudioAnalysis(
                duration=duration,
                words_per_minute=words_per_minute(transcript, duration),
                pauses_count=int(duration // 2),
                filler_words=filler_word_count(transcript),
            ),
        ),
        metadata={"manual_review_required": True},
    )


EVALUATORS: Dict[QuestionType, Evaluator] = {
    QuestionType.MULTIPLE_CHOICE: evaluate_multiple_choice,
    QuestionType.TRUE_FALSE: evaluate_true_false,
    QuestionType.FILL_BLANK: evaluate_fill_blank,
    QuestionType.MATCHING: evaluate_matching,
    QuestionType.AUDIO_QUESTION: evaluate_audio_question,
    QuestionType.READING_COMPREHENSION: evaluate_reading_comprehension,
    QuestionType.LISTENING_COMPREHENSION: evaluate_listening_comprehension,
    QuestionType.WRITING: evaluate_writing,
    QuestionType.SPEAKING_PART1: evaluate_speaking,
    QuestionType.SPEAKING_PART2: evaluate_speaking,
    QuestionType.SPEAKING_PART3: evaluate_speaking,
}

# a new QuestionType without an evaluator fails at import, never at grading time
_unhandled = set(QuestionType) - set(EVALUATORS)
if _unhandled:
    raise RuntimeError(f"no evaluator registered for: {sorted(t.value for t in _unhandled)}")


def validate_config(config: EvaluationConfig) -> EvaluationConfig:
    for name in ("allow_partial_credit", "synonym_support", "case_sensitive"):
        if not isinstance(getattr(config, name), bool):
            raise ConfigurationError(f"{name} must be a bool")
    for name in ("time_penalty", "skip_penalty"):
        val = getattr(config, name)
        if not isinstance(val, (int, float)) or val < 0:
            raise ConfigurationError(f"{name} must be a non-negative number")
    return config


ContextLike = Union[EvaluationContext, EvaluationConfig, Mapping[str, Any], None]


def resolve_config(context: ContextLike) -> EvaluationConfig:
    """Defaults overlaid with whatever the context carries."""
    if context is None:
        return EvaluationConfig()
    if isinstance(context, EvaluationConfig):
        return context
    if isinstance(context, EvaluationContext):
        return context.config
    raw = context.get("config", context)
    try:
        return EvaluationConfig(**{k: v for k, v in dict(raw).items()
                                   if k in EvaluationConfig.__dataclass_fields__})
    except TypeError as e:
        raise ConfigurationError(str(e)) from e


def evaluate_answer(
    question: Question,
    answer: AnswerPayload,
    context: ContextLike = None,
    scorer: Optional[ContentScorer] = None,
) -> EvaluationResult:
    """Grade one answer against its question.

    Raises ``QuestionTypeMismatch`` when the answer was submitted for a
    different question type, ``EvaluationFailed`` when the question carries
    non-positive points and ``InvalidAnswer`` when its payload does not
    belong to its declared type.
    """
    config = resolve_config(context)
    if answer.question_type != question.type:
        raise QuestionTypeMismatch(
            f"answer type {answer.question_type.value} does not match question type {question.type.value}",
            question_id=answer.question_id,
        )
    if _max_score(question) <= 0 or any(sub.points <= 0 for sub in question.questions):
        raise EvaluationFailed("question points must be positive", question_id=answer.question_id)
    if not isinstance(answer.user_answer, RESPONSE_TYPES[answer.question_type]):
        raise InvalidAnswer(
            f"{type(answer.user_answer).__name__} is not a {answer.question_type.value} payload",
            question_id=answer.question_id,
        )
    if (answer.time_spent or 0) < 0:
        raise InvalidAnswer("time_spent must be >= 0", question_id=answer.question_id)
    evaluator = EVALUATORS[answer.question_type]
    log.debug("evaluate %s via %s", answer.question_id, evaluator.__name__)
    return evaluator(question, answer, config, scorer)


def confirm_review(
    result: EvaluationResult,
    score: float,
    reviewer: Optional[str] = None,
) -> EvaluationResult:
    """Resolve a manual-review/pending result with a reviewer's score."""
    if result.status not in (EvalStatus.MANUAL_REVIEW, EvalStatus.PENDING):
        raise EvaluationFailed(f"result is {result.status.value}, not awaiting review",
                               question_id=result.question_id)
    final = _bounded(score, result.max_score)
    ratio = final / result.max_score if result.max_score else 0.0
    if result.question_type in SPEAKING_TYPES:
        threshold = SPEAKING_PASS_BAND / 9
    elif result.question_type == QuestionType.WRITING:
        threshold = WRITING_PASS_RATIO
    elif result.question_type == QuestionType.AUDIO_QUESTION:
        threshold = AUDIO_PASS_RATIO
    else:
        threshold = 1.0
    meta = dict(result.metadata)
    meta.update({"manual_review_required": False, "reviewed_by": reviewer, "heuristic_score": result.score})
    return replace(result, score=final, partial_credit=ratio, is_correct=ratio >= threshold,
                   status=EvalStatus.COMPLETED, metadata=meta)
