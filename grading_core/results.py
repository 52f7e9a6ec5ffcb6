"""Turn evaluation results plus the persisted attempt into a test result.

``compute_summary`` is pure: it groups the attempt's answers into sections,
computes totals, metadata and the overall status. ``persist_summary`` writes
the outcome back to the store inside its own error boundary so that a failed
side write never hides the learner's grade. ``ResultGenerator`` wires the two
together with the attempt lookup.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import (
    DEFAULT_PASSING_SCORE, INCOMPLETE_SKIP_RATIO, SECTION_FALLBACK, SECTION_KEY_CHAIN,
)
from .errors import AttemptAlreadyFinalized, AttemptNotFound, TestNotFound
from .store import AttemptStore
from .types import (
    SPEAKING_TYPES,
    AnswerRecord, Attempt, EvalStatus, EvaluationResult, Question, QuestionTiming,
    ResultMetadata, ResultStatus, SectionBreakdown, SpeakingDetails, SpeakingScore,
    TestResultSummary,
)

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def section_key(
    question: Question,
    chain: Sequence[str] = SECTION_KEY_CHAIN,
    fallback: str = SECTION_FALLBACK,
) -> str:
    for attr in chain:
        val = getattr(question, attr, None)
        if val:
            return str(val)
    return fallback


def _pct(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def _is_skipped(result: Optional[EvaluationResult]) -> bool:
    return result is None or result.status == EvalStatus.SKIPPED


def build_section_breakdowns(
    answers: Iterable[AnswerRecord],
    results_by_qid: Dict[str, EvaluationResult],
    chain: Sequence[str] = SECTION_KEY_CHAIN,
    fallback: str = SECTION_FALLBACK,
) -> List[SectionBreakdown]:
    groups: "OrderedDict[str, List[AnswerRecord]]" = OrderedDict()
    for ans in answers:
        groups.setdefault(section_key(ans.question, chain, fallback), []).append(ans)

    out: List[SectionBreakdown] = []
    for key, members in groups.items():
        correct = wrong = skipped = 0
        score = max_score = time_spent = 0.0
        for ans in members:
            q = ans.question
            max_score += float(q.points if q.points is not None else 1)
            time_spent += float(ans.time_spent or 0.0)
            res = results_by_qid.get(q.id)
            if _is_skipped(res):
                skipped += 1
                continue
            score += res.score
            if res.is_correct:
                correct += 1
            else:
                wrong += 1
        first = members[0].question
        out.append(SectionBreakdown(
            section_id=key,
            section_name=key,
            standard_section=first.standard_section,
            total_questions=len(members),
            correct_answers=correct,
            wrong_answers=wrong,
            skipped_answers=skipped,
            score=score,
            max_score=max_score,
            percentage=_pct(score, max_score),
            time_spent=time_spent,
            accuracy=_pct(correct, correct + wrong),
            difficulty=first.difficulty,
            language=first.language,
            module=first.module,
        ))
        log.debug("section %s: %d/%d correct, %.1f%%", key, correct, len(members), out[-1].percentage)
    out.sort(key=lambda s: s.section_name)
    return out


def build_result_metadata(results: Sequence[EvaluationResult]) -> ResultMetadata:
    counts = {s: 0 for s in EvalStatus}
    total_time = 0.0
    fastest: Optional[QuestionTiming] = None
    slowest: Optional[QuestionTiming] = None
    for r in results:
        counts[r.status] += 1
        total_time += r.time_spent
        if fastest is None or r.time_spent < fastest.time_spent:
            fastest = QuestionTiming(r.question_id, r.time_spent)
        if slowest is None or r.time_spent > slowest.time_spent:
            slowest = QuestionTiming(r.question_id, r.time_spent)
    return ResultMetadata(
        auto_graded=counts[EvalStatus.COMPLETED],
        manual_review=counts[EvalStatus.MANUAL_REVIEW],
        pending=counts[EvalStatus.PENDING],
        skipped=counts[EvalStatus.SKIPPED],
        average_time_per_question=total_time / len(results) if results else 0.0,
        fastest_question=fastest or QuestionTiming("", 0.0),
        slowest_question=slowest or QuestionTiming("", 0.0),
    )


def determine_status(
    percentage: float,
    passing_score: float,
    results: Sequence[EvaluationResult],
    skipped: int,
    total: int,
) -> ResultStatus:
    if any(r.status == EvalStatus.PENDING for r in results):
        return ResultStatus.PENDING
    if total > 0 and skipped / total > INCOMPLETE_SKIP_RATIO:
        return ResultStatus.INCOMPLETE
    return ResultStatus.PASS if percentage >= passing_score else ResultStatus.FAIL


def average_speaking_bands(attempt_id: str, results: Sequence[EvaluationResult]) -> Optional[SpeakingScore]:
    bands = [r.details.ielts_bands for r in results if isinstance(r.details, SpeakingDetails)]
    if not bands:
        return None
    n = len(bands)
    fl = sum(b.fluency_coherence for b in bands) / n
    lx = sum(b.lexical_resource for b in bands) / n
    gr = sum(b.grammatical_range for b in bands) / n
    pr = sum(b.pronunciation for b in bands) / n
    return SpeakingScore(
        attempt_id=attempt_id,
        fluency_coherence=fl, lexical_resource=lx, grammatical_range=gr, pronunciation=pr,
        overall_band=(fl + lx + gr + pr) / 4,
    )


def generate_feedback(percentage: float, passed: bool) -> str:
    if percentage >= 90:
        return "Excellent work! You have a strong understanding of the material."
    if percentage >= 80:
        return "Good job! You have a solid grasp of most concepts."
    if percentage >= 70:
        return "Not bad, but consider reviewing the areas where you made mistakes."
    if passed:
        return "You passed, but there's room for improvement. Review the incorrect answers."
    return "You didn't pass this time. Please review the material and try again."


def speaking_feedback(average_band: float) -> str:
    band = round(average_band * 10) / 10
    if band >= 8:
        return f"Excellent! IELTS Band {band}. You demonstrate fluent, coherent speaking with sophisticated vocabulary."
    if band >= 7:
        return f"Good performance! IELTS Band {band}. You speak fluently with occasional minor errors."
    if band >= 6:
        return f"Satisfactory. IELTS Band {band}. You can communicate effectively but may need more practice."
    if band >= 5:
        return f"Basic level. IELTS Band {band}. You can communicate simple ideas but need more practice."
    return f"Needs improvement. IELTS Band {band}. Focus on basic communication skills."


def compute_summary(
    attempt: Attempt,
    evaluation_results: Sequence[EvaluationResult],
    now: Optional[datetime] = None,
) -> TestResultSummary:
    if attempt.test is None:
        raise TestNotFound("Test not found", attempt_id=attempt.id)
    now = now or _utcnow()
    test = attempt.test

    by_qid: Dict[str, EvaluationResult] = {}
    for r in evaluation_results:
        by_qid.setdefault(r.question_id, r)

    sections = build_section_breakdowns(attempt.answers, by_qid)
    total_score = sum(s.score for s in sections)
    max_score = sum(s.max_score for s in sections)
    percentage = _pct(total_score, max_score)
    correct = sum(s.correct_answers for s in sections)
    skipped = sum(s.skipped_answers for s in sections)
    total_questions = len(attempt.answers)

    passing = float(test.passing_score if test.passing_score is not None else DEFAULT_PASSING_SCORE)
    status = determine_status(percentage, passing, evaluation_results, skipped,
                              max(total_questions, len(evaluation_results)))
    metadata = build_result_metadata(evaluation_results)

    feedback = generate_feedback(percentage, status == ResultStatus.PASS)
    bands = average_speaking_bands(attempt.id, evaluation_results)
    if bands is not None:
        feedback = f"{feedback} {speaking_feedback(bands.overall_band)}"

    time_spent = attempt.time_spent or sum(float(a.time_spent or 0.0) for a in attempt.answers)
    return TestResultSummary(
        attempt_id=attempt.id,
        user_id=attempt.user_id,
        test_id=test.id,
        test_title=test.title,
        exam_type=test.exam_type,
        level=test.level,
        total_score=total_score,
        max_score=max_score,
        percentage=percentage,
        correct_answers=correct,
        total_questions=total_questions,
        status=status,
        time_spent=time_spent,
        started_at=attempt.started_at or now,
        completed_at=attempt.completed_at or now,
        submitted_at=now,
        section_breakdowns=sections,
        evaluation_results=list(evaluation_results),
        passing_score=passing,
        result_metadata=metadata,
        feedback=feedback,
    )


def persist_summary(store: AttemptStore, summary: TestResultSummary) -> bool:
    """Write the summary back; returns False if any best-effort write failed.

    ``AttemptAlreadyFinalized`` is the one error that propagates.
    """
    ok = True
    try:
        store.finalize_attempt(
            summary.attempt_id,
            score=summary.percentage,
            correct_answers=summary.correct_answers,
            total_questions=summary.total_questions,
            passed=summary.status == ResultStatus.PASS,
            completed_at=summary.completed_at,
        )
    except AttemptAlreadyFinalized:
        log.warning("attempt %s already finalized", summary.attempt_id)
        raise
    except Exception:
        log.exception("Error storing test result for attempt %s", summary.attempt_id)
        ok = False

    speaking = [r for r in summary.evaluation_results if r.question_type in SPEAKING_TYPES]
    if speaking and summary.result_metadata.manual_review == 0:
        bands = average_speaking_bands(summary.attempt_id, speaking)
        if bands is not None:
            try:
                store.upsert_speaking_score(bands)
                log.info("speaking score stored for attempt %s: band %.2f", summary.attempt_id, bands.overall_band)
            except Exception:
                log.exception("Error storing speaking score for attempt %s", summary.attempt_id)
                ok = False
    return ok


class ResultGenerator:
    def __init__(self, store: AttemptStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self.store = store
        self.clock = clock

    def generate_comprehensive_result(
        self,
        attempt_id: str,
        evaluation_results: Sequence[EvaluationResult],
    ) -> TestResultSummary:
        attempt = self.store.get_attempt(attempt_id)
        if attempt is None:
            raise AttemptNotFound("Test attempt not found", attempt_id=attempt_id)
        summary = compute_summary(attempt, evaluation_results, now=self.clock())
        persist_summary(self.store, summary)
        log.info("result for attempt %s: %s %.1f%%", attempt_id, summary.status.value, summary.percentage)
        return summary
