from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from grading_core.store import MemoryAttemptStore
from grading_core.types import (
    AnswerPayload,
    AnswerRecord,
    Attempt,
    EvalStatus,
    EvaluationResult,
    Question,
    QuestionType,
    TestRecord as ExamRecord,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def build_question(qid: str, qtype: QuestionType = QuestionType.MULTIPLE_CHOICE, **kw: Any) -> Question:
    kw.setdefault("correct_answer", "a" if qtype == QuestionType.MULTIPLE_CHOICE else None)
    return Question(id=qid, type=qtype, **kw)


def build_answer(qid: str, qtype: QuestionType, user_answer: Any, time_spent: float = 10.0) -> AnswerPayload:
    return AnswerPayload(question_id=qid, question_type=qtype, user_answer=user_answer, time_spent=time_spent)


def build_result(
    qid: str,
    *,
    correct: bool = True,
    score: float | None = None,
    max_score: float = 1.0,
    status: EvalStatus = EvalStatus.COMPLETED,
    qtype: QuestionType = QuestionType.MULTIPLE_CHOICE,
    time_spent: float = 10.0,
    **kw: Any,
) -> EvaluationResult:
    if score is None:
        score = max_score if correct else 0.0
    return EvaluationResult(
        question_id=qid, question_type=qtype, is_correct=correct, score=score,
        max_score=max_score, time_spent=time_spent, status=status, **kw,
    )


def build_attempt(
    attempt_id: str = "att-1",
    *,
    n_questions: int = 10,
    user_id: str = "user-1",
    test_id: str = "test-1",
    section: str | None = "Reading",
    passing_score: float = 60.0,
    started_at: datetime = T0,
    questions: list[Question] | None = None,
    **kw: Any,
) -> Attempt:
    """Deterministic attempt with one answer record per question."""

    qs = questions or [build_question(f"q{i}", section=section) for i in range(1, n_questions + 1)]
    answers = [
        AnswerRecord(id=f"{attempt_id}-a{i}", attempt_id=attempt_id, question_id=q.id, question=q, time_spent=10.0)
        for i, q in enumerate(qs, start=1)
    ]
    kw.setdefault("test", ExamRecord(id=test_id, title="Mock Test", passing_score=passing_score))
    return Attempt(
        id=attempt_id,
        user_id=user_id,
        test_id=test_id,
        started_at=started_at,
        answers=answers,
        **kw,
    )


def build_history(store: MemoryAttemptStore, scores: list[float], *, user_id: str = "user-1", test_id: str = "test-1") -> list[Attempt]:
    """Finalized attempts one day apart, oldest first."""

    out = []
    for i, score in enumerate(scores):
        when = T0 + timedelta(days=i)
        a = build_attempt(
            f"{user_id}-hist-{i}", user_id=user_id, test_id=test_id, n_questions=1,
            started_at=when, completed_at=when + timedelta(minutes=30),
            score=score, passed=score >= 60, status="finalized",
        )
        store.save_attempt(a)
        out.append(a)
    return out


@pytest.fixture
def store() -> MemoryAttemptStore:
    return MemoryAttemptStore()
