from __future__ import annotations

import pytest

from grading_core.errors import EvaluationFailed, InvalidAnswer, QuestionTypeMismatch
from grading_core.scorers import HeuristicScorer
from grading_core.scoring import EVALUATORS, confirm_review, evaluate_answer
from grading_core.types import (
    AudioClip,
    AudioQuestionResponse,
    ComprehensionResponse,
    EvalStatus,
    EvaluationConfig,
    EvaluationContext,
    FillBlankResponse,
    MatchingResponse,
    MultipleChoiceResponse,
    Option,
    QuestionType,
    SpeakingResponse,
    SubQuestion,
    TrueFalseResponse,
    WritingResponse,
)

from tests.conftest import build_answer, build_question

SCORER = HeuristicScorer()


def _grade(question, answer, config=None):
    return evaluate_answer(question, answer, config or EvaluationConfig(), SCORER)


def test_every_question_type_has_an_evaluator():
    assert set(EVALUATORS) == set(QuestionType)


def test_multiple_choice_correct_and_wrong():
    q = build_question("q1", correct_answer="b", points=2, options=[Option("a", "A"), Option("b", "B")])
    ok = _grade(q, build_answer("q1", QuestionType.MULTIPLE_CHOICE, MultipleChoiceResponse("b")))
    assert ok.is_correct and ok.score == 2.0 and ok.status == EvalStatus.COMPLETED
    assert ok.details.expected_option == "b"
    assert [o["is_correct"] for o in ok.details.all_options] == [False, True]

    bad = _grade(q, build_answer("q1", QuestionType.MULTIPLE_CHOICE, MultipleChoiceResponse("a")))
    assert not bad.is_correct and bad.score == 0.0


def test_multiple_choice_uses_flagged_option_without_correct_answer():
    q = build_question(
        "q1", correct_answer=None,
        options=[Option("a", "A"), Option("b", "B", is_correct=True)],
    )
    res = _grade(q, build_answer("q1", QuestionType.MULTIPLE_CHOICE, MultipleChoiceResponse("b")))
    assert res.is_correct


def test_multiple_choice_without_selection_is_wrong():
    q = build_question("q1")
    res = _grade(q, build_answer("q1", QuestionType.MULTIPLE_CHOICE, MultipleChoiceResponse(None)))
    assert not res.is_correct and res.score == 0.0


def test_true_false():
    q = build_question("q1", QuestionType.TRUE_FALSE, correct_answer="true")
    assert _grade(q, build_answer("q1", QuestionType.TRUE_FALSE, TrueFalseResponse(True))).is_correct
    assert not _grade(q, build_answer("q1", QuestionType.TRUE_FALSE, TrueFalseResponse(False))).is_correct
    assert not _grade(q, build_answer("q1", QuestionType.TRUE_FALSE, TrueFalseResponse(None))).is_correct


def test_fill_blank_partial_credit_with_synonyms():
    q = build_question("q1", QuestionType.FILL_BLANK, correct_answer=["big", "happy"], points=2)
    a = build_answer("q1", QuestionType.FILL_BLANK, FillBlankResponse({0: "Large", 1: "sad"}))
    res = _grade(q, a)
    assert res.details.correct_blanks == 1 and res.details.total_blanks == 2
    assert res.partial_credit == pytest.approx(0.5)
    assert res.score == pytest.approx(1.0)
    assert not res.is_correct


def test_fill_blank_all_or_nothing_without_partial_credit():
    q = build_question("q1", QuestionType.FILL_BLANK, correct_answer=["big", "happy"], points=2)
    a = build_answer("q1", QuestionType.FILL_BLANK, FillBlankResponse({0: "big", 1: "sad"}))
    res = _grade(q, a, EvaluationConfig(allow_partial_credit=False))
    assert res.score == 0.0
    assert res.partial_credit == pytest.approx(0.5)


def test_fill_blank_case_sensitive_and_no_synonyms():
    q = build_question("q1", QuestionType.FILL_BLANK, correct_answer="big")
    strict = EvaluationConfig(case_sensitive=True, synonym_support=False)
    assert not _grade(q, build_answer("q1", QuestionType.FILL_BLANK, FillBlankResponse({0: "Big"})), strict).is_correct
    assert not _grade(q, build_answer("q1", QuestionType.FILL_BLANK, FillBlankResponse({0: "large"})), strict).is_correct
    assert _grade(q, build_answer("q1", QuestionType.FILL_BLANK, FillBlankResponse({0: "big"})), strict).is_correct


def test_matching_partial():
    q = build_question("q1", QuestionType.MATCHING, correct_answer={"a": "1", "b": "2", "c": "3"}, points=3)
    a = build_answer("q1", QuestionType.MATCHING, MatchingResponse({"a": "1", "b": "3"}))
    res = _grade(q, a)
    assert res.details.correct_matches == 1 and res.details.total_matches == 3
    assert res.score == pytest.approx(1.0)
    assert not res.is_correct


@pytest.mark.parametrize("qtype", [QuestionType.READING_COMPREHENSION, QuestionType.LISTENING_COMPREHENSION])
def test_comprehension_nested_results(qtype):
    subs = [SubQuestion("s1", "paris"), SubQuestion("s2", "fast"), SubQuestion("s3", "blue")]
    q = build_question("q1", qtype, questions=subs, points=3)
    a = build_answer("q1", qtype, ComprehensionResponse({"s1": "Paris", "s2": "quick"}, source_id="p-1"))
    res = _grade(q, a)
    nested = res.details.nested_evaluations
    assert [n.is_correct for n in nested] == [True, True, False]
    assert res.details.source_id == "p-1"
    assert res.score == pytest.approx(2.0)
    assert res.status == EvalStatus.COMPLETED


def test_audio_question_heuristic_quality():
    q = build_question("q1", QuestionType.AUDIO_QUESTION, points=5)
    clip = AudioClip("https://cdn/a.mp3", duration=6, transcript="This is my spoken answer about travel plans")
    res = _grade(q, build_answer("q1", QuestionType.AUDIO_QUESTION, AudioQuestionResponse(audio_response=clip)))
    assert res.status == EvalStatus.MANUAL_REVIEW
    assert res.details.quality == pytest.approx(0.8)
    assert res.score == pytest.approx(4.0)
    assert res.is_correct


def test_audio_question_without_audio():
    q = build_question("q1", QuestionType.AUDIO_QUESTION)
    res = _grade(q, build_answer("q1", QuestionType.AUDIO_QUESTION, AudioQuestionResponse()))
    assert res.score == 0.0 and not res.is_correct
    assert res.status == EvalStatus.MANUAL_REVIEW
    assert res.details.has_audio_response is False


def test_writing_short_essay_needs_review():
    q = build_question("q1", QuestionType.WRITING, points=10)
    res = _grade(q, build_answer("q1", QuestionType.WRITING, WritingResponse("Too short.")))
    assert res.status == EvalStatus.MANUAL_REVIEW
    assert res.details.manual_review_required
    assert res.partial_credit == pytest.approx(0.55)
    assert res.score == pytest.approx(5.5)
    assert not res.is_correct


def test_speaking_bands():
    words = [f"w{i}" for i in range(40)] + [f"w{i}" for i in range(20)]
    q = build_question("q1", QuestionType.SPEAKING_PART2, points=9)
    a = build_answer("q1", QuestionType.SPEAKING_PART2, SpeakingResponse("u", duration=90, transcript=" ".join(words)))
    res = _grade(q, a)
    bands = res.details.ielts_bands
    assert bands.fluency_coherence == 8
    assert bands.lexical_resource == 6
    assert bands.overall == pytest.approx(6.75)
    assert res.details.part == 2
    assert res.details.audio_analysis.words_per_minute == pytest.approx(40.0)
    assert res.score == pytest.approx(6.75)
    assert res.is_correct
    assert res.status == EvalStatus.MANUAL_REVIEW


def test_type_mismatch_raises():
    q = build_question("q1", QuestionType.TRUE_FALSE, correct_answer=True)
    with pytest.raises(QuestionTypeMismatch):
        _grade(q, build_answer("q1", QuestionType.MULTIPLE_CHOICE, MultipleChoiceResponse("a")))


def test_wrong_payload_class_is_invalid_answer():
    q = build_question("q1")
    with pytest.raises(InvalidAnswer):
        _grade(q, build_answer("q1", QuestionType.MULTIPLE_CHOICE, TrueFalseResponse(True)))


def test_negative_time_is_invalid_answer():
    q = build_question("q1")
    with pytest.raises(InvalidAnswer):
        _grade(q, build_answer("q1", QuestionType.MULTIPLE_CHOICE, MultipleChoiceResponse("a"), time_spent=-1))


def test_context_config_is_used():
    q = build_question("q1", QuestionType.FILL_BLANK, correct_answer="big")
    ctx = EvaluationContext(user_id="u1", config=EvaluationConfig(synonym_support=False))
    res = evaluate_answer(q, build_answer("q1", QuestionType.FILL_BLANK, FillBlankResponse({0: "large"})), ctx, SCORER)
    assert not res.is_correct


def test_confirm_review_completes_result():
    q = build_question("q1", QuestionType.WRITING, points=10)
    res = _grade(q, build_answer("q1", QuestionType.WRITING, WritingResponse("Too short.")))
    done = confirm_review(res, 8, reviewer="reviewer-7")
    assert done.status == EvalStatus.COMPLETED
    assert done.score == 8 and done.is_correct
    assert done.metadata["reviewed_by"] == "reviewer-7"
    assert done.metadata["heuristic_score"] == pytest.approx(5.5)
    with pytest.raises(EvaluationFailed):
        confirm_review(done, 9)


def test_non_positive_points_are_rejected():
    for points in (0, -2):
        q = build_question("q1", points=points)
        with pytest.raises(EvaluationFailed, match="points must be positive"):
            _grade(q, build_answer("q1", QuestionType.MULTIPLE_CHOICE, MultipleChoiceResponse("a")))

    subs = [SubQuestion("s1", "paris", points=0)]
    q = build_question("q2", QuestionType.READING_COMPREHENSION, questions=subs)
    with pytest.raises(EvaluationFailed):
        _grade(q, build_answer("q2", QuestionType.READING_COMPREHENSION, ComprehensionResponse({"s1": "paris"})))


_ESSAY = (
    "Cities are growing quickly. However, public transport has not kept up. "
    "Therefore many people drive, and traffic gets worse every year. "
    "In conclusion, councils should invest in buses and trains before building new roads."
)
_TALK = "I usually travel by train because it is relaxing and I can read on the way to work"

# question kwargs plus a strong and a weak payload for every question type
_SAMPLES = {
    QuestionType.MULTIPLE_CHOICE: (
        {"options": [Option("a", "A"), Option("b", "B")]},
        [MultipleChoiceResponse("a"), MultipleChoiceResponse("b")],
    ),
    QuestionType.TRUE_FALSE: (
        {"correct_answer": "true"},
        [TrueFalseResponse(True), TrueFalseResponse(None)],
    ),
    QuestionType.FILL_BLANK: (
        {"correct_answer": ["big", "happy"]},
        [FillBlankResponse({0: "huge", 1: "happy"}), FillBlankResponse({0: "tiny"})],
    ),
    QuestionType.MATCHING: (
        {"correct_answer": {"a": "1", "b": "2"}},
        [MatchingResponse({"a": "1", "b": "2"}), MatchingResponse({"a": "2"})],
    ),
    QuestionType.AUDIO_QUESTION: (
        {},
        [AudioQuestionResponse(audio_response=AudioClip("u", duration=30, transcript=_TALK)), AudioQuestionResponse()],
    ),
    QuestionType.READING_COMPREHENSION: (
        {"questions": [SubQuestion("s1", "paris"), SubQuestion("s2", "blue", points=2)]},
        [ComprehensionResponse({"s1": "Paris", "s2": "blue"}), ComprehensionResponse({"s2": "red"})],
    ),
    QuestionType.LISTENING_COMPREHENSION: (
        {"questions": [SubQuestion("s1", "fast")]},
        [ComprehensionResponse({"s1": "quick"}), ComprehensionResponse()],
    ),
    QuestionType.WRITING: (
        {"expected_word_count": 40},
        [WritingResponse(_ESSAY), WritingResponse("")],
    ),
    QuestionType.SPEAKING_PART1: (
        {},
        [SpeakingResponse("u", duration=20, transcript=_TALK), SpeakingResponse("u")],
    ),
    QuestionType.SPEAKING_PART2: (
        {},
        [SpeakingResponse("u", duration=120, transcript=" ".join([_TALK] * 6)), SpeakingResponse("u", duration=5)],
    ),
    QuestionType.SPEAKING_PART3: (
        {},
        [SpeakingResponse("u", duration=45, transcript=_TALK + ". Um, well, I think so."), SpeakingResponse("u")],
    ),
}


def test_samples_cover_every_question_type():
    assert set(_SAMPLES) == set(QuestionType)


@pytest.mark.parametrize("qtype", list(QuestionType), ids=lambda q: q.value)
@pytest.mark.parametrize("points", [1, 3, 9])
def test_score_stays_within_max_score(qtype, points):
    q_kwargs, payloads = _SAMPLES[qtype]
    q = build_question("q1", qtype, points=points, **q_kwargs)
    for payload in payloads:
        for config in (EvaluationConfig(), EvaluationConfig(allow_partial_credit=False)):
            res = _grade(q, build_answer("q1", qtype, payload), config)
            assert res.max_score == points
            assert 0.0 <= res.score <= res.max_score
            assert 0.0 <= res.partial_credit <= 1.0
