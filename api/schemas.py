"""Pydantic request models for the HTTP surface.

Payloads are validated here and converted to the engine's dataclasses, so a
malformed question, answer or attempt is a 422 before any grading starts.
Answers are a union discriminated on ``question_type``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, PositiveFloat, field_validator

from grading_core.types import (
    AnswerPayload,
    AnswerRecord,
    Attempt,
    AttemptStatus,
    AudioQuestionResponse,
    ComprehensionResponse,
    FillBlankResponse,
    MatchingResponse,
    MultipleChoiceResponse,
    Option,
    Question,
    QuestionType,
    SpeakingResponse,
    SpeakingScore,
    SubQuestion,
    TestRecord,
    TrueFalseResponse,
    WritingResponse,
)


# ---- Questions ----
class QuestionIn(BaseModel):
    id: str
    type: QuestionType
    correct_answer: Any = None
    points: Optional[PositiveFloat] = None
    options: List[Option] = Field(default_factory=list)
    text: str = ""
    section: Optional[str] = None
    standard_section: Optional[str] = None
    language: Optional[str] = None
    module: Optional[str] = None
    difficulty: Optional[str] = None
    expected_word_count: Optional[int] = Field(default=None, ge=0)
    preparation_time: Optional[int] = Field(default=None, ge=0)
    speaking_time: Optional[int] = Field(default=None, ge=0)
    questions: List[SubQuestion] = Field(default_factory=list)

    @field_validator("questions")
    @classmethod
    def _sub_points_positive(cls, v: List[SubQuestion]) -> List[SubQuestion]:
        for sub in v:
            if sub.points <= 0:
                raise ValueError(f"sub-question {sub.id} points must be positive")
        return v

    def to_question(self) -> Question:
        data = {name: getattr(self, name) for name in QuestionIn.model_fields}
        data["points"] = 1 if self.points is None else self.points
        return Question(**data)


# ---- Answers ----
class _AnswerIn(BaseModel):
    question_id: str
    time_spent: float = 0.0
    timestamp: Optional[datetime] = None
    is_partial: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> AnswerPayload:
        return AnswerPayload(
            question_id=self.question_id,
            question_type=QuestionType(self.question_type),
            user_answer=self.user_answer,
            time_spent=self.time_spent,
            timestamp=self.timestamp,
            is_partial=self.is_partial,
            metadata=dict(self.metadata),
        )


class MultipleChoiceAnswer(_AnswerIn):
    question_type: Literal["MULTIPLE_CHOICE"]
    user_answer: MultipleChoiceResponse = Field(default_factory=MultipleChoiceResponse)


class TrueFalseAnswer(_AnswerIn):
    question_type: Literal["TRUE_FALSE"]
    user_answer: TrueFalseResponse = Field(default_factory=TrueFalseResponse)


class FillBlankAnswer(_AnswerIn):
    question_type: Literal["FILL_BLANK"]
    user_answer: FillBlankResponse = Field(default_factory=FillBlankResponse)


class MatchingAnswer(_AnswerIn):
    question_type: Literal["MATCHING"]
    user_answer: MatchingResponse = Field(default_factory=MatchingResponse)


class AudioAnswer(_AnswerIn):
    question_type: Literal["AUDIO_QUESTION"]
    user_answer: AudioQuestionResponse = Field(default_factory=AudioQuestionResponse)


class ComprehensionAnswer(_AnswerIn):
    question_type: Literal["READING_COMPREHENSION", "LISTENING_COMPREHENSION"]
    user_answer: ComprehensionResponse = Field(default_factory=ComprehensionResponse)

    @field_validator("user_answer", mode="before")
    @classmethod
    def _source_aliases(cls, v: Any) -> Any:
        # reading payloads carry passage_id, listening payloads carry audio_id
        if isinstance(v, dict):
            v = dict(v)
            passage, audio = v.pop("passage_id", None), v.pop("audio_id", None)
            on_passage, on_audio = v.pop("time_on_passage", None), v.pop("time_on_audio", None)
            source = passage or audio or ""
            spent = on_passage or on_audio or 0.0
            v.setdefault("source_id", source)
            v.setdefault("time_on_source", spent)
        return v


class WritingAnswer(_AnswerIn):
    question_type: Literal["WRITING"]
    user_answer: WritingResponse = Field(default_factory=WritingResponse)


class SpeakingAnswer(_AnswerIn):
    question_type: Literal["SPEAKING_PART1", "SPEAKING_PART2", "SPEAKING_PART3"]
    user_answer: SpeakingResponse = Field(default_factory=SpeakingResponse)


AnswerIn = Annotated[
    Union[
        MultipleChoiceAnswer, TrueFalseAnswer, FillBlankAnswer, MatchingAnswer,
        AudioAnswer, ComprehensionAnswer, WritingAnswer, SpeakingAnswer,
    ],
    Field(discriminator="question_type"),
]


# ---- Attempts ----
class AnswerRecordIn(BaseModel):
    id: str
    attempt_id: str
    question_id: str
    question: QuestionIn
    time_spent: float = Field(default=0.0, ge=0)
    selected_option: Optional[str] = None
    text_answer: Optional[str] = None
    is_correct: Optional[bool] = None

    def to_record(self) -> AnswerRecord:
        data = {name: getattr(self, name) for name in AnswerRecordIn.model_fields}
        data["question"] = self.question.to_question()
        return AnswerRecord(**data)


class AttemptIn(BaseModel):
    id: str
    user_id: str
    test_id: Optional[str] = None
    test: Optional[TestRecord] = None
    score: float = 0.0
    correct_answers: int = 0
    total_questions: int = 0
    passed: bool = False
    time_spent: float = 0.0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status: AttemptStatus = "in_progress"
    answers: List[AnswerRecordIn] = Field(default_factory=list)
    speaking_score: Optional[SpeakingScore] = None

    def to_attempt(self) -> Attempt:
        data = {name: getattr(self, name) for name in AttemptIn.model_fields}
        data["answers"] = [a.to_record() for a in self.answers]
        return Attempt(**data)


# ---- Request bodies ----
class EvaluateReq(BaseModel):
    questions: List[QuestionIn]
    answers: List[AnswerIn]
    config: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None


class ResultReq(BaseModel):
    answers: List[AnswerIn]
    config: Optional[Dict[str, Any]] = None
    analytics: bool = False
