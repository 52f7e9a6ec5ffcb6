from __future__ import annotations
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    FILL_BLANK = "FILL_BLANK"
    MATCHING = "MATCHING"
    AUDIO_QUESTION = "AUDIO_QUESTION"
    READING_COMPREHENSION = "READING_COMPREHENSION"
    LISTENING_COMPREHENSION = "LISTENING_COMPREHENSION"
    WRITING = "WRITING"
    SPEAKING_PART1 = "SPEAKING_PART1"
    SPEAKING_PART2 = "SPEAKING_PART2"
    SPEAKING_PART3 = "SPEAKING_PART3"


SPEAKING_TYPES = frozenset({
    QuestionType.SPEAKING_PART1, QuestionType.SPEAKING_PART2, QuestionType.SPEAKING_PART3,
})


class ExamType(str, Enum):
    PRACTICE = "PRACTICE"
    FINAL = "FINAL"
    CERTIFICATION = "CERTIFICATION"
    JLPT = "JLPT"
    TOPIK = "TOPIK"
    IELTS = "IELTS"
    TOEFL = "TOEFL"


class EvalStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    MANUAL_REVIEW = "manual-review"
    SKIPPED = "skipped"


class ResultStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    PENDING = "pending"
    INCOMPLETE = "incomplete"


AttemptStatus = Literal["in_progress", "processing", "finalized"]
TimeEfficiency = Literal["excellent", "good", "needs_improvement", "poor"]
Trend = Literal["improving", "declining", "stable"]
ErrorCode = Literal["INVALID_ANSWER", "EVALUATION_FAILED", "CONFIGURATION_ERROR"]


# ---------------------------------------------------------------- questions
@dataclass
class Option:
    id: str; text: str = ""; is_correct: bool = False


@dataclass
class SubQuestion:
    id: str; correct_answer: Any = None; points: float = 1.0; text: str = ""


@dataclass
class Question:
    id: str; type: QuestionType
    correct_answer: Any = None
    points: float = 1
    options: List[Option] = field(default_factory=list)
    text: str = ""
    section: Optional[str] = None
    standard_section: Optional[str] = None
    language: Optional[str] = None
    module: Optional[str] = None
    difficulty: Optional[str] = None
    expected_word_count: Optional[int] = None
    preparation_time: Optional[int] = None
    speaking_time: Optional[int] = None
    questions: List[SubQuestion] = field(default_factory=list)


# ------------------------------------------------------------------ answers
@dataclass
class MultipleChoiceResponse:
    selected_option: Optional[str] = None
    option_ids: Optional[List[str]] = None


@dataclass
class TrueFalseResponse:
    value: Optional[bool] = None


@dataclass
class FillBlankResponse:
    answers: Dict[int, str] = field(default_factory=dict)
    full_text: Optional[str] = None


@dataclass
class MatchingResponse:
    matches: Dict[str, str] = field(default_factory=dict)


@dataclass
class AudioClip:
    audio_url: str = ""; duration: float = 0.0; transcript: Optional[str] = None


@dataclass
class AudioQuestionResponse:
    selected_option: Optional[str] = None
    text_answer: Optional[str] = None
    audio_response: Optional[AudioClip] = None


@dataclass
class ComprehensionResponse:
    """Nested answers keyed by sub-question id.

    ``source_id`` is the passage id for reading and the audio id for listening.
    """
    answers: Dict[str, Any] = field(default_factory=dict)
    source_id: str = ""
    time_on_source: float = 0.0


@dataclass
class WritingResponse:
    content: str = ""
    essay_type: Literal["task1", "task2"] = "task2"
    word_count: Optional[int] = None
    planning_notes: Optional[str] = None


@dataclass
class SpeakingResponse:
    audio_url: str = ""
    duration: float = 0.0
    transcript: str = ""
    preparation_time: Optional[float] = None


UserAnswer = Union[
    MultipleChoiceResponse, TrueFalseResponse, FillBlankResponse, MatchingResponse,
    AudioQuestionResponse, ComprehensionResponse, WritingResponse, SpeakingResponse,
]

RESPONSE_TYPES: Dict[QuestionType, type] = {
    QuestionType.MULTIPLE_CHOICE: MultipleChoiceResponse,
    QuestionType.TRUE_FALSE: TrueFalseResponse,
    QuestionType.FILL_BLANK: FillBlankResponse,
    QuestionType.MATCHING: MatchingResponse,
    QuestionType.AUDIO_QUESTION: AudioQuestionResponse,
    QuestionType.READING_COMPREHENSION: ComprehensionResponse,
    QuestionType.LISTENING_COMPREHENSION: ComprehensionResponse,
    QuestionType.WRITING: WritingResponse,
    QuestionType.SPEAKING_PART1: SpeakingResponse,
    QuestionType.SPEAKING_PART2: SpeakingResponse,
    QuestionType.SPEAKING_PART3: SpeakingResponse,
}


@dataclass
class AnswerPayload:
    question_id: str
    question_type: QuestionType
    user_answer: UserAnswer
    time_spent: float = 0.0
    timestamp: Optional[datetime] = None
    is_partial: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EvaluationConfig:
    allow_partial_credit: bool = True
    synonym_support: bool = True
    case_sensitive: bool = False
    time_penalty: float = 0.0
    skip_penalty: float = 0.0
    auto_submit_timeout: Optional[float] = None


@dataclass
class EvaluationContext:
    user_id: str
    config: EvaluationConfig = field(default_factory=EvaluationConfig)
    test_id: Optional[str] = None
    exam_type: ExamType = ExamType.PRACTICE
    level: Optional[str] = None
    section_filters: Dict[str, str] = field(default_factory=dict)


# ------------------------------------------------------------------ results
@dataclass
class ChoiceDetails:
    expected_option: Optional[str]; selected_option: Optional[str]
    all_options: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class TrueFalseDetails:
    expected_value: bool; selected_value: Optional[bool]


@dataclass
class FillBlankDetails:
    expected_answers: List[str]
    provided_answers: List[Optional[str]]
    correct_blanks: int; total_blanks: int
    case_sensitive: bool; synonym_support: bool


@dataclass
class MatchingDetails:
    expected_matches: Dict[str, str]
    provided_matches: Dict[str, str]
    correct_matches: int; total_matches: int
    partial_credit_enabled: bool


@dataclass
class AudioDetails:
    has_audio_response: bool
    quality: float = 0.0; clarity: float = 0.0; relevance: float = 0.0


@dataclass
class ComprehensionDetails:
    source_id: str
    nested_evaluations: List["EvaluationResult"] = field(default_factory=list)


@dataclass
class WritingCriteria:
    task_achievement: float; coherence: float; lexical: float; grammar: float


@dataclass
class WritingDetails:
    essay_type: str
    word_count: int
    criteria_scores: WritingCriteria
    confidence: float = 0.0
    scored_by: str = "heuristic"
    manual_review_required: bool = True


@dataclass
class IeltsBands:
    fluency_coherence: float; lexical_resource: float
    grammatical_range: float; pronunciation: float

    @property
    def overall(self) -> float:
        return (self.fluency_coherence + self.lexical_resource
                + self.grammatical_range + self.pronunciation) / 4


@dataclass
class AudioAnalysis:
    duration: float; words_per_minute: float; pauses_count: int; filler_words: int


@dataclass
class SpeakingDetails:
    part: int
    ielts_bands: IeltsBands
    audio_analysis: AudioAnalysis
    manual_review_required: bool = True


ResultDetails = Union[
    ChoiceDetails, TrueFalseDetails, FillBlankDetails, MatchingDetails, AudioDetails,
    ComprehensionDetails, WritingDetails, SpeakingDetails,
]


@dataclass
class EvaluationResult:
    question_id: str
    question_type: QuestionType
    is_correct: bool
    score: float
    max_score: float
    time_spent: float
    status: EvalStatus
    partial_credit: float = 0.0
    feedback: Optional[str] = None
    details: Optional[ResultDetails] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EvaluationError:
    question_id: str
    error: str
    code: ErrorCode
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchSummary:
    total_questions: int; evaluated: int; errors: int; skipped: int


@dataclass
class BatchEvaluationResult:
    success: bool
    results: List[EvaluationResult]
    errors: List[EvaluationError]
    summary: BatchSummary


@dataclass
class SectionBreakdown:
    section_id: str
    section_name: str
    total_questions: int
    correct_answers: int
    wrong_answers: int
    skipped_answers: int
    score: float
    max_score: float
    percentage: float
    time_spent: float
    accuracy: float
    standard_section: Optional[str] = None
    time_limit: Optional[float] = None
    difficulty: Optional[str] = None
    language: Optional[str] = None
    module: Optional[str] = None


@dataclass
class QuestionTiming:
    question_id: str; time_spent: float


@dataclass
class ResultMetadata:
    auto_graded: int
    manual_review: int
    pending: int
    skipped: int
    average_time_per_question: float
    fastest_question: QuestionTiming
    slowest_question: QuestionTiming


@dataclass
class TestResultSummary:
    attempt_id: str
    user_id: str
    test_id: Optional[str]
    test_title: str
    exam_type: ExamType
    total_score: float
    max_score: float
    percentage: float
    correct_answers: int
    total_questions: int
    status: ResultStatus
    time_spent: float
    started_at: datetime
    completed_at: datetime
    submitted_at: datetime
    section_breakdowns: List[SectionBreakdown]
    evaluation_results: List[EvaluationResult]
    passing_score: float
    result_metadata: ResultMetadata
    level: Optional[str] = None
    feedback: str = ""


@dataclass
class TimeManagement:
    average_time_per_section: Dict[str, float]
    time_efficiency: TimeEfficiency


@dataclass
class PerformanceAnalytics:
    weak_areas: List[str]
    strong_areas: List[str]
    improvement_suggestions: List[str]
    time_management: TimeManagement
    accuracy_by_difficulty: Dict[str, float]
    accuracy_by_language: Dict[str, float]
    trend_analysis: Trend


# ---------------------------------------------------------- persisted records
@dataclass
class TestRecord:
    id: str; title: str = ""
    exam_type: ExamType = ExamType.PRACTICE
    passing_score: float = 60.0
    level: Optional[str] = None


@dataclass
class AnswerRecord:
    id: str
    attempt_id: str
    question_id: str
    question: Question
    time_spent: float = 0.0
    selected_option: Optional[str] = None
    text_answer: Optional[str] = None
    is_correct: Optional[bool] = None


@dataclass
class SpeakingScore:
    attempt_id: str
    fluency_coherence: float; lexical_resource: float
    grammatical_range: float; pronunciation: float
    overall_band: float


@dataclass
class Attempt:
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
    answers: List[AnswerRecord] = field(default_factory=list)
    speaking_score: Optional[SpeakingScore] = None


# ------------------------------------------------------------------ helpers
def to_basic(x: Any) -> Any:
    """Turn dataclasses/enums/datetimes into JSON-safe plain data."""
    if isinstance(x, Enum):
        return x.value
    if x is None or isinstance(x, (bool, int, float, str)):
        return x
    if isinstance(x, datetime):
        return x.isoformat()
    if is_dataclass(x) and not isinstance(x, type):
        return {f.name: to_basic(getattr(x, f.name)) for f in fields(x)}
    if isinstance(x, dict):
        return {str(to_basic(k)): to_basic(v) for k, v in x.items()}
    if isinstance(x, (list, tuple, set, frozenset)):
        return [to_basic(v) for v in x]
    return str(x)
