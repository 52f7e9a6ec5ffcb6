"""Content scorers for answers that need human-like judgement.

Writing, speaking and free audio responses are scored through a
``ContentScorer``. ``HeuristicScorer`` is the deterministic default; a
model-backed scorer (see ``llm_bridge.LLMContentScorer``) can replace it
without touching the evaluators, as long as it keeps the numeric contract:

* ``score_audio`` returns a quality in ``[0, 1]``
* ``score_writing`` returns criteria and an overall ratio in ``[0, 1]``
* ``score_speaking`` returns four IELTS sub-bands in ``[0, 9]``

Evaluators always flag these results for manual review regardless of the
scorer in use.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from . import heuristics as h
from .config import get_backend, load_config
from .rubrics import WRITING_CRITERIA_FACTORS
from .types import AudioClip, IeltsBands, WritingCriteria


@dataclass
class WritingScore:
    overall: float
    criteria: WritingCriteria
    confidence: float
    scored_by: str = "heuristic"


class ContentScorer:
    name = "base"

    def score_audio(self, audio: Optional[AudioClip]) -> float:
        raise NotImplementedError

    def score_writing(
        self,
        content: str,
        words: int,
        expected_word_count: Optional[int] = None,
        essay_type: str = "task2",
        prompt: str = "",
    ) -> WritingScore:
        raise NotImplementedError

    def score_speaking(self, duration: float, transcript: str) -> IeltsBands:
        raise NotImplementedError


class HeuristicScorer(ContentScorer):
    name = "heuristic"

    def score_audio(self, audio: Optional[AudioClip]) -> float:
        return h.audio_quality(audio)

    def score_writing(self, content, words, expected_word_count=None, essay_type="task2", prompt=""):
        length = h.writing_length_score(words, expected_word_count)
        coherence = h.writing_coherence_score(content)
        avg = (length + coherence) / 2
        criteria = WritingCriteria(
            task_achievement=avg * WRITING_CRITERIA_FACTORS["task_achievement"],
            coherence=coherence,
            lexical=avg * WRITING_CRITERIA_FACTORS["lexical"],
            grammar=avg * WRITING_CRITERIA_FACTORS["grammar"],
        )
        return WritingScore(overall=avg, criteria=criteria, confidence=avg, scored_by="heuristic")

    def score_speaking(self, duration: float, transcript: str) -> IeltsBands:
        return IeltsBands(
            fluency_coherence=h.speaking_fluency(duration),
            lexical_resource=h.speaking_lexical(transcript),
            grammatical_range=h.speaking_grammar(transcript),
            pronunciation=h.speaking_pronunciation(transcript),
        )


_DEFAULT = HeuristicScorer()


def get_scorer(cfg: dict | None = None) -> ContentScorer:
    cfg = load_config() if cfg is None else cfg
    if get_backend(cfg) == "azure":
        from .llm_bridge import LLMContentScorer
        return LLMContentScorer(cfg)
    return _DEFAULT
