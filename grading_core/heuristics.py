# grading_core/heuristics.py
from __future__ import annotations
import re
from typing import Optional

from .types import AudioClip

_SENTENCE_SPLIT_RX = re.compile(r"[.!?]+")
_FILLER_RX = re.compile(r"\b(um|uh|like|you know)\b", re.I)


def _clamp01(x: float) -> float:
    try:
        xf = float(x)
    except Exception:
        return 0.0
    if xf < 0.0: return 0.0
    if xf > 1.0: return 1.0
    return xf


def word_count(text: str) -> int:
    if not isinstance(text, str): return 0
    return len(text.split())


# ---------------------------------------------------------------- audio
def audio_quality(audio: Optional[AudioClip]) -> float:
    if audio is None: return 0.0
    score = 0.0
    duration = audio.duration or 0.0
    transcript = audio.transcript or ""
    if duration > 1: score += 0.3
    if duration > 5: score += 0.2
    if len(transcript) > 10: score += 0.3
    if len(transcript) > 50: score += 0.2
    return min(score, 1.0)


# -------------------------------------------------------------- writing
def writing_length_score(words: int, expected: Optional[int]) -> float:
    if not expected: return 0.8
    ratio = words / expected
    if 0.9 <= ratio <= 1.1: return 1.0
    if ratio >= 0.75: return 0.7
    if ratio >= 0.5: return 0.5
    return 0.3


def writing_coherence_score(content: str) -> float:
    content = content or ""
    if len(content) < 50: return 0.3
    if len(content) < 150: return 0.6
    sentences = [s for s in _SENTENCE_SPLIT_RX.split(content) if len(s.strip()) > 10]
    if len(sentences) >= 3: return 0.8
    if len(sentences) >= 2: return 0.6
    return 0.4


# ------------------------------------------------------------- speaking
def speaking_fluency(duration: float) -> float:
    if duration < 10: return 3
    if duration < 30: return 5
    if duration < 60: return 7
    if duration < 120: return 8
    return 6


def speaking_lexical(transcript: str) -> float:
    words = (transcript or "").lower().split()
    # empty transcript gets band 3 here and in speaking_grammar, not a diversity ratio
    if not words: return 3
    diversity = len(set(words)) / len(words)
    if diversity > 0.7: return 8
    if diversity > 0.5: return 6
    if diversity > 0.3: return 4
    return 3


def speaking_grammar(transcript: str) -> float:
    sentences = [s for s in _SENTENCE_SPLIT_RX.split((transcript or "").lower()) if s.strip()]
    # empty transcript: band 3, matching speaking_lexical
    if not sentences: return 3
    proper = all(len(s.split()) >= 3 for s in sentences)
    varied = any(len(s.split()) > 5 for s in sentences)
    if proper and varied: return 7
    if proper: return 6
    return 4


def speaking_pronunciation(transcript: str) -> float:
    transcript = transcript or ""
    clear = any(len(w) > 2 for w in transcript.split(" "))
    if clear and len(transcript) > 20: return 6
    if clear: return 5
    return 4


def filler_word_count(transcript: str) -> int:
    return len(_FILLER_RX.findall(transcript or ""))


def words_per_minute(transcript: str, duration: float) -> float:
    if duration <= 0: return 0.0
    return word_count(transcript) / (duration / 60.0)
