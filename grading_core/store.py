"""Persistence contract used by result generation and analytics.

``AttemptStore`` is what the engine needs from a database: read an attempt
with its answers (each joined to its question) and optional speaking score,
finalize it, upsert a speaking score, and list a user's completed attempts.

Finalization is a compare-and-swap on ``Attempt.status``: it succeeds only
when the attempt is not already ``finalized`` and raises
``AttemptAlreadyFinalized`` otherwise. Implementations must make that check
and the write a single atomic step.
"""
from __future__ import annotations

import copy
import threading
from datetime import datetime
from typing import Dict, List, Optional

from .errors import AttemptAlreadyFinalized, AttemptNotFound
from .types import Attempt, SpeakingScore


class AttemptStore:
    def get_attempt(self, attempt_id: str) -> Optional[Attempt]:
        raise NotImplementedError

    def save_attempt(self, attempt: Attempt) -> None:
        raise NotImplementedError

    def lock_attempt(self, attempt_id: str) -> bool:
        """Move an ``in_progress`` attempt to ``processing``; False if missing or already taken."""
        raise NotImplementedError

    def release_attempt(self, attempt_id: str) -> bool:
        """Hand a ``processing`` attempt back to ``in_progress``; finalized attempts are left alone."""
        raise NotImplementedError

    def finalize_attempt(
        self,
        attempt_id: str,
        *,
        score: float,
        correct_answers: int,
        total_questions: int,
        passed: bool,
        completed_at: datetime,
    ) -> Attempt:
        raise NotImplementedError

    def upsert_speaking_score(self, score: SpeakingScore) -> SpeakingScore:
        raise NotImplementedError

    def list_attempts(self, user_id: Optional[str] = None, test_id: Optional[str] = None) -> List[Attempt]:
        raise NotImplementedError

    def recent_completed_attempts(
        self,
        user_id: str,
        limit: int = 5,
        test_id: Optional[str] = None,
    ) -> List[Attempt]:
        done = [a for a in self.list_attempts(user_id=user_id, test_id=test_id) if a.completed_at is not None]
        done.sort(key=lambda a: a.completed_at, reverse=True)
        return done[:limit]


class MemoryAttemptStore(AttemptStore):
    """Thread-safe in-process store. Returned attempts are copies."""

    def __init__(self) -> None:
        self._attempts: Dict[str, Attempt] = {}
        self._lock = threading.Lock()

    def get_attempt(self, attempt_id: str) -> Optional[Attempt]:
        with self._lock:
            found = self._attempts.get(attempt_id)
            return copy.deepcopy(found) if found else None

    def save_attempt(self, attempt: Attempt) -> None:
        with self._lock:
            self._attempts[attempt.id] = copy.deepcopy(attempt)
            self._changed()

    def lock_attempt(self, attempt_id: str) -> bool:
        with self._lock:
            found = self._attempts.get(attempt_id)
            if found is None or found.status != "in_progress":
                return False
            found.status = "processing"
            self._changed()
            return True

    def release_attempt(self, attempt_id: str) -> bool:
        with self._lock:
            found = self._attempts.get(attempt_id)
            if found is None or found.status != "processing":
                return False
            found.status = "in_progress"
            self._changed()
            return True

    def finalize_attempt(self, attempt_id, *, score, correct_answers, total_questions, passed, completed_at):
        with self._lock:
            found = self._attempts.get(attempt_id)
            if found is None:
                raise AttemptNotFound("Test attempt not found", attempt_id=attempt_id)
            if found.status == "finalized":
                raise AttemptAlreadyFinalized("Test attempt already finalized", attempt_id=attempt_id)
            found.score = score
            found.correct_answers = correct_answers
            found.total_questions = total_questions
            found.passed = passed
            found.completed_at = completed_at
            found.status = "finalized"
            self._changed()
            return copy.deepcopy(found)

    def upsert_speaking_score(self, score: SpeakingScore) -> SpeakingScore:
        with self._lock:
            found = self._attempts.get(score.attempt_id)
            if found is None:
                raise AttemptNotFound("Test attempt not found", attempt_id=score.attempt_id)
            found.speaking_score = copy.deepcopy(score)
            self._changed()
            return score

    def list_attempts(self, user_id=None, test_id=None) -> List[Attempt]:
        with self._lock:
            out = [
                copy.deepcopy(a) for a in self._attempts.values()
                if (user_id is None or a.user_id == user_id) and (test_id is None or a.test_id == test_id)
            ]
        return out

    def _changed(self) -> None:
        # called with the lock held after every mutation
        pass
