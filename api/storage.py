"""Utility helpers for persisting attempts and generated results.

The production deployment should ideally swap this module for a proper
database-backed ``AttemptStore``.  For now we use simple JSON files stored on
disk to keep the API stateless across restarts and to support shareable
result links.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from grading_core.store import MemoryAttemptStore
from grading_core.types import to_basic
from .schemas import AttemptIn

log = logging.getLogger(__name__)

DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
RESULTS_DIR = DATA_ROOT / "results"
ATTEMPTS_PATH = DATA_ROOT / "attempts.json"

_LOCK = threading.Lock()


def _ensure_dirs() -> None:
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    DATA_ROOT.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError:
        log.warning("unreadable json at %s, using default", path)
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonAttemptStore(MemoryAttemptStore):
    """``MemoryAttemptStore`` that writes every change through to one JSON file."""

    def __init__(self, path: Path = ATTEMPTS_PATH) -> None:
        super().__init__()
        self.path = path
        for attempt_id, raw in _read_json(path, {}).items():
            self._attempts[attempt_id] = AttemptIn.model_validate(raw).to_attempt()
        log.info("loaded %d attempts from %s", len(self._attempts), path)

    def _changed(self) -> None:
        _write_json(self.path, {aid: to_basic(a) for aid, a in self._attempts.items()})


def save_result(attempt_id: str, result: Dict[str, Any]) -> None:
    """Persist the generated result document for an attempt."""

    _ensure_dirs()
    with _LOCK:
        _write_json(RESULTS_DIR / f"{attempt_id}.json", result)


def load_result(attempt_id: str) -> Optional[Dict[str, Any]]:
    return _read_json(RESULTS_DIR / f"{attempt_id}.json", None)
