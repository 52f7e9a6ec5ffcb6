from __future__ import annotations
import os, json, pathlib
from typing import Dict, List, Optional, Tuple


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


DEFAULT_PASSING_SCORE: float = 60.0
INCOMPLETE_SKIP_RATIO: float = 0.5

WEAK_SECTION_PCT: float = 60.0
STRONG_SECTION_PCT: float = 85.0
# seconds per question: excellent < 30 <= good < 60 <= needs_improvement < 120 <= poor
TIME_EFFICIENCY_BUCKETS: tuple[float, float, float] = (30.0, 60.0, 120.0)

TREND_WINDOW: int = 5
TREND_MIN_ATTEMPTS: int = 3
TREND_DELTA: float = 10.0

HISTORY_TREND_MIN_ATTEMPTS: int = 3
HISTORY_TREND_DELTA: float = 5.0
HISTORY_RECENT_LIMIT: int = 10

SPEAKING_PASS_BAND: float = 6.0
WRITING_PASS_RATIO: float = 0.6
AUDIO_PASS_RATIO: float = 0.6

SECTION_KEY_CHAIN: tuple[str, ...] = ("standard_section", "section")
SECTION_FALLBACK: str = "General"

SCORE_RANGES: tuple[tuple[str, float, float], ...] = (
    ("0-20", 0, 20),
    ("21-40", 20, 40),
    ("41-60", 40, 60),
    ("61-80", 60, 80),
    ("81-100", 80, float("inf")),
)

# env overrides for staging/ops
DEFAULT_PASSING_SCORE = _env_float("DEFAULT_PASSING_SCORE", DEFAULT_PASSING_SCORE)
INCOMPLETE_SKIP_RATIO = _env_float("INCOMPLETE_SKIP_RATIO", INCOMPLETE_SKIP_RATIO)
WEAK_SECTION_PCT = _env_float("WEAK_SECTION_PCT", WEAK_SECTION_PCT)
STRONG_SECTION_PCT = _env_float("STRONG_SECTION_PCT", STRONG_SECTION_PCT)
TREND_WINDOW = _env_int("TREND_WINDOW", TREND_WINDOW)
SYNONYMS_PATH: Optional[str] = os.getenv("SYNONYMS_PATH") or None
DEFAULT_SYNONYMS_PATH = pathlib.Path(__file__).with_name("data") / "synonyms.json"

_SYNONYMS_CACHE: Optional[Dict[str, List[str]]] = None


def load_synonyms(path: Optional[str] = None) -> Dict[str, List[str]]:
    """Load the synonym table (headword -> accepted alternatives).

    Reads ``path`` (or ``SYNONYMS_PATH``) when given, otherwise the packaged
    ``data/synonyms.json``. Keys and values are lower-cased.
    """
    global _SYNONYMS_CACHE
    src = path or SYNONYMS_PATH
    if src is None and _SYNONYMS_CACHE is not None:
        return _SYNONYMS_CACHE
    if src:
        raw = json.loads(pathlib.Path(src).read_text(encoding="utf-8"))
    else:
        raw = json.loads(DEFAULT_SYNONYMS_PATH.read_text(encoding="utf-8"))
    table = {str(k).lower(): [str(v).lower() for v in vals] for k, vals in raw.items()}
    if src is None:
        _SYNONYMS_CACHE = table
    return table


def _env_true(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1","true","yes","on")
def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except Exception: cfg = {}
    e = os.environ
    if e.get("USE_LLM_WRITING"): cfg["USE_LLM_WRITING"] = _env_true("USE_LLM_WRITING")
    if e.get("LLM_BACKEND"): cfg["LLM_BACKEND"] = e.get("LLM_BACKEND")
    for k in ("AZURE_OPENAI_ENDPOINT","AZURE_OPENAI_API_VERSION","AZURE_OPENAI_API_KEY","AZURE_OPENAI_DEPLOYMENT"):
        if e.get(k): cfg[k] = e.get(k)
    if e.get("WRITING_CAL_A"): cfg["WRITING_CAL_A"] = float(e.get("WRITING_CAL_A"))
    if e.get("WRITING_CAL_B"): cfg["WRITING_CAL_B"] = float(e.get("WRITING_CAL_B"))
    return cfg
def get_backend(cfg: dict) -> str|None:
    if not cfg.get("USE_LLM_WRITING"): return None
    b = (cfg.get("LLM_BACKEND") or "").lower().strip()
    return b if b == "azure" else None
def calibration(cfg: dict) -> Tuple[float, float]:
    return float(cfg.get("WRITING_CAL_A", 1.0)), float(cfg.get("WRITING_CAL_B", 0.0))
