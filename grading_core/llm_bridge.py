from __future__ import annotations
import json, logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from openai import AzureOpenAI

from .config import calibration
from .heuristics import _clamp01
from .rubrics import rubric_for
from .scorers import HeuristicScorer, WritingScore
from .types import WritingCriteria

log = logging.getLogger(__name__)

_AZURE_KEYS = {
    "endpoint": "AZURE_OPENAI_ENDPOINT",
    "api_key": "AZURE_OPENAI_API_KEY",
    "api_version": "AZURE_OPENAI_API_VERSION",
    "deployment": "AZURE_OPENAI_DEPLOYMENT",
}


@dataclass(frozen=True)
class AzureSettings:
    endpoint: str
    api_key: str
    deployment: str
    api_version: str


def azure_settings(cfg: Dict[str, Any]) -> AzureSettings:
    vals = {k: str(cfg.get(env) or "") for k, env in _AZURE_KEYS.items()}
    missing = [_AZURE_KEYS[k] for k, v in vals.items() if not v]
    if missing:
        raise RuntimeError(f"Azure OpenAI not configured. Missing: {', '.join(missing)}")
    return AzureSettings(**vals)


def _system_prompt(essay_type: str) -> str:
    rubric = rubric_for(essay_type)
    lines = "\n".join(f"- {c['id']}: {c['desc']}" for c in rubric["criteria"])
    return ("You are a strict IELTS writing examiner. Score the essay on these criteria:\n"
            f"{lines}\n"
            "Return ONLY compact JSON with keys: overall, task_achievement, coherence, lexical, grammar. "
            "Values must be floats in [0,1]. No explanations.")


class LLMContentScorer(HeuristicScorer):
    """Writing scorer backed by an Azure OpenAI deployment.

    Audio and speaking stay heuristic. Any failure (missing settings, network,
    malformed JSON) falls back to the heuristic writing score.
    """
    name = "azure"

    def __init__(self, cfg: Dict[str, Any], client: Optional[AzureOpenAI] = None) -> None:
        self.cfg = cfg
        self._client = client

    def _get_client(self) -> tuple[AzureOpenAI, AzureSettings]:
        s = azure_settings(self.cfg)
        if self._client is None:
            self._client = AzureOpenAI(azure_endpoint=s.endpoint, api_key=s.api_key, api_version=s.api_version)
        return self._client, s

    def _grade(self, content: str, essay_type: str, prompt: str) -> Dict[str, float]:
        cli, s = self._get_client()
        user = f"{(prompt or '').strip()}\n\nEssay:\n{(content or '').strip()}"
        resp = cli.chat.completions.create(
            model=s.deployment,
            messages=[{"role": "system", "content": _system_prompt(essay_type)},
                      {"role": "user", "content": user}],
            temperature=0.0, max_tokens=200, top_p=1.0,
        )
        raw = json.loads(resp.choices[0].message.content or "{}")
        return {k: float(raw[k]) for k in ("overall", "task_achievement", "coherence", "lexical", "grammar")}

    def score_writing(self, content, words, expected_word_count=None, essay_type="task2", prompt=""):
        try:
            graded = self._grade(content, essay_type, prompt)
        except Exception as exc:
            log.debug("writing LLM fallback: %s", exc)
            return super().score_writing(content, words, expected_word_count, essay_type, prompt)
        a, b = calibration(self.cfg)
        overall = _clamp01(a * graded["overall"] + b)
        criteria = WritingCriteria(
            task_achievement=_clamp01(graded["task_achievement"]),
            coherence=_clamp01(graded["coherence"]),
            lexical=_clamp01(graded["lexical"]),
            grammar=_clamp01(graded["grammar"]),
        )
        return WritingScore(overall=overall, criteria=criteria, confidence=overall, scored_by=self.name)
