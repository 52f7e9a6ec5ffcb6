from __future__ import annotations
from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime, timezone
import logging, os, typing as t

# ---- Engine imports ----
from grading_core.analytics import generate_performance_analytics
from grading_core.batch import evaluate_batch
from grading_core.config import load_config, get_backend
from grading_core.errors import AttemptAlreadyFinalized, AttemptNotFound, TestNotFound
from grading_core.export import to_json as results_to_json, to_csv as results_to_csv
from grading_core.results import ResultGenerator
from grading_core.scorers import get_scorer
from grading_core.statistics import get_test_statistics, get_user_performance
from grading_core.types import BatchEvaluationResult, EvaluationContext, Question, to_basic
from grading_core.scoring import resolve_config
from .schemas import AttemptIn, EvaluateReq, ResultReq
from .storage import JsonAttemptStore, load_result, save_result, utcnow_iso

log = logging.getLogger(__name__)

STORE = JsonAttemptStore()

app = FastAPI(title="Language Test Grader API")


@app.get("/")
def root():
    return {"status": "ok", "service": "language-test-grader"}


ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,  # keep False unless you use cookies
)

# ---- Helpers ----
def _evaluate(questions: list[Question], req: EvaluateReq | ResultReq, user_id=None) -> BatchEvaluationResult:
    # config values are checked by the batch, which reports CONFIGURATION_ERROR per answer
    ctx = EvaluationContext(user_id=user_id or "anonymous", config=resolve_config({"config": req.config or {}}))
    return evaluate_batch(questions, [a.to_payload() for a in req.answers], ctx, get_scorer())


def _stored_result(attempt_id: str) -> dict[str, t.Any]:
    doc = load_result(attempt_id)
    if not doc:
        raise HTTPException(404, "result not found")
    return doc

# ---- Health ----
@app.get("/health")
def health():
    cfg = load_config()
    return {
        "llm_backend": get_backend(cfg) or "none",
        "use_llm_writing": bool(cfg.get("USE_LLM_WRITING")),
        "attempts": len(STORE.list_attempts()),
    }

# ---- Evaluation ----
@app.post("/evaluate")
def evaluate(req: EvaluateReq):
    questions = [q.to_question() for q in req.questions]
    return to_basic(_evaluate(questions, req, req.user_id))


@app.post("/attempts")
def create_attempt(payload: AttemptIn):
    attempt = payload.to_attempt()
    if attempt.started_at is None:
        attempt.started_at = datetime.now(timezone.utc)
    STORE.save_attempt(attempt)
    return {"attempt_id": attempt.id, "status": attempt.status}


@app.post("/attempts/{attempt_id}/result")
def create_result(attempt_id: str, req: ResultReq):
    attempt = STORE.get_attempt(attempt_id)
    if attempt is None:
        raise HTTPException(404, "attempt not found")
    if attempt.status == "finalized":
        raise HTTPException(409, "attempt already finalized")
    if not STORE.lock_attempt(attempt_id):
        raise HTTPException(409, "attempt is already being processed")

    try:
        questions = [a.question for a in attempt.answers]
        batch = _evaluate(questions, req, attempt.user_id)
        summary = ResultGenerator(STORE).generate_comprehensive_result(attempt_id, batch.results)
    except (AttemptNotFound, TestNotFound) as exc:
        raise HTTPException(404, str(exc))
    except AttemptAlreadyFinalized as exc:
        raise HTTPException(409, str(exc))
    finally:
        # no-op once finalized; otherwise the attempt can be submitted again
        STORE.release_attempt(attempt_id)

    log.info("attempt %s graded: %d results, %d errors", attempt_id, len(batch.results), len(batch.errors))
    doc = to_basic(summary)
    doc["errors"] = to_basic(batch.errors)
    if req.analytics:
        doc["analytics"] = to_basic(generate_performance_analytics(summary, STORE))
    doc["created_at"] = utcnow_iso()
    save_result(attempt_id, doc)
    return doc


@app.get("/results/{attempt_id}")
def get_result(attempt_id: str):
    return _stored_result(attempt_id)


@app.get("/results/{attempt_id}/export.json")
def get_export_json(attempt_id: str):
    doc = _stored_result(attempt_id)
    payload = results_to_json(doc.get("evaluation_results") or [])
    return {"attempt_id": attempt_id, **payload}


@app.get("/results/{attempt_id}/export.csv")
def get_export_csv(attempt_id: str):
    doc = _stored_result(attempt_id)
    body = results_to_csv(doc.get("evaluation_results") or [])
    filename = f"{attempt_id}_results.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )

# ---- Statistics ----
@app.get("/tests/{test_id}/statistics")
def get_statistics(test_id: str):
    return {"test_id": test_id, **get_test_statistics(STORE, test_id)}


@app.get("/users/{user_id}/performance")
def user_performance(
    user_id: str,
    start: datetime | None = Query(None, description="Only attempts started at or after"),
    end: datetime | None = Query(None, description="Only attempts started at or before"),
):
    return to_basic({"user_id": user_id, **get_user_performance(STORE, user_id, start, end)})
