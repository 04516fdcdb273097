"""
trustledger API v1 — REST surface for the reputation ledger.

Router prefix: /api/v1
Callers identify themselves with the ``X-Account-ID`` header; owner-only
operations are authorized by the ledger itself against its configured
owner. The logical clock is driven through an admin endpoint guarded by
``X-Admin-Key``.

  GET  /health                        — Health check
  GET  /stats                         — Ledger counters
  POST /accounts                      — Initialize the caller's account
  GET  /accounts/{id}                 — Reputation record
  GET  /accounts/{id}/submissions     — Submissions about an account
  POST /accounts/{id}/recompute       — Recompute from a batch of submission ids
  GET  /accounts/{id}/disputes/{seq}  — Dispute lookup
  POST /verifiers                     — Register a verifier (owner)
  POST /verifiers/{id}/deactivate     — Deactivate a verifier (owner)
  POST /verifiers/{id}/reactivate     — Reactivate a verifier (owner)
  GET  /verifiers/{id}                — Verifier record
  POST /submissions                   — Submit a score (active verifier)
  GET  /submissions/{seq}             — Submission lookup
  POST /disputes                      — Raise a dispute about the caller's record
  POST /admin/clock/advance           — Advance the logical clock
"""

import os
import time
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from trustledger import __version__
from trustledger.config import LedgerConfig
from trustledger.errors import ErrorCode, LedgerError
from trustledger.ledger import ReputationLedger
from trustledger.security import (
    apply_security, limiter, logger, require_admin_key, require_caller,
)

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__
    height: int = 0
    uptime: float = 0.0


class StatsResponse(BaseModel):
    total_users: int
    total_verifiers: int
    submission_sequence: int
    dispute_sequence: int
    height: int
    owner: Optional[str] = None


class ReputationResponse(BaseModel):
    account: str
    score: int = Field(ge=0, le=100)
    effective_score: int = Field(ge=0, le=100, description="Score with decay applied up to now")
    total_interactions: int
    last_updated: int
    status: str


class InitializeResponse(BaseModel):
    account: str
    created: bool


class VerifierRequest(BaseModel):
    verifier_id: str = Field(..., min_length=1, max_length=200)
    weight: int = Field(..., description="Credibility weight 1-100")
    stake: int = Field(..., ge=0)


class VerifierResponse(BaseModel):
    account: str
    credibility_weight: int
    stake_amount: int
    is_active: bool
    total_verifications: int
    registered_at: int


class SubmitRequest(BaseModel):
    user: str = Field(..., min_length=1, max_length=200)
    score: int
    ai_confidence: int
    category: str = Field(..., max_length=200)


class SubmitResponse(BaseModel):
    submission_id: int


class SubmissionResponse(BaseModel):
    sequence: int
    user: str
    verifier: str
    score: int
    ai_confidence: int
    category: str
    timestamp: int


class RecomputeRequest(BaseModel):
    submission_ids: list[int] = Field(default_factory=list)


class RecomputeResponse(BaseModel):
    user: str
    previous_score: int
    decayed_score: int
    calculated_score: int
    new_score: int
    status: str
    resolved_count: int
    height: int
    skipped_ids: list[int] = []


class DisputeRequest(BaseModel):
    reason: str = Field(..., max_length=1000)


class DisputeCreated(BaseModel):
    dispute_id: int


class DisputeResponse(BaseModel):
    account: str
    sequence: int
    reason: str
    status: str
    created_at: int
    resolved_at: int


class AdvanceRequest(BaseModel):
    blocks: int = Field(1, ge=0)


class AdvanceResponse(BaseModel):
    height: int


# ---------------------------------------------------------------------------
# Module state
# ---------------------------------------------------------------------------

_ledger: Optional[ReputationLedger] = None
_start_time: float = time.time()

ERROR_STATUS = {
    ErrorCode.NOT_AUTHORIZED: 403,
    ErrorCode.NOT_A_VERIFIER: 403,
    ErrorCode.INACTIVE_VERIFIER: 403,
    ErrorCode.UNKNOWN_ACCOUNT: 404,
    ErrorCode.ALREADY_REGISTERED: 409,
    ErrorCode.INVALID_SCORE: 400,
    ErrorCode.INVALID_WEIGHT: 400,
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.INSUFFICIENT_STAKE: 400,
    ErrorCode.BATCH_TOO_LARGE: 400,
}


def configure(ledger: Optional[ReputationLedger] = None) -> ReputationLedger:
    """Install the ledger served by the router (built from env when omitted)."""
    global _ledger
    _ledger = ledger or ReputationLedger.from_config(LedgerConfig.from_env())
    return _ledger


def get_ledger() -> ReputationLedger:
    if _ledger is None:
        return configure()
    return _ledger


async def ledger_error_handler(request: Request, exc: LedgerError):
    status = ERROR_STATUS.get(exc.code, 400)
    logger.info("Ledger operation rejected: %s", exc.code.value,
                extra={"path": request.url.path, "code": exc.code.value})
    return JSONResponse(status_code=status, content={"detail": exc.message, "code": exc.code.value})


router = APIRouter(prefix="/api/v1", tags=["v1"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(height=get_ledger().height, uptime=round(time.time() - _start_time, 1))


@router.get("/stats", response_model=StatsResponse)
async def stats():
    return StatsResponse(**get_ledger().stats().to_dict())


@router.post("/accounts", response_model=InitializeResponse)
async def initialize_account(response: Response, caller: str = Depends(require_caller)):
    created = get_ledger().initialize_account(caller).unwrap()
    response.status_code = 201 if created else 200
    return InitializeResponse(account=caller, created=created)


@router.get("/accounts/{account_id}", response_model=ReputationResponse)
async def get_reputation(account_id: str):
    ledger = get_ledger()
    record = ledger.get_reputation(account_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No reputation record for {account_id}")
    return ReputationResponse(
        **record.to_dict(),
        effective_score=ledger.effective_score(account_id),
    )


@router.get("/accounts/{account_id}/submissions", response_model=list[SubmissionResponse])
async def list_submissions(account_id: str):
    return [SubmissionResponse(**s.to_dict()) for s in get_ledger().list_submissions(account_id)]


@router.post("/accounts/{account_id}/recompute", response_model=RecomputeResponse)
@limiter.limit("30/minute")
async def recompute(request: Request, account_id: str, body: RecomputeRequest):
    outcome = get_ledger().recompute_reputation(account_id, body.submission_ids).unwrap()
    return RecomputeResponse(**outcome.to_dict())


@router.get("/accounts/{account_id}/disputes/{sequence}", response_model=DisputeResponse)
async def get_dispute(account_id: str, sequence: int):
    dispute = get_ledger().get_dispute(account_id, sequence)
    if dispute is None:
        raise HTTPException(status_code=404, detail="Dispute not found")
    return DisputeResponse(**dispute.to_dict())


@router.post("/verifiers", response_model=VerifierResponse, status_code=201)
async def register_verifier(body: VerifierRequest, caller: str = Depends(require_caller)):
    record = get_ledger().register_verifier(caller, body.verifier_id, body.weight, body.stake).unwrap()
    return VerifierResponse(**record.to_dict())


@router.post("/verifiers/{verifier_id}/deactivate", response_model=VerifierResponse)
async def deactivate_verifier(verifier_id: str, caller: str = Depends(require_caller)):
    record = get_ledger().deactivate_verifier(caller, verifier_id).unwrap()
    return VerifierResponse(**record.to_dict())


@router.post("/verifiers/{verifier_id}/reactivate", response_model=VerifierResponse)
async def reactivate_verifier(verifier_id: str, caller: str = Depends(require_caller)):
    record = get_ledger().reactivate_verifier(caller, verifier_id).unwrap()
    return VerifierResponse(**record.to_dict())


@router.get("/verifiers/{verifier_id}", response_model=VerifierResponse)
async def get_verifier(verifier_id: str):
    record = get_ledger().get_verifier(verifier_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{verifier_id} is not a registered verifier")
    return VerifierResponse(**record.to_dict())


@router.post("/submissions", response_model=SubmitResponse, status_code=201)
@limiter.limit("60/minute")
async def submit_score(request: Request, body: SubmitRequest, caller: str = Depends(require_caller)):
    sequence = get_ledger().submit_score(
        caller, body.user, body.score, body.ai_confidence, body.category,
    ).unwrap()
    return SubmitResponse(submission_id=sequence)


@router.get("/submissions/{sequence}", response_model=SubmissionResponse)
async def get_submission(sequence: int):
    record = get_ledger().get_submission(sequence)
    if record is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return SubmissionResponse(**record.to_dict())


@router.post("/disputes", response_model=DisputeCreated, status_code=201)
async def raise_dispute(body: DisputeRequest, caller: str = Depends(require_caller)):
    dispute_id = get_ledger().raise_dispute(caller, body.reason).unwrap()
    return DisputeCreated(dispute_id=dispute_id)


@router.post("/admin/clock/advance", response_model=AdvanceResponse)
async def advance_clock(body: AdvanceRequest, _admin: bool = Depends(require_admin_key)):
    return AdvanceResponse(height=get_ledger().advance(body.blocks))


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(*, ledger: Optional[ReputationLedger] = None,
               allowed_origins: Optional[list[str]] = None) -> FastAPI:
    """Create a standalone FastAPI app serving ``ledger``."""
    if ledger is not None or _ledger is None:
        configure(ledger)

    app = FastAPI(
        title="trustledger API",
        description="Verifier-attested reputation ledger — v1 API",
        version=__version__,
        docs_url=None if os.environ.get("TRUSTLEDGER_PRODUCTION") else "/docs",
        redoc_url=None,
    )
    apply_security(app, allowed_origins)
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.include_router(router)
    return app


def main():
    import uvicorn

    from trustledger.security import setup_structured_logging

    config = LedgerConfig.from_env()
    setup_structured_logging(config.log_level)
    app = create_app(ledger=ReputationLedger.from_config(config))
    uvicorn.run(app, host=os.environ.get("HOST", "127.0.0.1"), port=int(os.environ.get("PORT", "8420")))


if __name__ == "__main__":
    main()
