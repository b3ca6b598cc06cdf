import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from mathquest.database import get_db
from mathquest.logging_config import fingerprint
from mathquest.middleware.rate_limit import get_real_client_ip
from mathquest.schemas.problem import ProblemRequest, ProblemResponse, QuotaDeniedResponse
from mathquest.services.generation_service import GenerationFailed
from mathquest.services.problem_source import ProblemSourcer, get_problem_sourcer
from mathquest.services.quota_service import Admission, QuotaLedger, get_quota_ledger

router = APIRouter()
logger = structlog.get_logger()

PLAYS_REMAINING_HEADER = "X-Plays-Remaining"

DENIAL_MESSAGES = {
    Admission.DENIED_DAILY: "You have already played today's Daily Challenge (1 per day).",
    Admission.DENIED_GENERAL: "You have used all your plays (10 per 8 hours). Take a break!",
    Admission.DENIED_THROTTLE: "Please wait a minute before requesting another problem.",
}


@router.post(
    "/generate-problem",
    response_model=ProblemResponse,
    responses={429: {"model": QuotaDeniedResponse}},
)
async def generate_problem(
    request: Request,
    response: Response,
    problem_request: ProblemRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ledger: QuotaLedger = Depends(get_quota_ledger),
    sourcer: ProblemSourcer = Depends(get_problem_sourcer),
):
    """
    Serve a math problem, from the cache or freshly generated.

    Admission is checked first: daily challenges are limited to one play per
    seed, general play to a rolling quota.
    """
    identity = get_real_client_ip(request)

    try:
        admission = await run_in_threadpool(
            ledger.admit,
            db,
            identity,
            problem_request.is_daily_challenge,
            problem_request.problem_seed,
        )
    except SQLAlchemyError:
        logger.error("daily_limit_check_failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Limit Check Error")

    # General-play quota left in the current window; daily plays do not use it
    quota_headers = {PLAYS_REMAINING_HEADER: str(ledger.remaining(identity))}

    if not admission.allowed:
        logger.info("quota_denied", reason=admission.value, identity=fingerprint(identity))
        return JSONResponse(
            status_code=429,
            content={
                "error": "Rate limit exceeded",
                "reason": admission.value,
                "message": DENIAL_MESSAGES[admission],
            },
            headers=quota_headers,
        )

    try:
        problem = await sourcer.source(
            problem_request.prompt,
            topic=problem_request.topic,
            difficulty=problem_request.difficulty,
            identity=identity,
        )
    except GenerationFailed as e:
        logger.error("problem_generation_failed", error=str(e))
        return JSONResponse(
            status_code=500,
            content={"error": "Problem generation failed"},
            headers=quota_headers,
        )

    if sourcer.should_write_back(problem, problem_request.topic, problem_request.difficulty):
        background_tasks.add_task(
            sourcer.write_back,
            problem_request.topic,
            problem_request.difficulty,
            problem.text,
            identity,
        )

    logger.info(
        "problem_served",
        source=problem.origin,
        daily=problem_request.is_daily_challenge,
    )
    response.headers.update(quota_headers)
    return ProblemResponse(text=problem.text, source=problem.origin)
