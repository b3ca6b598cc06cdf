import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mathquest.config import settings
from mathquest.database import get_db
from mathquest.middleware.rate_limit import get_real_client_ip, limiter
from mathquest.schemas.leaderboard import LeaderboardRow, ScoreSubmission, ScoreSubmissionResponse
from mathquest.services.leaderboard_service import (
    RejectionReason,
    ScoreRejected,
    get_top_players,
    submit_score,
)
from mathquest.services.quota_service import QuotaLedger, get_quota_ledger

router = APIRouter()
logger = structlog.get_logger()


@router.post("/leaderboard/submit", response_model=ScoreSubmissionResponse, status_code=201)
@limiter.limit(settings.rate_limit_submit)
def submit_leaderboard_score(
    request: Request,
    submission: ScoreSubmission,
    db: Session = Depends(get_db),
    ledger: QuotaLedger = Depends(get_quota_ledger),
):
    """
    Add a game score to the player's running total.

    Daily-challenge scores are accepted once per identity and seed.
    """
    identity = get_real_client_ip(request)
    daily_seed = submission.problem_seed if submission.is_daily_challenge else None

    try:
        entry = submit_score(
            db,
            username=submission.username,
            score=submission.score,
            difficulty=submission.difficulty,
            identity=identity,
            daily_seed=daily_seed,
            is_owner=ledger.is_owner(identity),
        )
    except ScoreRejected as e:
        status_code = 429 if e.reason is RejectionReason.DUPLICATE_DAILY_SUBMISSION else 403
        logger.info("score_rejected", reason=e.reason.value, difficulty=submission.difficulty)
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "reason": e.reason.value, "message": str(e)},
        )
    except SQLAlchemyError:
        logger.error("score_submission_failed", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Failed to save score due to server error."},
        )

    logger.info("score_merged", difficulty=entry.difficulty, total=entry.score)
    return ScoreSubmissionResponse(
        success=True,
        message="Score saved successfully.",
        total_score=entry.score,
    )


@router.get("/leaderboard/top", response_model=list[LeaderboardRow])
@limiter.limit(settings.rate_limit_leaderboard_read)
def top_players(request: Request, db: Session = Depends(get_db)):
    """Top players by total score across all difficulties."""
    try:
        return get_top_players(db, settings.leaderboard_top_limit)
    except SQLAlchemyError:
        logger.error("leaderboard_retrieval_failed", exc_info=True)
        return JSONResponse(status_code=500, content=[])
