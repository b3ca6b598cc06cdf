import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from mathquest.config import settings
from mathquest.database import get_db
from mathquest.middleware.rate_limit import limiter
from mathquest.schemas.certificate import (
    CertificateRequestCreate,
    CertificateRequestCreateResponse,
)
from mathquest.services.certificate_service import create_certificate_request
from mathquest.services.discord_service import send_certificate_request_notification

router = APIRouter()
logger = structlog.get_logger()


@router.post("/submit-request", response_model=CertificateRequestCreateResponse)
@limiter.limit(settings.rate_limit_cert_request)
def submit_certificate_request(
    request: Request,
    certificate_request: CertificateRequestCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """Ask an administrator for a score certificate."""
    created = create_certificate_request(
        db, username=certificate_request.username, score=certificate_request.score
    )

    # Best effort: the request is stored whether or not the webhook works
    background_tasks.add_task(
        send_certificate_request_notification,
        request_id=created.id,
        username=created.username,
        score=created.score,
    )

    logger.info("certificate_requested", request_id=created.id)
    return CertificateRequestCreateResponse(success=True, request_id=created.id)
