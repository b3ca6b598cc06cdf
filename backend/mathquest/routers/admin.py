import secrets

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from mathquest.config import settings
from mathquest.database import get_db
from mathquest.middleware.rate_limit import limiter
from mathquest.schemas.certificate import (
    CertificateIssueResponse,
    CertificateRequestRead,
    DeleteResponse,
)
from mathquest.services.certificate_service import (
    delete_certificate_request,
    get_certificate_request,
    issue_certificate,
    list_certificate_requests,
)

router = APIRouter()
logger = structlog.get_logger()


def verify_admin_key(x_admin_key: str = Header(..., alias="X-Admin-Key")) -> None:
    if not settings.admin_api_key:
        raise HTTPException(status_code=503, detail="Administration not configured")
    if not secrets.compare_digest(x_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=401, detail="Invalid admin key")


@router.get("/requests", response_model=list[CertificateRequestRead])
@limiter.limit(settings.rate_limit_admin)
def list_requests(
    request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(verify_admin_key),
):
    return list_certificate_requests(db)


@router.get("/generate-cert/{request_id}", response_model=CertificateIssueResponse)
@limiter.limit(settings.rate_limit_admin)
def generate_certificate(
    request: Request,
    request_id: int,
    db: Session = Depends(get_db),
    _: None = Depends(verify_admin_key),
):
    certificate_request = get_certificate_request(db, request_id)
    if certificate_request is None:
        raise HTTPException(status_code=404, detail="Request not found")

    image_url = issue_certificate(db, certificate_request)
    logger.info("certificate_issued", request_id=request_id)

    return CertificateIssueResponse(
        request_id=certificate_request.id,
        username=certificate_request.username,
        score=certificate_request.score,
        image_url=image_url,
    )


@router.delete("/delete-request/{request_id}", response_model=DeleteResponse)
@limiter.limit(settings.rate_limit_admin)
def delete_request(
    request: Request,
    request_id: int,
    db: Session = Depends(get_db),
    _: None = Depends(verify_admin_key),
):
    if not delete_certificate_request(db, request_id):
        raise HTTPException(status_code=404, detail="Request not found")
    logger.info("certificate_request_deleted", request_id=request_id)
    return DeleteResponse(success=True)
