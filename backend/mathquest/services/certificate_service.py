from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.orm import Session

from mathquest.config import settings
from mathquest.models.certificate_request import (
    STATUS_ISSUED,
    CertificateRequest,
)


def create_certificate_request(db: Session, username: str, score: int) -> CertificateRequest:
    request = CertificateRequest(
        username=username.strip()[: settings.username_max_length],
        score=score,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    return request


def list_certificate_requests(db: Session) -> list[CertificateRequest]:
    """Newest requests first."""
    return list(
        db.execute(
            select(CertificateRequest).order_by(
                CertificateRequest.requested_at.desc(), CertificateRequest.id.desc()
            )
        ).scalars()
    )


def get_certificate_request(db: Session, request_id: int) -> CertificateRequest | None:
    return db.get(CertificateRequest, request_id)


def delete_certificate_request(db: Session, request_id: int) -> bool:
    request = db.get(CertificateRequest, request_id)
    if request is None:
        return False
    db.delete(request)
    db.commit()
    return True


def build_certificate_url(username: str, score: int) -> str:
    query = urlencode({"name": username, "score": score})
    separator = "&" if "?" in settings.certificate_image_base_url else "?"
    return f"{settings.certificate_image_base_url}{separator}{query}"


def issue_certificate(db: Session, request: CertificateRequest) -> str:
    """Mark the request issued and return the certificate image URL."""
    request.status = STATUS_ISSUED
    db.commit()
    db.refresh(request)
    return build_certificate_url(request.username, request.score)
