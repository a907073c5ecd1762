"""
Certification endpoints: public verification, the learner's own
certifications and their Open Badge export.
"""

from typing import Any, Dict, List
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.database import get_db
from balzac.core.rate_limit import RateLimiter, client_ip
from balzac.models.user import User
from balzac.routers.auth import get_current_user
from balzac.schemas.certifications import CertificationResponse, CertificationVerifyRequest
from balzac.services import certifications as certification_service

logger = logging.getLogger(__name__)

router = APIRouter()

certification_limiter = RateLimiter(
    "verify-certification",
    settings.CERTIFICATION_RATE_LIMIT,
    settings.CERTIFICATION_RATE_WINDOW_SECONDS
)


@router.post("/verify-certification")
async def verify_certification(
    body: CertificationVerifyRequest,
    request: Request,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Public verification of a credential id, limited per client IP.

    Malformed and unknown ids answer 200 with ``valid: false``.
    """
    ip = client_ip(request)
    if not certification_limiter.hit(ip):
        logger.warning(f"Rate limit exceeded for IP: {ip}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Trop de requêtes. Veuillez réessayer plus tard."
        )

    credential_id = (body.credential_id or "").strip()
    if not credential_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="ID de certification requis"
        )

    return certification_service.verify_certification(db, credential_id)


@router.get("/certifications", response_model=List[CertificationResponse])
async def list_certifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[Any]:
    return certification_service.list_user_certifications(db, current_user.id)


@router.get("/badges/{credential_id}")
async def export_badge(
    credential_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Open Badges 2.0 assertion of one of the caller's certifications."""
    return certification_service.export_open_badge(db, current_user, credential_id)
