"""
Certification issuance, public verification and Open Badge export.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional
import re
import secrets
import string
import logging

from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.database import utcnow, ensure_utc
from balzac.core.exceptions import NotFoundError
from balzac.models.certification import UserCertification
from balzac.models.content import DifficultyLevel
from balzac.models.sessions import TestSession, SessionType, SessionStatus
from balzac.models.user import User

logger = logging.getLogger(__name__)

CREDENTIAL_ID_PATTERN = re.compile(r"CERT-[0-9]{4}-[A-Z0-9]{8}")
CREDENTIAL_ALPHABET = string.ascii_uppercase + string.digits
OPEN_BADGES_CONTEXT = "https://w3id.org/openbadges/v2"


def generate_credential_id(year: Optional[int] = None) -> str:
    suffix = "".join(secrets.choice(CREDENTIAL_ALPHABET) for _ in range(8))
    return f"CERT-{year or utcnow().year}-{suffix}"


def is_valid_credential_id(credential_id: str) -> bool:
    return CREDENTIAL_ID_PATTERN.fullmatch(credential_id) is not None


def _unique_credential_id(db: Session, year: int) -> str:
    while True:
        candidate = generate_credential_id(year)
        exists = db.query(UserCertification.id).filter(
            UserCertification.credential_id == candidate
        ).first()
        if not exists:
            return candidate


def level_score(db: Session, user_id: int, level: int) -> int:
    """Average score of the validated regular sessions of a level."""
    scores = [
        row.score
        for row in db.query(TestSession.score).filter(
            TestSession.user_id == user_id,
            TestSession.level == level,
            TestSession.session_type == SessionType.REGULAR.value,
            TestSession.status == SessionStatus.COMPLETED.value,
            TestSession.is_session_validated.is_(True),
            TestSession.deleted_at.is_(None)
        )
        if row.score is not None
    ]
    if not scores:
        return 0
    return round(sum(scores) / len(scores))


def issue_certification(db: Session, user_id: int, level: int, score: Optional[int] = None) -> UserCertification:
    """
    Create the certification of a validated level.

    At most one certification exists per user and level; an existing one is
    returned unchanged. The caller commits.
    """
    existing = db.query(UserCertification).filter(
        UserCertification.user_id == user_id,
        UserCertification.level == level
    ).first()
    if existing:
        return existing

    now = utcnow()
    expiration = None
    if settings.CERTIFICATION_VALIDITY_DAYS:
        expiration = now + timedelta(days=settings.CERTIFICATION_VALIDITY_DAYS)

    certification = UserCertification(
        user_id=user_id,
        level=level,
        score=score if score is not None else level_score(db, user_id, level),
        credential_id=_unique_credential_id(db, now.year),
        issuing_organization=settings.ISSUING_ORGANIZATION,
        certified_at=now,
        expiration_date=expiration
    )
    db.add(certification)
    db.flush()

    logger.info(f"Certification {certification.credential_id} issued to user {user_id} for level {level}")
    return certification


def _level_display_name(db: Session, level: int) -> str:
    row = db.query(DifficultyLevel).filter(DifficultyLevel.level_number == level).first()
    return row.name if row else f"Niveau {level}"


def verify_certification(db: Session, credential_id: str) -> Dict[str, Any]:
    """
    Public lookup of a certification.

    Malformed ids are rejected before any query. Only non-personal fields
    are returned.
    """
    if not is_valid_credential_id(credential_id):
        return {"valid": False, "error": "Format d'identifiant invalide"}

    certification = db.query(UserCertification).filter(
        UserCertification.credential_id == credential_id
    ).first()
    if not certification:
        logger.info(f"Certification not found for: {credential_id}")
        return {"valid": False, "message": "Certification non trouvée"}

    is_active = not certification.is_expired()
    expiration = ensure_utc(certification.expiration_date)
    return {
        "valid": is_active,
        "credential_id": certification.credential_id,
        "level_name": _level_display_name(db, certification.level),
        "level_number": certification.level,
        "certified_at": ensure_utc(certification.certified_at).isoformat(),
        "expiration_date": expiration.isoformat() if expiration else None,
        "issuing_organization": certification.issuing_organization,
        "status": "active" if is_active else "expired",
    }


def list_user_certifications(db: Session, user_id: int) -> List[UserCertification]:
    return (
        db.query(UserCertification)
        .filter(UserCertification.user_id == user_id)
        .order_by(UserCertification.level)
        .all()
    )


def build_open_badge(db: Session, certification: UserCertification, base_url: Optional[str] = None) -> Dict[str, Any]:
    """
    Open Badges 2.0 hosted assertion for a certification.
    """
    base = (base_url or settings.FRONTEND_URL).rstrip("/")
    badge_id = f"{base}/badge/{certification.credential_id}"

    level = db.query(DifficultyLevel).filter(
        DifficultyLevel.level_number == certification.level
    ).first()
    template = level.active_template if level else None
    level_label = level.name if level else f"Niveau {certification.level}"

    assertion = {
        "@context": OPEN_BADGES_CONTEXT,
        "type": "Assertion",
        "id": badge_id,
        "badge": {
            "type": "BadgeClass",
            "id": badge_id,
            "name": template.certificate_title if template else f"Certification {level_label}",
            "description": (
                f"Certification obtenue avec un score de {certification.score}% en {level_label}. "
                f"Délivré par {certification.issuing_organization}."
            ),
            "image": (
                template.custom_badge_url
                if template and template.custom_badge_url
                else f"{base}/api/badge-image/{certification.credential_id}"
            ),
            "criteria": f"{base}/criteria/{certification.level}",
            "issuer": {
                "type": "Issuer",
                "id": f"{base}/issuer",
                "name": certification.issuing_organization,
                "url": base,
                "email": settings.ISSUER_EMAIL,
            },
        },
        "recipient": {
            "type": "email",
            "hashed": False,
            "identity": certification.user.email,
        },
        "verification": {
            "type": "hosted",
            "url": f"{base}/verify/{certification.credential_id}",
        },
        "issuedOn": ensure_utc(certification.certified_at).isoformat(),
        "evidence": f"{base}/evidence/{certification.credential_id}",
    }

    expiration = ensure_utc(certification.expiration_date)
    if expiration:
        assertion["expires"] = expiration.isoformat()

    return assertion


def export_open_badge(db: Session, user: User, credential_id: str) -> Dict[str, Any]:
    """Build the assertion of one of the caller's certifications and keep a copy."""
    certification = db.query(UserCertification).filter(
        UserCertification.credential_id == credential_id,
        UserCertification.user_id == user.id
    ).first()
    if not certification:
        raise NotFoundError("Certification non trouvée")

    assertion = build_open_badge(db, certification)
    certification.json_ld_badge = assertion
    db.commit()
    return assertion
