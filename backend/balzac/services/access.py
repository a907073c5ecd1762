"""
Level access gate.

A level can be played when it is free, when the learner still has free
sessions left on it, or when a completed purchase exists. The public price
list is cached until a pricing change is published on the event channel.
"""

from typing import Any, Dict, List, Optional
import threading
import logging

from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.events import events, LEVEL_PRICING_CHANGED
from balzac.core.exceptions import ValidationFailed
from balzac.models.content import CertificateTemplate, DifficultyLevel
from balzac.models.purchase import UserLevelPurchase, PurchaseStatus
from balzac.models.sessions import TestSession

logger = logging.getLogger(__name__)

FREE_LEVEL = 1

_pricing: Optional[List[Dict[str, Any]]] = None
_pricing_lock = threading.Lock()


def check_level_number(level: Any) -> int:
    """
    Parse and bound-check a level number.

    Raises:
        ValidationFailed: Missing or out of range
    """
    if level is None or level == "":
        raise ValidationFailed("Niveau requis")
    try:
        number = int(str(level), 10)
    except ValueError:
        raise ValidationFailed(f"Niveau invalide (doit être entre 1 et {settings.MAX_LEVEL})")
    if number < 1 or number > settings.MAX_LEVEL:
        raise ValidationFailed(f"Niveau invalide (doit être entre 1 et {settings.MAX_LEVEL})")
    return number


def get_level_template(db: Session, level: int) -> Optional[CertificateTemplate]:
    """Active certificate template (pricing) of a level."""
    return (
        db.query(CertificateTemplate)
        .join(DifficultyLevel, CertificateTemplate.difficulty_level_id == DifficultyLevel.id)
        .filter(
            DifficultyLevel.level_number == level,
            CertificateTemplate.is_active.is_(True)
        )
        .order_by(CertificateTemplate.id)
        .first()
    )


def _read_level_pricing(db: Session) -> List[Dict[str, Any]]:
    rows = (
        db.query(CertificateTemplate, DifficultyLevel)
        .join(DifficultyLevel, CertificateTemplate.difficulty_level_id == DifficultyLevel.id)
        .filter(CertificateTemplate.is_active.is_(True))
        .order_by(DifficultyLevel.level_number)
        .all()
    )
    return [
        {
            "level": level.level_number,
            "level_name": level.name,
            "price_euros": template.price_euros or 0.0,
            "free_sessions": template.free_sessions or 0,
            "is_active": template.is_active,
        }
        for template, level in rows
    ]


def list_level_pricing(db: Session) -> List[Dict[str, Any]]:
    global _pricing
    with _pricing_lock:
        if _pricing is None:
            _pricing = _read_level_pricing(db)
        return [dict(entry) for entry in _pricing]


def invalidate_level_pricing(topic: Optional[str] = None, payload: Optional[Dict[str, Any]] = None) -> None:
    global _pricing
    with _pricing_lock:
        _pricing = None
    logger.debug("Level pricing cache invalidated")


events.subscribe(LEVEL_PRICING_CHANGED, invalidate_level_pricing)


def consumed_sessions(db: Session, user_id: int, level: int) -> int:
    """Sessions started at a level, soft-deleted ones excluded."""
    return db.query(TestSession).filter(
        TestSession.user_id == user_id,
        TestSession.level == level,
        TestSession.deleted_at.is_(None)
    ).count()


def has_completed_purchase(db: Session, user_id: int, level: int) -> bool:
    return db.query(UserLevelPurchase.id).filter(
        UserLevelPurchase.user_id == user_id,
        UserLevelPurchase.level == level,
        UserLevelPurchase.status == PurchaseStatus.COMPLETED.value
    ).first() is not None


def access_status(db: Session, user_id: int, level: int) -> Dict[str, Any]:
    """
    Describe why a learner can or cannot play a level.

    ``reason`` is one of ``free_level``, ``purchased``, ``free_sessions``
    or ``purchase_required``.
    """
    template = get_level_template(db, level)
    free_sessions = (template.free_sessions or 0) if template else 0
    price = (template.price_euros or 0.0) if template else 0.0
    used = consumed_sessions(db, user_id, level)
    purchased = has_completed_purchase(db, user_id, level)

    if level == FREE_LEVEL or template is None or template.is_free:
        reason = "free_level"
    elif purchased:
        reason = "purchased"
    elif used < free_sessions:
        reason = "free_sessions"
    else:
        reason = "purchase_required"

    return {
        "level": level,
        "has_access": reason != "purchase_required",
        "reason": reason,
        "is_purchased": purchased,
        "free_sessions": free_sessions,
        "sessions_used": used,
        "free_sessions_remaining": max(0, free_sessions - used),
        "price_euros": price,
    }


def can_access_level(db: Session, user_id: int, level: int) -> bool:
    return access_status(db, user_id, level)["has_access"]
