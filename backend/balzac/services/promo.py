"""
Promotional codes.

A 100% code grants the level at once; a partial code lowers the price of
the checkout started with it and is consumed when that payment completes.
"""

from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from balzac.core.database import utcnow
from balzac.core.exceptions import ValidationFailed, ConflictError
from balzac.models.purchase import PromoCode, UserLevelPurchase, PurchaseStatus, PaymentMethod
from balzac.services.access import has_completed_purchase

logger = logging.getLogger(__name__)


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def find_valid_code(db: Session, code: str, level: int) -> PromoCode:
    """
    Look up an unused, unexpired code for a level.

    Raises:
        ValidationFailed: With the reason the code cannot be used
    """
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationFailed("Code promo requis")

    promo = db.query(PromoCode).filter(
        PromoCode.code == normalized,
        PromoCode.level == level
    ).first()
    if not promo:
        raise ValidationFailed("Ce code promo n'existe pas ou n'est pas valide pour ce niveau.")
    if promo.is_used:
        raise ValidationFailed("Ce code promo a déjà été utilisé.")
    if promo.is_expired():
        raise ValidationFailed("Ce code promo a expiré.")
    return promo


def check_code(db: Session, code: str, level: int) -> Dict[str, Any]:
    try:
        promo = find_valid_code(db, code, level)
    except ValidationFailed as e:
        return {"valid": False, "discount": 0, "message": e.message}
    return {"valid": True, "discount": promo.discount_percentage, "message": None}


def discounted_price(price: float, discount_percentage: int) -> float:
    return round(price * (100 - discount_percentage) / 100, 2)


def apply_free_access_code(db: Session, user_id: int, code: str, level: int) -> UserLevelPurchase:
    """
    Redeem a 100% code as a completed purchase.

    Raises:
        ValidationFailed: Invalid code, or a partial code
        ConflictError: Level already purchased
    """
    promo = find_valid_code(db, code, level)
    if not promo.is_free_access:
        raise ValidationFailed(
            "Ce code promo donne une réduction : utilisez-le lors du paiement."
        )
    if has_completed_purchase(db, user_id, level):
        raise ConflictError("Ce niveau est déjà débloqué")

    promo.mark_used(user_id)
    purchase = UserLevelPurchase(
        user_id=user_id,
        level=level,
        price_paid=0.0,
        status=PurchaseStatus.COMPLETED.value,
        payment_method=PaymentMethod.PROMO_CODE.value,
        promo_code=promo.code,
        purchased_at=utcnow()
    )
    db.add(purchase)
    db.commit()
    db.refresh(purchase)

    logger.info(f"Promo code {promo.code} redeemed by user {user_id} for level {level}")
    return purchase


def consume_code(db: Session, code: Optional[str], level: int, user_id: int) -> None:
    """Mark the code of a completed purchase as used. The caller commits."""
    normalized = normalize_code(code)
    if not normalized:
        return
    promo = db.query(PromoCode).filter(
        PromoCode.code == normalized,
        PromoCode.level == level
    ).first()
    if promo and not promo.is_used:
        promo.mark_used(user_id)
