"""
Purchase endpoints: Stripe checkout, payment confirmation, the Stripe
webhook, promo codes and level pricing.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from balzac.core.database import get_db
from balzac.models.user import User
from balzac.routers.auth import get_current_user
from balzac.schemas.payments import (
    AccessStatusResponse,
    CreatePaymentRequest,
    CreatePaymentResponse,
    LevelPricing,
    PromoCodeCheckResponse,
    PromoCodeRequest,
    PurchaseResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse
)
from balzac.services import access as access_service
from balzac.services import payments as payment_service
from balzac.services import promo as promo_service
from balzac.services.payments import PaymentGateway, get_payment_gateway

router = APIRouter()


@router.post("/create-payment", response_model=CreatePaymentResponse)
def create_payment(
    body: CreatePaymentRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> Dict[str, str]:
    """
    Open a Stripe checkout for a paid level and return its URL.
    """
    url = payment_service.create_payment(
        db,
        gateway,
        current_user,
        body.level,
        promo_code=body.promo_code,
        origin=request.headers.get("origin")
    )
    return {"url": url}


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
def verify_payment(
    body: VerifyPaymentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> Dict[str, Any]:
    return payment_service.verify_payment(db, gateway, current_user, body.session_id)


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> Dict[str, Any]:
    """
    Stripe event receiver. Completes purchases whose checkout was paid,
    whether or not the learner came back to the site.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    return payment_service.handle_webhook(db, gateway, payload, signature)


@router.post("/promo-codes/check", response_model=PromoCodeCheckResponse)
async def check_promo_code(
    body: PromoCodeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    level = access_service.check_level_number(body.level)
    return promo_service.check_code(db, body.code, level)


@router.post("/promo-codes/apply", response_model=PurchaseResponse)
async def apply_promo_code(
    body: PromoCodeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Any:
    """Redeem a 100% code: the level is unlocked at once."""
    level = access_service.check_level_number(body.level)
    return promo_service.apply_free_access_code(db, current_user.id, body.code, level)


@router.get("/purchases", response_model=List[PurchaseResponse])
async def list_purchases(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[Any]:
    return payment_service.list_user_purchases(db, current_user.id)


@router.get("/pricing", response_model=List[LevelPricing])
async def list_pricing(db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return access_service.list_level_pricing(db)


@router.get("/access/{level}", response_model=AccessStatusResponse)
async def get_level_access(
    level: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    level_number = access_service.check_level_number(level)
    return access_service.access_status(db, current_user.id, level_number)
