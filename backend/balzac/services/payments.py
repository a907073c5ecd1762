"""
Level purchases through Stripe Checkout.

A purchase is completed either when the learner comes back from the
checkout page (``verify_payment``) or when Stripe notifies the webhook,
whichever happens first; completion is idempotent.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Optional
import logging

import stripe
from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.database import utcnow
from balzac.core.exceptions import (
    NotFoundError, RateLimitExceeded, UpstreamError, ValidationFailed
)
from balzac.core.rate_limit import RateLimiter
from balzac.models.purchase import UserLevelPurchase, PurchaseStatus, PaymentMethod
from balzac.models.user import User
from balzac.services import promo as promo_service
from balzac.services.access import check_level_number, get_level_template

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED_EVENTS = (
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
)

payment_verify_limiter = RateLimiter(
    "verify-payment",
    settings.PAYMENT_VERIFY_RATE_LIMIT,
    settings.PAYMENT_VERIFY_RATE_WINDOW_SECONDS
)


@dataclass
class CheckoutSession:
    """The parts of a Stripe checkout session this application reads."""
    id: str
    url: Optional[str] = None
    payment_status: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


def _to_checkout(obj: Any) -> CheckoutSession:
    data = obj.to_dict()
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = metadata.to_dict()
    return CheckoutSession(
        id=data["id"],
        url=data.get("url"),
        payment_status=data.get("payment_status"),
        metadata={key: str(value) for key, value in metadata.items()}
    )


class PaymentGateway:
    """
    Thin wrapper around the Stripe SDK.
    """

    def __init__(self, api_key: str, webhook_secret: Optional[str] = None):
        stripe.api_key = api_key
        self.webhook_secret = webhook_secret

    def find_customer_id(self, email: str) -> Optional[str]:
        try:
            customers = stripe.Customer.list(email=email, limit=1)
        except stripe.StripeError as e:
            logger.error(f"Stripe customer lookup failed: {e}")
            raise UpstreamError(e.user_message or str(e))
        return customers.data[0].id if customers.data else None

    def create_checkout_session(
        self,
        *,
        email: str,
        customer_id: Optional[str],
        level: int,
        price_euros: float,
        user_id: int,
        success_url: str,
        cancel_url: str,
        promo_code: Optional[str] = None
    ) -> CheckoutSession:
        metadata = {
            "user_id": str(user_id),
            "level": str(level),
            "price_euros": str(price_euros),
        }
        if promo_code:
            metadata["promo_code"] = promo_code

        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                customer_email=None if customer_id else email,
                line_items=[{
                    "price_data": {
                        "currency": settings.PAYMENT_CURRENCY,
                        "product_data": {
                            "name": f"Niveau {level} - Certification Balzac",
                            "description": f"Accès complet au niveau {level} de formation",
                        },
                        "unit_amount": int(round(price_euros * 100)),  # cents
                    },
                    "quantity": 1,
                }],
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout creation failed: {e}")
            raise UpstreamError(e.user_message or str(e))
        return _to_checkout(session)

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout retrieval failed: {e}")
            raise UpstreamError(e.user_message or str(e))
        return _to_checkout(session)

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook signature and return ``{"type", "checkout"}``.

        Raises:
            ValidationFailed: Bad payload or signature
        """
        if not self.webhook_secret:
            raise UpstreamError("Webhook non configuré")
        try:
            event = stripe.Webhook.construct_event(payload, signature or "", self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Stripe webhook rejected: {e}")
            raise ValidationFailed("Signature de webhook invalide")

        event_type = event["type"]
        checkout = None
        if event_type in CHECKOUT_COMPLETED_EVENTS:
            checkout = _to_checkout(event["data"]["object"])
        return {"type": event_type, "checkout": checkout}


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the configured gateway."""
    if not settings.payments_enabled:
        raise UpstreamError("Paiement indisponible")
    return PaymentGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)


def pending_purchases_last_hour(db: Session, user_id: int) -> int:
    since = utcnow() - timedelta(hours=1)
    return db.query(UserLevelPurchase).filter(
        UserLevelPurchase.user_id == user_id,
        UserLevelPurchase.status == PurchaseStatus.PENDING.value,
        UserLevelPurchase.created_at >= since
    ).count()


def create_payment(
    db: Session,
    gateway: PaymentGateway,
    user: User,
    level: Any,
    promo_code: Optional[str] = None,
    origin: Optional[str] = None
) -> str:
    """
    Start a checkout for a paid level and return its URL.

    The pending purchase row is written once the checkout session exists.
    """
    level_number = check_level_number(level)

    if pending_purchases_last_hour(db, user.id) >= settings.MAX_PENDING_PURCHASES_PER_HOUR:
        logger.warning(f"Rate limit exceeded for user {user.id}: too many pending purchases")
        raise RateLimitExceeded("Trop de tentatives de paiement. Veuillez réessayer plus tard.")

    template = get_level_template(db, level_number)
    if not template:
        raise NotFoundError("Niveau introuvable")
    if template.is_free:
        raise ValidationFailed("Ce niveau est gratuit")

    price = float(template.price_euros)
    code = None
    if promo_code:
        promo = promo_service.find_valid_code(db, promo_code, level_number)
        if promo.is_free_access:
            raise ValidationFailed("Ce code promo donne un accès gratuit : appliquez-le directement.")
        price = promo_service.discounted_price(price, promo.discount_percentage)
        code = promo.code

    base_url = (origin or settings.FRONTEND_URL).rstrip("/")
    checkout = gateway.create_checkout_session(
        email=user.email,
        customer_id=gateway.find_customer_id(user.email),
        level=level_number,
        price_euros=price,
        user_id=user.id,
        success_url=f"{base_url}/dashboard?payment=success&level={level_number}&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base_url}/dashboard?payment=cancel",
        promo_code=code
    )

    db.add(UserLevelPurchase(
        user_id=user.id,
        level=level_number,
        price_paid=price,
        status=PurchaseStatus.PENDING.value,
        payment_method=PaymentMethod.STRIPE.value,
        payment_reference=checkout.id,
        promo_code=code
    ))
    db.commit()

    logger.info(f"Checkout {checkout.id} created for user {user.id}, level {level_number}, {price} EUR")
    return checkout.url


def complete_purchase(db: Session, checkout: CheckoutSession, user_id: int) -> UserLevelPurchase:
    """
    Mark the purchase of a paid checkout as completed.

    Completing twice is a no-op. A paid checkout without a local row (the
    insert after checkout creation failed) gets its row rebuilt from the
    checkout metadata.
    """
    purchase = db.query(UserLevelPurchase).filter(
        UserLevelPurchase.payment_reference == checkout.id,
        UserLevelPurchase.user_id == user_id
    ).first()

    if purchase and purchase.is_completed:
        return purchase

    if purchase is None:
        logger.warning(f"No pending purchase for checkout {checkout.id}, rebuilding from metadata")
        purchase = UserLevelPurchase(
            user_id=user_id,
            level=int(checkout.metadata["level"]),
            price_paid=float(checkout.metadata.get("price_euros", 0) or 0),
            payment_method=PaymentMethod.STRIPE.value,
            payment_reference=checkout.id,
            promo_code=checkout.metadata.get("promo_code")
        )
        db.add(purchase)

    purchase.mark_completed()
    promo_service.consume_code(db, purchase.promo_code, purchase.level, user_id)
    db.commit()
    db.refresh(purchase)

    logger.info(f"Purchase {purchase.id} completed for user {user_id}, level {purchase.level}")
    return purchase


def verify_payment(db: Session, gateway: PaymentGateway, user: User, session_id: Any) -> Dict[str, Any]:
    """Confirm a checkout after the learner's redirect back."""
    if not session_id or not isinstance(session_id, str):
        raise ValidationFailed("Session ID requis")
    if not session_id.startswith("cs_") or len(session_id) > 100:
        raise ValidationFailed("Format de session ID invalide")

    if not payment_verify_limiter.hit(str(user.id)):
        raise RateLimitExceeded("Trop de requêtes. Veuillez réessayer plus tard.")

    checkout = gateway.retrieve_checkout_session(session_id)
    if checkout.is_paid and checkout.metadata.get("user_id") == str(user.id):
        purchase = complete_purchase(db, checkout, user.id)
        return {"success": True, "level": purchase.level}

    return {"success": False}


def handle_webhook(db: Session, gateway: PaymentGateway, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """Apply a Stripe event; only paid checkout completions change state."""
    event = gateway.parse_webhook(payload, signature)
    checkout: Optional[CheckoutSession] = event["checkout"]

    if checkout is None or not checkout.is_paid:
        return {"received": True, "handled": False}

    user_id = checkout.metadata.get("user_id")
    if not user_id or not user_id.isdigit() or "level" not in checkout.metadata:
        logger.error(f"Checkout {checkout.id} has no usable metadata")
        return {"received": True, "handled": False}

    complete_purchase(db, checkout, int(user_id))
    return {"received": True, "handled": True}


def list_user_purchases(db: Session, user_id: int, completed_only: bool = True):
    query = db.query(UserLevelPurchase).filter(UserLevelPurchase.user_id == user_id)
    if completed_only:
        query = query.filter(UserLevelPurchase.status == PurchaseStatus.COMPLETED.value)
    return query.order_by(UserLevelPurchase.level).all()
