"""
Purchase models for Balzac.

Defines UserLevelPurchase and PromoCode for level access bought through
the payment gateway or granted by a promotional code.
"""

from datetime import datetime
from typing import Optional
from enum import Enum
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Float,
    ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from balzac.core.database import Base, utcnow, ensure_utc


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class PaymentMethod(str, Enum):
    STRIPE = "stripe"
    PROMO_CODE = "promo_code"


class UserLevelPurchase(Base):
    """
    Access to a paid level.

    A ``pending`` row is written once the checkout session exists; it
    becomes ``completed`` only after the gateway reports the payment as paid
    for the same user.
    """
    __tablename__ = "user_level_purchases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    price_paid: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=PurchaseStatus.PENDING.value, nullable=False
    )
    payment_method: Mapped[str] = mapped_column(
        String(20), default=PaymentMethod.STRIPE.value, nullable=False
    )
    # Checkout session id for gateway payments
    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True, index=True
    )
    promo_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    purchased_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="purchases")

    __table_args__ = (
        CheckConstraint("price_paid >= 0", name="check_price_paid_positive"),
        Index("idx_purchase_user_level_status", "user_id", "level", "status"),
        Index("idx_purchase_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserLevelPurchase(id={self.id}, user_id={self.user_id}, level={self.level}, "
            f"status='{self.status}')>"
        )

    @property
    def is_completed(self) -> bool:
        return self.status == PurchaseStatus.COMPLETED.value

    def mark_completed(self) -> None:
        self.status = PurchaseStatus.COMPLETED.value
        self.purchased_at = utcnow()


class PromoCode(Base):
    """
    Single-use discount on one level.
    """
    __tablename__ = "promo_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_percentage: Mapped[int] = mapped_column(Integer, nullable=False)

    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "discount_percentage > 0 AND discount_percentage <= 100",
            name="check_discount_range"
        ),
    )

    def __repr__(self) -> str:
        return f"<PromoCode(code='{self.code}', level={self.level}, discount={self.discount_percentage})>"

    @property
    def is_free_access(self) -> bool:
        return self.discount_percentage >= 100

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expires_at = ensure_utc(self.expires_at)
        return expires_at is not None and expires_at < (now or utcnow())

    def mark_used(self, user_id: int) -> None:
        self.is_used = True
        self.used_by = user_id
        self.used_at = utcnow()
