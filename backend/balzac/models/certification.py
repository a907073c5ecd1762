"""
Certification model for Balzac.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from sqlalchemy import Integer, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, JSON
from sqlalchemy.orm import relationship, Mapped, mapped_column

from balzac.core.database import Base, utcnow, ensure_utc


class UserCertification(Base):
    """
    Certification earned by validating a level.

    ``credential_id`` (``CERT-YYYY-XXXXXXXX``) is public and globally
    unique; anyone can look a certification up with it.
    """
    __tablename__ = "user_certifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)

    credential_id: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    issuing_organization: Mapped[str] = mapped_column(String(200), nullable=False)
    certified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    expiration_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Last exported Open Badge assertion
    json_ld_badge: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    user = relationship("User", back_populates="certifications")

    __table_args__ = (
        UniqueConstraint("user_id", "level", name="uq_user_certification_user_level"),
        CheckConstraint("score >= 0 AND score <= 100", name="check_certification_score_range"),
    )

    def __repr__(self) -> str:
        return f"<UserCertification(credential_id='{self.credential_id}', user_id={self.user_id}, level={self.level})>"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expiration = ensure_utc(self.expiration_date)
        if expiration is None:
            return False
        return expiration < (now or utcnow())

    def status(self, now: Optional[datetime] = None) -> str:
        return "expired" if self.is_expired(now) else "active"
