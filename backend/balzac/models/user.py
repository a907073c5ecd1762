"""
User model for Balzac.

Defines the User table with authentication fields, the school/class/city
profile used for planning objectives, and relationships to test history.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, Integer, String, DateTime, Index
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from balzac.core.database import Base


class User(Base):
    """
    User model for authentication and learner profile.
    """
    __tablename__ = "users"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Authentication fields
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile fields
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    school: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    class_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Status fields
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    force_password_change: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Password reset tracking
    password_reset_token: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    password_reset_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    administrator = relationship(
        "Administrator", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    test_sessions = relationship("TestSession", back_populates="user", cascade="all, delete-orphan")
    failed_questions = relationship("FailedQuestion", back_populates="user", cascade="all, delete-orphan")
    session_progress = relationship("SessionProgress", back_populates="user", cascade="all, delete-orphan")
    certifications = relationship("UserCertification", back_populates="user", cascade="all, delete-orphan")
    purchases = relationship("UserLevelPurchase", back_populates="user", cascade="all, delete-orphan")
    admin_logs = relationship("AdminLog", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_user_email_active", "email", "is_active"),
        Index("idx_user_scope", "school", "class_name", "city"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"

    @property
    def display_name(self) -> str:
        """Full name when known, otherwise the email address."""
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.email

    @property
    def is_admin(self) -> bool:
        return self.administrator is not None

    @property
    def is_super_admin(self) -> bool:
        return self.administrator is not None and self.administrator.is_super_admin

    def to_dict(self, include_sensitive: bool = False) -> dict:
        """Convert user to dictionary representation."""
        data = {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "school": self.school,
            "class_name": self.class_name,
            "city": self.city,
            "is_active": self.is_active,
            "is_verified": self.is_verified,
            "is_admin": self.is_admin,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

        if include_sensitive:
            data.update({
                "force_password_change": self.force_password_change,
                "is_super_admin": self.is_super_admin,
                "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
                "email_verified_at": self.email_verified_at.isoformat() if self.email_verified_at else None,
            })

        return data
