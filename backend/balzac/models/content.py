"""
Content models for Balzac.

Defines DifficultyLevel, CertificateTemplate and Question: the level
ladder, the per-level pricing/certificate configuration and the question bank.
"""

from datetime import datetime
from typing import Optional, List
from enum import Enum
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text, Float,
    ForeignKey, Index, CheckConstraint, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from balzac.core.database import Base


# Built-in level names, used when no DifficultyLevel row exists
DEFAULT_LEVEL_NAMES = {
    1: "élémentaire",
    2: "intermédiaire",
    3: "avancé",
}


class QuestionType(str, Enum):
    """Question formats of the bank."""
    MULTIPLE_CHOICE = "choix_multiple"
    FREE_TEXT = "texte_libre"
    TRUE_FALSE = "vrai_faux"


class DifficultyLevel(Base):
    """
    A named tier of the certification ladder.
    """
    __tablename__ = "difficulty_levels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    level_number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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

    certificate_templates = relationship(
        "CertificateTemplate",
        back_populates="difficulty_level",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("level_number >= 1", name="check_level_number_positive"),
    )

    def __repr__(self) -> str:
        return f"<DifficultyLevel(level_number={self.level_number}, name='{self.name}')>"

    @property
    def active_template(self) -> Optional["CertificateTemplate"]:
        for template in self.certificate_templates:
            if template.is_active:
                return template
        return None


class CertificateTemplate(Base):
    """
    Certificate and pricing configuration of a level.

    ``price_euros`` of zero (or null) makes the level free; ``free_sessions``
    is the number of sessions a learner may take before buying it.
    """
    __tablename__ = "certificate_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    difficulty_level_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("difficulty_levels.id", ondelete="CASCADE"),
        nullable=False
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    certificate_title: Mapped[str] = mapped_column(String(200), nullable=False)
    certificate_subtitle: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    certificate_text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    min_score_required: Mapped[int] = mapped_column(Integer, default=75, nullable=False)

    # Pricing
    price_euros: Mapped[Optional[float]] = mapped_column(Float, default=0.0, nullable=True)
    free_sessions: Mapped[Optional[int]] = mapped_column(Integer, default=0, nullable=True)

    # Badge rendering
    badge_color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    badge_icon: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    custom_badge_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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

    difficulty_level = relationship("DifficultyLevel", back_populates="certificate_templates")

    __table_args__ = (
        CheckConstraint("price_euros IS NULL OR price_euros >= 0", name="check_price_positive"),
        CheckConstraint("free_sessions IS NULL OR free_sessions >= 0", name="check_free_sessions_positive"),
        Index("idx_certificate_template_level_active", "difficulty_level_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<CertificateTemplate(id={self.id}, name='{self.name}', price={self.price_euros})>"

    @property
    def level_number(self) -> Optional[int]:
        return self.difficulty_level.level_number if self.difficulty_level else None

    @property
    def is_free(self) -> bool:
        return not self.price_euros or self.price_euros <= 0


class Question(Base):
    """
    A question of the bank.

    ``answer`` stays server-side: no public schema exposes it.
    """
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(30), default=QuestionType.FREE_TEXT.value, nullable=False)
    level: Mapped[str] = mapped_column(String(100), nullable=False, index=True)  # level name, e.g. "élémentaire"
    rule: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    choices: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, level='{self.level}', type='{self.type}')>"
