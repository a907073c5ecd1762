"""
Planning objective model for Balzac.
"""

from datetime import datetime
from typing import Optional
from enum import Enum
from sqlalchemy import Boolean, Integer, String, DateTime, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from balzac.core.database import Base, utcnow


class ObjectiveType(str, Enum):
    CERTIFICATION = "certification"
    PROGRESSION = "progression"


class PlanningObjective(Base):
    """
    A deadline set for a school, class or city.

    Null scope fields act as wildcards. A certification objective targets a
    level number, a progression objective a percentage of all sessions.
    """
    __tablename__ = "planning_objectives"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Scope
    school: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    class_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Target
    objective_type: Mapped[str] = mapped_column(String(20), nullable=False)
    target_certification_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_progression_percentage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "target_progression_percentage IS NULL OR "
            "(target_progression_percentage > 0 AND target_progression_percentage <= 100)",
            name="check_target_progression_range"
        ),
        Index("idx_planning_objective_active_deadline", "is_active", "deadline"),
    )

    def __repr__(self) -> str:
        return f"<PlanningObjective(id={self.id}, type='{self.objective_type}', deadline={self.deadline})>"
