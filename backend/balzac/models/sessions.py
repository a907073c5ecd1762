"""
Test session models for Balzac.

Defines TestSession, TestAnswer, FailedQuestion and SessionProgress for
tracking a learner's way through the sessions of each level.
"""

from datetime import datetime
from typing import List, Optional
from enum import Enum
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text,
    ForeignKey, UniqueConstraint, Index, CheckConstraint, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from balzac.core.config import settings
from balzac.core.database import Base, utcnow


class SessionType(str, Enum):
    """Kind of test session."""
    REGULAR = "regular"
    REMEDIAL = "remedial"


class SessionStatus(str, Enum):
    """Lifecycle of a test session."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TestSession(Base):
    """
    One sitting of a batch of questions at a level.

    Rows are never physically deleted; ``deleted_at`` marks sessions that
    were abandoned or terminated.
    """
    __tablename__ = "test_sessions"
    __test__ = False  # not a pytest test class

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False)
    session_number: Mapped[int] = mapped_column(Integer, nullable=False)
    session_type: Mapped[str] = mapped_column(
        String(20), default=SessionType.REGULAR.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=SessionStatus.IN_PROGRESS.value, nullable=False
    )
    # Ids of the questions served when the session was opened, in order
    question_ids: Mapped[List[int]] = mapped_column(JSON, default=list, nullable=False)

    # Results
    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_questions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    questions_mastered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_session_validated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    required_score_percentage: Mapped[int] = mapped_column(Integer, default=75, nullable=False)
    anti_cheat_violations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", back_populates="test_sessions")
    answers = relationship("TestAnswer", back_populates="session", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("score IS NULL OR (score >= 0 AND score <= 100)", name="check_session_score_range"),
        CheckConstraint("session_number >= 1", name="check_session_number_positive"),
        Index("idx_test_session_user_level", "user_id", "level"),
        Index("idx_test_session_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<TestSession(id={self.id}, user_id={self.user_id}, level={self.level}, "
            f"number={self.session_number}, status='{self.status}')>"
        )

    @property
    def is_remedial(self) -> bool:
        return self.session_type == SessionType.REMEDIAL.value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = utcnow()


class TestAnswer(Base):
    """
    A submitted answer, graded server-side.
    """
    __tablename__ = "test_answers"
    __test__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("test_sessions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    user_answer: Mapped[str] = mapped_column(Text, default="", nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    answered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    session = relationship("TestSession", back_populates="answers")

    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_test_answer_session_question"),
    )

    def __repr__(self) -> str:
        return f"<TestAnswer(session_id={self.session_id}, question_id={self.question_id}, correct={self.is_correct})>"


class FailedQuestion(Base):
    """
    A question the learner got wrong at a level, pending remediation.
    """
    __tablename__ = "failed_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    is_remediated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    failed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    remediated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="failed_questions")

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", "level", name="uq_failed_question_user_question_level"),
        Index("idx_failed_question_pending", "user_id", "level", "is_remediated"),
    )

    def __repr__(self) -> str:
        return (
            f"<FailedQuestion(user_id={self.user_id}, level={self.level}, "
            f"question_id={self.question_id}, remediated={self.is_remediated})>"
        )


class SessionProgress(Base):
    """
    Materialized progress of a learner through one level.
    """
    __tablename__ = "session_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    current_session_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    completed_sessions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_sessions_for_level: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    questions_percentage: Mapped[int] = mapped_column(
        Integer, default=settings.DEFAULT_QUESTIONS_PERCENTAGE, nullable=False
    )
    is_level_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

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
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="session_progress")

    __table_args__ = (
        UniqueConstraint("user_id", "level", name="uq_session_progress_user_level"),
        CheckConstraint("completed_sessions >= 0", name="check_completed_sessions_positive"),
        CheckConstraint(
            "completed_sessions <= total_sessions_for_level",
            name="check_completed_within_total"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<SessionProgress(user_id={self.user_id}, level={self.level}, "
            f"{self.completed_sessions}/{self.total_sessions_for_level})>"
        )

    @property
    def progress_percentage(self) -> float:
        if not self.total_sessions_for_level:
            return 0.0
        return (self.completed_sessions / self.total_sessions_for_level) * 100

    @property
    def all_regular_completed(self) -> bool:
        return self.completed_sessions >= self.total_sessions_for_level
