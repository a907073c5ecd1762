"""
Database models for Balzac.

This module contains all SQLAlchemy models for the application:
- User and administration models
- Content models (levels, certificate templates, questions)
- Test session and progress models
- Certification, purchase and planning models
"""

from balzac.core.database import Base

# Import all models to ensure they're registered with SQLAlchemy
from .user import User
from .admin import Administrator, AdminPrivilege, AdminLog, SiteConfiguration, Capability, AdminAction
from .content import DifficultyLevel, CertificateTemplate, Question, QuestionType, DEFAULT_LEVEL_NAMES
from .sessions import (
    TestSession, TestAnswer, FailedQuestion, SessionProgress, SessionType, SessionStatus
)
from .certification import UserCertification
from .purchase import UserLevelPurchase, PromoCode, PurchaseStatus, PaymentMethod
from .planning import PlanningObjective, ObjectiveType

# Export all models
__all__ = [
    "Base",
    "User",
    "Administrator",
    "AdminPrivilege",
    "AdminLog",
    "SiteConfiguration",
    "Capability",
    "AdminAction",
    "DifficultyLevel",
    "CertificateTemplate",
    "Question",
    "QuestionType",
    "DEFAULT_LEVEL_NAMES",
    "TestSession",
    "TestAnswer",
    "FailedQuestion",
    "SessionProgress",
    "SessionType",
    "SessionStatus",
    "UserCertification",
    "UserLevelPurchase",
    "PromoCode",
    "PurchaseStatus",
    "PaymentMethod",
    "PlanningObjective",
    "ObjectiveType",
]
