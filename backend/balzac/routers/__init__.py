"""
API routers for Balzac.

This module contains all API endpoint routers:
- auth: Authentication endpoints (register, login, password reset)
- questions: Session questions and answer validation
- sessions: Test session lifecycle and progress
- payments: Checkout, webhook, promo codes, pricing
- certifications: Verification and Open Badge export
- emails: Authentication email hook
- planning: Learner planning objectives
- config: Public site configuration
- admin: Administrative endpoints
"""

from fastapi import APIRouter

# Import individual routers
from .auth import router as auth_router
from .questions import router as questions_router
from .sessions import router as sessions_router
from .payments import router as payments_router
from .certifications import router as certifications_router
from .emails import router as emails_router
from .planning import router as planning_router
from .config import router as config_router

# Import admin sub-routers
from .admin import admin_router, users_router as admin_users_router

# Create main API router
api_router = APIRouter()

# Include all routers with their prefixes
api_router.include_router(
    auth_router,
    prefix="/auth",
    tags=["authentication"]
)

api_router.include_router(
    questions_router,
    tags=["questions"]
)

api_router.include_router(
    sessions_router,
    prefix="/sessions",
    tags=["sessions"]
)

api_router.include_router(
    payments_router,
    tags=["payments"]
)

api_router.include_router(
    certifications_router,
    tags=["certifications"]
)

api_router.include_router(
    emails_router,
    tags=["emails"]
)

api_router.include_router(
    planning_router,
    prefix="/planning",
    tags=["planning"]
)

api_router.include_router(
    config_router,
    tags=["config"]
)

api_router.include_router(
    admin_users_router,
    tags=["admin-users"]
)

api_router.include_router(
    admin_router,
    prefix="/admin",
    tags=["admin"]
)

# Export all routers
__all__ = [
    "api_router",
    "auth_router",
    "questions_router",
    "sessions_router",
    "payments_router",
    "certifications_router",
    "emails_router",
    "planning_router",
    "config_router",
    "admin_router"
]
