"""
Core module for the Balzac backend.

This module contains core functionality including:
- Configuration management
- Database connections
- Security utilities (JWT, password hashing)
- Rate limiting and the configuration event channel
"""

from .config import settings
from .database import get_db, engine, SessionLocal
from .events import events
from .security import (
    create_access_token,
    verify_password,
    get_password_hash,
    verify_token
)

__all__ = [
    "settings",
    "get_db",
    "engine",
    "SessionLocal",
    "events",
    "create_access_token",
    "verify_password",
    "get_password_hash",
    "verify_token"
]
