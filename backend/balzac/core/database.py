"""
Database configuration and session management for the Balzac backend.

Engine, session factory and declarative base shared by every model.
"""

from datetime import datetime, timezone
from typing import Generator, Optional
from sqlalchemy import create_engine, MetaData, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
import logging

from .config import settings


logger = logging.getLogger(__name__)


# Stable constraint names for migrations
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)


if settings.TESTING:
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        echo=settings.DEBUG,
    )


# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# Base class for models
Base = declarative_base(metadata=metadata)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session, closed once the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(db: Session) -> None:
    """
    Seed reference data that must exist before the first request.

    Inserts whichever of these rows are missing: the first super
    administrator, the default difficulty levels, the site configuration
    keys and one privilege flag per capability.
    """
    from balzac.models.user import User
    from balzac.models.admin import Administrator, AdminPrivilege, Capability, SiteConfiguration
    from balzac.models.content import DifficultyLevel, DEFAULT_LEVEL_NAMES
    from balzac.core.security import get_password_hash

    admin_user = db.query(User).filter(
        User.email == settings.FIRST_ADMIN_EMAIL.lower()
    ).first()

    if not admin_user:
        admin_user = User(
            email=settings.FIRST_ADMIN_EMAIL.lower(),
            hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
            is_active=True,
            is_verified=True
        )
        db.add(admin_user)
        db.flush()
        db.add(Administrator(user_id=admin_user.id, is_super_admin=True))
        logger.info(f"Super admin created: {settings.FIRST_ADMIN_EMAIL}")

    for level_number, name in DEFAULT_LEVEL_NAMES.items():
        exists = db.query(DifficultyLevel).filter(
            DifficultyLevel.level_number == level_number
        ).first()
        if not exists:
            db.add(DifficultyLevel(level_number=level_number, name=name))

    for default in SiteConfiguration.get_default_settings():
        exists = db.query(SiteConfiguration).filter(
            SiteConfiguration.key == default["key"]
        ).first()
        if not exists:
            db.add(SiteConfiguration(**default))

    for capability in Capability:
        exists = db.query(AdminPrivilege).filter(
            AdminPrivilege.capability == capability.value
        ).first()
        if not exists:
            db.add(AdminPrivilege(
                capability=capability.value,
                label=capability.label,
                is_enabled=False
            ))

    db.commit()


def check_database_connection() -> bool:
    """Run a trivial query to report whether the database answers."""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        return True
    except Exception as e:
        logger.error(f"Database unreachable: {e}")
        return False


class DatabaseManager:
    """Schema helpers run at application start."""

    @staticmethod
    def create_all_tables():
        import balzac.models  # noqa: F401  register models
        Base.metadata.create_all(bind=engine)
        logger.info("Schema ready")
