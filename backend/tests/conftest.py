"""
Pytest configuration and shared fixtures for the test suite.

Every test gets its own in-memory SQLite database seeded like a fresh
deployment (super administrator, default levels, site settings and
privilege flags).
"""
import os

os.environ["TESTING"] = "true"
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import balzac.models  # noqa: F401  register models
from balzac.core.config import settings
from balzac.core.database import Base, init_db, utcnow
from balzac.core.events import events, LEVEL_PRICING_CHANGED
from balzac.core.exceptions import UpstreamError
from balzac.core.security import create_access_token, get_password_hash
from balzac.models.admin import Administrator
from balzac.models.content import CertificateTemplate, DifficultyLevel, Question
from balzac.models.purchase import PromoCode
from balzac.models.user import User
from balzac.services.access import invalidate_level_pricing
from balzac.services.email import EmailSender
from balzac.services.payments import CheckoutSession, PaymentGateway
from balzac.services.privileges import invalidate_capabilities
from balzac.services.site_settings import invalidate_site_settings

TEST_PASSWORD = "password123"
# Hashed once, bcrypt is slow
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)
WEBHOOK_SECRET = "whsec_test_secret"


class FakeGateway(PaymentGateway):
    """
    Checkout sessions kept in memory. Webhook parsing is inherited, so
    signatures are checked by the Stripe SDK.
    """

    def __init__(self):
        self.webhook_secret = WEBHOOK_SECRET
        self.sessions = {}
        self.created = []
        self.fail_create = False

    def find_customer_id(self, email):
        return None

    def create_checkout_session(self, **kwargs):
        if self.fail_create:
            raise UpstreamError("Stripe indisponible")
        session_id = f"cs_test_{len(self.sessions) + 1:04d}"
        metadata = {
            "user_id": str(kwargs["user_id"]),
            "level": str(kwargs["level"]),
            "price_euros": str(kwargs["price_euros"]),
        }
        if kwargs.get("promo_code"):
            metadata["promo_code"] = kwargs["promo_code"]
        checkout = CheckoutSession(
            id=session_id,
            url=f"https://checkout.stripe.test/{session_id}",
            payment_status="unpaid",
            metadata=metadata,
        )
        self.sessions[session_id] = checkout
        self.created.append(kwargs)
        return checkout

    def retrieve_checkout_session(self, session_id):
        if session_id not in self.sessions:
            raise UpstreamError("No such checkout.session")
        return self.sessions[session_id]

    def pay(self, session_id):
        self.sessions[session_id].payment_status = "paid"
        return self.sessions[session_id]


class RecordingSender(EmailSender):
    """Keeps sent messages instead of calling Resend."""

    def __init__(self):
        super().__init__("re_test", "https://api.resend.test/emails", "Test <noreply@example.com>")
        self.sent = []
        self.fail = False

    def send(self, message):
        if self.fail:
            raise UpstreamError("Resend indisponible")
        self.sent.append(message)
        return {"id": f"email_{len(self.sent)}"}


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def email_sender():
    return RecordingSender()


# ----- In-memory DB -----
@pytest.fixture
def in_memory_engine():
    """One in-memory database shared by every connection of a test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


def reset_caches():
    invalidate_site_settings()
    invalidate_capabilities()
    invalidate_level_pricing()


@pytest.fixture
def session_factory(in_memory_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=in_memory_engine)


@pytest.fixture
def db_session(session_factory):
    """Seeded database session."""
    reset_caches()
    session = session_factory()
    init_db(session)
    yield session
    session.close()
    reset_caches()


# ----- Factories -----
@pytest.fixture
def make_user(db_session):
    """Create a learner; keyword arguments override profile fields."""
    counter = {"n": 0}

    def _make_user(email=None, is_admin=False, is_super_admin=False, **fields):
        counter["n"] += 1
        user = User(
            email=email or f"learner{counter['n']}@example.com",
            hashed_password=TEST_PASSWORD_HASH,
            is_active=fields.pop("is_active", True),
            is_verified=True,
            **fields
        )
        db_session.add(user)
        db_session.flush()
        if is_admin or is_super_admin:
            db_session.add(Administrator(user_id=user.id, is_super_admin=is_super_admin))
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def learner(make_user):
    return make_user(email="learner@example.com", first_name="Jeanne", last_name="Dupont")


@pytest.fixture
def admin_user(make_user):
    return make_user(email="admin@example.com", is_admin=True)


@pytest.fixture
def super_admin(db_session):
    """The super administrator seeded at start-up."""
    return db_session.query(User).filter(User.email == settings.FIRST_ADMIN_EMAIL.lower()).one()


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}

    return _auth_headers


@pytest.fixture
def add_questions(db_session):
    """Add ``count`` questions to a level; answers are ``answer-<index>``."""

    def _add_questions(level_name="élémentaire", count=10, prefix="Q"):
        questions = [
            Question(
                content=f"{prefix} {index}: conjuguez le verbe",
                level=level_name,
                rule=f"Règle {index}",
                answer=f"answer-{index}",
                explanation=f"Explication {index}",
            )
            for index in range(count)
        ]
        db_session.add_all(questions)
        db_session.commit()
        for question in questions:
            db_session.refresh(question)
        return questions

    return _add_questions


@pytest.fixture
def set_level_price(db_session):
    """Give a level an active template with a price and free sessions."""

    def _set_level_price(level_number, price_euros, free_sessions=0):
        level = db_session.query(DifficultyLevel).filter(
            DifficultyLevel.level_number == level_number
        ).one()
        template = level.active_template
        if template is None:
            template = CertificateTemplate(
                difficulty_level_id=level.id,
                name=f"Certification {level.name}",
                certificate_title=f"Certificat de niveau {level.name}",
                certificate_text="",
            )
            db_session.add(template)
        template.price_euros = price_euros
        template.free_sessions = free_sessions
        db_session.commit()
        db_session.refresh(template)
        events.publish(LEVEL_PRICING_CHANGED, {"level": level_number})
        return template

    return _set_level_price


@pytest.fixture
def make_promo_code(db_session):
    def _make_promo_code(code, level, discount_percentage, expires_in=None, is_used=False):
        promo = PromoCode(
            code=code,
            level=level,
            discount_percentage=discount_percentage,
            is_used=is_used,
            expires_at=utcnow() + expires_in if expires_in is not None else None,
        )
        db_session.add(promo)
        db_session.commit()
        db_session.refresh(promo)
        return promo

    return _make_promo_code


@pytest.fixture
def expired():
    """Offset for a promo code that expired an hour ago."""
    return timedelta(hours=-1)


@pytest.fixture
def user_password():
    """Plain-text password of every user made by ``make_user``."""
    return TEST_PASSWORD
