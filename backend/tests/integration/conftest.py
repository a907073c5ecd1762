"""
Integration test fixtures. Overrides get_db, the payment gateway and the
email sender for API tests.
"""
import pytest


@pytest.fixture
def override_get_db(session_factory, db_session):
    """Session factory bound to the test's seeded in-memory database."""

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    return _get_db


@pytest.fixture
def api_client(override_get_db, gateway, email_sender):
    """FastAPI TestClient with in-memory DB, fake Stripe and recorded emails."""
    from fastapi.testclient import TestClient
    from balzac.core.database import get_db
    from balzac.main import app
    from balzac.routers.certifications import certification_limiter
    from balzac.services.email import get_email_sender
    from balzac.services.payments import get_payment_gateway, payment_verify_limiter

    certification_limiter.reset()
    payment_verify_limiter.reset()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
