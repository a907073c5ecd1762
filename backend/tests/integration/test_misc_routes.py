"""
Integration tests for the health check, the public configuration, the
authentication email hook and the learner planning views.
"""
from datetime import timedelta

import pytest

from balzac.core.database import utcnow
from balzac.models.planning import ObjectiveType, PlanningObjective

API = "/api/v1"


@pytest.mark.integration
class TestHealth:
    def test_health(self, api_client):
        response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "connected"


@pytest.mark.integration
class TestPublicConfig:
    def test_seeded_values(self, api_client):
        response = api_client.get(f"{API}/config")

        assert response.status_code == 200
        config = response.json()
        assert config["questions_percentage_per_level"] == 20
        assert config["anti_cheat_enabled"] is True
        assert config["anti_cheat_max_warnings"] == 3


@pytest.mark.integration
class TestAuthEmailHook:
    def test_sends_the_message(self, api_client, email_sender):
        response = api_client.post(f"{API}/send-auth-email", json={
            "user": {"email": "jeanne@example.com"},
            "email_data": {
                "email_action_type": "recovery",
                "token": "123456",
                "token_hash": "h4sh",
                "redirect_to": "https://app.balzac.test",
            },
        })

        assert response.status_code == 200
        assert response.json() == {}
        assert email_sender.sent[0].to == ["jeanne@example.com"]
        assert email_sender.sent[0].subject == "Réinitialisez votre mot de passe"

    @pytest.mark.parametrize("payload", [
        {},
        {"user": {}},
        {"user": {"email": "jeanne@example.com"}, "email_data": "oops"},
        ["not", "an", "object"],
    ])
    def test_malformed_payload_still_answers_ok(self, api_client, email_sender, payload):
        response = api_client.post(f"{API}/send-auth-email", json=payload)

        assert response.status_code == 200
        assert response.json() == {}
        assert email_sender.sent == []

    def test_invalid_json(self, api_client):
        response = api_client.post(
            f"{API}/send-auth-email", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 200
        assert response.json() == {}

    def test_delivery_failure_still_answers_ok(self, api_client, email_sender):
        email_sender.fail = True

        response = api_client.post(f"{API}/send-auth-email", json={
            "user": {"email": "jeanne@example.com"},
            "email_data": {"email_action_type": "signup"},
        })

        assert response.status_code == 200
        assert response.json() == {}


@pytest.mark.integration
class TestLearnerPlanning:
    @pytest.fixture
    def schooled_learner(self, make_user):
        return make_user(school="Lycée Balzac", class_name="2nde B", city="Tours")

    @pytest.fixture
    def objective(self, db_session):
        now = utcnow()
        objective = PlanningObjective(
            school="Lycée Balzac",
            objective_type=ObjectiveType.CERTIFICATION.value,
            target_certification_level=1,
            deadline=now + timedelta(days=10),
            created_at=now - timedelta(days=10),
            is_active=True,
        )
        db_session.add(objective)
        db_session.commit()
        db_session.refresh(objective)
        return objective

    def test_objectives_in_scope(self, api_client, schooled_learner, auth_headers, objective):
        response = api_client.get(f"{API}/planning/objectives", headers=auth_headers(schooled_learner))

        assert response.status_code == 200
        assert [o["id"] for o in response.json()] == [objective.id]

    def test_objectives_out_of_scope(self, api_client, make_user, auth_headers, objective):
        outsider = make_user(school="Collège Hugo")

        assert api_client.get(f"{API}/planning/objectives", headers=auth_headers(outsider)).json() == []

    def test_status(self, api_client, schooled_learner, auth_headers, objective):
        response = api_client.get(f"{API}/planning/status", headers=auth_headers(schooled_learner))

        body = response.json()
        assert body["has_objective"] is True
        assert body["status"] == "behind"
        assert body["objective"]["id"] == objective.id

    def test_status_without_objective(self, api_client, learner, auth_headers):
        response = api_client.get(f"{API}/planning/status", headers=auth_headers(learner))

        assert response.json()["has_objective"] is False
