"""
Unit tests for certification issuance, verification and Open Badges.
"""
from datetime import timedelta

import pytest

from balzac.core.database import utcnow
from balzac.core.exceptions import NotFoundError
from balzac.models.sessions import SessionStatus, SessionType
from balzac.models import sessions as session_models
from balzac.services import certifications as certification_service


def add_completed_session(db, user_id, level, score, validated=True, session_type=SessionType.REGULAR):
    db.add(session_models.TestSession(
        user_id=user_id,
        level=level,
        session_number=1,
        session_type=session_type.value,
        status=SessionStatus.COMPLETED.value,
        score=score,
        is_session_validated=validated,
    ))
    db.commit()


@pytest.mark.unit
class TestCredentialIds:
    def test_generated_ids_follow_the_public_format(self):
        credential_id = certification_service.generate_credential_id(2026)

        assert credential_id.startswith("CERT-2026-")
        assert certification_service.is_valid_credential_id(credential_id)

    @pytest.mark.parametrize("credential_id", [
        "CERT-2026-abcd1234",
        "CERT-26-ABCD1234",
        "CERT-2026-ABCD123",
        "CERT-2026-ABCD12345",
        "cert-2026-ABCD1234",
        "CERT-2026-ABCD1234' OR 1=1",
        "CERT-٢٠٢٦-ABCD1234",
        "CERT-2026-ABCD1234\n",
    ])
    def test_malformed_ids(self, credential_id):
        assert not certification_service.is_valid_credential_id(credential_id)


@pytest.mark.unit
class TestIssueCertification:
    def test_one_certification_per_level(self, db_session, learner):
        first = certification_service.issue_certification(db_session, learner.id, 1, score=88)
        second = certification_service.issue_certification(db_session, learner.id, 1, score=95)
        db_session.commit()

        assert first.id == second.id
        assert second.score == 88

    def test_score_is_the_average_of_validated_regular_sessions(self, db_session, learner):
        add_completed_session(db_session, learner.id, 1, 80)
        add_completed_session(db_session, learner.id, 1, 91)
        add_completed_session(db_session, learner.id, 1, 40, validated=False)
        add_completed_session(db_session, learner.id, 1, 100, session_type=SessionType.REMEDIAL)

        assert certification_service.level_score(db_session, learner.id, 1) == 86

    def test_validity_period(self, db_session, learner, monkeypatch):
        monkeypatch.setattr(certification_service.settings, "CERTIFICATION_VALIDITY_DAYS", 365)

        certification = certification_service.issue_certification(db_session, learner.id, 1, score=90)

        assert certification.expiration_date > utcnow() + timedelta(days=364)


@pytest.mark.unit
class TestVerifyCertification:
    def test_malformed_id_is_rejected_before_lookup(self, db_session):
        result = certification_service.verify_certification(db_session, "not-an-id")

        assert result == {"valid": False, "error": "Format d'identifiant invalide"}

    def test_unknown_id(self, db_session):
        result = certification_service.verify_certification(db_session, "CERT-2026-ZZZZZZZZ")

        assert result == {"valid": False, "message": "Certification non trouvée"}

    def test_known_id_returns_public_fields_only(self, db_session, learner):
        certification = certification_service.issue_certification(db_session, learner.id, 2, score=90)
        db_session.commit()

        result = certification_service.verify_certification(db_session, certification.credential_id)

        assert result["valid"]
        assert result["status"] == "active"
        assert result["level_number"] == 2
        assert result["level_name"] == "intermédiaire"
        assert result["expiration_date"] is None
        assert learner.email not in str(result)
        assert "score" not in result

    def test_expired_certification(self, db_session, learner):
        certification = certification_service.issue_certification(db_session, learner.id, 1, score=90)
        certification.expiration_date = utcnow() - timedelta(days=1)
        db_session.commit()

        result = certification_service.verify_certification(db_session, certification.credential_id)

        assert not result["valid"]
        assert result["status"] == "expired"


@pytest.mark.unit
class TestOpenBadge:
    def test_assertion_structure(self, db_session, learner):
        certification = certification_service.issue_certification(db_session, learner.id, 1, score=90)
        db_session.commit()

        assertion = certification_service.build_open_badge(db_session, certification, "https://balzac.test/")

        assert assertion["@context"] == "https://w3id.org/openbadges/v2"
        assert assertion["type"] == "Assertion"
        assert assertion["recipient"] == {"type": "email", "hashed": False, "identity": learner.email}
        assert assertion["verification"]["url"] == f"https://balzac.test/verify/{certification.credential_id}"
        assert assertion["badge"]["issuer"]["name"] == certification.issuing_organization
        assert "90%" in assertion["badge"]["description"]
        assert "expires" not in assertion

    def test_export_keeps_a_copy(self, db_session, learner):
        certification = certification_service.issue_certification(db_session, learner.id, 1, score=90)
        db_session.commit()

        assertion = certification_service.export_open_badge(db_session, learner, certification.credential_id)

        db_session.refresh(certification)
        assert certification.json_ld_badge == assertion

    def test_export_of_someone_elses_certification(self, db_session, learner, make_user):
        certification = certification_service.issue_certification(db_session, learner.id, 1, score=90)
        db_session.commit()

        with pytest.raises(NotFoundError):
            certification_service.export_open_badge(db_session, make_user(), certification.credential_id)
