"""
Unit tests for administrator account management.
"""
import pytest

from balzac.core.exceptions import BalzacError, ConflictError, NotFoundError, ValidationFailed
from balzac.core.security import verify_password, verify_password_reset_token
from balzac.models.admin import AdminAction, AdminLog, Administrator
from balzac.models.user import User
from balzac.services import users as user_service


@pytest.mark.unit
class TestAddLearner:
    def test_without_password_forces_a_change(self, db_session, super_admin):
        result = user_service.add_learner(
            db_session, super_admin, " New.Learner@Example.com ", profile={"school": " Lycée Balzac "}
        )

        user = db_session.get(User, result["user_id"])
        assert result["email"] == "new.learner@example.com"
        assert user.force_password_change
        assert user.is_active
        assert user.school == "Lycée Balzac"

    def test_with_password(self, db_session, super_admin):
        result = user_service.add_learner(db_session, super_admin, "jeanne@example.com", "secret1")

        user = db_session.get(User, result["user_id"])
        assert not user.force_password_change
        assert verify_password("secret1", user.hashed_password)

    def test_duplicate_email(self, db_session, super_admin, learner):
        with pytest.raises(ConflictError):
            user_service.add_learner(db_session, super_admin, learner.email.upper())

    @pytest.mark.parametrize("email, password", [
        ("", None),
        ("not-an-email", None),
        ("jeanne@example.com", "abc"),
        ("jeanne@example.com", "x" * 101),
    ])
    def test_rejected_input(self, db_session, super_admin, email, password):
        with pytest.raises(ValidationFailed):
            user_service.add_learner(db_session, super_admin, email, password)

    def test_long_profile_fields_are_cut(self, db_session, super_admin):
        result = user_service.add_learner(
            db_session, super_admin, "jeanne@example.com", profile={"city": "T" * 300}
        )

        assert len(db_session.get(User, result["user_id"]).city) == 100


@pytest.mark.unit
class TestInviteUsers:
    def test_each_entry_is_reported(self, db_session, super_admin, learner):
        response = user_service.invite_users(db_session, super_admin, [
            {"email": "paul.martin@example.com", "first_name": "Paul", "last_name": "Martin"},
            {"email": learner.email},
            {"email": "broken"},
        ])

        assert response["summary"] == {"total": 3, "success": 1, "errors": 2}
        created, duplicate, malformed = response["results"]
        assert created["generated_password"] == "pau.mar"
        assert duplicate["error"] == "Un utilisateur avec cet email existe déjà dans le système"
        assert malformed["success"] is False

        user = db_session.get(User, created["user_id"])
        assert verify_password("pau.mar", user.hashed_password)
        assert user.force_password_change
        assert db_session.query(AdminLog).filter_by(action=AdminAction.BULK_OPERATION.value).count() == 1

    def test_payload_must_be_a_list(self, db_session, super_admin):
        with pytest.raises(ValidationFailed):
            user_service.invite_users(db_session, super_admin, {"email": "x@example.com"})


@pytest.mark.unit
class TestDeleteUser:
    def test_delete(self, db_session, super_admin, learner):
        learner_id = learner.id

        result = user_service.delete_user(db_session, super_admin, learner_id)

        assert result["success"]
        assert db_session.get(User, learner_id) is None

    def test_unknown_user_succeeds(self, db_session, super_admin):
        assert user_service.delete_user(db_session, super_admin, 98765)["success"]

    def test_cannot_delete_yourself(self, db_session, super_admin):
        with pytest.raises(ValidationFailed):
            user_service.delete_user(db_session, super_admin, super_admin.id)


@pytest.mark.unit
class TestAdminResetPassword:
    def test_sends_a_reset_link(self, db_session, super_admin, learner, email_sender):
        result = user_service.admin_reset_password(
            db_session, super_admin, email_sender, learner.email, origin="https://app.balzac.test"
        )

        assert result["message"] == f"Email de réinitialisation envoyé à {learner.email}"
        message = email_sender.sent[0]
        assert message.to == [learner.email]
        db_session.refresh(learner)
        assert f"https://app.balzac.test/set-password?token={learner.password_reset_token}" in message.html
        assert verify_password_reset_token(learner.password_reset_token) == learner.email

    def test_unknown_user(self, db_session, super_admin, email_sender):
        with pytest.raises(NotFoundError):
            user_service.admin_reset_password(db_session, super_admin, email_sender, "nobody@example.com")
        assert email_sender.sent == []

    def test_missing_email(self, db_session, super_admin, email_sender):
        with pytest.raises(ValidationFailed):
            user_service.admin_reset_password(db_session, super_admin, email_sender, "  ")


@pytest.mark.unit
class TestAdminInvitation:
    def test_new_user_gets_an_account_and_a_password(self, db_session, super_admin, email_sender):
        result = user_service.send_admin_invitation(
            db_session, super_admin, email_sender, "new.admin@example.com", temporary_password="Temp-1234"
        )

        assert result == {
            "success": True,
            "message": "Email d'invitation envoyé avec succès",
            "email_id": "email_1",
        }
        user = user_service.get_user_by_email(db_session, "new.admin@example.com")
        assert user.is_admin and not user.is_super_admin
        assert user.force_password_change
        assert verify_password("Temp-1234", user.hashed_password)
        assert "Temp-1234" in email_sender.sent[0].html
        assert email_sender.sent[0].subject == "Accès administrateur - Plateforme de certification"

    def test_existing_learner_is_promoted(self, db_session, super_admin, learner, email_sender):
        user_service.send_admin_invitation(
            db_session, super_admin, email_sender, learner.email, is_super_admin=True
        )

        db_session.refresh(learner)
        assert learner.is_super_admin
        assert email_sender.sent[0].subject == "Droits d'administration accordés"
        assert "Mot de passe temporaire" not in email_sender.sent[0].html

    def test_already_administrator(self, db_session, super_admin, admin_user, email_sender):
        with pytest.raises(BalzacError) as excinfo:
            user_service.send_admin_invitation(db_session, super_admin, email_sender, admin_user.email)

        assert excinfo.value.status_code == 422
        assert db_session.query(Administrator).filter_by(user_id=admin_user.id).count() == 1
