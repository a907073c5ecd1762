"""
Unit tests for planning objectives.
"""
from datetime import timedelta

import pytest

from balzac.core.database import utcnow
from balzac.core.exceptions import NotFoundError, ValidationFailed
from balzac.models.admin import AdminLog
from balzac.models.planning import ObjectiveType, PlanningObjective
from balzac.models.sessions import SessionProgress
from balzac.services import planning
from balzac.services.certifications import issue_certification


def objective_for(school=None, class_name=None, city=None, **fields):
    now = utcnow()
    fields.setdefault("objective_type", ObjectiveType.CERTIFICATION.value)
    fields.setdefault("target_certification_level", 1)
    fields.setdefault("created_at", now - timedelta(days=10))
    fields.setdefault("deadline", now + timedelta(days=10))
    fields.setdefault("is_active", True)
    return PlanningObjective(school=school, class_name=class_name, city=city, **fields)


@pytest.fixture
def schooled_learner(make_user):
    return make_user(school="Lycée Balzac", class_name="2nde B", city="Tours")


@pytest.mark.unit
class TestAppliesTo:
    def test_matching_scope(self, schooled_learner):
        assert planning.applies_to(objective_for(school="Lycée Balzac"), schooled_learner)
        assert planning.applies_to(objective_for(school="Lycée Balzac", city="Tours"), schooled_learner)

    def test_null_scope_matches_anyone_with_a_scope(self, schooled_learner):
        assert planning.applies_to(objective_for(), schooled_learner)

    def test_mismatch(self, schooled_learner):
        assert not planning.applies_to(objective_for(city="Paris"), schooled_learner)

    def test_learner_without_scope_matches_nothing(self, learner):
        assert not planning.applies_to(objective_for(), learner)


@pytest.mark.unit
class TestStanding:
    def test_expected_progress_is_elapsed_share(self):
        objective = objective_for()

        assert planning.expected_progress(objective) == pytest.approx(50.0, abs=0.1)

    def test_expected_progress_is_clamped(self):
        now = utcnow()
        late = objective_for(created_at=now - timedelta(days=20), deadline=now - timedelta(days=1))
        empty = objective_for(created_at=now, deadline=now)

        assert planning.expected_progress(late, now) == 100.0
        assert planning.expected_progress(empty, now) == 100.0

    @pytest.mark.parametrize("user_value, expected, result", [
        (80, 50, "ahead"),
        (55, 50, "on-track"),
        (40, 50, "on-track"),
        (20, 50, "behind"),
    ])
    def test_standing(self, user_value, expected, result):
        assert planning.standing(user_value, expected) == result


@pytest.mark.unit
class TestUserProgress:
    def test_certification_target_reached(self, db_session, learner):
        issue_certification(db_session, learner.id, 2, score=90)
        db_session.commit()

        objective = objective_for(target_certification_level=1)

        assert planning.user_progress(db_session, learner.id, objective) == 100.0

    def test_certification_target_in_progress(self, db_session, learner):
        db_session.add(SessionProgress(
            user_id=learner.id, level=1, completed_sessions=2, total_sessions_for_level=5
        ))
        db_session.commit()

        objective = objective_for(target_certification_level=1)

        assert planning.user_progress(db_session, learner.id, objective) == 40.0

    def test_progression_target(self, db_session, learner):
        db_session.add_all([
            SessionProgress(user_id=learner.id, level=1, completed_sessions=5, total_sessions_for_level=5),
            SessionProgress(user_id=learner.id, level=2, completed_sessions=0, total_sessions_for_level=5),
        ])
        db_session.commit()

        objective = objective_for(
            objective_type=ObjectiveType.PROGRESSION.value,
            target_certification_level=None,
            target_progression_percentage=50,
        )

        assert planning.user_progress(db_session, learner.id, objective) == 100.0


@pytest.mark.unit
class TestObjectiveStatus:
    def test_without_objective(self, db_session, schooled_learner):
        status = planning.objective_status(db_session, schooled_learner)

        assert status["has_objective"] is False
        assert status["objective"] is None

    def test_behind_schedule(self, db_session, schooled_learner):
        db_session.add(objective_for(school="Lycée Balzac"))
        db_session.commit()

        status = planning.objective_status(db_session, schooled_learner)

        assert status["has_objective"]
        assert status["status"] == "behind"
        assert status["user_progress"] == 0
        assert status["days_remaining"] in (9, 10)

    def test_past_and_inactive_objectives_are_ignored(self, db_session, schooled_learner):
        now = utcnow()
        db_session.add_all([
            objective_for(deadline=now - timedelta(days=1), created_at=now - timedelta(days=5)),
            objective_for(is_active=False),
        ])
        db_session.commit()

        assert planning.find_applicable_objective(db_session, schooled_learner) is None


@pytest.mark.unit
class TestObjectiveCrud:
    def test_create(self, db_session, super_admin):
        objective = planning.create_objective(db_session, super_admin, {
            "school": "  Lycée Balzac ",
            "class_name": "",
            "objective_type": "certification",
            "target_certification_level": 2,
            "target_progression_percentage": 80,
            "deadline": utcnow() + timedelta(days=30),
        })

        assert objective.school == "Lycée Balzac"
        assert objective.class_name is None
        assert objective.target_progression_percentage is None
        assert objective.created_by == super_admin.id
        assert db_session.query(AdminLog).filter_by(entity_type="planning_objective").count() == 1

    def test_deadline_must_be_in_the_future(self, db_session, super_admin):
        with pytest.raises(ValidationFailed):
            planning.create_objective(db_session, super_admin, {
                "objective_type": "certification",
                "target_certification_level": 1,
                "deadline": utcnow() - timedelta(days=1),
            })

    @pytest.mark.parametrize("data", [
        {"objective_type": "certification", "target_certification_level": 0},
        {"objective_type": "certification", "target_certification_level": 11},
        {"objective_type": "progression", "target_progression_percentage": 0},
        {"objective_type": "progression", "target_progression_percentage": 101},
        {"objective_type": "other"},
    ])
    def test_invalid_targets(self, db_session, super_admin, data):
        with pytest.raises(ValidationFailed):
            planning.create_objective(db_session, super_admin, {**data, "deadline": utcnow() + timedelta(days=1)})

    def test_update_and_delete(self, db_session, super_admin):
        objective = planning.create_objective(db_session, super_admin, {
            "objective_type": "progression",
            "target_progression_percentage": 50,
            "deadline": utcnow() + timedelta(days=30),
        })

        updated = planning.update_objective(db_session, super_admin, objective.id, {
            "target_progression_percentage": 75, "city": "Tours"
        })
        assert updated.target_progression_percentage == 75
        assert updated.city == "Tours"

        planning.delete_objective(db_session, super_admin, objective.id)
        with pytest.raises(NotFoundError):
            planning.get_objective(db_session, objective.id)
