"""
Planning objectives and a learner's standing against them.

An objective sets a deadline for a school, class or city. A learner is
compared to the share of the objective's time that has elapsed:
``ahead`` or ``behind`` when the gap exceeds ``STATUS_MARGIN`` points.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.database import ensure_utc, utcnow
from balzac.core.exceptions import NotFoundError, ValidationFailed
from balzac.models.admin import AdminAction, AdminLog
from balzac.models.certification import UserCertification
from balzac.models.planning import ObjectiveType, PlanningObjective
from balzac.models.sessions import SessionProgress
from balzac.models.user import User

logger = logging.getLogger(__name__)

STATUS_MARGIN = 10
SCOPE_FIELDS = ("school", "class_name", "city")


def active_objectives(db: Session, now: Optional[datetime] = None) -> List[PlanningObjective]:
    now = now or utcnow()
    return db.query(PlanningObjective).filter(
        PlanningObjective.is_active.is_(True),
        PlanningObjective.deadline >= now
    ).order_by(PlanningObjective.deadline, PlanningObjective.id).all()


def applies_to(objective: PlanningObjective, user: User) -> bool:
    """
    Null scope fields match anything; a user with no scope at all matches
    no objective.
    """
    if not any(getattr(user, field) for field in SCOPE_FIELDS):
        return False
    return all(
        getattr(objective, field) is None or getattr(objective, field) == getattr(user, field)
        for field in SCOPE_FIELDS
    )


def find_applicable_objective(
    db: Session,
    user: User,
    now: Optional[datetime] = None
) -> Optional[PlanningObjective]:
    for objective in active_objectives(db, now):
        if applies_to(objective, user):
            return objective
    return None


def expected_progress(objective: PlanningObjective, now: Optional[datetime] = None) -> float:
    """Elapsed share of the objective's duration, in percent."""
    now = now or utcnow()
    created = ensure_utc(objective.created_at)
    deadline = ensure_utc(objective.deadline)
    total = (deadline - created).total_seconds()
    if total <= 0:
        return 100.0
    elapsed = (now - created).total_seconds()
    return min(100.0, max(0.0, elapsed / total * 100))


def user_progress(db: Session, user_id: int, objective: PlanningObjective) -> float:
    if objective.objective_type == ObjectiveType.CERTIFICATION.value:
        target_level = objective.target_certification_level or 1
        certified = db.query(UserCertification).filter(
            UserCertification.user_id == user_id,
            UserCertification.level >= target_level
        ).first()
        if certified:
            return 100.0

        progress = db.query(SessionProgress).filter(
            SessionProgress.user_id == user_id,
            SessionProgress.level == target_level
        ).first()
        if not progress:
            return 0.0
        total = progress.total_sessions_for_level or settings.DEFAULT_TOTAL_SESSIONS
        return progress.completed_sessions / total * 100

    target_percentage = objective.target_progression_percentage or 100
    rows = db.query(SessionProgress).filter(SessionProgress.user_id == user_id).all()
    if not rows:
        return 0.0
    completed = sum(row.completed_sessions for row in rows)
    total = sum(row.total_sessions_for_level or settings.DEFAULT_TOTAL_SESSIONS for row in rows)
    current = completed / total * 100 if total > 0 else 0.0
    return current / target_percentage * 100


def standing(user_value: float, expected: float) -> str:
    difference = user_value - expected
    if difference > STATUS_MARGIN:
        return "ahead"
    if difference < -STATUS_MARGIN:
        return "behind"
    return "on-track"


def days_remaining(objective: PlanningObjective, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    remaining = ensure_utc(objective.deadline) - now
    return max(0, remaining.days)


def objective_status(db: Session, user: User, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Status of the first applicable objective for a learner.

    Returns ``has_objective: False`` and zeroed figures when none applies.
    """
    now = now or utcnow()
    objective = find_applicable_objective(db, user, now)
    if objective is None:
        return {
            "has_objective": False,
            "status": None,
            "user_progress": 0,
            "expected_progress": 0,
            "days_remaining": None,
            "objective": None,
        }

    expected = expected_progress(objective, now)
    progress = user_progress(db, user.id, objective)
    return {
        "has_objective": True,
        "status": standing(progress, expected),
        "user_progress": round(progress, 1),
        "expected_progress": round(expected, 1),
        "days_remaining": days_remaining(objective, now),
        "objective": objective,
    }


def list_objectives(db: Session, include_inactive: bool = True) -> List[PlanningObjective]:
    query = db.query(PlanningObjective)
    if not include_inactive:
        query = query.filter(PlanningObjective.is_active.is_(True))
    return query.order_by(PlanningObjective.deadline).all()


def _check_target(objective_type: str, level: Optional[int], percentage: Optional[int]) -> None:
    if objective_type == ObjectiveType.CERTIFICATION.value:
        if level is None or level < 1 or level > settings.MAX_LEVEL:
            raise ValidationFailed(f"Niveau cible invalide (doit être entre 1 et {settings.MAX_LEVEL})")
    elif objective_type == ObjectiveType.PROGRESSION.value:
        if percentage is None or percentage <= 0 or percentage > 100:
            raise ValidationFailed("Pourcentage cible invalide (doit être entre 1 et 100)")
    else:
        raise ValidationFailed("Type d'objectif invalide")


def _clean_scope(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def create_objective(db: Session, admin: User, data: Dict[str, Any]) -> PlanningObjective:
    """
    Raises:
        ValidationFailed: Bad target or a deadline in the past
    """
    objective_type = data.get("objective_type")
    _check_target(
        objective_type,
        data.get("target_certification_level"),
        data.get("target_progression_percentage")
    )
    deadline = ensure_utc(data["deadline"])
    if deadline <= utcnow():
        raise ValidationFailed("La date limite doit être dans le futur")

    is_certification = objective_type == ObjectiveType.CERTIFICATION.value
    objective = PlanningObjective(
        school=_clean_scope(data.get("school")),
        class_name=_clean_scope(data.get("class_name")),
        city=_clean_scope(data.get("city")),
        objective_type=objective_type,
        target_certification_level=data.get("target_certification_level") if is_certification else None,
        target_progression_percentage=None if is_certification else data.get("target_progression_percentage"),
        deadline=deadline,
        description=data.get("description"),
        is_active=data.get("is_active", True),
        created_by=admin.id
    )
    db.add(objective)
    db.flush()

    db.add(AdminLog.log_action(
        user_id=admin.id,
        action=AdminAction.CREATE,
        entity_type="planning_objective",
        entity_id=objective.id
    ))
    db.commit()
    db.refresh(objective)

    logger.info(f"Planning objective {objective.id} created by admin {admin.id}")
    return objective


def get_objective(db: Session, objective_id: int) -> PlanningObjective:
    objective = db.get(PlanningObjective, objective_id)
    if objective is None:
        raise NotFoundError("Objectif introuvable")
    return objective


def update_objective(db: Session, admin: User, objective_id: int, data: Dict[str, Any]) -> PlanningObjective:
    objective = get_objective(db, objective_id)

    for field in SCOPE_FIELDS:
        if field in data:
            setattr(objective, field, _clean_scope(data[field]))
    for field in ("objective_type", "target_certification_level", "target_progression_percentage",
                  "description", "is_active"):
        if field in data:
            setattr(objective, field, data[field])
    if "deadline" in data and data["deadline"] is not None:
        objective.deadline = ensure_utc(data["deadline"])

    _check_target(
        objective.objective_type,
        objective.target_certification_level,
        objective.target_progression_percentage
    )

    db.add(AdminLog.log_action(
        user_id=admin.id,
        action=AdminAction.UPDATE,
        entity_type="planning_objective",
        entity_id=objective.id,
        details={"fields": sorted(data)}
    ))
    db.commit()
    db.refresh(objective)
    return objective


def delete_objective(db: Session, admin: User, objective_id: int) -> None:
    objective = get_objective(db, objective_id)
    db.delete(objective)
    db.add(AdminLog.log_action(
        user_id=admin.id,
        action=AdminAction.DELETE,
        entity_type="planning_objective",
        entity_id=objective_id
    ))
    db.commit()
    logger.info(f"Planning objective {objective_id} deleted by admin {admin.id}")
