"""
Test session lifecycle: start, complete, terminate.

Scoring happens here, server-side, from the submitted answers.
"""

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.database import utcnow
from balzac.core.exceptions import ConflictError, NotFoundError, PermissionDenied, ValidationFailed
from balzac.models.certification import UserCertification
from balzac.models.content import Question
from balzac.models.sessions import (
    FailedQuestion, SessionStatus, SessionType, TestAnswer, TestSession
)
from balzac.models.user import User
from balzac.services import access, progress as progress_service, questions as question_service
from balzac.services.answers import grade
from balzac.services.site_settings import SiteSettings

logger = logging.getLogger(__name__)


def _get_user_session(db: Session, user: User, session_id: int) -> TestSession:
    session = db.query(TestSession).filter(
        TestSession.id == session_id,
        TestSession.user_id == user.id
    ).first()
    if not session or session.is_deleted:
        raise NotFoundError("Session introuvable")
    return session


def start_session(
    db: Session,
    user: User,
    level: Any,
    session_number: int,
    session_type: SessionType,
    site_settings: SiteSettings
) -> Dict[str, Any]:
    """
    Open a session and return it with its questions.

    An unfinished session with the same number is resumed instead of
    opening a new one.

    Raises:
        PermissionDenied: Level locked, session locked, or purchase required
        ValidationFailed: Bad session number, empty session or no remedial
            session due
    """
    level_number = access.check_level_number(level)

    if not progress_service.is_level_unlocked(db, user.id, level_number):
        raise PermissionDenied("Niveau verrouillé : validez d'abord le niveau précédent")

    progress = progress_service.get_or_create_progress(
        db, user.id, level_number, site_settings.questions_percentage_per_level
    )

    if session_type == SessionType.REMEDIAL:
        if not progress.all_regular_completed or progress_service.unremediated_count(db, user.id, level_number) == 0:
            raise ValidationFailed("Aucune session de rattrapage disponible")
        session_number = settings.REMEDIAL_SESSION_NUMBER
    else:
        if session_number < 1 or session_number > progress.total_sessions_for_level:
            raise ValidationFailed("Numéro de session invalide")
        if session_number != 1 and session_number > progress.current_session_number:
            raise PermissionDenied("Session verrouillée : réussissez d'abord la session précédente")

    session = db.query(TestSession).filter(
        TestSession.user_id == user.id,
        TestSession.level == level_number,
        TestSession.session_number == session_number,
        TestSession.session_type == session_type.value,
        TestSession.status == SessionStatus.IN_PROGRESS.value,
        TestSession.deleted_at.is_(None)
    ).first()

    if session is None:
        if not access.can_access_level(db, user.id, level_number):
            raise PermissionDenied("Achat requis pour accéder à ce niveau")

        session = TestSession(
            user_id=user.id,
            level=level_number,
            session_number=session_number,
            session_type=session_type.value,
            status=SessionStatus.IN_PROGRESS.value,
            required_score_percentage=progress_service.PASSING_SCORE
        )
        db.add(session)

    if session.question_ids:
        served = _questions_by_id(db, session.question_ids)
    else:
        served = question_service.get_session_questions(
            db, user.id, level_number, session_number, session_type,
            progress.questions_percentage
        )
        if not served:
            db.rollback()
            raise ValidationFailed("Aucune question disponible pour cette session")
        session.question_ids = [question.id for question in served]
    session.total_questions = len(served)
    db.commit()
    db.refresh(session)

    logger.info(
        f"Session {session.id} started by user {user.id}: "
        f"{progress_service.format_session_number(level_number, session_number)}"
    )
    return {"session": session, "questions": served}


def _questions_by_id(db: Session, question_ids: List[int]) -> List[Question]:
    found = {
        question.id: question
        for question in db.query(Question).filter(Question.id.in_(question_ids))
    }
    return [found[question_id] for question_id in question_ids if question_id in found]


def _record_failure(db: Session, user_id: int, level: int, question_id: int) -> None:
    failed = db.query(FailedQuestion).filter(
        FailedQuestion.user_id == user_id,
        FailedQuestion.question_id == question_id,
        FailedQuestion.level == level
    ).first()
    if failed:
        failed.is_remediated = False
        failed.remediated_at = None
        failed.failed_at = utcnow()
    else:
        db.add(FailedQuestion(user_id=user_id, level=level, question_id=question_id))


def _record_remediation(db: Session, user_id: int, level: int, question_id: int) -> None:
    db.query(FailedQuestion).filter(
        FailedQuestion.user_id == user_id,
        FailedQuestion.question_id == question_id,
        FailedQuestion.level == level
    ).update(
        {"is_remediated": True, "remediated_at": utcnow()},
        synchronize_session="fetch"
    )


def compute_score(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(correct / total * 100)


def complete_session(
    db: Session,
    user: User,
    session_id: int,
    answers: List[Dict[str, Any]],
    site_settings: SiteSettings
) -> Dict[str, Any]:
    """
    Grade a session's answers and apply the result to the level progress.

    Unanswered questions count as incorrect.

    Raises:
        NotFoundError: Unknown session
        ConflictError: Session already completed
        ValidationFailed: Answer to a question this session did not serve
    """
    session = _get_user_session(db, user, session_id)
    if session.status == SessionStatus.COMPLETED.value:
        raise ConflictError("Session déjà terminée")

    served_ids = set(session.question_ids or [])
    submitted: Dict[int, Optional[str]] = {}
    for answer in answers:
        question_id = int(answer["question_id"])
        if question_id not in served_ids:
            raise ValidationFailed("Question hors de cette session")
        submitted[question_id] = answer.get("user_answer")

    bank = {
        question.id: question
        for question in db.query(Question).filter(Question.id.in_(list(submitted)))
    } if submitted else {}

    session_type = SessionType(session.session_type)
    results = []
    correct = 0
    for question_id, user_answer in submitted.items():
        question = bank.get(question_id)
        if question is None:
            raise NotFoundError("Question non trouvée")

        graded = grade(question, user_answer)
        db.add(TestAnswer(
            session_id=session.id,
            user_id=user.id,
            question_id=question_id,
            user_answer=user_answer or "",
            is_correct=graded["is_correct"]
        ))

        if graded["is_correct"]:
            correct += 1
            if session_type == SessionType.REMEDIAL:
                _record_remediation(db, user.id, session.level, question_id)
        else:
            _record_failure(db, user.id, session.level, question_id)

        results.append({"question_id": question_id, **graded})

    total = len(served_ids)
    score = compute_score(correct, total)
    passed = score >= session.required_score_percentage

    session.status = SessionStatus.COMPLETED.value
    session.ended_at = utcnow()
    session.score = score
    session.total_questions = total
    session.questions_mastered = correct
    session.is_session_validated = passed
    db.flush()

    progress = progress_service.get_or_create_progress(
        db, user.id, session.level, site_settings.questions_percentage_per_level
    )
    progress_service.record_session_result(db, progress, session.session_number, session_type, score)
    db.commit()
    db.refresh(progress)

    certification = None
    if progress.is_level_completed:
        certification = db.query(UserCertification).filter(
            UserCertification.user_id == user.id,
            UserCertification.level == session.level
        ).first()

    logger.info(
        f"Session {session.id} completed by user {user.id}: score {score} "
        f"({'passed' if passed else 'failed'})"
    )
    return {
        "session_id": session.id,
        "score": score,
        "passed": passed,
        "correct_answers": correct,
        "total_questions": total,
        "results": results,
        "level_completed": progress.is_level_completed,
        "credential_id": certification.credential_id if certification else None,
        "progress": progress_service.progress_summary(db, progress),
    }


def terminate_session(db: Session, user: User, session_id: int, violations: int) -> TestSession:
    """
    Stop a session after too many anti-cheat warnings.

    The session is soft-deleted and records the reported violation count.
    """
    session = _get_user_session(db, user, session_id)
    if session.status == SessionStatus.COMPLETED.value:
        raise ConflictError("Session déjà terminée")

    session.anti_cheat_violations = max(0, violations)
    session.ended_at = utcnow()
    session.soft_delete()
    db.commit()
    db.refresh(session)

    logger.warning(f"Session {session.id} terminated for user {user.id} after {violations} violations")
    return session


def session_history(db: Session, user: User, level: Optional[int] = None) -> List[TestSession]:
    query = db.query(TestSession).filter(
        TestSession.user_id == user.id,
        TestSession.status == SessionStatus.COMPLETED.value,
        TestSession.deleted_at.is_(None)
    )
    if level is not None:
        query = query.filter(TestSession.level == level)
    return query.order_by(TestSession.ended_at.desc()).all()
