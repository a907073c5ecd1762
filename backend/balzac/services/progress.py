"""
Session and level progress rules.

A level is split into regular sessions; a learner moves to the next one
by scoring at least the passing score. Once every regular session is done,
the level is validated unless failed questions remain, in which case a
remedial ("rattrapage") session has to be passed first.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.database import utcnow
from balzac.core.exceptions import ValidationFailed
from balzac.models.content import DifficultyLevel, DEFAULT_LEVEL_NAMES
from balzac.models.sessions import FailedQuestion, SessionProgress, SessionType
from balzac.services import questions as question_service
from balzac.services.certifications import issue_certification

logger = logging.getLogger(__name__)

PASSING_SCORE = settings.PASSING_SCORE


@dataclass
class SessionInfo:
    session_number: int
    session_type: str
    questions_count: int
    is_available: bool
    label: str = ""
    status: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_remedial_number(session_number: int) -> bool:
    return session_number >= settings.REMEDIAL_SESSION_NUMBER


def format_session_number(level: int, session_number: int) -> str:
    """``"1.3"`` for regular sessions, ``"1.R"`` for the remedial one."""
    if is_remedial_number(session_number):
        return f"{level}.R"
    return f"{level}.{session_number}"


def session_status(info: SessionInfo, current_session_number: int) -> str:
    if not info.is_available:
        return "locked"
    if info.session_number < current_session_number:
        return "completed"
    if info.session_number == current_session_number:
        return "current"
    return "available"


def unremediated_count(db: Session, user_id: int, level: int) -> int:
    return db.query(FailedQuestion).filter(
        FailedQuestion.user_id == user_id,
        FailedQuestion.level == level,
        FailedQuestion.is_remediated.is_(False)
    ).count()


def get_progress(db: Session, user_id: int, level: int) -> Optional[SessionProgress]:
    return db.query(SessionProgress).filter(
        SessionProgress.user_id == user_id,
        SessionProgress.level == level
    ).first()


def get_or_create_progress(
    db: Session,
    user_id: int,
    level: int,
    questions_percentage: int
) -> SessionProgress:
    """
    Progress row of a level, created on first access.

    The number of sessions and the share of the bank per session are fixed
    at creation, so later changes to the site setting only apply to levels
    the learner has not opened yet.
    """
    progress = get_progress(db, user_id, level)
    if progress:
        return progress

    name = question_service.level_name(db, level)
    bank_size = question_service.count_level_questions(db, name)

    progress = SessionProgress(
        user_id=user_id,
        level=level,
        current_session_number=1,
        completed_sessions=0,
        total_sessions_for_level=question_service.total_sessions(bank_size, questions_percentage),
        questions_percentage=questions_percentage,
        is_level_completed=False
    )
    db.add(progress)
    db.commit()
    db.refresh(progress)

    logger.info(
        f"Progress created for user {user_id}, level {level}: "
        f"{progress.total_sessions_for_level} sessions"
    )
    return progress


def list_sessions(
    progress: SessionProgress,
    failed_count: int,
    bank_size: int = 0,
    questions_percentage: Optional[int] = None
) -> List[SessionInfo]:
    """
    Regular sessions of a level plus, when due, the remedial session.
    """
    if questions_percentage is None:
        questions_percentage = progress.questions_percentage
    sessions = []
    current = progress.current_session_number

    for number in range(1, progress.total_sessions_for_level + 1):
        offset, size = question_service.session_window(bank_size, questions_percentage, number)
        info = SessionInfo(
            session_number=number,
            session_type=SessionType.REGULAR.value,
            questions_count=max(0, min(size, bank_size - offset)),
            is_available=number == 1 or number <= current,
            label=format_session_number(progress.level, number)
        )
        info.status = session_status(info, current)
        sessions.append(info)

    if failed_count > 0 and progress.all_regular_completed and not progress.is_level_completed:
        info = SessionInfo(
            session_number=settings.REMEDIAL_SESSION_NUMBER,
            session_type=SessionType.REMEDIAL.value,
            questions_count=failed_count,
            is_available=True,
            label=format_session_number(progress.level, settings.REMEDIAL_SESSION_NUMBER)
        )
        info.status = session_status(info, current)
        sessions.append(info)

    return sessions


def progress_summary(db: Session, progress: SessionProgress) -> Dict[str, Any]:
    failed = unremediated_count(db, progress.user_id, progress.level)
    name = question_service.level_name(db, progress.level)
    bank_size = question_service.count_level_questions(db, name)
    return {
        "level": progress.level,
        "current_session_number": progress.current_session_number,
        "total_sessions_for_level": progress.total_sessions_for_level,
        "completed_sessions": progress.completed_sessions,
        "is_level_completed": progress.is_level_completed,
        "failed_questions_count": failed,
        "sessions": [
            info.to_dict()
            for info in list_sessions(progress, failed, bank_size)
        ],
    }


def is_level_unlocked(db: Session, user_id: int, level: int) -> bool:
    """Level 1 is always open; level n needs level n-1 validated."""
    if level <= 1:
        return True
    previous = get_progress(db, user_id, level - 1)
    return bool(previous and previous.is_level_completed)


def known_levels(db: Session) -> List[int]:
    numbers = [
        row.level_number
        for row in db.query(DifficultyLevel.level_number)
        .filter(DifficultyLevel.is_active.is_(True))
        .order_by(DifficultyLevel.level_number)
    ]
    return numbers or sorted(DEFAULT_LEVEL_NAMES)


def level_overview(db: Session, user_id: int) -> List[Dict[str, Any]]:
    progressions = {
        row.level: row
        for row in db.query(SessionProgress).filter(SessionProgress.user_id == user_id)
    }
    overview = []
    for level in known_levels(db):
        progress = progressions.get(level)
        if level <= 1:
            unlocked = True
        else:
            previous = progressions.get(level - 1)
            unlocked = bool(previous and previous.is_level_completed)
        overview.append({
            "level": level,
            "is_unlocked": unlocked,
            "is_completed": bool(progress and progress.is_level_completed),
            "current_session_number": progress.current_session_number if progress else 1,
            "completed_sessions": progress.completed_sessions if progress else 0,
            "total_sessions_for_level": progress.total_sessions_for_level if progress else None,
        })
    return overview


def _validate_level(db: Session, progress: SessionProgress) -> None:
    if progress.is_level_completed:
        return
    progress.is_level_completed = True
    progress.completed_at = utcnow()
    issue_certification(db, progress.user_id, progress.level)
    logger.info(f"Level {progress.level} validated for user {progress.user_id}")


def record_session_result(
    db: Session,
    progress: SessionProgress,
    session_number: int,
    session_type: SessionType,
    score: int
) -> SessionProgress:
    """
    Apply a finished session to the level progress.

    Below the passing score nothing changes. Replaying an already completed
    session does not move the counters. The caller commits.
    """
    if score < PASSING_SCORE:
        return progress

    if session_type == SessionType.REMEDIAL:
        db.query(FailedQuestion).filter(
            FailedQuestion.user_id == progress.user_id,
            FailedQuestion.level == progress.level,
            FailedQuestion.is_remediated.is_(False)
        ).update(
            {"is_remediated": True, "remediated_at": utcnow()},
            synchronize_session="fetch"
        )
        _validate_level(db, progress)
        return progress

    total = progress.total_sessions_for_level
    if session_number < 1 or session_number > total:
        raise ValidationFailed("Numéro de session invalide")

    progress.completed_sessions = max(progress.completed_sessions, session_number)
    progress.current_session_number = max(progress.current_session_number, session_number + 1)

    if progress.all_regular_completed:
        db.flush()
        if unremediated_count(db, progress.user_id, progress.level) == 0:
            _validate_level(db, progress)

    return progress
