"""
Question delivery.

Regular sessions serve a contiguous slice of a level's question bank;
remedial sessions serve the questions the learner still has to remediate.
Answers never leave this module: routes serialize questions through
``QuestionPublic``, which has no answer field.
"""

from typing import List, Tuple
import math
import logging

from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.exceptions import NotFoundError, ValidationFailed
from balzac.models.content import DifficultyLevel, Question, DEFAULT_LEVEL_NAMES
from balzac.models.sessions import FailedQuestion, SessionType

logger = logging.getLogger(__name__)


def level_name(db: Session, level: int) -> str:
    """
    Map a level number to the name questions are stored under.

    Raises:
        NotFoundError: No difficulty level and no built-in name for ``level``
    """
    row = db.query(DifficultyLevel).filter(DifficultyLevel.level_number == level).first()
    if row:
        return row.name
    if level in DEFAULT_LEVEL_NAMES:
        return DEFAULT_LEVEL_NAMES[level]
    raise NotFoundError("Niveau introuvable")


def questions_per_session(total: int, questions_percentage: int) -> int:
    """
    Number of questions in one regular session.

    A level with questions always yields at least one per session.
    """
    if total <= 0:
        return 0
    return max(1, math.floor(total * questions_percentage / 100))


def session_window(total: int, questions_percentage: int, session_number: int) -> Tuple[int, int]:
    """
    Return ``(offset, size)`` of a regular session in the ordered bank.

    >>> session_window(50, 20, 3)
    (20, 10)
    """
    if session_number < 1:
        raise ValidationFailed("Numéro de session invalide")
    size = questions_per_session(total, questions_percentage)
    return (session_number - 1) * size, size


def total_sessions(total: int, questions_percentage: int) -> int:
    """Number of regular sessions needed to cover the bank."""
    size = questions_per_session(total, questions_percentage)
    if size == 0:
        return settings.DEFAULT_TOTAL_SESSIONS
    return math.ceil(total / size)


def count_level_questions(db: Session, name: str) -> int:
    return db.query(Question).filter(Question.level == name).count()


def get_regular_questions(
    db: Session,
    level: int,
    session_number: int,
    questions_percentage: int
) -> List[Question]:
    name = level_name(db, level)
    total = count_level_questions(db, name)
    offset, size = session_window(total, questions_percentage, session_number)

    # Past the end of the bank the slice is simply empty
    if size == 0 or offset >= total:
        return []

    return (
        db.query(Question)
        .filter(Question.level == name)
        .order_by(Question.id)
        .offset(offset)
        .limit(min(size, total - offset))
        .all()
    )


def get_remedial_questions(db: Session, user_id: int, level: int) -> List[Question]:
    question_ids = [
        row.question_id
        for row in db.query(FailedQuestion.question_id).filter(
            FailedQuestion.user_id == user_id,
            FailedQuestion.level == level,
            FailedQuestion.is_remediated.is_(False)
        )
    ]
    if not question_ids:
        return []

    name = level_name(db, level)
    return (
        db.query(Question)
        .filter(Question.id.in_(question_ids), Question.level == name)
        .order_by(Question.id)
        .all()
    )


def get_session_questions(
    db: Session,
    user_id: int,
    level: int,
    session_number: int,
    session_type: SessionType,
    questions_percentage: int
) -> List[Question]:
    """Questions of one session; reading them changes no state."""
    if session_type == SessionType.REMEDIAL:
        questions = get_remedial_questions(db, user_id, level)
    else:
        questions = get_regular_questions(db, level, session_number, questions_percentage)

    logger.debug(
        f"Serving {len(questions)} questions for user {user_id}, "
        f"level {level}, session {session_number} ({session_type.value})"
    )
    return questions
