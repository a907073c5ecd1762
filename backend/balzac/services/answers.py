"""
Server-side answer checking.
"""

from typing import Dict, Optional, Any

from sqlalchemy.orm import Session

from balzac.core.exceptions import NotFoundError
from balzac.models.content import Question


def normalize_answer(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def answers_match(user_answer: Optional[str], stored_answer: Optional[str]) -> bool:
    """
    Case-insensitive comparison after trimming surrounding whitespace.

    Accents and punctuation are compared as typed.
    """
    return normalize_answer(user_answer) == normalize_answer(stored_answer)


def grade(question: Question, user_answer: Optional[str]) -> Dict[str, Any]:
    """Grade one answer; the stored answer is never part of the result."""
    is_correct = answers_match(user_answer, question.answer)
    return {
        "is_correct": is_correct,
        "explanation": None if is_correct else question.explanation,
        "rule": None if is_correct else question.rule,
    }


def validate_answer(db: Session, question_id: int, user_answer: Optional[str]) -> Dict[str, Any]:
    question = db.get(Question, question_id)
    if not question:
        raise NotFoundError("Question non trouvée")
    return grade(question, user_answer)
