"""
Question delivery and answer validation endpoints.
"""

from typing import Any, Dict, List
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from balzac.core.database import get_db
from balzac.models.user import User
from balzac.routers.auth import get_current_user
from balzac.schemas.questions import (
    AnswerValidationRequest,
    AnswerValidationResponse,
    QuestionPublic,
    SessionQuestionsRequest
)
from balzac.services import answers as answer_service
from balzac.services import questions as question_service
from balzac.services.access import check_level_number
from balzac.services.site_settings import SiteSettings, get_site_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/get-session-questions", response_model=List[QuestionPublic])
async def get_session_questions(
    body: SessionQuestionsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    site_settings: SiteSettings = Depends(get_site_settings)
) -> List[Any]:
    """
    Questions of one session without their answers.

    An empty remedial set is returned as an empty list.
    """
    level = check_level_number(body.level)
    percentage = body.questions_percentage or site_settings.questions_percentage_per_level
    return question_service.get_session_questions(
        db, current_user.id, level, body.session_number, body.session_type, percentage
    )


@router.post("/validate-answer", response_model=AnswerValidationResponse)
async def validate_answer(
    body: AnswerValidationRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return answer_service.validate_answer(db, body.question_id, body.user_answer)
