"""
Question and answer schemas.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from balzac.models.content import QuestionType
from balzac.models.sessions import SessionType


class QuestionPublic(BaseModel):
    """A question as served to learners. There is no answer field."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    content: str
    type: str
    level: str
    rule: Optional[str] = None
    choices: Optional[List[str]] = None
    explanation: Optional[str] = None


class SessionQuestionsRequest(BaseModel):
    level: Optional[Union[int, str]] = None
    session_number: int = 1
    session_type: SessionType = SessionType.REGULAR
    questions_percentage: Optional[int] = Field(None, gt=0, le=100)


class AnswerValidationRequest(BaseModel):
    question_id: int
    user_answer: Optional[str] = None


class AnswerValidationResponse(BaseModel):
    is_correct: bool
    explanation: Optional[str] = None
    rule: Optional[str] = None


# Admin

class QuestionBase(BaseModel):
    content: str = Field(..., min_length=1)
    type: QuestionType = QuestionType.FREE_TEXT
    level: str = Field(..., min_length=1, max_length=100)
    rule: Optional[str] = None
    choices: Optional[List[str]] = None
    answer: str = Field(..., min_length=1)
    explanation: Optional[str] = None


class QuestionCreate(QuestionBase):
    pass


class QuestionUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1)
    type: Optional[QuestionType] = None
    level: Optional[str] = Field(None, min_length=1, max_length=100)
    rule: Optional[str] = None
    choices: Optional[List[str]] = None
    answer: Optional[str] = Field(None, min_length=1)
    explanation: Optional[str] = None


class QuestionAdmin(QuestionBase):
    """Full question including its answer, for administrators only."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    created_at: Optional[datetime] = None
