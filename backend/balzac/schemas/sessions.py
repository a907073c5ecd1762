"""
Test session and progress schemas.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from balzac.models.sessions import SessionType
from balzac.schemas.questions import AnswerValidationResponse, QuestionPublic


class SessionStartRequest(BaseModel):
    level: Optional[Union[int, str]] = None
    session_number: int = 1
    session_type: SessionType = SessionType.REGULAR


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    level: int
    session_number: int
    session_type: str
    status: str
    score: Optional[int] = None
    total_questions: int
    questions_mastered: int
    is_session_validated: bool
    required_score_percentage: int
    anti_cheat_violations: int = 0
    started_at: datetime
    ended_at: Optional[datetime] = None


class SessionStartResponse(BaseModel):
    session: SessionResponse
    questions: List[QuestionPublic]


class SubmittedAnswer(BaseModel):
    question_id: int
    user_answer: Optional[str] = None


class SessionCompleteRequest(BaseModel):
    answers: List[SubmittedAnswer] = Field(default_factory=list)


class SessionTerminateRequest(BaseModel):
    violations: int = Field(0, ge=0)


class SessionInfoResponse(BaseModel):
    session_number: int
    session_type: str
    questions_count: int
    is_available: bool
    label: str
    status: str


class ProgressResponse(BaseModel):
    level: int
    current_session_number: int
    total_sessions_for_level: int
    completed_sessions: int
    is_level_completed: bool
    failed_questions_count: int
    sessions: List[SessionInfoResponse]


class AnswerResult(AnswerValidationResponse):
    question_id: int


class SessionCompleteResponse(BaseModel):
    session_id: int
    score: int
    passed: bool
    correct_answers: int
    total_questions: int
    results: List[AnswerResult]
    level_completed: bool
    credential_id: Optional[str] = None
    progress: ProgressResponse


class LevelOverview(BaseModel):
    level: int
    is_unlocked: bool
    is_completed: bool
    current_session_number: int
    completed_sessions: int
    total_sessions_for_level: Optional[int] = None
