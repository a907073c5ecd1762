"""
Planning objective schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from balzac.models.planning import ObjectiveType


class ObjectiveCreate(BaseModel):
    school: Optional[str] = Field(None, max_length=200)
    class_name: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    objective_type: ObjectiveType
    target_certification_level: Optional[int] = None
    target_progression_percentage: Optional[int] = None
    deadline: datetime
    description: Optional[str] = None
    is_active: bool = True


class ObjectiveUpdate(BaseModel):
    school: Optional[str] = Field(None, max_length=200)
    class_name: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    objective_type: Optional[ObjectiveType] = None
    target_certification_level: Optional[int] = None
    target_progression_percentage: Optional[int] = None
    deadline: Optional[datetime] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ObjectiveResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school: Optional[str] = None
    class_name: Optional[str] = None
    city: Optional[str] = None
    objective_type: str
    target_certification_level: Optional[int] = None
    target_progression_percentage: Optional[int] = None
    deadline: datetime
    description: Optional[str] = None
    is_active: bool
    created_at: datetime


class ObjectiveStatusResponse(BaseModel):
    has_objective: bool
    status: Optional[str] = None
    user_progress: float = 0
    expected_progress: float = 0
    days_remaining: Optional[int] = None
    objective: Optional[ObjectiveResponse] = None
