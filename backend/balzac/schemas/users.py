"""
Admin user management schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AddLearnerRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    school: Optional[str] = None
    class_name: Optional[str] = None
    city: Optional[str] = None


class AddLearnerResponse(BaseModel):
    success: bool
    user_id: int
    email: str
    message: str


class UserInvite(BaseModel):
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    school: Optional[str] = None
    class_name: Optional[str] = None
    city: Optional[str] = None


class InviteUsersRequest(BaseModel):
    users: List[UserInvite]


class InviteResult(BaseModel):
    email: str
    success: bool
    user_id: Optional[int] = None
    generated_password: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


class InviteSummary(BaseModel):
    total: int
    success: int
    errors: int


class InviteUsersResponse(BaseModel):
    results: List[InviteResult]
    summary: InviteSummary


class DeleteUserRequest(BaseModel):
    user_id: Optional[int] = None


class AdminResetPasswordRequest(BaseModel):
    email: Optional[str] = None


class AdminInvitationRequest(BaseModel):
    email: Optional[str] = None
    is_super_admin: bool = False
    temporary_password: Optional[str] = Field(None, max_length=100)


class SuccessResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class AdminInvitationResponse(SuccessResponse):
    email_id: Optional[str] = None


class UserCountResponse(BaseModel):
    count: int


class AdminLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    success: bool
    error_message: Optional[str] = None
    created_at: datetime
