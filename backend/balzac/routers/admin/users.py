"""
Account management endpoints for administrators.

Paths keep the names of the functions the front-end already calls.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from balzac.core.database import get_db
from balzac.core.exceptions import ValidationFailed
from balzac.models.user import User
from balzac.routers.admin.dependencies import get_current_admin_user, get_current_super_admin
from balzac.schemas.users import (
    AddLearnerRequest,
    AddLearnerResponse,
    AdminInvitationRequest,
    AdminInvitationResponse,
    AdminResetPasswordRequest,
    DeleteUserRequest,
    InviteUsersRequest,
    InviteUsersResponse,
    SuccessResponse
)
from balzac.services import users as user_service
from balzac.services.email import EmailSender, get_email_sender, require_sender

router = APIRouter()


@router.post("/add-learner", response_model=AddLearnerResponse)
async def add_learner(
    body: AddLearnerRequest,
    admin_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return user_service.add_learner(
        db,
        admin_user,
        body.email,
        password=body.password,
        profile=body.model_dump(exclude={"email", "password"})
    )


@router.post("/invite-users", response_model=InviteUsersResponse)
async def invite_users(
    body: InviteUsersRequest,
    admin_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Bulk account creation; every account gets a generated password to be
    changed at first login.
    """
    return user_service.invite_users(db, admin_user, [user.model_dump() for user in body.users])


@router.post("/delete_user_admin", response_model=SuccessResponse)
async def delete_user_admin(
    body: DeleteUserRequest,
    admin_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    if body.user_id is None:
        raise ValidationFailed("user_id is required")
    return user_service.delete_user(db, admin_user, body.user_id)


@router.post("/admin-reset-password", response_model=SuccessResponse)
def admin_reset_password(
    body: AdminResetPasswordRequest,
    request: Request,
    admin_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db),
    sender: Optional[EmailSender] = Depends(get_email_sender)
) -> Dict[str, Any]:
    return user_service.admin_reset_password(
        db,
        admin_user,
        require_sender(sender),
        body.email,
        origin=request.headers.get("origin")
    )


@router.post("/send-admin-invitation", response_model=AdminInvitationResponse)
def send_admin_invitation(
    body: AdminInvitationRequest,
    admin_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db),
    sender: Optional[EmailSender] = Depends(get_email_sender)
) -> Dict[str, Any]:
    """
    Make an email address an administrator and send the invitation.
    """
    return user_service.send_admin_invitation(
        db,
        admin_user,
        require_sender(sender),
        body.email,
        is_super_admin=body.is_super_admin,
        temporary_password=body.temporary_password
    )
