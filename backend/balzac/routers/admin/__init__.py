"""
Admin routers for Balzac.

This module contains all admin-specific API endpoints:
- users: account management (mounted at the API root)
- content: questions, levels and pricing, promo codes, finance
- planning: planning objectives
- settings, privileges, audit logs and dashboard statistics (below)
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from balzac.core.database import get_db
from balzac.models.admin import AdminLog, AdminAction, Administrator, Capability
from balzac.models.certification import UserCertification
from balzac.models.content import Question
from balzac.models.purchase import PurchaseStatus, UserLevelPurchase
from balzac.models.sessions import SessionStatus, TestSession
from balzac.models.user import User
from balzac.schemas.admin import (
    PrivilegeResponse,
    PrivilegeUpdate,
    SettingUpdate,
    SiteConfigurationResponse
)
from balzac.schemas.users import AdminLogResponse, UserCountResponse
from balzac.services import privileges as privilege_service
from balzac.services import site_settings as site_settings_service
from balzac.services import users as user_service

from .dependencies import get_current_admin_user, get_current_super_admin, require_capability
from .content import router as content_router
from .planning import router as planning_router
from .users import router as users_router


# Create admin router
admin_router = APIRouter()

admin_router.include_router(
    content_router,
    tags=["admin-content"]
)

admin_router.include_router(
    planning_router,
    prefix="/planning",
    tags=["admin-planning"]
)


# Admin dashboard endpoint
@admin_router.get("/dashboard")
async def get_admin_dashboard(
    admin_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Get admin dashboard overview with statistics.
    """
    total_users = db.query(User).count()
    total_admins = db.query(Administrator).count()
    completed_sessions = db.query(TestSession).filter(
        TestSession.status == SessionStatus.COMPLETED.value,
        TestSession.deleted_at.is_(None)
    ).count()
    validated_sessions = db.query(TestSession).filter(
        TestSession.status == SessionStatus.COMPLETED.value,
        TestSession.is_session_validated.is_(True),
        TestSession.deleted_at.is_(None)
    ).count()

    return {
        "statistics": {
            "users": {
                "total": total_users,
                "administrators": total_admins
            },
            "content": {
                "questions": db.query(Question).count()
            },
            "sessions": {
                "completed": completed_sessions,
                "validated": validated_sessions,
                "success_rate": (validated_sessions / completed_sessions * 100) if completed_sessions > 0 else 0
            },
            "certifications": db.query(UserCertification).count(),
            "purchases": db.query(UserLevelPurchase).filter(
                UserLevelPurchase.status == PurchaseStatus.COMPLETED.value
            ).count()
        },
        "capabilities": privilege_service.capabilities_of(db, admin_user.administrator),
        "is_super_admin": admin_user.is_super_admin
    }


@admin_router.get("/users/count", response_model=UserCountResponse)
async def get_users_count(
    admin_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
) -> Dict[str, int]:
    return {"count": user_service.count_users(db)}


# Site settings endpoints
@admin_router.get("/settings", response_model=List[SiteConfigurationResponse])
async def get_site_configuration(
    admin_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> List[Any]:
    return site_settings_service.list_configuration(db)


@admin_router.put("/settings/{setting_key}", response_model=SiteConfigurationResponse)
async def update_site_configuration(
    setting_key: str,
    body: SettingUpdate,
    admin_user: User = Depends(require_capability(Capability.MANAGE_TEST_SETTINGS)),
    db: Session = Depends(get_db)
) -> Any:
    """
    Update a setting. Subscribers of the configuration channel (the
    settings cache among them) are notified.
    """
    row = site_settings_service.update_setting(db, setting_key, body.value, modified_by=admin_user.id)

    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.SETTINGS_CHANGE,
        entity_type="site_configuration",
        entity_id=setting_key,
        details={"value": row.value}
    ))
    db.commit()
    return row


# Privilege endpoints
@admin_router.get("/privileges", response_model=List[PrivilegeResponse])
async def list_privileges(
    admin_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> List[Any]:
    return privilege_service.list_privileges(db)


@admin_router.put("/privileges", response_model=PrivilegeResponse)
async def update_privilege(
    body: PrivilegeUpdate,
    admin_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
) -> Any:
    privilege = privilege_service.set_privilege(db, body.capability, body.is_enabled)

    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.PRIVILEGE_CHANGE,
        entity_type="admin_privilege",
        entity_id=body.capability.value,
        details={"is_enabled": body.is_enabled}
    ))
    db.commit()
    return privilege


# Audit log
@admin_router.get("/logs", response_model=List[AdminLogResponse])
async def list_admin_logs(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    admin_user: User = Depends(get_current_super_admin),
    db: Session = Depends(get_db)
) -> List[AdminLog]:
    query = db.query(AdminLog)
    if action:
        query = query.filter(AdminLog.action == action)
    if entity_type:
        query = query.filter(AdminLog.entity_type == entity_type)
    return query.order_by(AdminLog.created_at.desc(), AdminLog.id.desc()).offset(skip).limit(limit).all()


__all__ = [
    "admin_router",
    "users_router",
    "get_current_admin_user",
    "get_current_super_admin",
    "require_capability",
]
