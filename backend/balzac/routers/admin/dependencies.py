"""
Access checks for the back office.
"""

from typing import Callable
import logging

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from balzac.core.database import get_db
from balzac.models.admin import Capability
from balzac.models.user import User
from balzac.routers.auth import get_current_user
from balzac.services.privileges import has_capability

logger = logging.getLogger(__name__)


async def get_current_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Verify that the current user has admin privileges.
    """
    if not current_user.is_admin:
        logger.warning(f"Non-admin user {current_user.id} denied admin access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Accès refusé - Droits administrateur requis"
        )
    return current_user


async def get_current_super_admin(
    current_user: User = Depends(get_current_admin_user)
) -> User:
    if not current_user.is_super_admin:
        logger.warning(f"Admin {current_user.id} denied super admin access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Accès refusé - Vous devez être super administrateur"
        )
    return current_user


def require_capability(capability: Capability) -> Callable:
    """
    Dependency factory: the caller must be an administrator holding
    ``capability``.
    """
    async def checker(
        current_user: User = Depends(get_current_admin_user),
        db: Session = Depends(get_db)
    ) -> User:
        if not has_capability(db, current_user.administrator, capability):
            logger.warning(f"Admin {current_user.id} lacks capability {capability.value}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Accès refusé - Droit requis : {capability.label}"
            )
        return current_user

    return checker
