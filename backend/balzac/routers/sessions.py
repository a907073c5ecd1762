"""
Test session endpoints: start, complete, terminate, and progress views.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from balzac.core.database import get_db
from balzac.models.user import User
from balzac.routers.auth import get_current_user
from balzac.schemas.sessions import (
    LevelOverview,
    ProgressResponse,
    SessionCompleteRequest,
    SessionCompleteResponse,
    SessionResponse,
    SessionStartRequest,
    SessionStartResponse,
    SessionTerminateRequest
)
from balzac.services import progress as progress_service
from balzac.services import sessions as session_service
from balzac.services.access import check_level_number
from balzac.services.site_settings import SiteSettings, get_site_settings

router = APIRouter()


@router.post("/start", response_model=SessionStartResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    body: SessionStartRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    site_settings: SiteSettings = Depends(get_site_settings)
) -> Dict[str, Any]:
    return session_service.start_session(
        db, current_user, body.level, body.session_number, body.session_type, site_settings
    )


@router.post("/{session_id}/complete", response_model=SessionCompleteResponse)
async def complete_session(
    session_id: int,
    body: SessionCompleteRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    site_settings: SiteSettings = Depends(get_site_settings)
) -> Dict[str, Any]:
    """
    Submit every answer of a session at once and get the graded result.
    """
    return session_service.complete_session(
        db,
        current_user,
        session_id,
        [answer.model_dump() for answer in body.answers],
        site_settings
    )


@router.post("/{session_id}/terminate", response_model=SessionResponse)
async def terminate_session(
    session_id: int,
    body: SessionTerminateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Any:
    return session_service.terminate_session(db, current_user, session_id, body.violations)


@router.get("/progress/{level}", response_model=ProgressResponse)
async def get_level_progress(
    level: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    site_settings: SiteSettings = Depends(get_site_settings)
) -> Dict[str, Any]:
    level_number = check_level_number(level)
    progress = progress_service.get_or_create_progress(
        db, current_user.id, level_number, site_settings.questions_percentage_per_level
    )
    return progress_service.progress_summary(db, progress)


@router.get("/levels", response_model=List[LevelOverview])
async def get_levels(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    return progress_service.level_overview(db, current_user.id)


@router.get("/history", response_model=List[SessionResponse])
async def get_history(
    level: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[Any]:
    return session_service.session_history(db, current_user, level)
