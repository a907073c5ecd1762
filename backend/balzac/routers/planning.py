"""
Planning objectives as seen by a learner.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from balzac.core.database import get_db
from balzac.models.user import User
from balzac.routers.auth import get_current_user
from balzac.schemas.planning import ObjectiveResponse, ObjectiveStatusResponse
from balzac.services import planning as planning_service

router = APIRouter()


@router.get("/objectives", response_model=List[ObjectiveResponse])
async def list_my_objectives(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[Any]:
    """Active objectives whose scope covers the caller, nearest deadline first."""
    return [
        objective
        for objective in planning_service.active_objectives(db)
        if planning_service.applies_to(objective, current_user)
    ]


@router.get("/status", response_model=ObjectiveStatusResponse)
async def get_objective_status(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return planning_service.objective_status(db, current_user)
