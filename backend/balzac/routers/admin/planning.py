"""
Admin planning objectives.
"""

from typing import Any, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from balzac.core.database import get_db
from balzac.models.admin import Capability
from balzac.models.user import User
from balzac.routers.admin.dependencies import require_capability
from balzac.schemas.planning import ObjectiveCreate, ObjectiveResponse, ObjectiveUpdate
from balzac.services import planning as planning_service

router = APIRouter()

manage_planning = require_capability(Capability.MANAGE_PLANNING)


@router.get("/", response_model=List[ObjectiveResponse])
async def list_objectives(
    include_inactive: bool = True,
    admin_user: User = Depends(manage_planning),
    db: Session = Depends(get_db)
) -> List[Any]:
    return planning_service.list_objectives(db, include_inactive=include_inactive)


@router.post("/", response_model=ObjectiveResponse, status_code=status.HTTP_201_CREATED)
async def create_objective(
    objective_data: ObjectiveCreate,
    admin_user: User = Depends(manage_planning),
    db: Session = Depends(get_db)
) -> Any:
    data = objective_data.model_dump()
    data["objective_type"] = objective_data.objective_type.value
    return planning_service.create_objective(db, admin_user, data)


@router.put("/{objective_id}", response_model=ObjectiveResponse)
async def update_objective(
    objective_id: int,
    objective_data: ObjectiveUpdate,
    admin_user: User = Depends(manage_planning),
    db: Session = Depends(get_db)
) -> Any:
    data = objective_data.model_dump(exclude_unset=True)
    if "objective_type" in data and data["objective_type"] is not None:
        data["objective_type"] = data["objective_type"].value
    return planning_service.update_objective(db, admin_user, objective_id, data)


@router.delete("/{objective_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_objective(
    objective_id: int,
    admin_user: User = Depends(manage_planning),
    db: Session = Depends(get_db)
) -> None:
    planning_service.delete_objective(db, admin_user, objective_id)
