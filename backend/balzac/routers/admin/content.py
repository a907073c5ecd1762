"""
Admin content router for Balzac.

Question bank, difficulty levels with their certificate and pricing
template, promo codes and the finance summary.
"""

from typing import List, Optional, Dict, Any
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import func, or_

from balzac.core.database import get_db
from balzac.core.events import events, LEVEL_PRICING_CHANGED
from balzac.models.admin import AdminLog, AdminAction, Capability
from balzac.models.content import CertificateTemplate, DifficultyLevel, Question
from balzac.models.purchase import PromoCode, PurchaseStatus, UserLevelPurchase
from balzac.models.user import User
from balzac.routers.admin.dependencies import require_capability
from balzac.schemas.admin import (
    LevelCreate,
    LevelResponse,
    LevelUpdate,
    TemplateResponse,
    TemplateUpsert
)
from balzac.schemas.payments import PromoCodeCreate, PromoCodeResponse
from balzac.schemas.questions import QuestionAdmin, QuestionCreate, QuestionUpdate
from balzac.services.promo import normalize_code

logger = logging.getLogger(__name__)

router = APIRouter()

manage_questions = require_capability(Capability.MANAGE_QUESTIONS)
manage_levels = require_capability(Capability.MANAGE_LEVELS)
view_finance = require_capability(Capability.VIEW_FINANCE)

REQUIRED_TEMPLATE_FIELDS = (
    "name", "certificate_title", "certificate_text", "min_score_required", "is_active"
)


# Questions

@router.get("/questions", response_model=List[QuestionAdmin])
async def list_questions(
    level: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    admin_user: User = Depends(manage_questions),
    db: Session = Depends(get_db)
) -> List[Question]:
    query = db.query(Question)
    if level:
        query = query.filter(Question.level == level)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Question.content.ilike(search_term),
                Question.rule.ilike(search_term)
            )
        )
    return query.order_by(Question.id).offset(skip).limit(limit).all()


@router.post("/questions", response_model=QuestionAdmin, status_code=status.HTTP_201_CREATED)
async def create_question(
    question_data: QuestionCreate,
    admin_user: User = Depends(manage_questions),
    db: Session = Depends(get_db)
) -> Question:
    question = Question(**question_data.model_dump(mode="json"))
    db.add(question)
    db.flush()

    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.CREATE,
        entity_type="question",
        entity_id=question.id,
        details={"level": question.level}
    ))
    db.commit()
    db.refresh(question)
    return question


def _get_question(db: Session, question_id: int) -> Question:
    question = db.get(Question, question_id)
    if not question:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Question non trouvée"
        )
    return question


@router.put("/questions/{question_id}", response_model=QuestionAdmin)
async def update_question(
    question_id: int,
    question_data: QuestionUpdate,
    admin_user: User = Depends(manage_questions),
    db: Session = Depends(get_db)
) -> Question:
    question = _get_question(db, question_id)

    update_data = question_data.model_dump(mode="json", exclude_unset=True)
    for field, value in update_data.items():
        setattr(question, field, value)

    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.UPDATE,
        entity_type="question",
        entity_id=question.id,
        details={"fields": sorted(update_data)}
    ))
    db.commit()
    db.refresh(question)
    return question


@router.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_question(
    question_id: int,
    admin_user: User = Depends(manage_questions),
    db: Session = Depends(get_db)
) -> None:
    question = _get_question(db, question_id)
    db.delete(question)
    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.DELETE,
        entity_type="question",
        entity_id=question_id
    ))
    db.commit()


# Levels and pricing

@router.get("/levels", response_model=List[LevelResponse])
async def list_levels(
    admin_user: User = Depends(manage_levels),
    db: Session = Depends(get_db)
) -> List[DifficultyLevel]:
    return db.query(DifficultyLevel).order_by(DifficultyLevel.level_number).all()


def _get_level(db: Session, level_number: int) -> DifficultyLevel:
    level = db.query(DifficultyLevel).filter(DifficultyLevel.level_number == level_number).first()
    if not level:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Niveau introuvable"
        )
    return level


@router.post("/levels", response_model=LevelResponse, status_code=status.HTTP_201_CREATED)
async def create_level(
    level_data: LevelCreate,
    admin_user: User = Depends(manage_levels),
    db: Session = Depends(get_db)
) -> DifficultyLevel:
    existing = db.query(DifficultyLevel).filter(
        DifficultyLevel.level_number == level_data.level_number
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ce niveau existe déjà"
        )

    level = DifficultyLevel(**level_data.model_dump())
    db.add(level)
    db.flush()
    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.CREATE,
        entity_type="level",
        entity_id=level.level_number
    ))
    db.commit()
    db.refresh(level)
    events.publish(LEVEL_PRICING_CHANGED, {"level": level.level_number})
    return level


@router.put("/levels/{level_number}", response_model=LevelResponse)
async def update_level(
    level_number: int,
    level_data: LevelUpdate,
    admin_user: User = Depends(manage_levels),
    db: Session = Depends(get_db)
) -> DifficultyLevel:
    level = _get_level(db, level_number)
    update_data = level_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(level, field, value)

    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.UPDATE,
        entity_type="level",
        entity_id=level_number,
        details={"fields": sorted(update_data)}
    ))
    db.commit()
    db.refresh(level)
    events.publish(LEVEL_PRICING_CHANGED, {"level": level_number})
    return level


@router.put("/levels/{level_number}/template", response_model=TemplateResponse)
async def upsert_level_template(
    level_number: int,
    template_data: TemplateUpsert,
    admin_user: User = Depends(manage_levels),
    db: Session = Depends(get_db)
) -> CertificateTemplate:
    """
    Create or update the active certificate template of a level, which
    carries its price and number of free sessions.
    """
    level = _get_level(db, level_number)
    template = level.active_template
    update_data = template_data.model_dump(exclude_unset=True)

    if template is None:
        template = CertificateTemplate(
            difficulty_level_id=level.id,
            name=f"Certification {level.name}",
            certificate_title=f"Certificat de niveau {level.name}",
            certificate_text=""
        )
        db.add(template)

    for field, value in update_data.items():
        # Required columns keep their value when sent as null
        if value is None and field in REQUIRED_TEMPLATE_FIELDS:
            continue
        setattr(template, field, value)

    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.UPDATE,
        entity_type="certificate_template",
        entity_id=level_number,
        details={"fields": sorted(update_data)}
    ))
    db.commit()
    db.refresh(template)

    events.publish(LEVEL_PRICING_CHANGED, {
        "level": level_number,
        "price_euros": template.price_euros,
        "free_sessions": template.free_sessions
    })
    logger.info(f"Template of level {level_number} updated by admin {admin_user.id}")
    return template


# Promo codes

@router.get("/promo-codes", response_model=List[PromoCodeResponse])
async def list_promo_codes(
    level: Optional[int] = None,
    include_used: bool = True,
    admin_user: User = Depends(view_finance),
    db: Session = Depends(get_db)
) -> List[PromoCode]:
    query = db.query(PromoCode)
    if level is not None:
        query = query.filter(PromoCode.level == level)
    if not include_used:
        query = query.filter(PromoCode.is_used.is_(False))
    return query.order_by(PromoCode.created_at.desc()).all()


@router.post("/promo-codes", response_model=PromoCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_promo_code(
    promo_data: PromoCodeCreate,
    admin_user: User = Depends(view_finance),
    db: Session = Depends(get_db)
) -> PromoCode:
    code = normalize_code(promo_data.code)
    if db.query(PromoCode).filter(PromoCode.code == code).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ce code promo existe déjà"
        )

    promo = PromoCode(
        code=code,
        level=promo_data.level,
        discount_percentage=promo_data.discount_percentage,
        expires_at=promo_data.expires_at
    )
    db.add(promo)
    db.flush()
    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.CREATE,
        entity_type="promo_code",
        entity_id=promo.id,
        details={"code": code, "level": promo.level, "discount": promo.discount_percentage}
    ))
    db.commit()
    db.refresh(promo)
    return promo


@router.delete("/promo-codes/{promo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_promo_code(
    promo_id: int,
    admin_user: User = Depends(view_finance),
    db: Session = Depends(get_db)
) -> None:
    promo = db.get(PromoCode, promo_id)
    if not promo:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Code promo introuvable"
        )
    db.delete(promo)
    db.add(AdminLog.log_action(
        user_id=admin_user.id,
        action=AdminAction.DELETE,
        entity_type="promo_code",
        entity_id=promo_id
    ))
    db.commit()


# Finance

@router.get("/finance")
async def get_finance_summary(
    admin_user: User = Depends(view_finance),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Revenue of completed purchases, overall and per level.
    """
    rows = db.query(
        UserLevelPurchase.level,
        func.count(UserLevelPurchase.id),
        func.coalesce(func.sum(UserLevelPurchase.price_paid), 0.0)
    ).filter(
        UserLevelPurchase.status == PurchaseStatus.COMPLETED.value
    ).group_by(UserLevelPurchase.level).order_by(UserLevelPurchase.level).all()

    pending = db.query(UserLevelPurchase).filter(
        UserLevelPurchase.status == PurchaseStatus.PENDING.value
    ).count()

    by_level = [
        {"level": level, "purchases": count, "revenue_euros": round(float(revenue), 2)}
        for level, count, revenue in rows
    ]
    return {
        "total_purchases": sum(item["purchases"] for item in by_level),
        "total_revenue_euros": round(sum(item["revenue_euros"] for item in by_level), 2),
        "pending_purchases": pending,
        "by_level": by_level,
    }
