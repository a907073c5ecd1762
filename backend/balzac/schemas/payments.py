"""
Purchase, payment and promo code schemas.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CreatePaymentRequest(BaseModel):
    level: Optional[Union[int, str]] = None
    promo_code: Optional[str] = Field(None, max_length=50)


class CreatePaymentResponse(BaseModel):
    url: str


class VerifyPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")


class VerifyPaymentResponse(BaseModel):
    success: bool
    level: Optional[int] = None


class PromoCodeRequest(BaseModel):
    code: Optional[str] = None
    level: Optional[Union[int, str]] = None


class PromoCodeCheckResponse(BaseModel):
    valid: bool
    discount: int = 0
    message: Optional[str] = None


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    level: int
    price_paid: float
    status: str
    payment_method: str
    promo_code: Optional[str] = None
    created_at: datetime
    purchased_at: Optional[datetime] = None


class LevelPricing(BaseModel):
    level: int
    level_name: str
    price_euros: float
    free_sessions: int
    is_active: bool


class AccessStatusResponse(BaseModel):
    level: int
    has_access: bool
    reason: str
    is_purchased: bool
    free_sessions: int
    sessions_used: int
    free_sessions_remaining: int
    price_euros: float


# Admin

class PromoCodeCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=50)
    level: int = Field(..., ge=1)
    discount_percentage: int = Field(..., gt=0, le=100)
    expires_at: Optional[datetime] = None


class PromoCodeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    level: int
    discount_percentage: int
    is_used: bool
    used_by: Optional[int] = None
    used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
