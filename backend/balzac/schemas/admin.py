"""
Admin configuration schemas: site settings, privileges, levels and pricing.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from balzac.models.admin import Capability


class SiteConfigurationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    value: Optional[str] = None
    value_type: str
    category: str
    description: Optional[str] = None
    is_public: bool


class SettingUpdate(BaseModel):
    value: Any


class PublicConfig(BaseModel):
    questions_percentage_per_level: int
    questions_per_test: int
    anti_cheat_enabled: bool
    anti_cheat_max_warnings: int
    site_name: str
    footer_text: str


class PrivilegeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    capability: str
    label: str
    description: Optional[str] = None
    is_enabled: bool


class PrivilegeUpdate(BaseModel):
    capability: Capability
    is_enabled: bool


class LevelCreate(BaseModel):
    level_number: int = Field(..., ge=1)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)
    is_active: bool = True


class LevelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None


class LevelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    level_number: int
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    is_active: bool


class TemplateUpsert(BaseModel):
    """Certificate and pricing settings of one level."""
    name: Optional[str] = Field(None, max_length=200)
    certificate_title: Optional[str] = Field(None, max_length=200)
    certificate_subtitle: Optional[str] = Field(None, max_length=200)
    certificate_text: Optional[str] = None
    min_score_required: Optional[int] = Field(None, ge=0, le=100)
    price_euros: Optional[float] = Field(None, ge=0)
    free_sessions: Optional[int] = Field(None, ge=0)
    badge_color: Optional[str] = Field(None, max_length=20)
    badge_icon: Optional[str] = Field(None, max_length=50)
    custom_badge_url: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    difficulty_level_id: int
    name: str
    certificate_title: str
    certificate_subtitle: Optional[str] = None
    certificate_text: str
    min_score_required: int
    price_euros: Optional[float] = None
    free_sessions: Optional[int] = None
    badge_color: Optional[str] = None
    badge_icon: Optional[str] = None
    custom_badge_url: Optional[str] = None
    is_active: bool
    updated_at: Optional[datetime] = None
