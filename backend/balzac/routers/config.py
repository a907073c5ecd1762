"""
Public site configuration.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from balzac.schemas.admin import PublicConfig
from balzac.services.site_settings import SiteSettings, get_site_settings

router = APIRouter()


@router.get("/config", response_model=PublicConfig)
async def get_public_config(
    site_settings: SiteSettings = Depends(get_site_settings)
) -> Dict[str, Any]:
    """Settings the front-end needs: session sizing and anti-cheat limits."""
    return site_settings.to_dict()
