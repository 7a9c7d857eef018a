from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_settings_service, require_admin
from app.schemas.site_settings import SiteSettingResponse, SiteSettingUpdate
from app.services.settings_service import SiteSettingsService

router = APIRouter()


@router.get("", response_model=Dict[str, Any])
async def get_site_settings(
    site_settings: SiteSettingsService = Depends(get_settings_service)
):
    """
    Get all site settings as one object keyed by setting name.
    """
    return await site_settings.get_site_settings()


@router.put("/{key}", response_model=SiteSettingResponse, dependencies=[Depends(require_admin)])
async def update_site_setting(
    key: str,
    request: SiteSettingUpdate,
    site_settings: SiteSettingsService = Depends(get_settings_service)
):
    """
    Replace one site setting (admin only).

    `general.shippingFee` and `general.taxRate` are used for order totals
    from the next checkout on.
    """
    try:
        return await site_settings.update_site_setting(key, request.value)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid value for {key}: {e}"
        )
