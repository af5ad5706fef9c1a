"""Settings router - admin GET/PUT of booking rules"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from .schemas import BookingSettings, BookingSettingsUpdate
from .service import SettingsService

router = APIRouter(prefix="/admin/settings", tags=["Admin Settings"])


def get_settings_service(db: Session = Depends(get_db)) -> SettingsService:
    """Dependency injection for SettingsService"""
    return SettingsService(db)


@router.get("", response_model=BookingSettings)
async def get_settings(
    _: str = Depends(require_admin),
    service: SettingsService = Depends(get_settings_service),
):
    """Get effective booking settings"""
    return service.get_settings()


@router.put("", response_model=BookingSettings)
async def update_settings(
    data: BookingSettingsUpdate,
    _: str = Depends(require_admin),
    service: SettingsService = Depends(get_settings_service),
):
    """Update booking settings"""
    return service.update_settings(data)


__all__ = ["router"]
