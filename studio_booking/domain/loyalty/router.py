"""Loyalty router"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...errors import ValidationError
from ...shared.clock import Clock, get_clock
from ...shared.validators import validate_phone
from .schemas import LoyaltyStatus
from .service import LoyaltyService

router = APIRouter(prefix="/loyalty", tags=["Loyalty"])


def get_loyalty_service(db: Session = Depends(get_db)) -> LoyaltyService:
    """Dependency injection for LoyaltyService"""
    return LoyaltyService(db)


@router.get("/status", response_model=LoyaltyStatus)
async def get_loyalty_status(
    phone: str = Query(...),
    clock: Clock = Depends(get_clock),
    service: LoyaltyService = Depends(get_loyalty_service),
):
    """Loyalty progress for a phone number"""
    try:
        phone_number = validate_phone(phone)
    except ValueError as e:
        raise ValidationError(str(e), field="phone") from e
    return service.get_loyalty_progress(phone_number, clock().date())


__all__ = ["router"]
