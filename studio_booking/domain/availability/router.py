"""Availability router - public slot lookup and admin blocked-slot management"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import Studio
from ...rate_limiter import availability_rate_limit
from ...shared.clock import Clock, get_clock
from .schemas import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    BlockedSlotCreate,
    BlockedSlotResponse,
    BlockedSlotUpdate,
    BulkBlockRequest,
    BulkBlockResponse,
    BulkUnblockRequest,
    BulkUnblockResponse,
    OpenHoursResponse,
    SlotsWithBookingsResponse,
)
from .service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["Availability"])
admin_router = APIRouter(prefix="/admin/availability", tags=["Admin Availability"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================


@router.get("", response_model=OpenHoursResponse)
async def get_open_hours(
    studio: Studio = Query(...),
    date: date = Query(...),
    clock: Clock = Depends(get_clock),
    service: AvailabilityService = Depends(get_availability_service),
    _: None = Depends(availability_rate_limit),
):
    """Open hourly chunks for a studio on a date"""
    return service.list_open_hours(studio, date, clock())


@router.post("/check", response_model=AvailabilityCheckResponse)
async def check_availability(
    data: AvailabilityCheckRequest,
    service: AvailabilityService = Depends(get_availability_service),
    _: None = Depends(availability_rate_limit),
):
    """Check whether a time range can be booked"""
    return service.check_slot_available(
        data.studio, data.date, data.start_time, data.end_time, data.exclude_booking_id
    )


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================


@admin_router.get("", response_model=list[BlockedSlotResponse])
async def list_slots(
    studio: Optional[Studio] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    _: str = Depends(require_admin),
    service: AvailabilityService = Depends(get_availability_service),
):
    """List blocked slots"""
    return service.list_blocked_slots(studio, start_date, end_date)


@admin_router.get("/with-bookings", response_model=SlotsWithBookingsResponse)
async def list_slots_with_bookings(
    studio: Optional[Studio] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    _: str = Depends(require_admin),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Blocked slots with the active bookings inside each"""
    return service.list_slots_with_bookings(studio, start_date, end_date)


@admin_router.post("", response_model=BlockedSlotResponse, status_code=201)
async def create_slot(
    data: BlockedSlotCreate,
    _: str = Depends(require_admin),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Block a time range"""
    return service.create_slot(data)


@admin_router.put("", response_model=BlockedSlotResponse)
async def update_slot(
    data: BlockedSlotUpdate,
    _: str = Depends(require_admin),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Edit a blocked slot"""
    return service.update_slot(data)


@admin_router.delete("")
async def delete_slot(
    id: str = Query(...),
    _: str = Depends(require_admin),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Unblock a slot"""
    service.delete_slot(id)
    return {"success": True}


# ============================================================================
# BULK OPERATIONS
# ============================================================================


@admin_router.post("/bulk", response_model=BulkBlockResponse, status_code=201)
async def bulk_block(
    data: BulkBlockRequest,
    clock: Clock = Depends(get_clock),
    _: str = Depends(require_admin),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Block the same time range on several dates"""
    return service.bulk_block(data, clock())


@admin_router.delete("/bulk", response_model=BulkUnblockResponse)
async def bulk_unblock(
    data: BulkUnblockRequest,
    _: str = Depends(require_admin),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Unblock slots by ids or by studio and date range"""
    return BulkUnblockResponse(deleted_count=service.bulk_unblock(data))


__all__ = ["router", "admin_router"]
