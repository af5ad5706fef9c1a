"""Booking router - customer self-service and admin booking management"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...errors import ValidationError
from ...models import BookingStatus, Studio
from ...rate_limiter import booking_rate_limit
from ...services.identity_verification import IdentityVerifier, get_identity_verifier
from ...services.notification_service import NotificationDispatcher, get_notification_dispatcher
from ...services.status_automation import get_bookings_needing_action
from ...shared.clock import Clock, get_clock
from ...shared.validators import validate_phone
from .schemas import (
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    CancelBookingRequest,
    NeedsActionReport,
    PaymentStatusUpdate,
    RebookRequest,
)
from .service import BookingService, to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])
admin_router = APIRouter(prefix="/admin/bookings", tags=["Admin Bookings"])


def get_booking_service(
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, notifier=notifier, verifier=verifier)


def _phone_param(phone: str) -> str:
    try:
        return validate_phone(phone)
    except ValueError as e:
        raise ValidationError(str(e), field="phone") from e


# ============================================================================
# CUSTOMER ENDPOINTS
# ============================================================================


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    clock: Clock = Depends(get_clock),
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(booking_rate_limit),
):
    """Create a booking (self-service)"""
    now = clock()
    booking = service.create_booking(data, now, created_by="customer")
    return to_response(booking, now)


@router.get("", response_model=list[BookingResponse])
async def get_customer_bookings(
    phone: str = Query(...),
    clock: Clock = Depends(get_clock),
    service: BookingService = Depends(get_booking_service),
):
    """All bookings for a phone number"""
    return service.list_customer_bookings(_phone_param(phone), clock())


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    data: CancelBookingRequest,
    clock: Clock = Depends(get_clock),
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(booking_rate_limit),
):
    """Cancel a booking after phone verification"""
    now = clock()
    booking = service.cancel_booking_by_customer(
        booking_id, data.phone_number, data.code, now, reason=data.reason
    )
    return to_response(booking, now)


@router.post("/{booking_id}/rebook", response_model=BookingResponse, status_code=201)
async def rebook(
    booking_id: str,
    data: RebookRequest,
    clock: Clock = Depends(get_clock),
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(booking_rate_limit),
):
    """Move a booking to a new time/studio; the original is cancelled only if the new one sticks"""
    now = clock()
    booking = service.rebook(booking_id, data.phone_number, data.code, data.booking, now)
    return to_response(booking, now)


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================


@admin_router.get("", response_model=list[BookingResponse])
async def list_bookings(
    studio: Optional[Studio] = Query(None),
    status: Optional[BookingStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    phone: Optional[str] = Query(None),
    clock: Clock = Depends(get_clock),
    _: str = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """List bookings with optional filters"""
    phone_number = _phone_param(phone) if phone else None
    return service.list_bookings(clock(), studio, status, start_date, end_date, phone_number)


@admin_router.get("/needs-action", response_model=NeedsActionReport)
async def needs_action(
    clock: Clock = Depends(get_clock),
    _: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Bookings whose session ended without being completed"""
    return get_bookings_needing_action(db, clock())


@admin_router.post("", response_model=BookingResponse, status_code=201)
async def admin_create_booking(
    data: BookingCreate,
    clock: Clock = Depends(get_clock),
    _: str = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Book on behalf of a customer (confirmed immediately)"""
    now = clock()
    booking = service.create_booking(data, now, created_by="admin")
    return to_response(booking, now)


@admin_router.put("", response_model=BookingResponse)
async def update_booking(
    data: BookingStatusUpdate,
    clock: Clock = Depends(get_clock),
    _: str = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Change a booking's status and/or notes"""
    now = clock()
    return to_response(service.update_status(data, now), now)


@admin_router.delete("")
async def delete_booking(
    id: str = Query(...),
    _: str = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Delete a cancelled or no-show booking permanently"""
    service.delete_booking(id)
    return {"success": True}


@admin_router.put("/payment", response_model=BookingResponse)
async def update_payment_status(
    data: PaymentStatusUpdate,
    clock: Clock = Depends(get_clock),
    _: str = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Record payment verification"""
    return to_response(service.set_payment_status(data), clock())


__all__ = ["router", "admin_router"]
