"""
Bookings that need an admin decision.

A pending or confirmed booking whose end time has passed reads as
``needs_completion``. Nothing here changes the stored status: the admin
decides between completed and no_show (a pending one must be confirmed or
cancelled first), so this module only reports.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..domain.bookings.lifecycle import NEEDS_COMPLETION, booking_end, effective_status
from ..domain.bookings.repository import BookingRepository
from ..domain.bookings.schemas import NeedsActionItem, NeedsActionReport
from ..domain.bookings.service import to_response
from ..models import Booking, BookingStatus

logger = logging.getLogger(__name__)


def get_next_required_action(booking: Booking) -> str:
    """What the admin should do with an overdue booking"""
    if booking.status == BookingStatus.PENDING:
        return "Session time has passed without confirmation - confirm and complete, or cancel"
    return "Session ended - mark as completed or no-show"


def get_bookings_needing_action(db: Session, now: datetime) -> NeedsActionReport:
    """All bookings whose effective status is needs_completion at ``now``"""
    items = []
    for booking in BookingRepository.get_overdue_active(db, now):
        if effective_status(booking, now) != NEEDS_COMPLETION:
            continue
        overdue = int((now - booking_end(booking)).total_seconds() // 60)
        items.append(
            NeedsActionItem(
                booking=to_response(booking, now),
                overdue_minutes=overdue,
                suggested_action=get_next_required_action(booking),
            )
        )

    if items:
        logger.info(f"📊 {len(items)} booking(s) need completion")
    return NeedsActionReport(count=len(items), items=items)
