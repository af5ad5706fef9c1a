"""
Loyalty progress.

A customer earns the reward by completing LOYALTY_TARGET_HOURS of sessions
within a rolling LOYALTY_WINDOW_DAYS window. Each completed booking can open a
window ``[booking.date, booking.date + window)``; the first window that
reaches the target makes the customer eligible.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from ...models import Booking
from ...shared.validators import minutes_of
from ..bookings.repository import BookingRepository
from .schemas import LoyaltyStatus

logger = logging.getLogger(__name__)

LOYALTY_TARGET_HOURS = Decimal("50")
LOYALTY_WINDOW_DAYS = 90
LOYALTY_REWARD_AMOUNT = 2000


def booking_hours(booking: Booking) -> Decimal:
    return Decimal(minutes_of(booking.end_time) - minutes_of(booking.start_time)) / Decimal(60)


class LoyaltyService:
    """Service for loyalty progress (read-only)"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def get_loyalty_progress(self, phone_number: str, today: date) -> LoyaltyStatus:
        """Eligible window if any, else the earliest window still open at ``today``"""
        completed = self.repo.get_completed_for_phone(self.db, phone_number)
        window = timedelta(days=LOYALTY_WINDOW_DAYS)

        current = None
        for i, first in enumerate(completed):
            window_start, window_end = first.date, first.date + window
            in_window = [b for b in completed[i:] if b.date < window_end]
            hours = sum((booking_hours(b) for b in in_window), Decimal("0"))

            if hours >= LOYALTY_TARGET_HOURS:
                logger.info(f"🎉 Loyalty target reached for phone ending {phone_number[-4:]}")
                return self._status(phone_number, hours, True, window_start, window_end, in_window)

            if current is None and window_end > today:
                current = (hours, window_start, window_end, in_window)

        if current is None:
            return self._status(phone_number, Decimal("0"), False, None, None, [])
        hours, window_start, window_end, in_window = current
        return self._status(phone_number, hours, False, window_start, window_end, in_window)

    @staticmethod
    def _status(phone_number, hours, eligible, window_start, window_end, bookings) -> LoyaltyStatus:
        return LoyaltyStatus(
            phone_number=phone_number,
            hours_completed=hours,
            target_hours=LOYALTY_TARGET_HOURS,
            hours_remaining=max(LOYALTY_TARGET_HOURS - hours, Decimal("0")),
            eligible=eligible,
            window_start=window_start,
            window_end=window_end,
            booking_ids=[b.id for b in bookings],
            reward_amount=LOYALTY_REWARD_AMOUNT,
        )
