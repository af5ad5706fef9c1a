"""Booking repository - database operations for bookings, slot claims and reminders"""

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import ACTIVE_STATUSES, Booking, BookingSlotClaim, BookingStatus, Reminder, Studio
from ...shared.validators import minutes_of, time_from_minutes

CLAIM_CELL_MINUTES = 15

# (type, offset before start); confirmation is scheduled at creation time
REMINDER_SCHEDULE = (
    ("24h_reminder", timedelta(hours=24)),
    ("1h_reminder", timedelta(hours=1)),
)


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        """Get a booking by id"""
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def list_bookings(
        db: Session,
        studio: Optional[Studio] = None,
        status: Optional[BookingStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        phone_number: Optional[str] = None,
    ) -> list[Booking]:
        """Bookings matching the filters, ordered by date and start time"""
        query = db.query(Booking)
        if studio:
            query = query.filter(Booking.studio == studio)
        if status:
            query = query.filter(Booking.status == status)
        if start_date:
            query = query.filter(Booking.date >= start_date)
        if end_date:
            query = query.filter(Booking.date <= end_date)
        if phone_number:
            query = query.filter(Booking.phone_number == phone_number)
        return query.order_by(Booking.date, Booking.start_time).all()

    @staticmethod
    def get_overdue_active(db: Session, now: datetime) -> list[Booking]:
        """Active bookings on or before today; the caller filters by end time"""
        return (
            db.query(Booking)
            .filter(Booking.status.in_(ACTIVE_STATUSES), Booking.date <= now.date())
            .order_by(Booking.date, Booking.end_time)
            .all()
        )

    @staticmethod
    def get_completed_for_phone(db: Session, phone_number: str) -> list[Booking]:
        """Completed bookings for a phone number in date order"""
        return (
            db.query(Booking)
            .filter(Booking.phone_number == phone_number, Booking.status == BookingStatus.COMPLETED)
            .order_by(Booking.date, Booking.start_time)
            .all()
        )

    # ============================================================================
    # SLOT CLAIMS
    # ============================================================================

    @staticmethod
    def claim_slots(booking: Booking) -> None:
        """Attach one claim per 15-minute cell of the booking's interval"""
        start, end = minutes_of(booking.start_time), minutes_of(booking.end_time)
        for cell in range(start, end, CLAIM_CELL_MINUTES):
            booking.claims.append(
                BookingSlotClaim(
                    studio=booking.studio, date=booking.date, slot_start=time_from_minutes(cell)
                )
            )

    @staticmethod
    def release_slots(db: Session, booking: Booking) -> None:
        """Drop a booking's claims and flush so the cells are free within this transaction"""
        booking.claims.clear()
        db.flush()

    # ============================================================================
    # REMINDERS
    # ============================================================================

    @staticmethod
    def schedule_reminders(booking: Booking, now: datetime) -> None:
        """Confirmation now, then 24h and 1h before start when still ahead"""
        booking.reminders.append(Reminder(type="confirmation", scheduled_at=now, status="pending"))
        start = datetime.combine(booking.date, booking.start_time)
        for reminder_type, offset in REMINDER_SCHEDULE:
            scheduled_at = start - offset
            if scheduled_at > now:
                booking.reminders.append(
                    Reminder(type=reminder_type, scheduled_at=scheduled_at, status="pending")
                )

    @staticmethod
    def cancel_reminders(booking: Booking) -> None:
        for reminder in booking.reminders:
            if reminder.status == "pending":
                reminder.status = "cancelled"

    @staticmethod
    def reactivate_reminders(booking: Booking, now: datetime) -> None:
        """Restored bookings get their still-future reminders back"""
        for reminder in booking.reminders:
            if reminder.status == "cancelled" and reminder.scheduled_at > now:
                reminder.status = "pending"
