"""Availability repository - reads of bookings and blocked slots per studio/day"""

from datetime import date, time
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models import ACTIVE_STATUSES, AvailabilitySlot, Booking, Studio


class AvailabilityRepository:
    """Repository for availability database operations"""

    @staticmethod
    def get_active_bookings(
        db: Session, studio: Studio, day: date, exclude_booking_id: Optional[str] = None
    ) -> list[Booking]:
        """Pending/confirmed bookings for a studio on a date"""
        query = db.query(Booking).filter(
            Booking.studio == studio,
            Booking.date == day,
            Booking.status.in_(ACTIVE_STATUSES),
        )
        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.order_by(Booking.start_time).all()

    @staticmethod
    def get_active_bookings_in_range(
        db: Session, studio: Optional[Studio], start_date: Optional[date], end_date: Optional[date]
    ) -> list[Booking]:
        """Pending/confirmed bookings across a date range"""
        query = db.query(Booking).filter(Booking.status.in_(ACTIVE_STATUSES))
        if studio:
            query = query.filter(Booking.studio == studio)
        if start_date:
            query = query.filter(Booking.date >= start_date)
        if end_date:
            query = query.filter(Booking.date <= end_date)
        return query.order_by(Booking.date, Booking.start_time).all()

    @staticmethod
    def get_blocked_slots(db: Session, studio: Studio, day: date) -> list[AvailabilitySlot]:
        """Blocking rows (is_available = false) for a studio on a date"""
        return (
            db.query(AvailabilitySlot)
            .filter(
                AvailabilitySlot.studio == studio,
                AvailabilitySlot.date == day,
                AvailabilitySlot.is_available.is_(False),
            )
            .order_by(AvailabilitySlot.start_time)
            .all()
        )

    @staticmethod
    def list_slots(
        db: Session,
        studio: Optional[Studio] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[AvailabilitySlot]:
        """All slot rows, ordered by date then start time"""
        query = db.query(AvailabilitySlot)
        if studio:
            query = query.filter(AvailabilitySlot.studio == studio)
        if start_date:
            query = query.filter(AvailabilitySlot.date >= start_date)
        if end_date:
            query = query.filter(AvailabilitySlot.date <= end_date)
        return query.order_by(AvailabilitySlot.date, AvailabilitySlot.start_time).all()

    @staticmethod
    def get_slot(db: Session, slot_id: str) -> Optional[AvailabilitySlot]:
        return db.query(AvailabilitySlot).filter(AvailabilitySlot.id == slot_id).first()

    @staticmethod
    def find_identical(
        db: Session, studio: Studio, day: date, start_time: time, end_time: time
    ) -> Optional[AvailabilitySlot]:
        """Row with the same (studio, date, start, end) key"""
        return (
            db.query(AvailabilitySlot)
            .filter(
                AvailabilitySlot.studio == studio,
                AvailabilitySlot.date == day,
                AvailabilitySlot.start_time == start_time,
                AvailabilitySlot.end_time == end_time,
            )
            .first()
        )

    @staticmethod
    def delete_by_ids(db: Session, slot_ids: Iterable[str]) -> int:
        """Delete slots by id (caller commits)"""
        return (
            db.query(AvailabilitySlot)
            .filter(AvailabilitySlot.id.in_(list(slot_ids)))
            .delete(synchronize_session=False)
        )

    @staticmethod
    def delete_in_range(db: Session, studio: Studio, start_date: date, end_date: date) -> int:
        """Delete a studio's slots within a date range (caller commits)"""
        return (
            db.query(AvailabilitySlot)
            .filter(
                AvailabilitySlot.studio == studio,
                AvailabilitySlot.date >= start_date,
                AvailabilitySlot.date <= end_date,
            )
            .delete(synchronize_session=False)
        )
