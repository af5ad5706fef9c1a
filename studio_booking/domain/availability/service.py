"""
Availability Resolver.

Decides whether a (studio, date, time range) can be booked by testing it
against active bookings and admin blocks, lists the open hourly chunks shown
to customers, and manages the blocked-slot rows admins create.

Everything is open unless blocked. Two half-open intervals [s1, e1) and
[s2, e2) overlap iff s1 < e2 and e1 > s2, so touching ranges do not conflict.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from ...errors import AvailabilityUnknown, ConflictError, NotFoundError, ValidationError
from ...models import AvailabilitySlot, Studio
from ...shared.audit import record_audit
from ...shared.validators import minutes_of, time_from_minutes
from ..settings.schemas import BookingSettings
from ..settings.service import SettingsService
from .repository import AvailabilityRepository
from .schemas import (
    AvailabilityCheckResponse,
    BlockedSlotCreate,
    BlockedSlotResponse,
    BlockedSlotUpdate,
    BulkBlockRequest,
    BulkBlockResponse,
    BulkUnblockRequest,
    OpenHoursResponse,
    SlotBookingSummary,
    SlotsWithBookingsResponse,
    SlotWithBookings,
    TimeChunk,
)

logger = logging.getLogger(__name__)

SLOT_GRID_MINUTES = 60


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap on minutes-since-midnight"""
    return start_a < end_b and end_a > start_b


def coerce_studio(value) -> Studio:
    try:
        return Studio(value)
    except ValueError as e:
        raise ValidationError(f"Unknown studio '{value}'", field="studio") from e


class AvailabilityService:
    """Service for availability checks and blocked-slot management"""

    def __init__(self, db: Session, settings: Optional[BookingSettings] = None):
        self.db = db
        self.repo = AvailabilityRepository()
        self._settings = settings

    @property
    def settings(self) -> BookingSettings:
        if self._settings is None:
            self._settings = SettingsService(self.db).get_settings()
        return self._settings

    # ============================================================================
    # AVAILABILITY CHECKS
    # ============================================================================

    def validate_time_range(self, start: time, end: time) -> None:
        """Range must be non-empty, inside opening hours and on the hourly grid from open time"""
        if start >= end:
            raise ValidationError("start_time must be before end_time", field="start_time")

        open_min = minutes_of(self.settings.open_time)
        close_min = minutes_of(self.settings.close_time)
        start_min, end_min = minutes_of(start), minutes_of(end)

        if start.second or end.second:
            raise ValidationError("Times must be whole minutes", field="start_time")
        if start_min < open_min or end_min > close_min:
            raise ValidationError(
                f"Bookings must fall within opening hours "
                f"{self.settings.default_open_time}-{self.settings.default_close_time}",
                field="start_time",
            )
        for field, value in (("start_time", start_min), ("end_time", end_min)):
            if (value - open_min) % SLOT_GRID_MINUTES:
                raise ValidationError(
                    f"{field} must be on the hour grid starting at {self.settings.default_open_time}",
                    field=field,
                )

    def check_slot_available(
        self,
        studio,
        day: date,
        start: time,
        end: time,
        exclude_booking_id: Optional[str] = None,
        enforce_grid: bool = True,
    ) -> AvailabilityCheckResponse:
        """
        Check whether a time range can be booked.

        Args:
            studio: Studio name
            day: Booking date
            start: Requested start (inclusive)
            end: Requested end (exclusive)
            exclude_booking_id: Booking to ignore (the one being replaced in an edit)
            enforce_grid: Apply opening hours and the hourly grid (off when restoring
                an existing booking made under older settings)

        Returns:
            available flag, ids of conflicting bookings and the first blocking slot id

        Raises:
            ValidationError: Unknown studio or invalid time range
            AvailabilityUnknown: The store could not be read
        """
        studio = coerce_studio(studio)
        if enforce_grid:
            self.validate_time_range(start, end)
        elif start >= end:
            raise ValidationError("start_time must be before end_time", field="start_time")

        try:
            bookings = self.repo.get_active_bookings(self.db, studio, day, exclude_booking_id)
            blocks = self.repo.get_blocked_slots(self.db, studio, day)
        except DBAPIError as e:
            logger.error(f"❌ Availability lookup failed for {studio.value} on {day}: {e}")
            raise AvailabilityUnknown() from e

        buffer = self.settings.booking_buffer
        req_start = minutes_of(start) - buffer
        req_end = minutes_of(end) + buffer

        conflicting = [
            b.id
            for b in bookings
            if overlaps(minutes_of(b.start_time), minutes_of(b.end_time), req_start, req_end)
        ]
        blocking = next(
            (
                s.id
                for s in blocks
                if overlaps(
                    minutes_of(s.start_time), minutes_of(s.end_time), minutes_of(start), minutes_of(end)
                )
            ),
            None,
        )

        return AvailabilityCheckResponse(
            available=not conflicting and blocking is None,
            conflicting_booking_ids=conflicting,
            blocking_slot_id=blocking,
        )

    def list_open_hours(self, studio, day: date, now: datetime) -> OpenHoursResponse:
        """Hourly chunks a customer can still pick on a date"""
        studio = coerce_studio(studio)
        open_time, close_time = self.settings.open_time, self.settings.close_time
        result = OpenHoursResponse(
            studio=studio, date=day, open_time=open_time, close_time=close_time, slots=[]
        )
        if day < now.date():
            return result

        try:
            bookings = self.repo.get_active_bookings(self.db, studio, day)
            blocks = self.repo.get_blocked_slots(self.db, studio, day)
        except DBAPIError as e:
            logger.error(f"❌ Open hours lookup failed for {studio.value} on {day}: {e}")
            raise AvailabilityUnknown() from e

        buffer = self.settings.booking_buffer
        now_min = minutes_of(now.time()) if day == now.date() else None
        close_min = minutes_of(close_time)

        current = minutes_of(open_time)
        while current + SLOT_GRID_MINUTES <= close_min:
            chunk_end = current + SLOT_GRID_MINUTES
            taken = any(
                overlaps(current, chunk_end, minutes_of(b.start_time) - buffer, minutes_of(b.end_time) + buffer)
                for b in bookings
            ) or any(
                overlaps(current, chunk_end, minutes_of(s.start_time), minutes_of(s.end_time))
                for s in blocks
            )
            expired = now_min is not None and chunk_end <= now_min
            if not taken and not expired:
                result.slots.append(
                    TimeChunk(start=time_from_minutes(current), end=time_from_minutes(chunk_end))
                )
            current = chunk_end

        return result

    # ============================================================================
    # ADMIN VIEWS
    # ============================================================================

    def list_blocked_slots(
        self, studio=None, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[AvailabilitySlot]:
        """Slot rows for the admin calendar"""
        studio = coerce_studio(studio) if studio else None
        return self.repo.list_slots(self.db, studio, start_date, end_date)

    def list_slots_with_bookings(
        self, studio=None, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> SlotsWithBookingsResponse:
        """Blocked slots with the active bookings that overlap each, grouped by date"""
        studio = coerce_studio(studio) if studio else None
        try:
            slots = self.repo.list_slots(self.db, studio, start_date, end_date)
            bookings = self.repo.get_active_bookings_in_range(self.db, studio, start_date, end_date)
        except DBAPIError as e:
            logger.error(f"❌ Slot listing failed: {e}")
            raise AvailabilityUnknown() from e

        bookings_by_day = defaultdict(list)
        for b in bookings:
            bookings_by_day[(b.studio, b.date)].append(b)

        result = []
        by_date = defaultdict(list)
        for slot in slots:
            nested = [
                SlotBookingSummary.model_validate(b)
                for b in bookings_by_day[(slot.studio, slot.date)]
                if overlaps(
                    minutes_of(b.start_time),
                    minutes_of(b.end_time),
                    minutes_of(slot.start_time),
                    minutes_of(slot.end_time),
                )
            ]
            item = SlotWithBookings(
                **BlockedSlotResponse.model_validate(slot).model_dump(), bookings=nested
            )
            result.append(item)
            by_date[slot.date].append(item)

        return SlotsWithBookingsResponse(slots=result, by_date=dict(by_date))

    # ============================================================================
    # BLOCKED SLOT CRUD
    # ============================================================================

    def _conflicting_booking_ids(self, studio: Studio, day: date, start: time, end: time) -> list:
        bookings = self.repo.get_active_bookings(self.db, studio, day)
        return [
            b.id
            for b in bookings
            if overlaps(minutes_of(b.start_time), minutes_of(b.end_time), minutes_of(start), minutes_of(end))
        ]

    def create_slot(self, data: BlockedSlotCreate) -> AvailabilitySlot:
        """Block a time range; rejects duplicates and ranges holding active bookings"""
        if self.repo.find_identical(self.db, data.studio, data.date, data.start_time, data.end_time):
            raise ConflictError("An identical slot already exists for this studio and time")

        if not data.is_available:
            conflicts = self._conflicting_booking_ids(
                data.studio, data.date, data.start_time, data.end_time
            )
            if conflicts:
                raise ConflictError(
                    "Cannot block a range that holds active bookings",
                    conflicting_booking_ids=conflicts,
                )

        slot = AvailabilitySlot(**data.model_dump())
        self.db.add(slot)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("An identical slot already exists for this studio and time") from e

        record_audit(self.db, "block", "availability_slot", slot.id, new_data=data.model_dump())
        self.db.commit()
        self.db.refresh(slot)
        logger.info(f"🚫 Blocked {slot.studio.value} {slot.date} {slot.start_time}-{slot.end_time}")
        return slot

    def update_slot(self, data: BlockedSlotUpdate) -> AvailabilitySlot:
        """Edit a slot's range, studio, reason or availability flag"""
        slot = self.repo.get_slot(self.db, data.id)
        if not slot:
            raise NotFoundError("Availability slot", data.id)

        old = BlockedSlotResponse.model_validate(slot).model_dump()
        updates = data.model_dump(exclude_none=True, exclude={"id"})
        for key, value in updates.items():
            setattr(slot, key, value)

        if slot.start_time >= slot.end_time:
            self.db.rollback()
            raise ValidationError("start_time must be before end_time", field="start_time")

        if not slot.is_available:
            conflicts = self._conflicting_booking_ids(
                slot.studio, slot.date, slot.start_time, slot.end_time
            )
            if conflicts:
                self.db.rollback()
                raise ConflictError(
                    "Cannot block a range that holds active bookings",
                    conflicting_booking_ids=conflicts,
                )

        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("An identical slot already exists for this studio and time") from e

        record_audit(self.db, "update", "availability_slot", slot.id, old_data=old, new_data=updates)
        self.db.commit()
        self.db.refresh(slot)
        return slot

    def delete_slot(self, slot_id: str) -> None:
        """Unblock: remove a slot row"""
        slot = self.repo.get_slot(self.db, slot_id)
        if not slot:
            raise NotFoundError("Availability slot", slot_id)

        old = BlockedSlotResponse.model_validate(slot).model_dump()
        self.db.delete(slot)
        record_audit(self.db, "unblock", "availability_slot", slot_id, old_data=old)
        self.db.commit()
        logger.info(f"✅ Unblocked slot {slot_id}")

    def bulk_block(self, data: BulkBlockRequest, now: datetime) -> BulkBlockResponse:
        """
        Block one time range on many dates.

        Past dates (and today when the range has already started) are skipped,
        as are dates where the range overlaps an active booking. An existing
        identical row is turned into a block rather than duplicated.
        """
        today, now_time = now.date(), now.time()
        past, conflicting, valid = [], [], []
        for day in sorted(set(data.dates)):
            if day < today or (day == today and data.start_time < now_time):
                past.append(day)
            else:
                valid.append(day)

        if not valid:
            raise ValidationError("All provided dates/times are in the past", field="dates")

        to_block = []
        for day in valid:
            if self._conflicting_booking_ids(data.studio, day, data.start_time, data.end_time):
                conflicting.append(day)
            else:
                to_block.append(day)

        if not to_block:
            raise ConflictError(
                "All slots conflict with existing bookings",
                details={"dates": [d.isoformat() for d in conflicting]},
            )

        slots = []
        for day in to_block:
            slot = self.repo.find_identical(self.db, data.studio, day, data.start_time, data.end_time)
            if slot:
                slot.is_available = False
                slot.block_reason = data.block_reason or slot.block_reason
            else:
                slot = AvailabilitySlot(
                    studio=data.studio,
                    date=day,
                    start_time=data.start_time,
                    end_time=data.end_time,
                    is_available=False,
                    block_reason=data.block_reason,
                )
                self.db.add(slot)
            slots.append(slot)

        record_audit(
            self.db,
            "bulk_block",
            "availability_slot",
            new_data={
                "count": len(slots),
                "studio": data.studio,
                "dates": to_block,
                "start_time": data.start_time,
                "end_time": data.end_time,
            },
        )
        self.db.commit()
        for slot in slots:
            self.db.refresh(slot)

        logger.info(
            f"🚫 Bulk blocked {len(slots)} date(s) for {data.studio.value} "
            f"(skipped {len(past)} past, {len(conflicting)} conflicting)"
        )
        return BulkBlockResponse(
            count=len(slots),
            slots=[BlockedSlotResponse.model_validate(s) for s in slots],
            skipped_past_dates=past,
            skipped_conflicting_dates=conflicting,
        )

    def bulk_unblock(self, data: BulkUnblockRequest) -> int:
        """Delete slots by ids or by studio and date range"""
        if data.ids:
            deleted = self.repo.delete_by_ids(self.db, data.ids)
            old_data = {"ids": data.ids}
        else:
            deleted = self.repo.delete_in_range(self.db, data.studio, data.start_date, data.end_date)
            old_data = {"studio": data.studio, "start_date": data.start_date, "end_date": data.end_date}

        record_audit(
            self.db, "bulk_unblock", "availability_slot", old_data={**old_data, "count": deleted}
        )
        self.db.commit()
        logger.info(f"✅ Bulk unblocked {deleted} slot(s)")
        return deleted
