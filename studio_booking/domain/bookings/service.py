"""
Booking Lifecycle Manager.

Creates bookings, drives them through the status lifecycle and handles the
customer cancel/rebook flows. Double-booking is prevented twice: an
application pre-check (which reports what conflicts) and the unique
constraint on booking_slot_claims, written in the same transaction as the
booking, which stops a concurrent request that slipped past the pre-check.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ... import config
from ...errors import ConflictError, NotFoundError, ValidationError, VerificationError
from ...models import ACTIVE_STATUSES, Booking, BookingStatus, PaymentStatus, SessionType, Studio
from ...services.identity_verification import IdentityVerifier
from ...services.notification_service import NotificationDispatcher
from ...shared.audit import booking_snapshot, record_audit
from ...shared.validators import minutes_of
from ..availability.schemas import AvailabilityCheckResponse
from ..availability.service import AvailabilityService
from ..pricing import service as pricing
from ..settings.schemas import BookingSettings
from ..settings.service import SettingsService
from .lifecycle import (
    AFTER_END_ACTIONS,
    action_for_status,
    booking_end,
    booking_start,
    effective_status,
    ensure_deletable,
    next_status,
)
from .repository import BookingRepository
from .schemas import BookingCreate, BookingResponse, BookingStatusUpdate, PaymentStatusUpdate

logger = logging.getLogger(__name__)

ACTION_EVENTS = {
    "confirm": "booking_confirmed",
    "cancel": "booking_cancelled",
    "complete": "booking_completed",
    "no_show": "booking_no_show",
    "restore": "booking_restored",
}


def to_response(booking: Booking, now: datetime) -> BookingResponse:
    """Serialize a booking with its effective status at ``now``"""
    data = {
        name: getattr(booking, name)
        for name in BookingResponse.model_fields
        if name != "effective_status"
    }
    return BookingResponse(**data, effective_status=effective_status(booking, now))


def _conflict_from_check(check: AvailabilityCheckResponse) -> ConflictError:
    if check.blocking_slot_id:
        message = "This time is blocked by the studio. Please pick another time."
    else:
        message = "This slot is already booked. Please pick another time."
    return ConflictError(
        message,
        conflicting_booking_ids=check.conflicting_booking_ids,
        blocking_slot_id=check.blocking_slot_id,
    )


class BookingService:
    """Service for booking creation and lifecycle operations"""

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationDispatcher] = None,
        verifier: Optional[IdentityVerifier] = None,
    ):
        self.db = db
        self.repo = BookingRepository()
        self.notifier = notifier or NotificationDispatcher()
        self.verifier = verifier or IdentityVerifier()
        self._settings: Optional[BookingSettings] = None

    @property
    def settings(self) -> BookingSettings:
        if self._settings is None:
            self._settings = SettingsService(self.db).get_settings()
        return self._settings

    @property
    def availability(self) -> AvailabilityService:
        return AvailabilityService(self.db, self.settings)

    # ============================================================================
    # HELPERS
    # ============================================================================

    def _get_or_404(self, booking_id: str) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _get_owned(self, booking_id: str, phone_number: str) -> Booking:
        """Booking owned by this phone; other customers' bookings look missing"""
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking or booking.phone_number != phone_number:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _verify(self, phone_number: str, code: str) -> None:
        if not self.verifier.verify(phone_number, code):
            raise VerificationError("Phone number could not be verified")

    def _notify(self, event: str, booking: Booking) -> None:
        try:
            self.notifier.notify(event, booking)
        except Exception as e:
            logger.error(f"❌ Notification {event} failed for booking {booking.id}: {e}")

    def _initial_status(self, created_by: str) -> BookingStatus:
        if created_by == "admin" or config.SELF_SERVICE_AUTO_CONFIRM:
            return BookingStatus.CONFIRMED
        return BookingStatus.PENDING

    def _price(self, data: BookingCreate) -> tuple[SessionType, Optional[str], Decimal]:
        """Session type, details and hourly rate for a booking request"""
        if data.session_options is None:
            return data.session_type, data.session_details, Decimal(data.rate_per_hour)

        session = data.session_options
        allowed = pricing.allowed_studios(session)
        if data.studio not in allowed:
            raise ValidationError(
                f"{data.studio.value} cannot host {pricing.describe(session)}",
                field="studio",
                details={"allowed_studios": [s.value for s in allowed]},
            )

        rate = pricing.get_rate(data.studio, session)
        if data.rate_per_hour is not None and Decimal(data.rate_per_hour) != rate:
            raise ValidationError(
                "rate_per_hour does not match the studio rate card",
                field="rate_per_hour",
                details={"expected_rate": str(rate)},
            )
        return SessionType(session.session_type), data.session_details or pricing.describe(session), rate

    def _prepare_booking(
        self, data: BookingCreate, now: datetime, created_by: str, status: BookingStatus
    ) -> Booking:
        """Validate a request against the booking rules and build the (unsaved) row"""
        settings = self.settings
        self.availability.validate_time_range(data.start_time, data.end_time)

        if datetime.combine(data.date, data.start_time) <= now:
            raise ValidationError("Cannot book a time slot in the past", field="start_time")

        last_bookable = now.date() + timedelta(days=settings.advance_booking_days)
        if created_by == "customer" and data.date > last_bookable:
            raise ValidationError(
                f"Bookings can be made at most {settings.advance_booking_days} days in advance",
                field="date",
            )

        hours = Decimal(minutes_of(data.end_time) - minutes_of(data.start_time)) / Decimal(60)
        if hours < settings.min_booking_duration or hours > settings.max_booking_duration:
            raise ValidationError(
                f"Booking must be between {settings.min_booking_duration} and "
                f"{settings.max_booking_duration} hours",
                field="end_time",
            )

        session_type, session_details, rate = self._price(data)

        return Booking(
            studio=Studio(data.studio),
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            session_type=session_type,
            session_details=session_details,
            group_size=data.group_size,
            rate_per_hour=rate,
            total_amount=pricing.compute_total(rate, hours),
            status=status,
            is_prompt_payment=data.is_prompt_payment,
            payment_status=PaymentStatus.PENDING if data.is_prompt_payment else None,
            phone_number=data.phone_number,
            name=data.name,
            email=data.email,
            notes=data.notes,
            created_by=created_by,
        )

    def _cancel_in_session(self, booking: Booking, now: datetime, reason: Optional[str]) -> None:
        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = now
        booking.cancellation_reason = reason
        self.repo.cancel_reminders(booking)

    # ============================================================================
    # CREATION
    # ============================================================================

    def create_booking(self, data: BookingCreate, now: datetime, created_by: str = "customer") -> Booking:
        """
        Create a booking after validating it and checking the slot.

        The booking, its slot claims and reminder rows are written in one
        transaction. If a concurrent request claimed any of the same cells
        first, the insert fails on the claim constraint and nothing is kept.

        Raises:
            ValidationError: Request breaks a booking rule
            ConflictError: Slot overlaps an active booking or a block
            AvailabilityUnknown: Store unreachable during the check
        """
        booking = self._prepare_booking(data, now, created_by, self._initial_status(created_by))

        check = self.availability.check_slot_available(
            booking.studio, booking.date, booking.start_time, booking.end_time
        )
        if not check.available:
            logger.info(
                f"⛔ Slot unavailable: {booking.studio.value} {booking.date} "
                f"{booking.start_time}-{booking.end_time} (conflicts: {check.conflicting_booking_ids})"
            )
            raise _conflict_from_check(check)

        try:
            self.repo.claim_slots(booking)
            self.repo.schedule_reminders(booking, now)
            self.db.add(booking)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(
                f"⚠️ Lost booking race for {booking.studio.value} {booking.date} "
                f"{booking.start_time}-{booking.end_time}"
            )
            raise ConflictError() from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info(
            f"✅ Booking {booking.id} created ({booking.status.value}) for {booking.studio.value} "
            f"{booking.date} {booking.start_time}-{booking.end_time} by {created_by}"
        )
        self._notify("booking_created", booking)
        return booking

    # ============================================================================
    # LIFECYCLE
    # ============================================================================

    def transition(
        self, booking_id: str, action: str, now: datetime, reason: Optional[str] = None
    ) -> Booking:
        """Apply a lifecycle action; TransitionError if the current status forbids it"""
        booking = self._get_or_404(booking_id)
        current = BookingStatus(booking.status)
        target = next_status(current, action)

        if action in AFTER_END_ACTIONS and now < booking_end(booking):
            logger.warning(f"⚠️ Booking {booking.id} marked {target.value} before its end time")

        old = booking_snapshot(booking)
        try:
            if current in ACTIVE_STATUSES and target not in ACTIVE_STATUSES:
                self.repo.release_slots(self.db, booking)

            if action == "cancel":
                self._cancel_in_session(booking, now, reason)
            elif action == "restore":
                check = self.availability.check_slot_available(
                    booking.studio,
                    booking.date,
                    booking.start_time,
                    booking.end_time,
                    exclude_booking_id=booking.id,
                    enforce_grid=False,
                )
                if not check.available:
                    raise _conflict_from_check(check)
                self.repo.claim_slots(booking)
                self.repo.reactivate_reminders(booking, now)
                booking.cancelled_at = None
                booking.cancellation_reason = None

            booking.status = target
            record_audit(
                self.db, "update", "booking", booking.id, old_data=old, new_data=booking_snapshot(booking)
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("The slot is no longer free, booking cannot be restored") from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info(f"🔄 Booking {booking.id}: {current.value} → {target.value} ({action})")
        self._notify(ACTION_EVENTS[action], booking)
        return booking

    def update_status(self, data: BookingStatusUpdate, now: datetime) -> Booking:
        """Admin update: move to a target status and/or edit notes"""
        booking = self._get_or_404(data.id)
        action = action_for_status(booking.status, data.status) if data.status else None

        if data.notes is not None:
            booking.notes = data.notes

        if action:
            return self.transition(booking.id, action, now, reason=data.cancellation_reason)

        record_audit(self.db, "update", "booking", booking.id, new_data={"notes": data.notes})
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def delete_booking(self, booking_id: str) -> None:
        """Permanently delete a cancelled or no-show booking"""
        booking = self._get_or_404(booking_id)
        ensure_deletable(booking)

        old = booking_snapshot(booking)
        self.db.delete(booking)
        record_audit(self.db, "delete", "booking", booking_id, old_data=old)
        self.db.commit()
        logger.info(f"🗑️ Booking {booking_id} deleted permanently")

    def set_payment_status(self, data: PaymentStatusUpdate) -> Booking:
        """Record payment verification for a prompt-payment booking"""
        booking = self._get_or_404(data.id)
        if not booking.is_prompt_payment:
            raise ValidationError(
                "Payment status only applies to prompt-payment bookings", field="payment_status"
            )

        old = {"payment_status": booking.payment_status}
        booking.payment_status = data.payment_status
        record_audit(
            self.db,
            "payment_update",
            "booking",
            booking.id,
            old_data=old,
            new_data={"payment_status": data.payment_status},
        )
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"💳 Booking {booking.id} payment status → {data.payment_status.value}")
        return booking

    # ============================================================================
    # CUSTOMER FLOWS
    # ============================================================================

    def cancel_booking_by_customer(
        self, booking_id: str, phone_number: str, code: str, now: datetime, reason: Optional[str] = None
    ) -> Booking:
        """Customer cancellation after identity verification; past bookings cannot be cancelled"""
        self._verify(phone_number, code)
        booking = self._get_owned(booking_id, phone_number)
        next_status(booking.status, "cancel")

        if booking_start(booking) <= now:
            raise ValidationError("Bookings that have already started cannot be cancelled", field="id")

        return self.transition(booking.id, "cancel", now, reason=reason or "Cancelled by customer")

    def rebook(
        self, booking_id: str, phone_number: str, code: str, data: BookingCreate, now: datetime
    ) -> Booking:
        """
        Edit a booking as cancel-and-rebook.

        Identity is verified before anything is touched. The original's
        claims are released, the new range is checked with the original
        excluded, the replacement is inserted and the original cancelled, all
        in one transaction. Any failure rolls back and leaves the original
        exactly as it was.
        """
        self._verify(phone_number, code)
        original = self._get_owned(booking_id, phone_number)
        next_status(original.status, "cancel")

        if booking_start(original) <= now:
            raise ValidationError("Bookings that have already started cannot be changed", field="id")

        data = data.model_copy(update={"phone_number": original.phone_number})
        replacement = self._prepare_booking(
            data, now, created_by=original.created_by, status=BookingStatus(original.status)
        )
        old = booking_snapshot(original)

        try:
            self.repo.release_slots(self.db, original)
            check = self.availability.check_slot_available(
                replacement.studio,
                replacement.date,
                replacement.start_time,
                replacement.end_time,
                exclude_booking_id=original.id,
            )
            if not check.available:
                raise _conflict_from_check(check)

            replacement.replaces_booking_id = original.id
            self.repo.claim_slots(replacement)
            self.repo.schedule_reminders(replacement, now)
            self.db.add(replacement)
            self._cancel_in_session(original, now, "Rebooked")

            record_audit(
                self.db,
                "rebook",
                "booking",
                original.id,
                old_data=old,
                new_data=booking_snapshot(replacement),
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError() from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(replacement)
        logger.info(f"🔁 Booking {original.id} rebooked as {replacement.id}")
        self._notify("booking_rebooked", replacement)
        return replacement

    # ============================================================================
    # QUERIES
    # ============================================================================

    def list_bookings(
        self,
        now: datetime,
        studio: Optional[Studio] = None,
        status: Optional[BookingStatus] = None,
        start_date=None,
        end_date=None,
        phone_number: Optional[str] = None,
    ) -> list[BookingResponse]:
        """Admin listing; every row carries its effective status"""
        bookings = self.repo.list_bookings(self.db, studio, status, start_date, end_date, phone_number)
        return [to_response(b, now) for b in bookings]

    def list_customer_bookings(self, phone_number: str, now: datetime) -> list[BookingResponse]:
        """All bookings for a phone number"""
        bookings = self.repo.list_bookings(self.db, phone_number=phone_number)
        return [to_response(b, now) for b in bookings]
