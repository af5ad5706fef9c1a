from datetime import time, timedelta
from decimal import Decimal

import pytest

from studio_booking import config
from studio_booking.domain.availability.schemas import AvailabilityCheckResponse
from studio_booking.domain.availability.service import AvailabilityService
from studio_booking.domain.bookings.schemas import PaymentStatusUpdate
from studio_booking.errors import ConflictError, NotFoundError, ValidationError, VerificationError
from studio_booking.models import (
    AvailabilitySlot,
    Booking,
    BookingSlotClaim,
    BookingStatus,
    PaymentStatus,
    SessionType,
    Studio,
)
from tests.factories import (
    CUSTOMER_PHONE,
    FIXED_NOW,
    TODAY,
    TOMORROW,
    VALID_CODE,
    booking_request,
    insert_booking,
)

OTHER_PHONE = "9123456789"


class TestCreateBooking:
    def test_priced_from_rate_card(self, db, booking_service, notifier):
        booking = booking_service.create_booking(booking_request(), FIXED_NOW)

        assert booking.status == BookingStatus.PENDING
        assert booking.session_type == SessionType.KARAOKE
        assert booking.rate_per_hour == Decimal("300")
        assert booking.total_amount == Decimal("600")
        assert booking.created_by == "customer"
        assert db.query(BookingSlotClaim).count() == 8
        assert notifier.events == [("booking_created", booking.id)]

    def test_admin_bookings_are_confirmed(self, booking_service):
        booking = booking_service.create_booking(booking_request(), FIXED_NOW, created_by="admin")
        assert booking.status == BookingStatus.CONFIRMED

    def test_self_service_auto_confirm(self, booking_service, monkeypatch):
        monkeypatch.setattr(config, "SELF_SERVICE_AUTO_CONFIRM", True)
        booking = booking_service.create_booking(booking_request(), FIXED_NOW)
        assert booking.status == BookingStatus.CONFIRMED

    def test_explicit_rate_without_session_options(self, booking_service):
        booking = booking_service.create_booking(
            booking_request(
                session_options=None,
                session_type=SessionType.RECORDING,
                session_details="Podcast",
                rate_per_hour=Decimal("750"),
                start_time=time(14),
                end_time=time(17),
            ),
            FIXED_NOW,
            created_by="admin",
        )
        assert booking.total_amount == Decimal("2250")
        assert booking.session_details == "Podcast"

    def test_overlapping_request_is_rejected(self, db, booking_service):
        first = booking_service.create_booking(booking_request(), FIXED_NOW)

        with pytest.raises(ConflictError) as exc:
            booking_service.create_booking(
                booking_request(start_time=time(11), end_time=time(13)), FIXED_NOW
            )

        assert exc.value.details["conflicting_booking_ids"] == [first.id]
        assert db.query(Booking).count() == 1

    def test_touching_request_is_accepted(self, booking_service):
        booking_service.create_booking(booking_request(), FIXED_NOW)
        second = booking_service.create_booking(
            booking_request(start_time=time(12), end_time=time(14)), FIXED_NOW
        )
        assert second.id

    def test_blocked_slot_is_rejected(self, db, booking_service):
        block = AvailabilitySlot(
            studio=Studio.B, date=TOMORROW, start_time=time(9), end_time=time(11), is_available=False
        )
        db.add(block)
        db.commit()

        with pytest.raises(ConflictError) as exc:
            booking_service.create_booking(booking_request(), FIXED_NOW)

        assert exc.value.details["blocking_slot_id"] == block.id

    def test_lost_race_is_caught_by_claims(self, db, booking_service, monkeypatch):
        booking_service.create_booking(booking_request(), FIXED_NOW)

        # Simulate a concurrent request whose pre-check ran before the first commit
        monkeypatch.setattr(
            AvailabilityService,
            "check_slot_available",
            lambda self, *args, **kwargs: AvailabilityCheckResponse(available=True),
        )

        with pytest.raises(ConflictError):
            booking_service.create_booking(
                booking_request(start_time=time(11), end_time=time(13), phone_number=OTHER_PHONE),
                FIXED_NOW,
            )

        assert db.query(Booking).count() == 1
        assert db.query(BookingSlotClaim).count() == 8

    def test_past_start_is_rejected(self, booking_service):
        with pytest.raises(ValidationError):
            booking_service.create_booking(
                booking_request(date=TODAY, start_time=time(9), end_time=time(11)), FIXED_NOW
            )

    def test_advance_window_applies_to_customers_only(self, booking_service):
        far = TODAY + timedelta(days=31)
        with pytest.raises(ValidationError) as exc:
            booking_service.create_booking(booking_request(date=far), FIXED_NOW)
        assert exc.value.details["field"] == "date"

        booking = booking_service.create_booking(booking_request(date=far), FIXED_NOW, created_by="admin")
        assert booking.date == far

    def test_duration_limits(self, booking_service):
        with pytest.raises(ValidationError) as exc:
            booking_service.create_booking(
                booking_request(start_time=time(8), end_time=time(17)), FIXED_NOW
            )
        assert exc.value.details["field"] == "end_time"

    def test_off_grid_time_is_rejected(self, booking_service):
        with pytest.raises(ValidationError):
            booking_service.create_booking(
                booking_request(start_time=time(10, 30), end_time=time(12, 30)), FIXED_NOW
            )

    def test_studio_too_small_for_session(self, booking_service):
        request = booking_request(
            studio=Studio.C, session_options={"session_type": "Karaoke", "karaoke_option": "21_30"}
        )
        with pytest.raises(ValidationError) as exc:
            booking_service.create_booking(request, FIXED_NOW)
        assert exc.value.details["allowed_studios"] == ["Studio A"]

    def test_rate_must_match_rate_card(self, booking_service):
        with pytest.raises(ValidationError) as exc:
            booking_service.create_booking(booking_request(rate_per_hour=Decimal("100")), FIXED_NOW)
        assert exc.value.details["expected_rate"] == "300"


class TestReminders:
    def test_future_booking_gets_all_reminders(self, booking_service):
        booking = booking_service.create_booking(booking_request(), FIXED_NOW)
        assert sorted(r.type for r in booking.reminders) == ["1h_reminder", "24h_reminder", "confirmation"]

    def test_reminders_already_due_are_skipped(self, booking_service):
        booking = booking_service.create_booking(
            booking_request(date=TODAY, start_time=time(10), end_time=time(11)), FIXED_NOW
        )
        assert [r.type for r in booking.reminders] == ["confirmation"]

    def test_one_hour_reminder_when_still_ahead(self, booking_service):
        booking = booking_service.create_booking(
            booking_request(date=TODAY, start_time=time(11), end_time=time(12)), FIXED_NOW
        )
        assert sorted(r.type for r in booking.reminders) == ["1h_reminder", "confirmation"]


class TestPaymentStatus:
    def test_prompt_payment_starts_pending_and_can_be_verified(self, booking_service):
        booking = booking_service.create_booking(booking_request(is_prompt_payment=True), FIXED_NOW)
        assert booking.payment_status == PaymentStatus.PENDING

        updated = booking_service.set_payment_status(
            PaymentStatusUpdate(id=booking.id, payment_status=PaymentStatus.VERIFIED)
        )
        assert updated.payment_status == PaymentStatus.VERIFIED

    def test_regular_booking_has_no_payment_status(self, booking_service):
        booking = booking_service.create_booking(booking_request(), FIXED_NOW)
        assert booking.payment_status is None
        with pytest.raises(ValidationError):
            booking_service.set_payment_status(
                PaymentStatusUpdate(id=booking.id, payment_status=PaymentStatus.VERIFIED)
            )

    def test_unknown_booking(self, booking_service):
        with pytest.raises(NotFoundError):
            booking_service.set_payment_status(
                PaymentStatusUpdate(id="missing", payment_status=PaymentStatus.FAILED)
            )


class TestCustomerCancel:
    def test_cancel_with_valid_code(self, booking_service, verifier):
        booking = booking_service.create_booking(booking_request(), FIXED_NOW)

        cancelled = booking_service.cancel_booking_by_customer(
            booking.id, CUSTOMER_PHONE, VALID_CODE, FIXED_NOW
        )

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancellation_reason == "Cancelled by customer"
        assert verifier.calls == [(CUSTOMER_PHONE, VALID_CODE)]

    def test_wrong_code_changes_nothing(self, db, booking_service):
        booking = booking_service.create_booking(booking_request(), FIXED_NOW)

        with pytest.raises(VerificationError):
            booking_service.cancel_booking_by_customer(booking.id, CUSTOMER_PHONE, "000000", FIXED_NOW)

        db.refresh(booking)
        assert booking.status == BookingStatus.PENDING

    def test_other_customers_booking_looks_missing(self, booking_service):
        booking = booking_service.create_booking(booking_request(), FIXED_NOW)
        with pytest.raises(NotFoundError):
            booking_service.cancel_booking_by_customer(booking.id, OTHER_PHONE, VALID_CODE, FIXED_NOW)

    def test_started_booking_cannot_be_cancelled(self, db, booking_service):
        booking = insert_booking(db, date=TODAY, start_time=time(9), end_time=time(11))
        with pytest.raises(ValidationError):
            booking_service.cancel_booking_by_customer(booking.id, CUSTOMER_PHONE, VALID_CODE, FIXED_NOW)


class TestRebook:
    def test_rebook_moves_booking(self, db, booking_service, notifier):
        original = booking_service.create_booking(booking_request(), FIXED_NOW)

        replacement = booking_service.rebook(
            original.id,
            CUSTOMER_PHONE,
            VALID_CODE,
            booking_request(start_time=time(14), end_time=time(16)),
            FIXED_NOW,
        )

        db.refresh(original)
        assert original.status == BookingStatus.CANCELLED
        assert original.cancellation_reason == "Rebooked"
        assert replacement.replaces_booking_id == original.id
        assert replacement.status == BookingStatus.PENDING
        assert replacement.start_time == time(14)
        claims = db.query(BookingSlotClaim).all()
        assert len(claims) == 8
        assert {c.booking_id for c in claims} == {replacement.id}
        assert notifier.events[-1] == ("booking_rebooked", replacement.id)

    def test_rebook_may_overlap_its_own_original(self, db, booking_service):
        original = booking_service.create_booking(booking_request(), FIXED_NOW, created_by="admin")

        replacement = booking_service.rebook(
            original.id,
            CUSTOMER_PHONE,
            VALID_CODE,
            booking_request(start_time=time(11), end_time=time(13)),
            FIXED_NOW,
        )

        assert replacement.status == BookingStatus.CONFIRMED
        assert db.query(BookingSlotClaim).count() == 8

    def test_failed_rebook_leaves_original_untouched(self, db, booking_service):
        original = booking_service.create_booking(booking_request(), FIXED_NOW)
        other = booking_service.create_booking(
            booking_request(start_time=time(14), end_time=time(16), phone_number=OTHER_PHONE),
            FIXED_NOW,
        )

        with pytest.raises(ConflictError) as exc:
            booking_service.rebook(
                original.id,
                CUSTOMER_PHONE,
                VALID_CODE,
                booking_request(start_time=time(15), end_time=time(17)),
                FIXED_NOW,
            )

        assert exc.value.details["conflicting_booking_ids"] == [other.id]
        db.refresh(original)
        assert original.status == BookingStatus.PENDING
        assert db.query(Booking).count() == 2
        assert (
            db.query(BookingSlotClaim).filter(BookingSlotClaim.booking_id == original.id).count() == 8
        )

    def test_rebook_requires_verification(self, db, booking_service):
        original = booking_service.create_booking(booking_request(), FIXED_NOW)

        with pytest.raises(VerificationError):
            booking_service.rebook(
                original.id, CUSTOMER_PHONE, "bad", booking_request(start_time=time(14), end_time=time(16)), FIXED_NOW
            )

        assert db.query(Booking).count() == 1

    def test_rebook_invalid_replacement_is_rejected(self, db, booking_service):
        original = booking_service.create_booking(booking_request(), FIXED_NOW)

        with pytest.raises(ValidationError):
            booking_service.rebook(
                original.id,
                CUSTOMER_PHONE,
                VALID_CODE,
                booking_request(date=TODAY, start_time=time(8), end_time=time(9)),
                FIXED_NOW,
            )

        db.refresh(original)
        assert original.status == BookingStatus.PENDING
