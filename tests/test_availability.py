from datetime import date, time, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from studio_booking.domain.availability.repository import AvailabilityRepository
from studio_booking.domain.availability.schemas import (
    BlockedSlotCreate,
    BulkBlockRequest,
    BulkUnblockRequest,
)
from studio_booking.domain.availability.service import AvailabilityService, overlaps
from studio_booking.domain.settings.schemas import DEFAULT_SETTINGS, BookingSettings
from studio_booking.errors import AvailabilityUnknown, ConflictError, ValidationError
from studio_booking.models import AvailabilitySlot, BookingStatus, Studio
from tests.factories import ADMIN_HEADERS, FIXED_NOW, TODAY, TOMORROW, insert_booking


def add_slot(db, **overrides):
    data = {
        "studio": Studio.B,
        "date": TOMORROW,
        "start_time": time(14, 0),
        "end_time": time(16, 0),
        "is_available": False,
    }
    data.update(overrides)
    slot = AvailabilitySlot(**data)
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


@pytest.fixture
def availability(db):
    return AvailabilityService(db)


class TestOverlap:
    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ((600, 720), (720, 840), False),  # touching at end
            ((600, 720), (480, 600), False),  # touching at start
            ((600, 720), (660, 780), True),
            ((600, 720), (630, 690), True),  # contained
            ((600, 720), (540, 780), True),  # containing
        ],
    )
    def test_half_open_intervals(self, a, b, expected):
        assert overlaps(*a, *b) is expected
        assert overlaps(*b, *a) is expected


class TestCheckSlotAvailable:
    def test_empty_day_is_available(self, availability):
        result = availability.check_slot_available(Studio.B, TOMORROW, time(10), time(12))
        assert result.available
        assert result.conflicting_booking_ids == []
        assert result.blocking_slot_id is None

    def test_overlapping_booking_makes_slot_unavailable(self, db, availability):
        existing = insert_booking(db, start_time=time(10), end_time=time(12))

        result = availability.check_slot_available("Studio B", TOMORROW, time(11), time(13))

        assert not result.available
        assert result.conflicting_booking_ids == [existing.id]

    def test_touching_bookings_do_not_conflict(self, db, availability):
        insert_booking(db, start_time=time(10), end_time=time(12))

        assert availability.check_slot_available(Studio.B, TOMORROW, time(12), time(14)).available
        assert availability.check_slot_available(Studio.B, TOMORROW, time(8), time(10)).available

    def test_other_studio_and_other_day_do_not_conflict(self, db, availability):
        insert_booking(db, start_time=time(10), end_time=time(12))

        assert availability.check_slot_available(Studio.A, TOMORROW, time(10), time(12)).available
        assert availability.check_slot_available(
            Studio.B, TOMORROW + timedelta(days=1), time(10), time(12)
        ).available

    @pytest.mark.parametrize(
        "status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW]
    )
    def test_inactive_bookings_do_not_block(self, db, availability, status):
        insert_booking(db, status=status)
        assert availability.check_slot_available(Studio.B, TOMORROW, time(10), time(12)).available

    def test_pending_booking_blocks(self, db, availability):
        insert_booking(db, status=BookingStatus.PENDING)
        assert not availability.check_slot_available(Studio.B, TOMORROW, time(11), time(12)).available

    def test_blocked_slot_makes_range_unavailable(self, db, availability):
        slot = add_slot(db)

        result = availability.check_slot_available(Studio.B, TOMORROW, time(15), time(17))

        assert not result.available
        assert result.blocking_slot_id == slot.id
        assert result.conflicting_booking_ids == []

    def test_open_window_rows_never_block(self, db, availability):
        add_slot(db, is_available=True)
        assert availability.check_slot_available(Studio.B, TOMORROW, time(14), time(16)).available

    def test_exclude_booking_id_ignores_that_booking(self, db, availability):
        existing = insert_booking(db)
        result = availability.check_slot_available(
            Studio.B, TOMORROW, time(10), time(12), exclude_booking_id=existing.id
        )
        assert result.available

    def test_check_is_idempotent(self, db, availability):
        insert_booking(db)
        add_slot(db)
        first = availability.check_slot_available(Studio.B, TOMORROW, time(11), time(15))
        second = availability.check_slot_available(Studio.B, TOMORROW, time(11), time(15))
        assert first == second

    def test_buffer_widens_requested_range(self, db):
        insert_booking(db, start_time=time(10), end_time=time(12))
        settings = BookingSettings(**{**DEFAULT_SETTINGS, "booking_buffer": 30})
        service = AvailabilityService(db, settings)

        assert not service.check_slot_available(Studio.B, TOMORROW, time(12), time(13)).available
        assert service.check_slot_available(Studio.B, TOMORROW, time(13), time(14)).available


class TestCheckValidation:
    def test_start_must_precede_end(self, availability):
        with pytest.raises(ValidationError):
            availability.check_slot_available(Studio.B, TOMORROW, time(12), time(12))

    def test_unknown_studio(self, availability):
        with pytest.raises(ValidationError) as exc:
            availability.check_slot_available("Studio Z", TOMORROW, time(10), time(12))
        assert exc.value.details["field"] == "studio"

    def test_off_grid_start(self, availability):
        with pytest.raises(ValidationError):
            availability.check_slot_available(Studio.B, TOMORROW, time(10, 30), time(12))

    def test_outside_opening_hours(self, availability):
        with pytest.raises(ValidationError):
            availability.check_slot_available(Studio.B, TOMORROW, time(7), time(9))
        with pytest.raises(ValidationError):
            availability.check_slot_available(Studio.B, TOMORROW, time(21), time(23))

    def test_store_failure_is_unknown_not_available(self, availability, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(AvailabilityRepository, "get_active_bookings", staticmethod(broken))

        with pytest.raises(AvailabilityUnknown):
            availability.check_slot_available(Studio.B, TOMORROW, time(10), time(12))


class TestOpenHours:
    def test_booked_and_blocked_chunks_removed(self, db, availability):
        insert_booking(db, start_time=time(10), end_time=time(12))
        add_slot(db, start_time=time(14), end_time=time(15))

        result = availability.list_open_hours(Studio.B, TOMORROW, FIXED_NOW)

        starts = [c.start for c in result.slots]
        assert time(8) in starts
        assert time(10) not in starts
        assert time(11) not in starts
        assert time(12) in starts
        assert time(14) not in starts
        # 08:00-22:00 is 14 chunks, minus 3
        assert len(result.slots) == 11

    def test_today_drops_chunks_already_ended(self, availability):
        result = availability.list_open_hours(Studio.B, TODAY, FIXED_NOW)
        starts = [c.start for c in result.slots]
        assert time(8) not in starts
        assert starts[0] == time(9)

    def test_past_day_has_no_open_hours(self, availability):
        result = availability.list_open_hours(Studio.B, TODAY - timedelta(days=1), FIXED_NOW)
        assert result.slots == []


class TestBlockedSlots:
    def test_create_duplicate_is_conflict(self, availability):
        data = BlockedSlotCreate(
            studio=Studio.A, date=TOMORROW, start_time=time(9), end_time=time(11)
        )
        availability.create_slot(data)
        with pytest.raises(ConflictError):
            availability.create_slot(data)

    def test_cannot_block_over_active_booking(self, db, availability):
        existing = insert_booking(db)
        with pytest.raises(ConflictError) as exc:
            availability.create_slot(
                BlockedSlotCreate(
                    studio=Studio.B, date=TOMORROW, start_time=time(11), end_time=time(13)
                )
            )
        assert exc.value.details["conflicting_booking_ids"] == [existing.id]

    def test_slots_with_bookings_nests_overlapping_bookings(self, db, availability):
        inside = insert_booking(db, start_time=time(10), end_time=time(12))
        insert_booking(db, start_time=time(18), end_time=time(19))
        slot = add_slot(db, start_time=time(9), end_time=time(13), is_available=True)

        result = availability.list_slots_with_bookings(Studio.B, TOMORROW, TOMORROW)

        assert [s.id for s in result.slots] == [slot.id]
        assert [b.id for b in result.slots[0].bookings] == [inside.id]
        assert list(result.by_date.keys()) == [TOMORROW]

    def test_bulk_block_skips_past_and_conflicting_dates(self, db, availability):
        insert_booking(db, date=TOMORROW, start_time=time(10), end_time=time(12))
        day_after = TOMORROW + timedelta(days=1)
        data = BulkBlockRequest(
            studio=Studio.B,
            dates=[TODAY - timedelta(days=1), TODAY, TOMORROW, day_after],
            start_time=time(9),
            end_time=time(11),
            block_reason="Maintenance",
        )

        result = availability.bulk_block(data, FIXED_NOW)

        assert result.count == 1
        assert result.slots[0].date == day_after
        # today counts as past because 09:00 has already gone by at 09:30
        assert result.skipped_past_dates == [TODAY - timedelta(days=1), TODAY]
        assert result.skipped_conflicting_dates == [TOMORROW]

    def test_bulk_block_is_an_upsert(self, db, availability):
        existing = add_slot(db, start_time=time(9), end_time=time(11), is_available=True)
        data = BulkBlockRequest(
            studio=Studio.B, dates=[TOMORROW], start_time=time(9), end_time=time(11)
        )

        result = availability.bulk_block(data, FIXED_NOW)

        assert result.count == 1
        assert result.slots[0].id == existing.id
        assert result.slots[0].is_available is False

    def test_bulk_block_all_past_is_rejected(self, availability):
        data = BulkBlockRequest(
            studio=Studio.B, dates=[date(2020, 1, 1)], start_time=time(9), end_time=time(11)
        )
        with pytest.raises(ValidationError):
            availability.bulk_block(data, FIXED_NOW)

    def test_bulk_unblock_by_ids_and_by_range(self, db, availability):
        a = add_slot(db, start_time=time(8), end_time=time(9))
        add_slot(db, start_time=time(9), end_time=time(10))
        add_slot(db, studio=Studio.A, start_time=time(9), end_time=time(10))

        assert availability.bulk_unblock(BulkUnblockRequest(ids=[a.id])) == 1
        deleted = availability.bulk_unblock(
            BulkUnblockRequest(studio=Studio.B, start_date=TOMORROW, end_date=TOMORROW)
        )
        assert deleted == 1
        assert len(availability.list_blocked_slots()) == 1


class TestAvailabilityApi:
    def test_check_endpoint_reports_conflicts(self, client, db):
        existing = insert_booking(db)
        response = client.post(
            "/availability/check",
            json={
                "studio": "Studio B",
                "date": TOMORROW.isoformat(),
                "start_time": "11:00",
                "end_time": "13:00",
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["available"] is False
        assert body["conflicting_booking_ids"] == [existing.id]

    def test_check_endpoint_rejects_off_grid(self, client):
        response = client.post(
            "/availability/check",
            json={
                "studio": "Studio B",
                "date": TOMORROW.isoformat(),
                "start_time": "10:15",
                "end_time": "12:00",
            },
        )
        assert response.status_code == 422

    def test_open_hours_endpoint(self, client):
        response = client.get(
            "/availability", params={"studio": "Studio C", "date": TOMORROW.isoformat()}
        )
        assert response.status_code == 200
        assert len(response.json()["slots"]) == 14

    def test_admin_endpoints_require_token(self, client):
        assert client.get("/admin/availability").status_code == 401
        bad = {"Authorization": "Bearer wrong"}
        assert client.get("/admin/availability", headers=bad).status_code == 401

    def test_admin_block_and_unblock(self, client):
        created = client.post(
            "/admin/availability",
            headers=ADMIN_HEADERS,
            json={
                "studio": "Studio A",
                "date": TOMORROW.isoformat(),
                "start_time": "18:00",
                "end_time": "20:00",
                "block_reason": "Private event",
            },
        )
        assert created.status_code == 201
        slot_id = created.json()["id"]

        listed = client.get("/admin/availability", headers=ADMIN_HEADERS)
        assert [s["id"] for s in listed.json()] == [slot_id]

        check = client.post(
            "/availability/check",
            json={
                "studio": "Studio A",
                "date": TOMORROW.isoformat(),
                "start_time": "19:00",
                "end_time": "20:00",
            },
        )
        assert check.json()["blocking_slot_id"] == slot_id

        deleted = client.delete("/admin/availability", headers=ADMIN_HEADERS, params={"id": slot_id})
        assert deleted.status_code == 200
        assert client.get("/admin/availability", headers=ADMIN_HEADERS).json() == []

    def test_admin_bulk_endpoints(self, client):
        day_after = TOMORROW + timedelta(days=1)
        created = client.post(
            "/admin/availability/bulk",
            headers=ADMIN_HEADERS,
            json={
                "studio": "Studio C",
                "dates": [TOMORROW.isoformat(), day_after.isoformat()],
                "start_time": "12:00",
                "end_time": "13:00",
            },
        )
        assert created.status_code == 201
        assert created.json()["count"] == 2

        deleted = client.request(
            "DELETE",
            "/admin/availability/bulk",
            headers=ADMIN_HEADERS,
            json={
                "studio": "Studio C",
                "start_date": TOMORROW.isoformat(),
                "end_date": day_after.isoformat(),
            },
        )
        assert deleted.status_code == 200
        assert deleted.json()["deleted_count"] == 2

    def test_update_slot_to_duplicate_is_conflict(self, client, db):
        add_slot(db, start_time=time(8), end_time=time(9))
        other = add_slot(db, start_time=time(9), end_time=time(10))

        response = client.put(
            "/admin/availability",
            headers=ADMIN_HEADERS,
            json={"id": other.id, "start_time": "08:00", "end_time": "09:00"},
        )
        assert response.status_code == 409

    def test_moving_block_onto_booked_hours_is_conflict(self, client, db):
        booking = insert_booking(db, start_time=time(10), end_time=time(12))
        block = add_slot(db, start_time=time(14), end_time=time(15))

        response = client.put(
            "/admin/availability",
            headers=ADMIN_HEADERS,
            json={"id": block.id, "start_time": "10:00", "end_time": "11:00"},
        )

        assert response.status_code == 409
        assert response.json()["details"]["conflicting_booking_ids"] == [booking.id]
        db.refresh(block)
        assert block.start_time == time(14)

    def test_closing_open_window_over_booking_is_conflict(self, client, db):
        insert_booking(db, start_time=time(10), end_time=time(12))
        window = add_slot(db, start_time=time(9), end_time=time(13), is_available=True)

        response = client.put(
            "/admin/availability",
            headers=ADMIN_HEADERS,
            json={"id": window.id, "is_available": False},
        )

        assert response.status_code == 409

    def test_moving_block_to_free_hours(self, client, db):
        insert_booking(db, start_time=time(10), end_time=time(12))
        block = add_slot(db, start_time=time(14), end_time=time(15))

        response = client.put(
            "/admin/availability",
            headers=ADMIN_HEADERS,
            json={"id": block.id, "start_time": "16:00", "end_time": "18:00"},
        )

        assert response.status_code == 200
        assert response.json()["start_time"] == "16:00:00"
