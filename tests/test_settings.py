import pydantic
import pytest

from studio_booking.domain.settings.repository import SettingsRepository
from studio_booking.domain.settings.schemas import DEFAULT_SETTINGS, BookingSettings, BookingSettingsUpdate
from studio_booking.domain.settings.service import SettingsService
from studio_booking.errors import ValidationError
from studio_booking.models import AuditLog
from tests.factories import ADMIN_HEADERS, TOMORROW, booking_payload


class TestBookingSettings:
    def test_defaults(self, db):
        settings = SettingsService(db).get_settings()
        assert settings.model_dump() == BookingSettings(**DEFAULT_SETTINGS).model_dump()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"min_booking_duration": 5, "max_booking_duration": 4},
            {"default_open_time": "22:00", "default_close_time": "08:00"},
            {"default_open_time": "08:10"},
            {"booking_buffer": -15},
            {"default_close_time": "late"},
        ],
    )
    def test_invalid_combinations(self, overrides):
        with pytest.raises(pydantic.ValidationError):
            BookingSettings(**{**DEFAULT_SETTINGS, **overrides})

    def test_update_merges_and_persists(self, db):
        service = SettingsService(db)
        updated = service.update_settings(BookingSettingsUpdate(booking_buffer=15, default_close_time="23:00"))

        assert updated.booking_buffer == 15
        assert updated.max_booking_duration == DEFAULT_SETTINGS["max_booking_duration"]
        assert SettingsService(db).get_settings().default_close_time == "23:00"
        assert db.query(AuditLog).filter(AuditLog.action == "settings_update").count() == 1

    def test_invalid_update_is_rejected_as_a_whole(self, db):
        service = SettingsService(db)
        with pytest.raises(ValidationError):
            service.update_settings(
                BookingSettingsUpdate(booking_buffer=30, min_booking_duration=10)
            )
        assert service.get_settings().booking_buffer == 0

    def test_bad_stored_row_falls_back_to_defaults(self, db):
        SettingsRepository.upsert(db, "min_booking_duration", "many", None)
        db.commit()

        settings = SettingsService(db).get_settings()

        assert settings.min_booking_duration == DEFAULT_SETTINGS["min_booking_duration"]


class TestSettingsApi:
    def test_requires_admin(self, client):
        assert client.get("/admin/settings").status_code == 401

    def test_get_and_put(self, client):
        assert client.get("/admin/settings", headers=ADMIN_HEADERS).json()["booking_buffer"] == 0

        response = client.put(
            "/admin/settings", headers=ADMIN_HEADERS, json={"max_booking_duration": 2}
        )

        assert response.status_code == 200
        assert response.json()["max_booking_duration"] == 2

    def test_put_invalid_is_422(self, client):
        response = client.put(
            "/admin/settings",
            headers=ADMIN_HEADERS,
            json={"default_open_time": "21:00", "default_close_time": "09:00"},
        )
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert response.json()["details"]["errors"]

    def test_new_limits_apply_to_next_booking(self, client):
        client.put("/admin/settings", headers=ADMIN_HEADERS, json={"max_booking_duration": 1})

        response = client.post("/bookings", json=booking_payload())

        assert response.status_code == 422
        assert response.json()["details"]["field"] == "end_time"

    def test_buffer_applies_to_next_check(self, client):
        client.put("/admin/settings", headers=ADMIN_HEADERS, json={"booking_buffer": 60})
        assert client.post("/bookings", json=booking_payload()).status_code == 201

        response = client.post(
            "/availability/check",
            json={
                "studio": "Studio B",
                "date": TOMORROW.isoformat(),
                "start_time": "12:00",
                "end_time": "13:00",
            },
        )
        assert response.json()["available"] is False
        assert len(response.json()["conflicting_booking_ids"]) == 1
