"""Booking settings schemas"""

from datetime import time
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import minutes_of, parse_clock_time

DEFAULT_SETTINGS = {
    "min_booking_duration": 1,
    "max_booking_duration": 8,
    "booking_buffer": 0,
    "advance_booking_days": 30,
    "default_open_time": "08:00",
    "default_close_time": "22:00",
}

SETTING_DESCRIPTIONS = {
    "min_booking_duration": "Minimum booking length in hours",
    "max_booking_duration": "Maximum booking length in hours",
    "booking_buffer": "Minutes kept free around every booking",
    "advance_booking_days": "How many days ahead customers can book",
    "default_open_time": "Studio opening time (HH:MM)",
    "default_close_time": "Studio closing time (HH:MM)",
}


def _quarter_hour_time(v: str) -> str:
    parsed = parse_clock_time(v)
    if parsed.minute % 15 or parsed.second:
        raise ValueError("Opening hours must fall on 15-minute marks")
    return parsed.strftime("%H:%M")


class BookingSettings(BaseModel):
    """Effective runtime booking rules"""

    min_booking_duration: int = Field(ge=1, le=24)
    max_booking_duration: int = Field(ge=1, le=24)
    booking_buffer: int = Field(ge=0, le=240)
    advance_booking_days: int = Field(ge=0, le=365)
    default_open_time: str
    default_close_time: str

    @field_validator("default_open_time", "default_close_time")
    @classmethod
    def validate_hours(cls, v):
        return _quarter_hour_time(v)

    @model_validator(mode="after")
    def validate_ranges(self):
        if self.min_booking_duration > self.max_booking_duration:
            raise ValueError("min_booking_duration cannot exceed max_booking_duration")
        if minutes_of(self.open_time) >= minutes_of(self.close_time):
            raise ValueError("default_open_time must be before default_close_time")
        return self

    @property
    def open_time(self) -> time:
        return parse_clock_time(self.default_open_time)

    @property
    def close_time(self) -> time:
        return parse_clock_time(self.default_close_time)


class BookingSettingsUpdate(BaseModel):
    """Partial update; merged with the current settings and validated as a whole"""

    min_booking_duration: Optional[int] = None
    max_booking_duration: Optional[int] = None
    booking_buffer: Optional[int] = None
    advance_booking_days: Optional[int] = None
    default_open_time: Optional[str] = None
    default_close_time: Optional[str] = None
