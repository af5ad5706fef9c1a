"""Availability domain schemas"""

import datetime as dt
from datetime import date, datetime, time
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from ...models import BookingStatus, SessionType, Studio


class AvailabilityCheckRequest(BaseModel):
    studio: Studio
    date: date
    start_time: time
    end_time: time
    exclude_booking_id: Optional[str] = None


class AvailabilityCheckResponse(BaseModel):
    available: bool
    conflicting_booking_ids: List[str] = []
    blocking_slot_id: Optional[str] = None


class TimeChunk(BaseModel):
    start: time
    end: time


class OpenHoursResponse(BaseModel):
    studio: Studio
    date: date
    open_time: time
    close_time: time
    slots: List[TimeChunk]


class BlockedSlotCreate(BaseModel):
    """Schema for blocking a time range in a studio"""

    studio: Studio
    date: date
    start_time: time
    end_time: time
    block_reason: Optional[str] = None
    is_available: bool = False

    @model_validator(mode="after")
    def validate_range(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class BlockedSlotUpdate(BaseModel):
    """Schema for editing a blocked slot"""

    id: str
    studio: Optional[Studio] = None
    date: Optional[dt.date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    block_reason: Optional[str] = None
    is_available: Optional[bool] = None


class BlockedSlotResponse(BaseModel):
    id: str
    studio: Studio
    date: date
    start_time: time
    end_time: time
    is_available: bool
    block_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BulkBlockRequest(BaseModel):
    """Block the same time range on many dates"""

    studio: Studio
    dates: List[date] = Field(min_length=1)
    start_time: time
    end_time: time
    block_reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_range(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class BulkBlockResponse(BaseModel):
    count: int
    slots: List[BlockedSlotResponse]
    skipped_past_dates: List[date] = []
    skipped_conflicting_dates: List[date] = []


class BulkUnblockRequest(BaseModel):
    """Delete blocked slots either by ids or by studio and date range"""

    ids: Optional[List[str]] = None
    studio: Optional[Studio] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_selector(self):
        if self.ids:
            return self
        if self.studio and self.start_date and self.end_date:
            if self.start_date > self.end_date:
                raise ValueError("start_date must not be after end_date")
            return self
        raise ValueError("Provide ids, or studio with start_date and end_date")


class BulkUnblockResponse(BaseModel):
    deleted_count: int


class SlotBookingSummary(BaseModel):
    id: str
    start_time: time
    end_time: time
    status: BookingStatus
    session_type: SessionType
    name: Optional[str] = None
    phone_number: str

    class Config:
        from_attributes = True


class SlotWithBookings(BlockedSlotResponse):
    bookings: List[SlotBookingSummary] = []


class SlotsWithBookingsResponse(BaseModel):
    slots: List[SlotWithBookings]
    by_date: Dict[date, List[SlotWithBookings]]
