"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...models import BookingStatus, PaymentStatus, SessionType, Studio
from ...shared.validators import validate_email, validate_phone
from ..pricing.schemas import SessionConfig


class BookingCreate(BaseModel):
    """
    Schema for creating a booking.

    Either ``session_options`` (priced server-side from the rate card) or
    ``session_type`` with an explicit ``rate_per_hour`` must be given.
    """

    studio: Studio
    date: date
    start_time: time
    end_time: time
    session_options: Optional[SessionConfig] = None
    session_type: Optional[SessionType] = None
    session_details: Optional[str] = None
    group_size: int = Field(default=1, ge=1)
    rate_per_hour: Optional[Decimal] = Field(default=None, gt=0)
    phone_number: str
    name: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    is_prompt_payment: bool = False

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v):
        return validate_phone(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v:
            return validate_email(v)
        return v

    @model_validator(mode="after")
    def validate_session(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if self.session_options is None:
            if self.session_type is None:
                raise ValueError("session_options or session_type is required")
            if self.rate_per_hour is None:
                raise ValueError("rate_per_hour is required when session_options is not given")
        elif self.session_type is not None and self.session_type.value != self.session_options.session_type:
            raise ValueError("session_type does not match session_options")
        return self


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: str
    studio: Studio
    date: date
    start_time: time
    end_time: time
    session_type: SessionType
    session_details: Optional[str] = None
    group_size: int
    rate_per_hour: Decimal
    total_amount: Decimal
    status: BookingStatus
    effective_status: str
    is_prompt_payment: bool
    payment_status: Optional[PaymentStatus] = None
    phone_number: str
    name: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    created_by: str
    replaces_booking_id: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookingStatusUpdate(BaseModel):
    """Admin status/notes update"""

    id: str
    status: Optional[BookingStatus] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    id: str
    payment_status: PaymentStatus


class CustomerVerification(BaseModel):
    phone_number: str
    code: str = Field(min_length=1)

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v):
        return validate_phone(v)


class CancelBookingRequest(CustomerVerification):
    reason: Optional[str] = None


class RebookRequest(CustomerVerification):
    """Edit a booking: the replacement is created and the original cancelled together"""

    booking: BookingCreate


class NeedsActionItem(BaseModel):
    booking: BookingResponse
    overdue_minutes: int
    suggested_action: str


class NeedsActionReport(BaseModel):
    count: int
    items: List[NeedsActionItem]
