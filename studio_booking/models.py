import enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate an opaque string id"""
    return str(uuid.uuid4())


class Studio(str, enum.Enum):
    # Declared smallest room first; recommendation tie-breaks rely on this order
    C = "Studio C"
    B = "Studio B"
    A = "Studio A"


class SessionType(str, enum.Enum):
    KARAOKE = "Karaoke"
    LIVE = "Live with musicians"
    DRUM_PRACTICE = "Only Drum Practice"
    BAND = "Band"
    RECORDING = "Recording"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def _enum_column(enum_cls, length: int):
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="valid_booking_time_range"),
        CheckConstraint("group_size >= 1", name="valid_group_size"),
        Index("idx_bookings_studio_date", "studio", "date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    studio = Column(_enum_column(Studio, 20), nullable=False)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    session_type = Column(_enum_column(SessionType, 50), nullable=False)
    session_details = Column(Text, nullable=True)  # Human-readable sub-option summary
    group_size = Column(Integer, nullable=False, default=1)
    rate_per_hour = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(
        _enum_column(BookingStatus, 20), nullable=False, default=BookingStatus.PENDING, index=True
    )
    is_prompt_payment = Column(Boolean, nullable=False, default=False)
    payment_status = Column(_enum_column(PaymentStatus, 20), nullable=True)
    phone_number = Column(String(15), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(20), nullable=False, default="customer")  # customer, admin
    # Edit flow: the booking this one replaced (original is cancelled in the same transaction)
    replaces_booking_id = Column(String(36), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    claims = relationship(
        "BookingSlotClaim", back_populates="booking", cascade="all, delete-orphan"
    )
    reminders = relationship("Reminder", back_populates="booking", cascade="all, delete-orphan")


class BookingSlotClaim(Base):
    """One row per 15-minute cell held by an active booking.

    The unique constraint is what makes double-booking impossible at the
    database level: two transactions that both passed the application
    overlap check still cannot both commit claims for the same cell.
    """

    __tablename__ = "booking_slot_claims"
    __table_args__ = (UniqueConstraint("studio", "date", "slot_start", name="unique_slot_claim"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    studio = Column(_enum_column(Studio, 20), nullable=False)
    date = Column(Date, nullable=False)
    slot_start = Column(Time, nullable=False)

    booking = relationship("Booking", back_populates="claims")


class AvailabilitySlot(Base):
    """Admin-imposed block on a studio's time range.

    Everything is open unless blocked. Rows with ``is_available = True`` are
    legacy "open window" records and never block a booking.
    """

    __tablename__ = "availability_slots"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="valid_time_range"),
        UniqueConstraint("studio", "date", "start_time", "end_time", name="unique_slot"),
        Index("idx_availability_studio_date", "studio", "date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    studio = Column(_enum_column(Studio, 20), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=False)
    block_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class BookingSetting(Base):
    __tablename__ = "booking_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(JSON, nullable=False)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Reminder(Base):
    __tablename__ = "reminders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    scheduled_at = Column(DateTime, nullable=False, index=True)
    type = Column(String(50), nullable=False)  # confirmation, 24h_reminder, 1h_reminder
    status = Column(String(20), nullable=False, default="pending")  # pending, sent, failed, cancelled
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="reminders")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(100), nullable=False)  # update, delete, block, unblock, bulk_block...
    entity_type = Column(String(50), nullable=False)  # booking, availability_slot, setting
    entity_id = Column(String(36), nullable=True)
    old_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
