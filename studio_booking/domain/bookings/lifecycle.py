"""
Booking status lifecycle.

    pending --confirm--> confirmed --complete--> completed
       |                    |  \\--no_show--> no_show
       +------cancel--------+--> cancelled

cancelled, no_show and completed can be restored to confirmed; only
cancelled and no_show bookings can be deleted. ``needs_completion`` is never
stored: it is derived on read for active bookings whose end time has passed.
"""

from datetime import datetime
from typing import Optional

from ...errors import TransitionError
from ...models import ACTIVE_STATUSES, Booking, BookingStatus

NEEDS_COMPLETION = "needs_completion"

# action -> (allowed source statuses, target status)
VALID_TRANSITIONS = {
    "confirm": ({BookingStatus.PENDING}, BookingStatus.CONFIRMED),
    "cancel": ({BookingStatus.PENDING, BookingStatus.CONFIRMED}, BookingStatus.CANCELLED),
    "complete": ({BookingStatus.CONFIRMED}, BookingStatus.COMPLETED),
    "no_show": ({BookingStatus.CONFIRMED}, BookingStatus.NO_SHOW),
    "restore": (
        {BookingStatus.CANCELLED, BookingStatus.NO_SHOW, BookingStatus.COMPLETED},
        BookingStatus.CONFIRMED,
    ),
}

DELETABLE_STATUSES = {BookingStatus.CANCELLED, BookingStatus.NO_SHOW}

# Actions that only make sense once the session is over
AFTER_END_ACTIONS = {"complete", "no_show"}


def booking_end(booking: Booking) -> datetime:
    return datetime.combine(booking.date, booking.end_time)


def booking_start(booking: Booking) -> datetime:
    return datetime.combine(booking.date, booking.start_time)


def effective_status(booking: Booking, now: datetime) -> str:
    """Stored status, or needs_completion for an active booking whose end has passed"""
    if booking.status in ACTIVE_STATUSES and now > booking_end(booking):
        return NEEDS_COMPLETION
    return BookingStatus(booking.status).value


def next_status(current: BookingStatus, action: str) -> BookingStatus:
    """Target status for an action, or TransitionError if not allowed from current"""
    current = BookingStatus(current)
    if action not in VALID_TRANSITIONS:
        raise TransitionError(current.value, action, f"Unknown action '{action}'")
    sources, target = VALID_TRANSITIONS[action]
    if current not in sources:
        raise TransitionError(current.value, action)
    return target


def action_for_status(current: BookingStatus, target: BookingStatus) -> Optional[str]:
    """
    Map an admin "set status to X" request onto a lifecycle action.

    Returns None when the booking already has the target status.
    """
    current, target = BookingStatus(current), BookingStatus(target)
    if current == target:
        return None
    if target == BookingStatus.CONFIRMED:
        return "confirm" if current == BookingStatus.PENDING else "restore"
    if target == BookingStatus.CANCELLED:
        return "cancel"
    if target == BookingStatus.COMPLETED:
        return "complete"
    if target == BookingStatus.NO_SHOW:
        return "no_show"
    # Nothing moves a booking back to pending
    raise TransitionError(current.value, "set_pending", f"Cannot move a {current.value} booking back to pending")


def ensure_deletable(booking: Booking) -> None:
    if booking.status not in DELETABLE_STATUSES:
        raise TransitionError(
            BookingStatus(booking.status).value,
            "delete",
            "Only cancelled or no-show bookings can be deleted permanently",
        )
