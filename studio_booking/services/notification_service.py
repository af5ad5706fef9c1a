"""
Booking notification dispatch.

SMS/WhatsApp/email delivery lives outside this service; every booking event is
posted to a single webhook that fans out to the customer's channels. A failed
delivery is logged and never fails the booking operation that triggered it.
"""

import logging
from typing import Optional

import httpx

from .. import config
from ..models import Booking

logger = logging.getLogger(__name__)

BOOKING_EVENTS = {
    "booking_created",
    "booking_confirmed",
    "booking_cancelled",
    "booking_completed",
    "booking_no_show",
    "booking_restored",
    "booking_rebooked",
}


def build_payload(event: str, booking: Booking) -> dict:
    """Webhook body for a booking event"""
    return {
        "event": event,
        "booking_id": booking.id,
        "phone": f"{config.PHONE_COUNTRY_CODE}{booking.phone_number}",
        "name": booking.name,
        "email": booking.email,
        "studio": booking.studio.value,
        "date": booking.date.isoformat(),
        "start_time": booking.start_time.strftime("%H:%M"),
        "end_time": booking.end_time.strftime("%H:%M"),
        "session_type": booking.session_type.value,
        "session_details": booking.session_details,
        "total_amount": str(booking.total_amount),
        "status": booking.status.value,
    }


class NotificationDispatcher:
    """Posts booking events to the notification webhook"""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = None):
        self.webhook_url = webhook_url if webhook_url is not None else config.NOTIFICATION_WEBHOOK_URL
        self.timeout = timeout or config.NOTIFICATION_TIMEOUT

    def notify(self, event: str, booking: Booking) -> bool:
        """
        Send one booking event.

        Returns:
            True if the webhook accepted the event, False otherwise
        """
        if event not in BOOKING_EVENTS:
            logger.warning(f"⚠️ Unknown notification event '{event}' for booking {booking.id}")
            return False

        if not self.webhook_url:
            logger.info(f"📭 Notifications not configured, skipping {event} for booking {booking.id}")
            return False

        try:
            payload = build_payload(event, booking)
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.webhook_url, json=payload)
            if response.status_code >= 400:
                logger.error(
                    f"❌ Notification webhook rejected {event} for booking {booking.id}: "
                    f"HTTP {response.status_code}"
                )
                return False
            logger.info(f"📱 {event} notification sent for booking {booking.id}")
            return True
        except Exception as e:
            logger.error(f"❌ Failed to send {event} notification for booking {booking.id}: {e}")
            return False


def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency for the notification dispatcher"""
    return NotificationDispatcher()
