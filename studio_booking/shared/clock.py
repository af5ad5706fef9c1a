"""Studio-local wall clock.

Booking dates and times are stored as naive studio-local values, so every
"now" comparison uses a naive datetime in STUDIO_TIMEZONE. Endpoints get the
clock through ``get_clock`` so tests can pin it.
"""

from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from .. import config

Clock = Callable[[], datetime]


def studio_now() -> datetime:
    """Current naive studio-local time"""
    return datetime.now(ZoneInfo(config.STUDIO_TIMEZONE)).replace(tzinfo=None)


def get_clock() -> Clock:
    """FastAPI dependency returning the clock"""
    return studio_now
