"""Loyalty schemas"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class LoyaltyStatus(BaseModel):
    phone_number: str
    hours_completed: Decimal
    target_hours: Decimal
    hours_remaining: Decimal
    eligible: bool
    window_start: Optional[date] = None
    window_end: Optional[date] = None
    booking_ids: List[str] = []
    reward_amount: int
