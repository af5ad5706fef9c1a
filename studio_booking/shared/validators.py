"""Shared validation utilities"""

import re
from datetime import time
from typing import Optional


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a customer phone number.

    Numbers are stored as the 10 national digits. A leading country code
    (91) or trunk zero is stripped before the length check.

    Args:
        phone: Phone number string in various formats

    Returns:
        The 10-digit national number

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits")

    return digits


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def parse_clock_time(value: str) -> time:
    """Parse 'HH:MM' or 'HH:MM:SS' into a time; ValueError otherwise"""
    if not isinstance(value, str) or not re.match(r"^\d{2}:\d{2}(:\d{2})?$", value):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return time.fromisoformat(value)


def minutes_of(value: time) -> int:
    """Minutes since midnight"""
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    """Inverse of minutes_of; clamps to the last representable minute of the day"""
    if minutes >= 24 * 60:
        return time(23, 59)
    return time(minutes // 60, minutes % 60)
