import re
from datetime import date, time
from typing import Union

MINUTES_PER_DAY = 24 * 60

_HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


def parse_hhmm(value: Union[str, time]) -> time:
    """Parse ``HH:MM`` (seconds tolerated, ignored if zero) into a time.

    Raises:
        ValueError: if the value is not a valid wall-clock time
    """
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Expected HH:MM string, got {type(value).__name__}")

    match = _HHMM_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")

    hours, minutes, seconds = match.groups()
    if seconds and seconds != "00":
        raise ValueError(f"Invalid time '{value}', seconds are not supported")
    return time(int(hours), int(minutes))


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def parse_iso_date(value: Union[str, date]) -> date:
    """Parse ``YYYY-MM-DD``.

    Raises:
        ValueError: if the value is not a valid calendar date
    """
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Inverse of ``to_minutes``; intervals never cross midnight."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def validate_phone_number(phone: str) -> bool:
    """Validate phone number format (international or local)."""
    if not phone:
        return True  # Allow empty/null

    phone_pattern = r"^[\+]?[1-9][\d\-\s\(\)\.]{7,15}$"
    return bool(re.match(phone_pattern, phone.replace(" ", "")))


def validate_email_format(email: str) -> bool:
    """Validate email format."""
    if not email:
        return False

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    return bool(re.match(email_pattern, email))
