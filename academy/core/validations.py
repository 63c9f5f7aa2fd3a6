import re
from datetime import time
from typing import Optional

from academy.core.exceptions import ValidationError

# Session lengths a coach can record for one attendance: 0.5h to 6h in half hours
SESSION_DURATION_OPTIONS = [step / 2 for step in range(1, 13)]


def clean_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Strip formatting from a phone number, keeping a leading '+'.
    Empty input is treated as "no phone".
    """
    if phone is None or not phone.strip():
        return None

    raw = phone.strip()
    digits = re.sub(r"\D", "", raw)

    if not digits:
        raise ValueError("Phone number must contain digits")

    if len(digits) < 7 or len(digits) > 15:
        raise ValueError("Phone number must be between 7 and 15 digits")

    return f"+{digits}" if raw.startswith("+") else digits


def ensure_positive_id(value: int, name: str = "ID"):
    if value is None or value <= 0:
        raise ValidationError(f"{name} must be positive")


def validate_time_range(start_time: time, end_time: time):
    if start_time >= end_time:
        raise ValidationError(
            "End time must be after start time",
            {"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
        )


def validate_session_duration(value: float) -> float:
    if value not in SESSION_DURATION_OPTIONS:
        raise ValidationError(
            f"Session duration must be one of {SESSION_DURATION_OPTIONS}",
            {"session_duration": value},
        )
    return value
