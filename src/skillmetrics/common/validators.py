from __future__ import annotations

from datetime import date
from typing import Optional

from ..core.constants import MAX_ALLOCATION, MIN_ALLOCATION
from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text")
    if not value or not value.strip():
        raise ValidationError(f"{field_name} must not be empty")
    return value.strip()


def optional_text(value: Optional[str], field_name: str = "Value") -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text")
    return (value or "").strip() or None


def require_allocation(value, field_name: str = "Allocation") -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number")
    try:
        allocation = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field_name} must be a whole number")
    if allocation != value and str(allocation) != str(value).strip():
        raise ValidationError(f"{field_name} must be a whole number")
    if not MIN_ALLOCATION <= allocation <= MAX_ALLOCATION:
        raise ValidationError(f"{field_name} must be between {MIN_ALLOCATION} and {MAX_ALLOCATION}")
    return allocation


def require_date_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValidationError("End date must be on or after start date")
