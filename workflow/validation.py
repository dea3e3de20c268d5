"""
Input checks shared by the ledger, registry, allocator and lifecycles.
They run before any shared state is read.
"""

from typing import Any

from .exceptions import ValidationError


def require_id(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string", field=field_name)
    return value


def require_positive_int(value: Any, field_name: str = "quantity") -> int:
    # bool is an int subclass; True is not a quantity
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if value <= 0:
        raise ValidationError(f"{field_name} must be positive, got {value}", field=field_name)
    return value
