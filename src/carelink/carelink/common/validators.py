from __future__ import annotations

from typing import Any, Iterable, Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_fields(payload: dict[str, Any], fields: Iterable[str]) -> None:
    """Raise one ValidationError listing every missing field."""

    missing = {f: "required" for f in fields if payload.get(f) in (None, "", [])}
    if missing:
        raise ValidationError(f"{', '.join(missing)} are required", errors=missing)


def optional_text(value: Optional[str]) -> Optional[str]:
    v = (value or "").strip() if isinstance(value, str) else ""
    return v or None


def parse_non_negative_number(value: Any, field_name: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number", errors={field_name: "invalid"})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number", errors={field_name: "invalid"})
    if number != number or number < 0:
        raise ValidationError(f"{field_name} must be zero or more", errors={field_name: "invalid"})
    return number


def parse_int_id(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field_name}", errors={field_name: "invalid"})
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}", errors={field_name: "invalid"})
    if parsed <= 0:
        raise ValidationError(f"Invalid {field_name}", errors={field_name: "invalid"})
    return parsed
