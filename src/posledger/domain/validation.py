from __future__ import annotations

import math

from posledger.domain.errors import ValidationError


def parse_money(value: object, label: str) -> float:
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{label} is required.")
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a number.") from exc
    if not math.isfinite(amount):
        raise ValidationError(f"{label} must be a finite number.")
    if amount < 0:
        raise ValidationError(f"{label} must be >= 0.")
    return amount


def parse_count(value: object, label: str, *, minimum: int = 0) -> int:
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{label} is required.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a whole number.") from exc
    if not math.isfinite(number) or not number.is_integer():
        raise ValidationError(f"{label} must be a whole number.")
    count = int(number)
    if count < minimum:
        raise ValidationError(f"{label} must be >= {minimum}.")
    return count


def require_text(value: object, label: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{label} is required.")
    return text


def parse_id(value: object, label: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a whole number.")
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a whole number.") from exc
