from __future__ import annotations
from datetime import date, time
from decimal import Decimal, InvalidOperation

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Date, Integer, Numeric, String, Text, Time
from sqlalchemy.orm import DeclarativeMeta

from app.time_utils import parse_iso_date, parse_time_of_day


# Upper bounds keep obviously bogus requests out of the pricing path
MAX_DAILY_QUANTITY = Decimal("100")
MAX_DURATION_MONTHS = 24


class ValidationError(ValueError):
    """400-level input problem or illegal state transition."""


class AuthorizationError(ValidationError):
    """403-level: caller may not act on this resource."""


class NotFoundError(LookupError):
    """404-level: referenced entity does not exist."""

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"{entity} not found")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    # Decimals arrive as JSON numbers or strings; floats go through str() to keep 0.1 exact
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        if isinstance(value, (int, float, str, Decimal)):
            try:
                dec = Decimal(str(value).strip())
            except InvalidOperation:
                raise ValidationError(f"{col.key} must be a number")
            if not dec.is_finite():
                raise ValidationError(f"{col.key} must be a number")
            return dec
        raise ValidationError(f"{col.key} must be a number")

    if isinstance(coltype, Time):
        if isinstance(value, time):
            return value
        if isinstance(value, str):
            try:
                t = parse_time_of_day(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be a time of day (HH:MM)")
            if t is None:
                raise ValidationError(f"{col.key} must be a time of day (HH:MM)")
            return t
        raise ValidationError(f"{col.key} must be a time of day (HH:MM)")

    if isinstance(coltype, Date):
        return coerce_date(value, field=col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def coerce_date(value: Any, *, field: str = "date") -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            d = parse_iso_date(value)
        except ValueError:
            d = None
        if d is not None:
            return d
    raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_subscription(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    qty = patch.get("daily_quantity")
    if qty is not None:
        if qty <= 0:
            raise ValidationError("daily_quantity must be > 0")
        if qty > MAX_DAILY_QUANTITY:
            raise ValidationError(f"daily_quantity cannot exceed {MAX_DAILY_QUANTITY}")

    months = patch.get("duration_months")
    if months is not None:
        if months <= 0:
            raise ValidationError("duration_months must be > 0")
        if months > MAX_DURATION_MONTHS:
            raise ValidationError(f"duration_months cannot exceed {MAX_DURATION_MONTHS}")
