"""
Input validation shared by every service.

Payloads (JSON bodies, CLI options, service arguments) are checked against
SQLAlchemy column metadata plus a per-model allowlist before anything is
written. Money is always integer cents; floats and decimal strings are
rejected rather than rounded.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, String, Text

from stockpos.time_utils import parse_iso_datetime


# Largest money amount accepted anywhere: 9,999,999.99
MAX_PRICE_CENTS = 999_999_999

_PLAIN_INT = re.compile(r"^[+-]?\d+$")
_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(ValidationError):
    """404-level: a referenced row does not exist."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    What a caller may write to one model.

    writable_fields is the security boundary: anything else in a payload is
    rejected, including real columns such as id or sync_status.
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


# =============================================================================
# SCALAR COERCION
# =============================================================================

def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str) and _PLAIN_INT.match(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{key} must be a plain integer")


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValidationError(f"{key} must be a boolean")


def _coerce_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError(f"{key} must be an ISO-8601 datetime")


def _coerce_column(column, value: Any) -> Any:
    """Normalize one non-null value according to its column type."""
    coltype = column.type
    if isinstance(coltype, Boolean):
        return _coerce_bool(column.key, value)
    if isinstance(coltype, Integer):
        return _coerce_int(column.key, value)
    if isinstance(coltype, DateTime):
        return _coerce_datetime(column.key, value)
    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if not text and not column.nullable:
            raise ValidationError(f"{column.key} cannot be blank")
        length = getattr(coltype, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{column.key} exceeds max length {length}")
        return text
    return value


# =============================================================================
# PAYLOADS
# =============================================================================

def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Return a cleaned patch holding only allowlisted, type-coerced fields.

    partial=False is insert semantics: every required_on_create field must
    be present. partial=True validates only the keys supplied.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")

    unknown = sorted(k for k in payload if k not in policy.writable_fields)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    if not partial:
        missing = sorted(policy.required_on_create - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = model.__mapper__.columns
    patch: dict = {}
    for key, raw in payload.items():
        if key not in columns:
            raise ValidationError(f"Unknown field: {key}")
        column = columns[key]
        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _coerce_column(column, raw)
    return patch


# =============================================================================
# SERVICE ARGUMENTS
# =============================================================================

def require_int(value: Any, field: str) -> int:
    """Strict integer coercion for service arguments."""
    if value is None:
        raise ValidationError(f"{field} is required")
    return _coerce_int(field, value)


def require_positive_int(value: Any, field: str) -> int:
    number = require_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be > 0")
    return number


def require_money_cents(value: Any, field: str, *, allow_zero: bool = True) -> int:
    amount = require_int(value, field)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if amount > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} cents")
    return amount


# =============================================================================
# MODEL RULES
# =============================================================================

def enforce_rules_product(patch: dict) -> None:
    for key in ("cost_price_cents", "selling_price_cents"):
        if patch.get(key) is not None:
            require_money_cents(patch[key], key)

    for key in ("min_stock_level", "max_stock_level"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")

    low = patch.get("min_stock_level")
    high = patch.get("max_stock_level")
    if low is not None and high is not None and high < low:
        raise ValidationError("max_stock_level must be >= min_stock_level")


def enforce_rules_expense(patch: dict) -> None:
    if "amount_cents" in patch:
        require_money_cents(patch["amount_cents"], "amount_cents", allow_zero=False)


def enforce_rules_customer(patch: dict) -> None:
    if patch.get("credit_limit_cents") is not None:
        require_money_cents(patch["credit_limit_cents"], "credit_limit_cents")
