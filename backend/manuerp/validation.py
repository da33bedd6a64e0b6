from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError, InvalidMovementTypeError, InvalidQuantityError
from .models import MATERIAL_CATEGORIES, MATERIAL_UNITS, MOVEMENT_TYPES
from .models.inventory import QUANTITY, MONEY


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def numeric_limits(numeric) -> tuple[Decimal, Decimal]:
    """(smallest step, largest magnitude) a Numeric(precision, scale) column can hold."""
    quantum = Decimal(1).scaleb(-numeric.scale)
    return quantum, Decimal(10) ** (numeric.precision - numeric.scale) - quantum


QUANTITY_QUANTUM, MAX_QUANTITY = numeric_limits(QUANTITY)
MONEY_QUANTUM, MAX_UNIT_COST = numeric_limits(MONEY)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: JSON fields clients are allowed to send (security boundary)
    - required_on_create: JSON fields required for POST
    - aliases: JSON field name -> model column key, for camelCase API names
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    aliases: dict[str, str] = field(default_factory=dict)
    required_message: str | None = None

    def column_key(self, name: str) -> str:
        return self.aliases.get(name, name)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_decimal(
    name: str,
    value: Any,
    *,
    quantum: Decimal | None = QUANTITY_QUANTUM,
    max_value: Decimal = MAX_QUANTITY,
) -> Decimal:
    """
    Accept ints, floats and numeric strings; reject bools, NaN and infinities.

    The value must fit the target column exactly: at most max_value in
    magnitude and no digits finer than quantum (skipped when quantum is
    None). Nothing is rounded.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
        dec = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be a number")
        try:
            dec = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{name} must be a number")
    else:
        raise ValidationError(f"{name} must be a number")

    if not dec.is_finite():
        raise ValidationError(f"{name} must be a finite number")
    if abs(dec) > max_value:
        raise ValidationError(f"{name} is out of range")
    if quantum is not None and dec != dec.quantize(quantum):
        raise ValidationError(f"{name} supports at most {-quantum.as_tuple().exponent} decimal places")
    return dec


def _coerce_value(name: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.lstrip("-").isdigit():
                return int(stripped)
        raise ValidationError(f"{name} must be an integer")

    # Fixed-point quantities and money
    if isinstance(coltype, Numeric):
        if coltype.precision is not None and coltype.scale is not None:
            quantum, max_value = numeric_limits(coltype)
            return coerce_decimal(name, value, quantum=quantum, max_value=max_value)
        return coerce_decimal(name, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{name} must be true or false")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


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
    Returns a cleaned patch dict keyed by model column key.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(
            f for f in policy.required_on_create
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(
                policy.required_message or f"Missing required fields: {', '.join(missing)}"
            )

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if policy.column_key(k) not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        key = policy.column_key(k)
        col = cols[key]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[key] = None
            continue

        val = _coerce_value(k, col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[key] = val

    return patch


def enforce_rules_material(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "category" in patch and patch["category"] not in MATERIAL_CATEGORIES:
        raise ValidationError(f"category must be one of: {', '.join(MATERIAL_CATEGORIES)}")

    if "unit" in patch and patch["unit"] not in MATERIAL_UNITS:
        raise ValidationError(f"unit must be one of: {', '.join(MATERIAL_UNITS)}")

    if "unit_cost" in patch and patch["unit_cost"] is not None and patch["unit_cost"] < 0:
        raise ValidationError("unitCost must be >= 0")

    if "stock_quantity" in patch and patch["stock_quantity"] is not None and patch["stock_quantity"] < 0:
        raise ValidationError("stockQuantity must be >= 0")


def enforce_rules_stock_movement(patch: dict) -> None:
    if patch.get("movement_type") not in MOVEMENT_TYPES:
        raise InvalidMovementTypeError()

    quantity = patch.get("quantity")
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError()



def ensure_str(name: str, value: Any) -> str | None:
    """JSON strings pass through; None stays None; anything else is a 400."""
    if value is None or isinstance(value, str):
        return value
    raise ValidationError(f"{name} must be a string.")
