##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Conversion between the strings Redis stores and typed scalar values.

Missing or empty numeric and character values decode to their zero value
(`0`, `0.0`, `Decimal("0")`, `"\\x00"`). Range indexes compare against these
defaults, so they must stay stable.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from rohm.common.enums import ErrorKind
from rohm.exceptions import ValidationError


LOG = logging.getLogger(__name__)


class Char(str):
    """Marker type for single-character attributes."""


NULL_CHAR = "\u0000"

SUPPORTED_SCALARS = (str, int, float, bool, Decimal, Char)
NUMERIC_TYPES = (int, float, Decimal)


def is_supported_scalar(value_type: type) -> bool:
    """Whether `value_type` can be stored as an attribute."""
    return value_type in SUPPORTED_SCALARS


def is_numeric(value_type: type) -> bool:
    """Whether `value_type` can back a range index. Booleans are excluded."""
    return value_type in NUMERIC_TYPES


def to_store(value: Any) -> str:
    """
    Serialize a scalar for storage in a hash field or a key segment.

    Args:
        value: A scalar value.

    Returns:
        The string stored in Redis.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_score(value: Any) -> float:
    """
    Convert a numeric value (or its stored form) to a sorted-set score.

    Raises:
        ValidationError: If the value is not numeric.
    """
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"'{value}' cannot be used as a range score", ErrorKind.INVALID_COMPARABLE) from exc


def from_store(value_type: type, raw: Optional[str]) -> Any:
    """
    Convert a stored string back to a typed scalar.

    Args:
        value_type: One of the supported scalar types.
        raw: The stored string, or None when the field is missing.

    Returns:
        The typed value.

    Raises:
        ValidationError: If `raw` cannot be converted to `value_type`.
    """
    empty = raw is None or raw == ""
    try:
        if value_type is Char:
            if empty:
                return NULL_CHAR
            if len(raw) > 1:
                raise ValidationError(
                    f"Non-character value '{raw}' masquerading as a character", ErrorKind.INVALID_VALUE
                )
            return Char(raw)
        if value_type is bool:
            return False if empty else raw.strip().lower() == "true"
        if value_type is int:
            return 0 if empty else int(raw)
        if value_type is float:
            return 0.0 if empty else float(raw)
        if value_type is Decimal:
            return Decimal("0") if empty else Decimal(raw)
    except (ValueError, InvalidOperation) as exc:
        raise ValidationError(f"Cannot convert '{raw}' to {value_type.__name__}", ErrorKind.INVALID_VALUE) from exc

    return raw


def normalize(value_type: type, value: Any) -> Any:
    """
    Coerce a caller-supplied value to `value_type` so that it serializes
    exactly like the stored value would (e.g. `"88"` for an `int` becomes `88`).

    Args:
        value_type: One of the supported scalar types.
        value: The value to coerce.

    Returns:
        The coerced value.
    """
    if isinstance(value, value_type) and not (value_type is int and isinstance(value, bool)):
        return value
    if value_type is int and isinstance(value, float) and value.is_integer():
        return int(value)
    return from_store(value_type, to_store(value))
