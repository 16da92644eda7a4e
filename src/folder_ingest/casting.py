"""
Type checking and casting utilities for ingested field values.

Validation works on strings only; conversion to native Python values happens
later, when a record is persisted or compared against the store.

Supported field types:
- LONG: signed 64-bit integer -> int
- DECIMAL: arbitrary precision decimal -> Decimal
- LOCAL_DATE: ISO date (YYYY-MM-DD) -> datetime.date
- STRING: any text -> str
"""

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

logger = logging.getLogger(__name__)

LONG_MIN = -(2 ** 63)
LONG_MAX = 2 ** 63 - 1

_LONG_RE = re.compile(r'^[+-]?[0-9]+$')
_DATE_RE = re.compile(r'^[0-9]{4}-[0-9]{2}-[0-9]{2}$')


def safe_text(value: Any) -> Optional[str]:
    """Convert value to a trimmed string, None when empty."""
    if value is None:
        return None
    s = str(value).strip()
    return s if s else None


def is_long(s: str) -> bool:
    if not _LONG_RE.match(s):
        return False
    return LONG_MIN <= int(s) <= LONG_MAX


def is_decimal(s: str) -> bool:
    # Decimal() also accepts NaN, Infinity and digit separators
    if '_' in s:
        return False
    try:
        return Decimal(s).is_finite()
    except InvalidOperation:
        return False


def is_iso_local_date(s: str) -> bool:
    if not _DATE_RE.match(s):
        return False
    try:
        datetime.strptime(s, "%Y-%m-%d")
        return True
    except ValueError:
        return False


def matches_type(typ: Optional[str], raw: str) -> bool:
    """Check whether a trimmed raw string is compatible with a field type.

    Unknown types are accepted, like STRING.
    """
    t = (typ or "STRING").upper()
    if t == "LONG":
        return is_long(raw)
    if t == "DECIMAL":
        return is_decimal(raw)
    if t == "LOCAL_DATE":
        return is_iso_local_date(raw)
    return True


def cast_value(value: Any, typ: Optional[str]) -> Any:
    """Cast a validated value to its native type.

    Args:
        value: Validated string value (or None)
        typ: Field type name (LONG, DECIMAL, LOCAL_DATE, STRING)

    Returns:
        Native value, or None for blank input

    Raises:
        ValueError: When the value cannot be converted
    """
    s = safe_text(value)
    if s is None:
        return None

    t = (typ or "STRING").upper()
    try:
        if t == "LONG":
            if not is_long(s):
                raise ValueError("not a 64-bit integer")
            return int(s)
        if t == "DECIMAL":
            if not is_decimal(s):
                raise ValueError("not a finite decimal")
            return Decimal(s)
        if t == "LOCAL_DATE":
            if not _DATE_RE.match(s):
                raise ValueError("expected YYYY-MM-DD")
            return date.fromisoformat(s)
        if t != "STRING":
            logger.warning(f"Unknown type '{typ}', treating as string")
        return s
    except (ValueError, InvalidOperation) as e:
        raise ValueError(f"Failed to cast '{s}' to {t}: {e}") from e
