"""
Math Utilities

Robust conversion of spreadsheet values to numbers. Society data arrives as
numbers, strings with thousands separators ("1,500.00") or blanks.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _clean_numeric_text(value: str) -> str:
    return value.strip().replace(",", "")


def safe_float_convert(value: Any, default: float = 0.0) -> float:
    """
    Safely converts a value to a float.

    Handles:
    - Integers and floats (returned as float)
    - Strings with whitespace or thousands separators
    - Booleans are not numbers here and return the default

    Args:
        value: The value to convert.
        default: The default value to return if conversion fails.

    Returns:
        The converted float value, or the default if conversion fails.
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, (int, float)):
        return float(value)

    if isinstance(value, Decimal):
        return float(value)

    if isinstance(value, str):
        cleaned = _clean_numeric_text(value)
        if not cleaned:
            return default
        try:
            return float(cleaned)
        except ValueError:
            pass

    return default


def safe_int_convert(value: Any, default: int = 0) -> int:
    """
    Safely converts a value to an integer (floats are truncated).

    Args:
        value: The value to convert.
        default: The default value to return if conversion fails.

    Returns:
        The converted integer value, or the default if conversion fails.
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        return int(value)

    if isinstance(value, str):
        cleaned = _clean_numeric_text(value)
        if not cleaned:
            return default
        try:
            return int(float(cleaned))
        except ValueError:
            pass

    return default


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a value into a Decimal, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    text = _clean_numeric_text(str(value))
    if not text:
        return None
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def format_indian_currency(value: Any) -> str:
    """
    Render a number with en-IN digit grouping and at most two decimals.

    The last three integer digits form one group, the rest are grouped in
    pairs: 1234567.5 -> "12,34,567.5". Non-numeric input renders as "0".
    """
    amount = to_decimal(value)
    if amount is None:
        return "0"

    amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    negative = amount < 0
    integer_part, _, fraction = f"{abs(amount):.2f}".partition(".")
    fraction = fraction.rstrip("0")

    if len(integer_part) > 3:
        head, tail = integer_part[:-3], integer_part[-3:]
        pairs = []
        while len(head) > 2:
            pairs.insert(0, head[-2:])
            head = head[:-2]
        if head:
            pairs.insert(0, head)
        integer_part = ",".join(pairs + [tail])

    text = f"{integer_part}.{fraction}" if fraction else integer_part
    if negative and text != "0":
        text = f"-{text}"
    return text


def is_positive_amount(value: Any) -> bool:
    return safe_float_convert(value) > 0
