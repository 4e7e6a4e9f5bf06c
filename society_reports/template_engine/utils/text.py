# This module contains date parsing and formatting helpers shared by the resolver and the registers.

import datetime
import logging
import re
from typing import Any, Optional

# The python-dateutil library is required for free-form date parsing.
from dateutil.parser import parse, ParserError

logger = logging.getLogger(__name__)

_YEAR_FIRST = re.compile(r'^\d{4}[-/.]\d{1,2}[-/.]\d{1,2}')


def excel_number_to_datetime(excel_num: Any) -> Optional[datetime.datetime]:
    """Converts an Excel date number to a Python datetime object."""
    try:
        excel_num = float(excel_num)
        # Excel's 1900 leap year bug needs to be accounted for.
        if excel_num > 59:
            excel_num -= 1
        delta = datetime.timedelta(days=excel_num - 1)
        return datetime.datetime(1900, 1, 1) + delta
    except (ValueError, TypeError, OverflowError):
        return None


def coerce_date(value: Any) -> Optional[datetime.date]:
    """
    Interprets a cell value as a calendar date.

    Accepts datetime/date objects, Excel serial numbers (numeric or numeric
    text) and date strings, which are parsed day-first. Returns None when the
    value cannot be read as a date.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value

    if isinstance(value, (int, float)):
        if value < 1:
            return None
        parsed = excel_number_to_datetime(value)
        return parsed.date() if parsed else None

    text = str(value).strip()
    if not text:
        return None

    try:
        serial = float(text)
    except ValueError:
        serial = None
    if serial is not None:
        return coerce_date(serial)

    try:
        return parse_date_text(text)
    except (ParserError, ValueError, OverflowError):
        logger.debug(f"Could not parse '{text}' as a date")
        return None


def parse_date_text(text: str) -> datetime.date:
    """
    Free-form date text, day first ("03/02/2025" is 3 Feb) unless it starts
    with a four digit year ("2025-02-03" is also 3 Feb).

    Raises:
        ParserError, ValueError, OverflowError: text is not a date.
    """
    if _YEAR_FIRST.match(text):
        return parse(text, yearfirst=True, dayfirst=False).date()
    return parse(text, dayfirst=True).date()


def format_short_date(value: Any) -> str:
    """
    Short en-IN date, e.g. 14/1/2025 (no zero padding).
    Values that are not dates are returned unchanged as text.
    """
    parsed = coerce_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    return f"{parsed.day}/{parsed.month}/{parsed.year}"
