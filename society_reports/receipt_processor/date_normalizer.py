"""
Cheque date normalization for reconciliation files.

Receipt files mix Excel serials, real dates and hand-typed text. Every
readable value is rewritten as DD/MM/YYYY; anything else is kept as typed.
"""
import datetime
import logging
import re
from typing import Any, Optional

from dateutil.parser import ParserError

from society_reports.template_engine.utils.text import excel_number_to_datetime, parse_date_text

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r'[-/]')
_MONTHS = {
    'jan': 1, 'january': 1,
    'feb': 2, 'february': 2,
    'mar': 3, 'march': 3,
    'apr': 4, 'april': 4,
    'may': 5,
    'jun': 6, 'june': 6,
    'jul': 7, 'july': 7,
    'aug': 8, 'august': 8,
    'sep': 9, 'sept': 9, 'september': 9,
    'oct': 10, 'october': 10,
    'nov': 11, 'november': 11,
    'dec': 12, 'december': 12,
}


def is_blank_date(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 0
    return str(value).strip() in ('', '0')


def _two_digit_year(year: int) -> int:
    return year + (2000 if year < 50 else 1900)


def _parse_numeric_parts(text: str) -> Optional[datetime.date]:
    parts = _SEPARATORS.split(text)
    if len(parts) != 3 or not all(p.strip().isdigit() for p in parts):
        return None
    first, second, third = (p.strip() for p in parts)

    if len(first) == 4:
        year, month, day = int(first), int(second), int(third)
    elif len(third) == 4:
        day, month, year = int(first), int(second), int(third)
    else:
        day, month, year = int(first), int(second), _two_digit_year(int(third))
        if day <= 12 and month > 12:
            # MM-DD-YY
            day, month = month, day
    return datetime.date(year, month, day)


def _parse_month_name(text: str) -> Optional[datetime.date]:
    parts = text.split()
    if len(parts) != 3:
        return None
    month = _MONTHS.get(parts[1].lower().rstrip('.,'))
    if month is None or not parts[0].isdigit() or not parts[2].isdigit():
        return None
    return datetime.date(int(parts[2]), month, int(parts[0]))


def parse_receipt_date(value: Any) -> Optional[datetime.date]:
    """
    Read a cheque date. Returns None for blanks and for values that are not dates.

    Text forms: YYYY-MM-DD, DD-MM-YYYY, DD-MM-YY (YY < 50 is 20YY; day > 12
    means day first, month > 12 means month first, otherwise day first) and
    "14 Jan 2025". '/' works wherever '-' does. Other text goes to dateutil, day first.
    """
    if is_blank_date(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, (int, float)):
        parsed = excel_number_to_datetime(value)
        return parsed.date() if parsed else None

    text = str(value).strip()
    try:
        if re.fullmatch(r'\d+(\.\d+)?', text):
            parsed = excel_number_to_datetime(text)
            return parsed.date() if parsed else None
        if _SEPARATORS.search(text):
            parsed_date = _parse_numeric_parts(text)
            if parsed_date is not None:
                return parsed_date
        elif ' ' in text:
            parsed_date = _parse_month_name(text)
            if parsed_date is not None:
                return parsed_date
        return parse_date_text(text)
    except (ParserError, ValueError, OverflowError):
        logger.debug(f"Unreadable cheque date: {value!r}")
        return None


def format_receipt_date(value: datetime.date) -> str:
    return f"{value.day:02d}/{value.month:02d}/{value.year}"


def normalize_date(value: Any) -> str:
    """DD/MM/YYYY for readable dates, "" for blanks, the original text otherwise."""
    if is_blank_date(value):
        return ''
    parsed = parse_receipt_date(value)
    if parsed is None:
        return str(value).strip()
    return format_receipt_date(parsed)
