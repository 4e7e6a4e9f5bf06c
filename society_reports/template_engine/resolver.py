# template_engine/resolver.py
"""
${NAME} placeholder substitution.

Lookup order for every placeholder:
    1. society variables (a key that is present wins, even when its value is empty)
    2. the record
    3. empty string

Currency fields are rendered with en-IN grouping, date fields as D/M/YYYY,
everything else with str(). Formula expressions get raw values so they stay valid.
"""
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from .cell_values import CellValue, map_text
from .utils.math_utils import format_indian_currency
from .utils.text import format_short_date

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r'\$\{([A-Z_][A-Z0-9_]*)\}')

SOCIETY_VARIABLE_NAMES = (
    'SOCIETY_NAME', 'SOCIETY_REG_NO', 'SOCIETY_ADDRESS',
    'BILL_MONTH_FROM', 'BILL_MONTH_TO', 'BILL_YEAR',
)

CURRENCY_FIELDS = frozenset([
    'TOTAL', 'GR_TOTAL', 'ARREARS', 'ADVANCE', 'INTEREST', 'INT_ARREAR',
    'OUTST_BAL', 'BMC_TAX', 'SALARY', 'LIFT_MAINT', 'LET_OUT_CH', 'PAINT_FD',
    'RECEIPT_AMOUNT',
])
_CURRENCY_PATTERNS = (
    re.compile(r'^[A-Z0-9_]+_CHG\d*$'),
    re.compile(r'^[A-Z0-9_]+_FUND$'),
    re.compile(r'^REC_AMT\d*$'),
)

DATE_FIELDS = frozenset([
    'BILL_DATE', 'DUE_DATE', 'REC_DATE', 'CHQ_DATE',
    'CHEQUE_DT', 'CHEQUE_DT1', 'CHEQUE_DT2', 'CHEQUE_DT3',
])


def is_currency_field(field_name: str) -> bool:
    if field_name in CURRENCY_FIELDS:
        return True
    return any(pattern.match(field_name) for pattern in _CURRENCY_PATTERNS)


def is_date_field(field_name: str) -> bool:
    return field_name in DATE_FIELDS


def extract_variables(text: Any) -> List[str]:
    """Placeholder names in order of appearance (duplicates kept)."""
    if not isinstance(text, str):
        return []
    return PLACEHOLDER_PATTERN.findall(text)


def strip_placeholders(text: str) -> str:
    return PLACEHOLDER_PATTERN.sub(" ", text)


def format_field_value(field_name: str, value: Any) -> str:
    """Type-aware rendering of one record value."""
    if value is None or value == "":
        return ""
    if is_currency_field(field_name):
        return format_indian_currency(value)
    if is_date_field(field_name):
        return format_short_date(value)
    return str(value)


def build_society_variables(society_name: Optional[str] = None, details: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
    """
    Society-level variables from the request.

    details uses the request keys (regNo, address, billMonthFrom, billMonthTo,
    billYear). Only values actually supplied become variables, so records can
    still provide the rest.
    """
    details = details or {}
    sources = {
        'SOCIETY_NAME': society_name if society_name is not None else details.get('societyName'),
        'SOCIETY_REG_NO': details.get('regNo'),
        'SOCIETY_ADDRESS': details.get('address'),
        'BILL_MONTH_FROM': details.get('billMonthFrom'),
        'BILL_MONTH_TO': details.get('billMonthTo'),
        'BILL_YEAR': details.get('billYear'),
    }
    return {name: str(value) for name, value in sources.items() if value is not None}


class VariableResolver:
    """Resolves placeholders for one generation call against a fixed society set."""

    def __init__(self, society_vars: Optional[Mapping[str, Any]] = None):
        self.society_vars = dict(society_vars or {})

    def lookup(self, field_name: str, record: Optional[Mapping[str, Any]], raw: bool = False) -> str:
        if field_name in self.society_vars:
            value = self.society_vars[field_name]
            return "" if value is None else str(value)

        value = (record or {}).get(field_name)
        if raw:
            return "" if value is None else str(value)
        return format_field_value(field_name, value)

    def resolve(self, text: Any, record: Optional[Mapping[str, Any]] = None) -> Any:
        """Substitute every placeholder in text. Non-strings are returned unchanged."""
        if not isinstance(text, str) or "${" not in text:
            return text
        return PLACEHOLDER_PATTERN.sub(lambda m: self.lookup(m.group(1), record), text)

    def resolve_formula(self, expression: str, record: Optional[Mapping[str, Any]] = None) -> str:
        if "${" not in expression:
            return expression
        return PLACEHOLDER_PATTERN.sub(lambda m: self.lookup(m.group(1), record, raw=True), expression)

    def resolve_cell_value(self, value: CellValue, record: Optional[Mapping[str, Any]] = None) -> CellValue:
        return map_text(
            value,
            lambda text: self.resolve(text, record),
            lambda expression: self.resolve_formula(expression, record),
        )


def resolve(text: Any, record: Optional[Mapping[str, Any]], society_vars: Optional[Mapping[str, Any]] = None) -> Any:
    """Functional form of VariableResolver.resolve."""
    return VariableResolver(society_vars).resolve(text, record)


def check_template_fields(variables: List[str], data_fields: List[str], society_vars: Optional[Mapping[str, Any]] = None) -> Dict[str, List[str]]:
    """
    Compare the variables a template needs with what the data provides.

    Returns a dict with 'missing' (needed, supplied by neither the data nor the
    society set), 'available' (needed and supplied) and 'unused' (data fields
    the template never references).
    """
    data_set = set(data_fields)
    # without a concrete society set, assume all society variables will be supplied
    society_set = set(SOCIETY_VARIABLE_NAMES) if society_vars is None else set(society_vars)
    needed = sorted(set(variables))

    missing = [name for name in needed if name not in data_set and name not in society_set]
    available = [name for name in needed if name in data_set or name in society_set]
    unused = sorted(data_set - set(needed))

    if missing:
        logger.warning(f"Template fields not supplied by data: {', '.join(missing)}")
    return {'missing': missing, 'available': available, 'unused': unused}
