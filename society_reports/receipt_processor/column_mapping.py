from typing import Any, Dict, Iterable, List, Optional, Tuple

from openpyxl.worksheet.worksheet import Worksheet

HEADER_SCAN_ROWS = 10

# Upper-cased receipt file header -> canonical field
COLUMN_MAPPING = {
    'CODE NO': 'CODE_NO',
    'CODE_NO': 'CODE_NO',
    'CODENO': 'CODE_NO',
    'CODE NUMBER': 'CODE_NO',
    'FLAT NO': 'CODE_NO',
    'FLAT_NO': 'CODE_NO',

    'CHEQUE NO': 'CHEQUE_NO',
    'CHEQUE_NO': 'CHEQUE_NO',
    'CHQ NO': 'CHEQUE_NO',
    'CHQ_NO': 'CHEQUE_NO',
    'CHECK NO': 'CHEQUE_NO',

    'CHQ.DATE': 'CHEQUE_DT',
    'CHQ DATE': 'CHEQUE_DT',
    'CHEQUE DATE': 'CHEQUE_DT',
    'CHEQUE_DATE': 'CHEQUE_DT',
    'DATE': 'CHEQUE_DT',

    'NAME OF BANK': 'BANK',
    'BANK NAME': 'BANK',
    'BANK_NAME': 'BANK',
    'BANK': 'BANK',

    'RECEIPT AMOUNT': 'REC_AMT',
    'AMOUNT': 'REC_AMT',
    'REC_AMT': 'REC_AMT',
    'RECEIVED AMOUNT': 'REC_AMT',
}

REQUIRED_COLUMNS = ('CODE_NO', 'CHEQUE_NO', 'CHEQUE_DT', 'BANK', 'REC_AMT')

# Names used when telling the user which columns are missing
REQUIRED_COLUMN_LABELS = {
    'CODE_NO': 'Code No',
    'CHEQUE_NO': 'Cheque No',
    'CHEQUE_DT': 'Chq.Date',
    'BANK': 'Name of Bank',
    'REC_AMT': 'Receipt Amount',
}


def map_header(text: Any) -> Optional[str]:
    """Canonical field for a header cell, or None when it is not a receipt column."""
    if text is None:
        return None
    return COLUMN_MAPPING.get(str(text).strip().upper())


def find_header_row(worksheet: Worksheet, scan_rows: int = HEADER_SCAN_ROWS) -> Optional[int]:
    """First row among 1..scan_rows with at least one recognised receipt column."""
    last_row = min(scan_rows, worksheet.max_row or 0)
    for row in worksheet.iter_rows(min_row=1, max_row=last_row):
        if any(map_header(cell.value) for cell in row):
            return row[0].row
    return None


def map_header_columns(header_cells: Iterable[Tuple[int, Any]]) -> Dict[int, str]:
    """
    Column index -> canonical field for one header row.
    When two headers map to the same field, the leftmost one wins.
    """
    columns: Dict[int, str] = {}
    seen = set()
    for column, value in header_cells:
        field_name = map_header(value)
        if field_name and field_name not in seen:
            columns[column] = field_name
            seen.add(field_name)
    return columns


def missing_required_columns(mapped_fields: Iterable[str]) -> List[str]:
    """User-facing labels of the required columns absent from the header row."""
    found = set(mapped_fields)
    return [REQUIRED_COLUMN_LABELS[name] for name in REQUIRED_COLUMNS if name not in found]
