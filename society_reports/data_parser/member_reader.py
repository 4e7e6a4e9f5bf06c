# data_parser/member_reader.py
"""
Member roster import.

Turns a members spreadsheet (.xlsx/.xlsm, headers on row 1) or a .csv export
into the list of records the report engine consumes.
"""
import csv
import datetime
import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from openpyxl.worksheet.worksheet import Worksheet

from society_reports.exceptions import DataValidationError
from society_reports.system_config import sys_config
from society_reports.template_engine.loader import (
    EXCEL_EXTENSIONS,
    check_extension,
    check_size,
    load_data_workbook,
    read_source_bytes,
)
from society_reports.utils.snitch import snitch

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = ('.csv',)


def _clean_value(value: Any) -> Any:
    if value is None:
        return ''
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip()
    return value


def _has_data(row: Dict[str, Any]) -> bool:
    return any(value not in ('', None) for value in row.values())


def read_worksheet_records(worksheet: Worksheet) -> List[Dict[str, Any]]:
    """Rows 2.. keyed by the row-1 headers. Columns without a header are ignored."""
    header_cells = next(worksheet.iter_rows(min_row=1, max_row=1), ())
    headers = {cell.column: str(cell.value).strip() for cell in header_cells
               if cell.value is not None and str(cell.value).strip()}
    if not headers:
        raise DataValidationError("No headers found in Excel file")

    records = []
    for cells in worksheet.iter_rows(min_row=2):
        row = {headers[c.column]: _clean_value(c.value) for c in cells if c.column in headers}
        if _has_data(row):
            records.append(row)
    return records


def read_csv_records(data: bytes) -> List[Dict[str, Any]]:
    try:
        text = data.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise DataValidationError(f"CSV file is not UTF-8 text: {e}") from e

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or not any((name or '').strip() for name in reader.fieldnames):
        raise DataValidationError("No headers found in CSV file")

    records = []
    for raw in reader:
        row = {key.strip(): (value or '').strip() for key, value in raw.items()
               if key is not None and key.strip()}
        if _has_data(row):
            records.append(row)
    return records


def collect_columns(records: List[Dict[str, Any]]) -> List[str]:
    """Sorted union of the field names across all records."""
    columns = set()
    for record in records:
        columns.update(record.keys())
    return sorted(columns)


@snitch
def read_member_records(source: Any, filename: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Read member records from a path, bytes or file object.

    Dates become ISO strings (YYYY-MM-DD), formula cells their cached results
    and blank rows are skipped.

    Raises:
        DataValidationError: unsupported file, no headers or no data rows.
    """
    try:
        data, name = read_source_bytes(source, filename)
    except (FileNotFoundError, TypeError) as e:
        raise DataValidationError(str(e)) from e

    suffix = Path(name).suffix.lower() if name else ''
    if suffix in CSV_EXTENSIONS:
        check_size(data, sys_config.max_data_bytes, name, DataValidationError)
        records = read_csv_records(data)
    else:
        check_extension(name, EXCEL_EXTENSIONS, DataValidationError)
        workbook = load_data_workbook(data, name)
        records = read_worksheet_records(workbook.worksheets[0])

    if not records:
        raise DataValidationError("File is empty or has no valid data")

    logger.info(f"Read {len(records)} member record(s) from '{name or '<bytes>'}'")
    return records
