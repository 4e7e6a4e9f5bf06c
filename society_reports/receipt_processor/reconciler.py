# receipt_processor/reconciler.py
"""
Receipt reconciliation.

Merges a receipt spreadsheet (one row per cheque, up to three per member)
into the current member records and regenerates the REC_NO sequence.

Steps:
    1. find the header row and map its columns onto receipt fields
    2. read data rows, inheriting a missing CODE_NO from the row above
    3. group rows per CODE_NO into exactly three installments
    4. copy installments into CHEQUE_NO1..3 / CHEQUE_DT1..3 / BANK1..3 / REC_AMT1..3
    5. clear every REC_NO, then number paying records from max(old REC_NO) + 1
"""
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional, Sequence

from openpyxl.worksheet.worksheet import Worksheet

from society_reports.exceptions import ReconciliationError, ReportError
from society_reports.template_engine.loader import load_data_workbook
from society_reports.template_engine.utils.math_utils import (
    is_positive_amount,
    safe_float_convert,
    safe_int_convert,
)
from society_reports.utils.snitch import snitch

from .column_mapping import find_header_row, map_header_columns, missing_required_columns
from .date_normalizer import is_blank_date, normalize_date, parse_receipt_date
from .models import ReconciliationResult, ReconciliationSummary

logger = logging.getLogger(__name__)

INSTALLMENTS = 3
PAYMENT_FIELDS = ('REC_AMT', 'REC_AMT1', 'REC_AMT2', 'REC_AMT3')


def normalize_key(value: Any) -> Any:
    """Join key: integral numbers (and numeric text) as int, other text stripped. Blank -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value == 0:
            return None
        return int(value) if float(value).is_integer() else value

    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text.replace(',', ''))
    except ValueError:
        return text
    if number.is_integer():
        return int(number) or None
    return text


def cheque_text(value: Any) -> str:
    """Cheque numbers are text; 123456.0 read from Excel becomes '123456'."""
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def has_any_payment(record: Mapping[str, Any]) -> bool:
    return any(is_positive_amount(record.get(field_name)) for field_name in PAYMENT_FIELDS)


def find_max_rec_no(records: Sequence[Mapping[str, Any]]) -> int:
    """Largest positive REC_NO in the current records, 0 when there is none."""
    numbers = [safe_int_convert(record.get('REC_NO')) for record in records]
    return max([n for n in numbers if n > 0], default=0)


def _cell_has_data(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0
    return str(value).strip() != ''


class ReceiptReconciler:
    """One reconciliation run; collects its own summary."""

    def __init__(self):
        self.summary = ReconciliationSummary()

    def warn(self, message: str):
        self.summary.warnings.append(message)
        logger.warning(message)

    # --- reading ---

    def read_receipt_rows(self, worksheet: Worksheet) -> List[Dict[str, Any]]:
        """Normalized receipt rows in file order, CODE_NO always set."""
        header_row = find_header_row(worksheet)
        if header_row is None:
            raise ReconciliationError(
                "Could not find header row with required columns "
                "(Code No, Cheque No, Chq.Date, Name of Bank, Receipt Amount)"
            )

        header_cells = next(worksheet.iter_rows(min_row=header_row, max_row=header_row))
        columns = map_header_columns((cell.column, cell.value) for cell in header_cells)
        missing = missing_required_columns(columns.values())
        if missing:
            raise ReconciliationError(f"Missing required columns: {', '.join(missing)}")
        logger.info(f"Receipt header at row {header_row}: {columns}")

        rows: List[Dict[str, Any]] = []
        last_key = None
        for cells in worksheet.iter_rows(min_row=header_row + 1):
            raw = {columns[c.column]: c.value for c in cells if c.column in columns}
            if not any(_cell_has_data(v) for v in raw.values()):
                continue
            row_num = cells[0].row
            self.summary.total_records_in_file += 1

            key = normalize_key(raw.get('CODE_NO'))
            if key is not None:
                last_key = key
            elif last_key is not None:
                key = last_key
                self.summary.code_no_inherited += 1
                self.warn(f"Row {row_num}: Missing Code No, inherited {last_key} from previous row")
            else:
                self.warn(f"Row {row_num}: No Code No found and no previous Code No to inherit - skipping row")
                continue

            rows.append(self._normalize_row(key, raw, row_num))
        return rows

    def _normalize_row(self, key: Any, raw: Mapping[str, Any], row_num: int) -> Dict[str, Any]:
        cheque_date = raw.get('CHEQUE_DT')
        if not is_blank_date(cheque_date) and parse_receipt_date(cheque_date) is None:
            self.warn(f"Row {row_num}: Could not read cheque date '{cheque_date}', kept as entered")

        bank = raw.get('BANK')
        return {
            'CODE_NO': key,
            'CHEQUE_NO': cheque_text(raw.get('CHEQUE_NO')),
            'CHEQUE_DT': normalize_date(cheque_date),
            'BANK': str(bank).strip() if bank is not None else '',
            'REC_AMT': safe_float_convert(raw.get('REC_AMT')),
        }

    # --- grouping ---

    def group_by_key(self, rows: Sequence[Mapping[str, Any]]) -> "OrderedDict[Any, List[Mapping[str, Any]]]":
        """Exactly INSTALLMENTS rows per key: extra rows dropped, short groups padded."""
        grouped: "OrderedDict[Any, List[Mapping[str, Any]]]" = OrderedDict()
        for row in rows:
            grouped.setdefault(row['CODE_NO'], []).append(row)

        for key, group in grouped.items():
            if len(group) > INSTALLMENTS:
                self.warn(f"Code No {key}: Found {len(group)} rows, using first {INSTALLMENTS} rows only.")
                del group[INSTALLMENTS:]
            elif len(group) < INSTALLMENTS:
                self.warn(f"Code No {key}: Found {len(group)} rows, padding with empty rows.")
                while len(group) < INSTALLMENTS:
                    group.append({'CODE_NO': key, 'CHEQUE_NO': '', 'CHEQUE_DT': '', 'BANK': '', 'REC_AMT': 0})
            self.summary.processed_code_nos += 1
        return grouped

    # --- applying ---

    def apply(self, records: Sequence[Mapping[str, Any]], grouped: Mapping[Any, List[Mapping[str, Any]]]) -> List[Dict[str, Any]]:
        """New record list with installments merged and REC_NO regenerated."""
        old_max = find_max_rec_no(records)
        updated = [dict(record) for record in records]
        updated_columns: List[str] = []

        def touch(column: str):
            if column not in updated_columns:
                updated_columns.append(column)

        for record in updated:
            record['REC_NO'] = ''
        self.summary.rec_no_cleared = len(updated)

        for record in updated:
            group = grouped.get(normalize_key(record.get('CODE_NO')))
            if group is None:
                self.summary.skipped_records += 1
                continue
            for month, installment in enumerate(group, start=1):
                record[f'CHEQUE_NO{month}'] = installment['CHEQUE_NO'] or ''
                record[f'CHEQUE_DT{month}'] = installment['CHEQUE_DT'] or ''
                record[f'BANK{month}'] = installment['BANK'] or ''
                record[f'REC_AMT{month}'] = installment['REC_AMT'] or 0
                for column in ('CHEQUE_NO', 'CHEQUE_DT', 'BANK', 'REC_AMT'):
                    touch(f'{column}{month}')
            self.summary.updated_records += 1

        next_rec_no = old_max
        for record in updated:
            if has_any_payment(record):
                next_rec_no += 1
                record['REC_NO'] = str(next_rec_no)
                self.summary.rec_no_generated += 1
                touch('REC_NO')

        self.summary.old_max_rec_no = old_max
        self.summary.new_max_rec_no = next_rec_no
        self.summary.updated_columns = updated_columns

        if self.summary.skipped_records:
            self.warn(f"{self.summary.skipped_records} records in main data had no matching receipt data")
        logger.info(
            f"REC_NO regenerated: cleared {self.summary.rec_no_cleared}, assigned {self.summary.rec_no_generated} "
            f"({old_max + 1} to {next_rec_no})"
        )
        return updated

    def run(self, worksheet: Worksheet, records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        rows = self.read_receipt_rows(worksheet)
        if not rows:
            raise ReconciliationError("No data found in receipt file")
        return self.apply(records, self.group_by_key(rows))


@snitch
def reconcile(source: Any, current_records: Sequence[Mapping[str, Any]],
              filename: Optional[str] = None) -> ReconciliationResult:
    """
    Reconcile a receipt file against the current records.

    The summary is returned in every case; on failure it carries whatever was
    counted before the error plus the error message.
    """
    reconciler = ReceiptReconciler()
    try:
        workbook = load_data_workbook(source, filename)
        if not workbook.worksheets:
            raise ReconciliationError("No worksheet found in Excel file")
        updated = reconciler.run(workbook.worksheets[0], list(current_records or []))
        return ReconciliationResult(success=True, updated_records=updated, summary=reconciler.summary)
    except ReportError as e:
        logger.warning(f"Receipt reconciliation rejected: {e}")
        reconciler.summary.errors.append(str(e))
        return ReconciliationResult(success=False, summary=reconciler.summary, error=str(e))
    except Exception as e:
        logger.error(f"Receipt reconciliation failed: {e}", exc_info=True)
        reconciler.summary.errors.append(str(e))
        return ReconciliationResult(success=False, summary=reconciler.summary, error=str(e))
