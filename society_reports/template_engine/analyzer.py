"""
Template Structure Analyzer - finds the landmarks of a society report template.

For the first worksheet of a template this module determines:
- where the title block ends (header_end_row)
- where the placeholder rows start and which row is the per-record data row
- the total row, if the template has one
- whether the template is a TABLE (fixed headers, repeating data row) or a
  FORM (whole sheet repeats per record)
- whether a receipt template is single-row or a 3-row (per installment) block

The classification is a heuristic; the reasons behind it are kept in
`rationale` so callers can show them and override the type.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .cell_values import CellValue, FormulaValue, is_empty, read_cell_value, text_of
from .resolver import PLACEHOLDER_PATTERN, strip_placeholders
from society_reports.utils.snitch import snitch

logger = logging.getLogger(__name__)

TABLE = "TABLE"
FORM = "FORM"

HEADER_SCAN_ROWS = 5
DEFAULT_HEADER_END = 3
CLASSIFY_SCAN_ROWS = 50
TABLE_MAX_PLACEHOLDER_ROWS = 3
FORM_MIN_PLACEHOLDER_ROWS = 10
TEMPLATE_ROW_WINDOW = 3
TEMPLATE_ROW_MIN_PLACEHOLDERS = 3
RECEIPT_FLAVOR_WINDOW = 4
RECEIPT_BLOCK_ROWS = 3

HEADER_KEYWORDS = ("name", "amount", "bill", "code")
_TOTAL_TEXT = re.compile(r"total|sum", re.IGNORECASE)


@dataclass
class TemplateStructure:
    """Landmarks of a template's first worksheet. Rows are 1-based."""
    header_end_row: int
    data_start_row: int
    data_template_row: int
    template_type: str
    receipt_flavor: str = "single"
    record_block_rows: List[int] = field(default_factory=list)
    total_row: Optional[int] = None
    header_keyword_row: Optional[int] = None
    placeholder_row_count: int = 0
    max_row: int = 0
    max_column: int = 0
    variables: List[str] = field(default_factory=list)
    rationale: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class TemplateAnalyzer:
    """Scans one worksheet; build a new analyzer per template."""

    def __init__(self, worksheet: Worksheet):
        self.worksheet = worksheet
        self.max_row = worksheet.max_row or 0
        self.max_column = worksheet.max_column or 0
        self._rows = self._read_rows()

    def _read_rows(self) -> Dict[int, List[Tuple[int, CellValue]]]:
        """Non-empty cell values keyed by row number."""
        rows: Dict[int, List[Tuple[int, CellValue]]] = {}
        if self.max_row == 0:
            return rows
        for row in self.worksheet.iter_rows(min_row=1, max_row=self.max_row):
            for cell in row:
                if cell.value is None:
                    continue
                value = read_cell_value(cell.value)
                if is_empty(value):
                    continue
                rows.setdefault(cell.row, []).append((cell.column, value))
        return rows

    # --- row predicates ---

    def row_values(self, row_num: int) -> List[Tuple[int, CellValue]]:
        return self._rows.get(row_num, [])

    def row_has_content(self, row_num: int) -> bool:
        return bool(self._rows.get(row_num))

    def row_placeholders(self, row_num: int) -> List[str]:
        names = []
        for _, value in self.row_values(row_num):
            names.extend(PLACEHOLDER_PATTERN.findall(text_of(value)))
        return names

    def row_has_placeholder(self, row_num: int) -> bool:
        return bool(self.row_placeholders(row_num))

    def row_has_header_keyword(self, row_num: int) -> bool:
        for _, value in self.row_values(row_num):
            literal = strip_placeholders(text_of(value)).lower()
            if any(keyword in literal for keyword in HEADER_KEYWORDS):
                return True
        return False

    def row_looks_like_total(self, row_num: int) -> bool:
        for _, value in self.row_values(row_num):
            if isinstance(value, FormulaValue):
                if "SUM" in value.expression.upper():
                    return True
                continue
            if _TOTAL_TEXT.search(strip_placeholders(text_of(value))):
                return True
        return False

    # --- landmarks ---

    def find_header_end_row(self) -> int:
        """Last row of the title block: the row before the first blank row in rows 1..5."""
        for row_num in range(1, HEADER_SCAN_ROWS + 1):
            if not self.row_has_content(row_num):
                return row_num - 1
        return DEFAULT_HEADER_END

    def find_data_start_row(self, header_end_row: int) -> Optional[int]:
        for row_num in range(header_end_row + 1, self.max_row + 1):
            if self.row_has_placeholder(row_num):
                return row_num
        # Placeholders only inside the title block
        for row_num in range(1, header_end_row + 1):
            if self.row_has_placeholder(row_num):
                return row_num
        return None

    def find_data_template_row(self, data_start_row: int) -> int:
        for row_num in range(data_start_row, data_start_row + TEMPLATE_ROW_WINDOW + 1):
            if len(set(self.row_placeholders(row_num))) >= TEMPLATE_ROW_MIN_PLACEHOLDERS:
                return row_num
        return data_start_row

    def find_total_row(self, data_template_row: int) -> Optional[int]:
        for row_num in range(self.max_row, data_template_row, -1):
            if self.row_looks_like_total(row_num):
                return row_num
        return None

    def find_record_block(self, data_start_row: int) -> List[int]:
        """Consecutive placeholder rows starting the data block (receipt installments)."""
        block = []
        for row_num in range(data_start_row, data_start_row + RECEIPT_FLAVOR_WINDOW + 1):
            if self.row_has_placeholder(row_num):
                block.append(row_num)
            elif block:
                break
        return block

    def classify(self, rationale: List[str]) -> Tuple[str, int, Optional[int]]:
        """TABLE/FORM decision over the first 50 rows."""
        scan_to = min(CLASSIFY_SCAN_ROWS, self.max_row)
        placeholder_rows = [r for r in range(1, scan_to + 1) if self.row_has_placeholder(r)]
        keyword_row = next((r for r in range(1, scan_to + 1) if self.row_has_header_keyword(r)), None)
        count = len(placeholder_rows)

        if keyword_row is not None:
            rationale.append(f"Header keyword row found at row {keyword_row}")
        else:
            rationale.append("No header keyword (name/amount/bill/code) found")
        rationale.append(f"{count} placeholder row(s) in rows 1-{scan_to}")

        if keyword_row is not None and 1 <= count <= TABLE_MAX_PLACEHOLDER_ROWS:
            rationale.append(
                f"Header row plus {count} placeholder row(s) (<= {TABLE_MAX_PLACEHOLDER_ROWS}): "
                "data rows repeat under fixed headers"
            )
            return TABLE, count, keyword_row
        if count > FORM_MIN_PLACEHOLDER_ROWS:
            rationale.append(
                f"More than {FORM_MIN_PLACEHOLDER_ROWS} placeholder rows: whole template repeats per record"
            )
            return FORM, count, keyword_row

        rationale.append("Structure is ambiguous, defaulting to FORM")
        return FORM, count, keyword_row

    def analyze(self) -> TemplateStructure:
        rationale: List[str] = []
        warnings: List[str] = []

        header_end = self.find_header_end_row()
        template_type, placeholder_count, keyword_row = self.classify(rationale)

        data_start = self.find_data_start_row(header_end)
        if data_start is None:
            data_start = header_end + 2
            warnings.append(
                f"Template has no ${{FIELD}} placeholders; rows will be copied literally "
                f"(data start assumed at row {data_start})"
            )
            data_template_row = data_start
            block: List[int] = []
        else:
            data_template_row = self.find_data_template_row(data_start)
            block = self.find_record_block(data_start)

        if len(block) >= RECEIPT_BLOCK_ROWS:
            flavor = "multi"
            record_block_rows = block[:RECEIPT_BLOCK_ROWS]
            rationale.append(f"{len(block)} consecutive placeholder rows from row {data_start}: multi-row receipt block")
        else:
            flavor = "single"
            record_block_rows = [data_start]

        total_row = self.find_total_row(data_template_row)
        if total_row is not None:
            rationale.append(f"Total row found at row {total_row}")

        structure = TemplateStructure(
            header_end_row=header_end,
            data_start_row=data_start,
            data_template_row=data_template_row,
            template_type=template_type,
            receipt_flavor=flavor,
            record_block_rows=record_block_rows,
            total_row=total_row,
            header_keyword_row=keyword_row,
            placeholder_row_count=placeholder_count,
            max_row=self.max_row,
            max_column=self.max_column,
            variables=self.variables(),
            rationale=rationale,
            warnings=warnings,
        )
        logger.info(
            f"Template '{self.worksheet.title}': type={template_type}, header_end={header_end}, "
            f"data_start={data_start}, template_row={data_template_row}, total_row={total_row}, flavor={flavor}"
        )
        for warning in warnings:
            logger.warning(warning)
        return structure

    def variables(self) -> List[str]:
        names = set()
        for row_num in self._rows:
            names.update(self.row_placeholders(row_num))
        return sorted(names)


def extract_workbook_variables(workbook: Workbook) -> List[str]:
    """Sorted distinct placeholder names across every worksheet."""
    names = set()
    for worksheet in workbook.worksheets:
        names.update(TemplateAnalyzer(worksheet).variables())
    return sorted(names)


@snitch
def analyze_template(workbook: Workbook) -> TemplateStructure:
    """Analyze the first worksheet; variables are collected from all worksheets."""
    if not workbook.worksheets:
        raise ValueError("Template workbook has no worksheets")
    structure = TemplateAnalyzer(workbook.worksheets[0]).analyze()
    if len(workbook.worksheets) > 1:
        structure.variables = extract_workbook_variables(workbook)
    return structure
