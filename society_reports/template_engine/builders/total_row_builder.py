import logging
from copy import copy
from typing import Any, Dict, List, Optional, Set

from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..cell_values import FormulaValue, read_cell_value, text_of, to_openpyxl
from ..replicator import RowReplicator, copy_cell_style
from ..resolver import PLACEHOLDER_PATTERN, is_currency_field

logger = logging.getLogger(__name__)

CURRENCY_NUMBER_FORMAT = '#,##0.00'


def coerce_sum_formula(column_letter: str, first_row: int, last_row: int) -> str:
    """
    SUM over a column that tolerates numbers stored as text ("1,500.50").
    Commas are stripped and non-numeric cells count as zero.
    """
    cell_range = f"{column_letter}{first_row}:{column_letter}{last_row}"
    return f'=SUMPRODUCT(IFERROR(VALUE(SUBSTITUTE({cell_range},",","")),0))'


class TotalRowBuilder:
    """
    Builds the register total row from the template's total row.

    Placeholder cells whose field was selected get a coerce-then-sum formula over
    the generated data rows; unselected placeholder cells are cleared; template
    SUM formulas are pointed at the generated range; label cells are kept.
    Every cell in the row is bold.
    """

    def __init__(
        self,
        replicator: RowReplicator,
        worksheet: Worksheet,
        template_total_row: int,
        selected_fields: List[str]
    ):
        self.replicator = replicator
        self.worksheet = worksheet
        self.template_total_row = template_total_row
        self.selected_fields: Set[str] = set(selected_fields or [])
        self.totalled_fields: List[str] = []
        self.cleared_fields: List[str] = []

    @property
    def template_ws(self) -> Worksheet:
        return self.replicator.template_ws

    def build(self, dest_row: int, data_first_row: int, data_last_row: int) -> Dict[str, Any]:
        """
        Args:
            dest_row: Output row for the totals
            data_first_row: First generated data row
            data_last_row: Last generated data row

        Returns:
            dict with 'row', 'totalled_fields' and 'cleared_fields'
        """
        row_dim = self.template_ws.row_dimensions.get(self.template_total_row)
        if row_dim is not None and row_dim.height is not None:
            self.worksheet.row_dimensions[dest_row].height = row_dim.height

        for row in self.template_ws.iter_rows(
            min_row=self.template_total_row, max_row=self.template_total_row, max_col=self.replicator.max_column
        ):
            for source_cell in row:
                if source_cell.value is None and not source_cell.has_style:
                    continue
                target_cell = self.worksheet.cell(row=dest_row, column=source_cell.column)
                copy_cell_style(source_cell, target_cell)
                bold_font = copy(target_cell.font)
                bold_font.bold = True
                target_cell.font = bold_font

                if source_cell.value is None:
                    continue
                self._fill_cell(source_cell, target_cell, data_first_row, data_last_row)

        logger.info(
            f"Total row at {dest_row} over rows {data_first_row}-{data_last_row}: "
            f"totalled={self.totalled_fields}, cleared={self.cleared_fields}"
        )
        return {
            "row": dest_row,
            "totalled_fields": self.totalled_fields,
            "cleared_fields": self.cleared_fields,
        }

    def _fill_cell(self, source_cell, target_cell, data_first_row: int, data_last_row: int):
        value = read_cell_value(source_cell.value)
        society_vars = self.replicator.resolver.society_vars
        fields = [name for name in PLACEHOLDER_PATTERN.findall(text_of(value)) if name not in society_vars]
        field_name: Optional[str] = fields[0] if fields else None
        column_letter = get_column_letter(source_cell.column)

        is_sum_formula = isinstance(value, FormulaValue) and "SUM" in value.expression.upper()
        is_selected = field_name is not None and field_name in self.selected_fields

        if is_selected or (is_sum_formula and field_name is None):
            target_cell.value = coerce_sum_formula(column_letter, data_first_row, data_last_row)
            if self._is_currency_column(source_cell, field_name):
                target_cell.number_format = CURRENCY_NUMBER_FORMAT
            self.totalled_fields.append(field_name or column_letter)
        elif field_name is not None:
            target_cell.value = None
            self.cleared_fields.append(field_name)
        else:
            # Labels such as "Total" (society variables still resolve)
            resolved = self.replicator.resolver.resolve_cell_value(value, {})
            target_cell.value = to_openpyxl(resolved)

    @staticmethod
    def _is_currency_column(source_cell, field_name: Optional[str]) -> bool:
        if field_name and is_currency_field(field_name):
            return True
        number_format = source_cell.number_format or ""
        return '#,##0' in number_format or '0.00' in number_format
