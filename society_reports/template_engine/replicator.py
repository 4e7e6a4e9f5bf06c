import logging
from copy import copy
from typing import Any, Mapping, Optional

from openpyxl.worksheet.pagebreak import Break
from openpyxl.worksheet.worksheet import Worksheet

from .cell_values import read_cell_value, to_openpyxl
from .resolver import VariableResolver
from .utils.merge_utils import apply_merges, collect_merges

logger = logging.getLogger(__name__)

_PAGE_SETUP_FIELDS = ('orientation', 'paperSize', 'scale', 'fitToWidth', 'fitToHeight', 'firstPageNumber', 'useFirstPageNumber')


def copy_cell_style(source_cell, target_cell):
    """Copy every style component as a new object so output and template never share state."""
    if not source_cell.has_style:
        return
    target_cell.font = copy(source_cell.font)
    target_cell.border = copy(source_cell.border)
    target_cell.fill = copy(source_cell.fill)
    target_cell.number_format = copy(source_cell.number_format)
    target_cell.protection = copy(source_cell.protection)
    target_cell.alignment = copy(source_cell.alignment)


class RowReplicator:
    """
    Copies template rows into output worksheets, resolving placeholders on the way.

    One replicator serves one generation call: it holds the template worksheet
    and the resolver (society variables) for that call only.
    """

    def __init__(self, template_ws: Worksheet, resolver: VariableResolver):
        self.template_ws = template_ws
        self.resolver = resolver
        self.max_column = template_ws.max_column or 1

    def copy_row(self, source_row: int, dest_ws: Worksheet, dest_row: int, record: Optional[Mapping[str, Any]] = None) -> int:
        """
        Copy one template row to dest_row of dest_ws.

        Args:
            source_row: 1-based template row.
            dest_ws: Output worksheet.
            dest_row: 1-based output row.
            record: Values for placeholders. None copies the row verbatim.

        Returns:
            Number of cells written.
        """
        written = 0
        row_dim = self.template_ws.row_dimensions.get(source_row)
        if row_dim is not None:
            if row_dim.height is not None:
                dest_ws.row_dimensions[dest_row].height = row_dim.height
            if row_dim.hidden:
                dest_ws.row_dimensions[dest_row].hidden = True

        for row in self.template_ws.iter_rows(min_row=source_row, max_row=source_row, max_col=self.max_column):
            for source_cell in row:
                if source_cell.value is None and not source_cell.has_style:
                    continue
                target_cell = dest_ws.cell(row=dest_row, column=source_cell.column)
                copy_cell_style(source_cell, target_cell)
                target_cell.value = self.render_value(source_cell.value, record)

                if getattr(source_cell, 'hyperlink', None) is not None:
                    target_cell.hyperlink = copy(source_cell.hyperlink)
                if getattr(source_cell, 'comment', None) is not None:
                    target_cell.comment = copy(source_cell.comment)
                written += 1
        return written

    def render_value(self, raw: Any, record: Optional[Mapping[str, Any]]) -> Any:
        if raw is None or record is None:
            return raw
        value = read_cell_value(raw)
        return to_openpyxl(self.resolver.resolve_cell_value(value, record))

    def copy_rows(self, first_row: int, last_row: int, dest_ws: Worksheet, dest_first_row: int, record: Optional[Mapping[str, Any]] = None) -> int:
        """Copy the template block [first_row, last_row] starting at dest_first_row. Returns rows written."""
        count = 0
        for offset, source_row in enumerate(range(first_row, last_row + 1)):
            self.copy_row(source_row, dest_ws, dest_first_row + offset, record)
            count += 1
        return count

    def copy_sheet_setup(self, dest_ws: Worksheet):
        """Column widths/hidden flags, page setup, margins and print options. Once per output sheet."""
        for key, col_dim in self.template_ws.column_dimensions.items():
            new_dim = dest_ws.column_dimensions[key]
            new_dim.width = col_dim.width
            new_dim.hidden = col_dim.hidden
            if col_dim.min and col_dim.max:
                new_dim.min = col_dim.min
                new_dim.max = col_dim.max

        for field_name in _PAGE_SETUP_FIELDS:
            value = getattr(self.template_ws.page_setup, field_name, None)
            if value is not None:
                setattr(dest_ws.page_setup, field_name, value)

        dest_ws.page_margins = copy(self.template_ws.page_margins)
        dest_ws.print_options = copy(self.template_ws.print_options)
        dest_ws.sheet_format = copy(self.template_ws.sheet_format)

        page_setup_pr = self.template_ws.sheet_properties.pageSetUpPr
        if page_setup_pr is not None:
            dest_ws.sheet_properties.pageSetUpPr = copy(page_setup_pr)

    def copy_merges(self, dest_ws: Worksheet, row_offset: int = 0, min_row: int = 1, max_row: Optional[int] = None) -> int:
        """
        Replicate the template merges lying inside [min_row, max_row], shifted by row_offset.
        Call after the rows are written: merged cells are read-only in openpyxl.
        """
        merges = collect_merges(self.template_ws, min_row=min_row, max_row=max_row)
        return apply_merges(dest_ws, merges, row_offset=row_offset)


def add_page_break(worksheet: Worksheet, after_row: int):
    worksheet.row_breaks.append(Break(id=after_row))
