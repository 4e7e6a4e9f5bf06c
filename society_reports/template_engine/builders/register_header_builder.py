import logging
from typing import Any, Dict, List, Optional, Tuple

from openpyxl.utils import column_index_from_string
from openpyxl.worksheet.worksheet import Worksheet

from ..cell_values import read_cell_value, to_openpyxl
from ..replicator import RowReplicator, copy_cell_style
from ..utils.merge_utils import apply_horizontal_merge

logger = logging.getLogger(__name__)


class RegisterHeaderBuilder:
    """
    Writes the title block of a register sheet.

    Each template title row contributes its first non-empty cell, resolved
    against the society variables, placed at the start column of the merge
    range and merged across it.
    """

    def __init__(
        self,
        replicator: RowReplicator,
        worksheet: Worksheet,
        header_end_row: int,
        merge_range: Tuple[str, str],
        merged_row_limit: Optional[int] = None
    ):
        """
        Args:
            replicator: Replicator of the current generation call (template + resolver)
            worksheet: Output register sheet
            header_end_row: Last template title row (0 means no title block)
            merge_range: (start_letter, end_letter) for the header merges
            merged_row_limit: Merge only the first N title rows (None merges all)
        """
        self.replicator = replicator
        self.worksheet = worksheet
        self.header_end_row = header_end_row
        self.merge_range = merge_range
        self.merged_row_limit = merged_row_limit

    @property
    def template_ws(self) -> Worksheet:
        return self.replicator.template_ws

    @property
    def start_column(self) -> int:
        return column_index_from_string(self.merge_range[0])

    def _first_text_cell(self, row_num: int):
        for row in self.template_ws.iter_rows(min_row=row_num, max_row=row_num, max_col=self.replicator.max_column):
            for cell in row:
                value = cell.value
                if value is None:
                    continue
                if isinstance(value, str) and not value.strip():
                    continue
                return cell
        return None

    def build(self, start_row: int = 1) -> Dict[str, Any]:
        """
        Write rows start_row .. start_row + header_end_row - 1.

        Returns:
            dict with 'rows_written' and 'titles' (the resolved title of each row)
        """
        titles: List[str] = []
        merged_rows = self.header_end_row if self.merged_row_limit is None else min(self.merged_row_limit, self.header_end_row)

        for offset in range(self.header_end_row):
            template_row = offset + 1
            dest_row = start_row + offset

            row_dim = self.template_ws.row_dimensions.get(template_row)
            if row_dim is not None and row_dim.height is not None:
                self.worksheet.row_dimensions[dest_row].height = row_dim.height

            source_cell = self._first_text_cell(template_row)
            if source_cell is not None:
                resolved = self.replicator.resolver.resolve_cell_value(read_cell_value(source_cell.value), {})
                target_cell = self.worksheet.cell(row=dest_row, column=self.start_column)
                copy_cell_style(source_cell, target_cell)
                target_cell.value = to_openpyxl(resolved)
                titles.append(str(target_cell.value))
                logger.debug(f"Header row {dest_row}: '{target_cell.value}'")

            if offset < merged_rows:
                apply_horizontal_merge(self.worksheet, dest_row, self.merge_range[0], self.merge_range[1])

        logger.info(
            f"Register header: {self.header_end_row} row(s), merged {merged_rows} across "
            f"{self.merge_range[0]}:{self.merge_range[1]}"
        )
        return {"rows_written": self.header_end_row, "titles": titles}
