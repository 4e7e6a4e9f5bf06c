import logging
import re
from typing import List, Optional, Tuple

from openpyxl.styles import Alignment
from openpyxl.utils import column_index_from_string, get_column_letter
from openpyxl.utils.exceptions import CellCoordinatesException
from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger(__name__)

center_alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)

_COLUMN_LETTERS = re.compile(r'^[A-Za-z]{1,3}$')
_MAX_COLUMN = 16384  # XFD


def _column_index(letters: str) -> Optional[int]:
    letters = letters.strip()
    if not _COLUMN_LETTERS.match(letters):
        return None
    try:
        index = column_index_from_string(letters.upper())
    except (ValueError, CellCoordinatesException):
        return None
    return index if 1 <= index <= _MAX_COLUMN else None


def parse_merge_range(range_text: Optional[str], default: str = "A:J") -> Tuple[str, str]:
    """
    Parse a "START:END" column-letter range used for register header merges.

    "A:K" -> ("A", "K"); a single letter "C" -> ("C", "C").
    Anything unparseable (blank, bad letters, beyond XFD, start after end)
    falls back to the default range.

    Args:
        range_text: User supplied range text, may be None.
        default: Range used when range_text is invalid. Must itself be valid.

    Returns:
        (start_letter, end_letter) in upper case.
    """
    parsed = _parse_columns(range_text)
    if parsed is None:
        if range_text:
            logger.warning(f"Invalid header merge range '{range_text}', using default '{default}'")
        parsed = _parse_columns(default)
        if parsed is None:
            raise ValueError(f"Default merge range '{default}' is not a valid column range")
    return parsed


def _parse_columns(range_text: Optional[str]) -> Optional[Tuple[str, str]]:
    if not range_text or not isinstance(range_text, str):
        return None

    parts = range_text.split(":")
    if len(parts) == 1:
        parts = [parts[0], parts[0]]
    if len(parts) != 2:
        return None

    start_idx = _column_index(parts[0])
    end_idx = _column_index(parts[1])
    if start_idx is None or end_idx is None or start_idx > end_idx:
        return None
    return get_column_letter(start_idx), get_column_letter(end_idx)


def apply_horizontal_merge(worksheet: Worksheet, row_num: int, start_letter: str, end_letter: str):
    """
    Merge one row across [start_letter, end_letter] and center the anchor cell.
    A single-column range leaves the row unmerged.
    """
    start_col = column_index_from_string(start_letter)
    end_col = column_index_from_string(end_letter)

    cell = worksheet.cell(row=row_num, column=start_col)
    cell.alignment = center_alignment

    if end_col <= start_col:
        return

    worksheet.merge_cells(start_row=row_num, start_column=start_col, end_row=row_num, end_column=end_col)
    logger.debug(f"Merged row {row_num} from {start_letter} to {end_letter}")


def collect_merges(worksheet: Worksheet, min_row: int = 1, max_row: Optional[int] = None) -> List[Tuple[int, int, int, int]]:
    """
    Bounds (min_col, min_row, max_col, max_row) of the merges fully inside
    the row window [min_row, max_row].
    """
    merges = []
    for merged_range in worksheet.merged_cells.ranges:
        m_min_col, m_min_row, m_max_col, m_max_row = merged_range.bounds
        if m_min_row < min_row:
            continue
        if max_row is not None and m_max_row > max_row:
            continue
        merges.append((m_min_col, m_min_row, m_max_col, m_max_row))
    return merges


def apply_merges(worksheet: Worksheet, merges: List[Tuple[int, int, int, int]], row_offset: int = 0) -> int:
    """Re-create merges on worksheet shifted down by row_offset. Returns the number applied."""
    applied = 0
    for min_col, min_row, max_col, max_row in merges:
        worksheet.merge_cells(
            start_row=min_row + row_offset,
            start_column=min_col,
            end_row=max_row + row_offset,
            end_column=max_col
        )
        applied += 1
    return applied
