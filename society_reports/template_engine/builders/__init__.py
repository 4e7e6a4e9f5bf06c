# template_engine/builders/__init__.py
from .workbook_builder import WorkbookBuilder, sanitize_sheet_title
from .register_header_builder import RegisterHeaderBuilder
from .total_row_builder import TotalRowBuilder, coerce_sum_formula

__all__ = [
    'WorkbookBuilder',
    'sanitize_sheet_title',
    'RegisterHeaderBuilder',
    'TotalRowBuilder',
    'coerce_sum_formula',
]
