# template_engine/builders/workbook_builder.py
import logging
import re
from typing import Iterable, List, Optional

from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger(__name__)

MAX_SHEET_TITLE = 31
_INVALID_TITLE_CHARS = re.compile(r'[\[\]:*?/\\]')


def sanitize_sheet_title(title: str, existing: Iterable[str] = (), fallback: str = "Sheet") -> str:
    """
    Make a title Excel accepts: no []:*?/\\ characters, at most 31 characters,
    and unique (case-insensitive) among existing titles via a _2, _3... suffix.
    """
    cleaned = _INVALID_TITLE_CHARS.sub("_", str(title)).strip().strip("'")
    if not cleaned:
        cleaned = fallback
    cleaned = cleaned[:MAX_SHEET_TITLE]

    taken = {name.lower() for name in existing}
    if cleaned.lower() not in taken:
        return cleaned

    counter = 2
    while True:
        suffix = f"_{counter}"
        candidate = f"{cleaned[:MAX_SHEET_TITLE - len(suffix)]}{suffix}"
        if candidate.lower() not in taken:
            return candidate
        counter += 1


class WorkbookBuilder:
    """
    Builder responsible for the output workbook of one generation call.
    Starts from a clean workbook (no default 'Sheet') and hands out uniquely
    named worksheets as strategies ask for them.
    """

    def __init__(self, sheet_names: Optional[List[str]] = None):
        """
        Args:
            sheet_names: Sheets to create up front (optional).
        """
        self.sheet_names = list(sheet_names or [])
        self.workbook = None

    def build(self) -> Workbook:
        """
        Creates the new workbook with any up-front sheets.

        Returns:
            A new Workbook instance
        """
        self.workbook = Workbook()

        # Remove the default 'Sheet' created by openpyxl
        if 'Sheet' in self.workbook.sheetnames:
            del self.workbook['Sheet']

        for sheet_name in self.sheet_names:
            self.add_sheet(sheet_name)

        logger.debug(f"Output workbook created with {len(self.workbook.sheetnames)} sheet(s)")
        return self.workbook

    def add_sheet(self, title: str) -> Worksheet:
        """Create a worksheet with a sanitized, de-duplicated title."""
        if self.workbook is None:
            raise RuntimeError("Workbook not created yet. Call build() first.")
        safe_title = sanitize_sheet_title(title, self.workbook.sheetnames)
        if safe_title != title:
            logger.debug(f"Sheet title '{title}' stored as '{safe_title}'")
        return self.workbook.create_sheet(title=safe_title)
