# template_engine/cell_values.py
"""
Cell contents as a small tagged variant.

openpyxl hands back plain scalars, formula strings ("=SUM(A1:A3)") and, when a
workbook is loaded with rich_text=True, CellRichText run lists. Generation code
works on these three shapes instead of probing cell.value types everywhere.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Union

from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.cell.text import InlineFont

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlainValue:
    value: Any


@dataclass(frozen=True)
class RichTextValue:
    # (text, font) runs; font is None for unformatted runs
    segments: Tuple[Tuple[str, Optional[InlineFont]], ...]

    @property
    def text(self) -> str:
        return "".join(text for text, _ in self.segments)


@dataclass(frozen=True)
class FormulaValue:
    expression: str
    cached_result: Any = None


CellValue = Union[PlainValue, RichTextValue, FormulaValue]


def read_cell_value(raw: Any) -> CellValue:
    """Wrap a raw openpyxl cell value."""
    if isinstance(raw, CellRichText):
        segments = []
        for run in raw:
            if isinstance(run, TextBlock):
                segments.append((run.text or "", run.font))
            else:
                segments.append((str(run), None))
        return RichTextValue(tuple(segments))
    if isinstance(raw, str) and raw.startswith("=") and len(raw) > 1:
        return FormulaValue(raw)
    # ArrayFormula / DataTableFormula objects and scalars are carried verbatim
    return PlainValue(raw)


def text_of(value: CellValue) -> str:
    """Visible text used for template scanning (formula text for formulas)."""
    if isinstance(value, RichTextValue):
        return value.text
    if isinstance(value, FormulaValue):
        return value.expression
    if value.value is None:
        return ""
    return value.value if isinstance(value.value, str) else str(value.value)


def is_empty(value: CellValue) -> bool:
    if isinstance(value, PlainValue):
        return value.value is None or (isinstance(value.value, str) and not value.value.strip())
    return not text_of(value).strip()


def map_text(value: CellValue, text_fn: Callable[[str], str], formula_fn: Callable[[str], str]) -> CellValue:
    """
    Apply text_fn to every text fragment (plain strings and each rich-text run
    separately) and formula_fn to formula expressions. Non-text scalars pass through.
    """
    if isinstance(value, RichTextValue):
        return RichTextValue(tuple((text_fn(text), font) for text, font in value.segments))
    if isinstance(value, FormulaValue):
        return FormulaValue(formula_fn(value.expression), value.cached_result)
    if isinstance(value.value, str):
        return PlainValue(text_fn(value.value))
    return value


def to_openpyxl(value: CellValue) -> Any:
    """Convert back to something assignable to cell.value."""
    if isinstance(value, FormulaValue):
        return value.expression
    if isinstance(value, RichTextValue):
        runs = []
        for text, font in value.segments:
            if not text:
                continue
            runs.append(TextBlock(font, text) if font is not None else text)
        if not runs:
            return None
        if all(isinstance(run, str) for run in runs):
            return "".join(runs)
        return CellRichText(runs)
    return value.value
