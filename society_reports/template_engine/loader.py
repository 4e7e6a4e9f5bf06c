import io
import logging
import zipfile
from pathlib import Path
from typing import Any, Optional, Tuple, Type

import openpyxl
from openpyxl import Workbook
from openpyxl.utils.exceptions import InvalidFileException

from society_reports.exceptions import DataValidationError, ReportError, TemplateValidationError
from society_reports.system_config import sys_config

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = ('.xlsx', '.xlsm')
LEGACY_EXTENSIONS = ('.xls',)


def read_source_bytes(source: Any, filename: Optional[str] = None) -> Tuple[bytes, Optional[str]]:
    """
    Read a path, bytes or binary file object fully into memory.

    Returns:
        (data, filename) where filename falls back to the path or the file object's name.
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        return path.read_bytes(), filename or path.name

    if isinstance(source, (bytes, bytearray)):
        return bytes(source), filename

    if hasattr(source, 'read'):
        data = source.read()
        if isinstance(data, str):
            raise TypeError("Expected a binary file object, got a text stream")
        name = filename or getattr(source, 'name', None) or getattr(source, 'filename', None)
        return data, Path(str(name)).name if name else None

    raise TypeError(f"Unsupported workbook source: {type(source).__name__}")


def check_extension(filename: Optional[str], allowed: Tuple[str, ...], error_cls: Type[ReportError]) -> str:
    if not filename:
        # Unnamed bytes are assumed to be .xlsx; openpyxl rejects anything else on load
        return '.xlsx'
    suffix = Path(filename).suffix.lower()
    if suffix in LEGACY_EXTENSIONS:
        raise error_cls(
            f"'{filename}' is a legacy .xls workbook, which is not supported. "
            "Please save it as .xlsx and upload again."
        )
    if suffix not in allowed:
        raise error_cls(f"'{filename}' is not a supported file type (expected {', '.join(allowed)})")
    return suffix


def check_size(data: bytes, max_bytes: int, filename: Optional[str], error_cls: Type[ReportError]):
    if not data:
        raise error_cls(f"'{filename or 'upload'}' is empty")
    if len(data) > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        size_mb = len(data) / (1024 * 1024)
        raise error_cls(
            f"'{filename or 'upload'}' is {size_mb:.1f} MB; the limit is {limit_mb:.0f} MB"
        )


def open_workbook(
    source: Any,
    filename: Optional[str] = None,
    max_bytes: Optional[int] = None,
    error_cls: Type[ReportError] = TemplateValidationError,
    rich_text: bool = False,
    data_only: bool = False,
) -> Workbook:
    """
    Validate and load an .xlsx/.xlsm workbook from a path, bytes or file object.
    A loaded Workbook is passed through unchanged.

    Raises:
        error_cls: on missing/oversized/unreadable input or an unsupported extension.
    """
    if isinstance(source, Workbook):
        return source
    if source is None:
        raise error_cls("No workbook supplied")

    try:
        data, name = read_source_bytes(source, filename)
    except (FileNotFoundError, TypeError) as e:
        raise error_cls(str(e)) from e

    check_extension(name, EXCEL_EXTENSIONS, error_cls)
    check_size(data, max_bytes if max_bytes is not None else sys_config.max_template_bytes, name, error_cls)

    try:
        workbook = openpyxl.load_workbook(io.BytesIO(data), rich_text=rich_text, data_only=data_only)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        raise error_cls(f"Could not read '{name or 'upload'}' as an Excel workbook: {e}") from e

    logger.info(f"Loaded workbook '{name or '<bytes>'}' ({len(data)} bytes, sheets={workbook.sheetnames})")
    return workbook


def load_template(source: Any, filename: Optional[str] = None) -> Workbook:
    """Template workbook with rich text runs and formulas preserved."""
    if source is None:
        raise TemplateValidationError("No template loaded. Please upload a template first.")
    return open_workbook(
        source,
        filename=filename,
        max_bytes=sys_config.max_template_bytes,
        error_cls=TemplateValidationError,
        rich_text=True,
    )


def load_data_workbook(source: Any, filename: Optional[str] = None) -> Workbook:
    """Data workbook (members, receipts) with cached formula results instead of formulas."""
    return open_workbook(
        source,
        filename=filename,
        max_bytes=sys_config.max_data_bytes,
        error_cls=DataValidationError,
        data_only=True,
    )
