# society_reports/logger_config.py
"""
Logging setup for the report engine and its API.

Every record carries the current snitch trace id, so the lines written while
one report is generated or one receipt file is reconciled can be pulled out of
the rotating log with a single grep.

Usage:
    from society_reports.logger_config import setup_logging
    from society_reports.system_config import sys_config

    setup_logging(log_dir=sys_config.run_log_dir, level=sys_config.log_level)
"""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable

from society_reports.utils.snitch import get_trace_id

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(trace_id)s | %(name)s:%(lineno)d | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# openpyxl and the multipart parser are chatty at DEBUG
QUIET_LOGGERS = ('openpyxl', 'multipart', 'python_multipart')

_logging_initialized = False


class TraceIdFilter(logging.Filter):
    """Stamps record.trace_id with the trace started for the current request or run."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_id()
        return True


def setup_logging(
    log_dir: Path,
    level: int = logging.INFO,
    log_filename: str = "society_reports.log",
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    quiet_loggers: Iterable[str] = QUIET_LOGGERS,
) -> Path:
    """
    Configure the root logger once: console at `level`, rotating file at DEBUG.

    Returns the log file path. Later calls change nothing and return the same path.
    """
    global _logging_initialized

    log_file = Path(log_dir) / log_filename
    if _logging_initialized:
        return log_file

    log_file.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    trace_filter = TraceIdFilter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    for handler in (console_handler, file_handler):
        handler.setFormatter(formatter)
        handler.addFilter(trace_filter)
        root_logger.addHandler(handler)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_initialized = True
    logging.getLogger(__name__).info(f"Logging initialized. File: {log_file}")
    return log_file
