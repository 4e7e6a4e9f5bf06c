import logging
import time
import traceback
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class GenerationSession:
    """
    Context manager to track one report generation.
    Collects warnings, the sheets written and the final status.
    """
    def __init__(self, report_kind: str, record_count: int = 0):
        self.report_kind = report_kind
        self.record_count = record_count

        self.start_time = None
        self.duration = 0.0
        self.sheets_written: List[str] = []
        self.warnings: List[str] = []

        self.status = "pending"
        self.error_message: Optional[str] = None
        self.error_traceback: Optional[str] = None

    def __enter__(self):
        self.start_time = time.time()
        logger.info(f"=== Generation Session Started ({self.report_kind}, {self.record_count} records) ===")
        return self

    def log_sheet(self, sheet_name: str):
        """Record a worksheet written to the output workbook."""
        self.sheets_written.append(sheet_name)
        logger.debug(f"Wrote sheet: {sheet_name}")

    def warn(self, message: str):
        self.warnings.append(message)
        logger.warning(message)

    def extend_warnings(self, messages: List[str]):
        for message in messages:
            self.warn(message)

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.time() - self.start_time

        if exc_type:
            self.status = "fatal"
            self.error_message = str(exc_val)
            self.error_traceback = "".join(traceback.format_exception(exc_type, exc_val, exc_tb))
            logger.critical(f"Session crashed: {self.error_message}")
        elif self.warnings:
            self.status = "success_with_warnings"
        else:
            self.status = "success"

        logger.info(f"=== Generation Session Ended ({self.status}) | Duration: {self.duration:.2f}s ===")

        # Propagate exceptions
        return False

    def get_summary(self) -> Dict:
        return {
            "status": self.status,
            "report_kind": self.report_kind,
            "sheets_written": self.sheets_written,
            "warnings": self.warnings,
            "error_message": self.error_message,
            "duration": round(self.duration, 3),
        }
