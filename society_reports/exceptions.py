class ReportError(Exception):
    """Base class for every error raised by the report engine."""
    pass


class TemplateValidationError(ReportError):
    """Template missing, wrong extension, too large or unreadable."""
    pass


class DataValidationError(ReportError):
    """Record set missing, empty or unusable for the requested report."""
    pass


class ReconciliationError(ReportError):
    """Receipt file cannot be reconciled (no header row, missing columns, no rows)."""
    pass
