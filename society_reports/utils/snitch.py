import functools
import logging
import uuid
import contextvars

# Trace id carried through one run (API request, CLI call)
_trace_id_ctx = contextvars.ContextVar("trace_id", default="NO-TRACE")

logger = logging.getLogger("REPORT_WORKFLOW")


def start_trace(custom_id=None):
    """Call this ONCE at the top of a request or script run."""
    tid = custom_id or f"run-{str(uuid.uuid4())[:8]}"
    _trace_id_ctx.set(tid)
    logger.debug(f"[{tid}] trace started")
    return tid


def get_trace_id():
    """Retrieve the current ID anywhere in the code."""
    return _trace_id_ctx.get()


def snitch(func):
    """Decorator to log entry/exit with the ID."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        tid = get_trace_id()
        func_name = func.__qualname__
        try:
            logger.info(f"[{tid}] >> ENTER: {func_name}")
            result = func(*args, **kwargs)
            logger.info(f"[{tid}] OK EXIT:  {func_name}")
            return result
        except Exception as e:
            logger.error(f"[{tid}] !! CRASH: {func_name} | {e}")
            raise
    return wrapper
