import logging
import os
from pathlib import Path

# Project root (this file lives in society_reports/system_config.py)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


class SystemConfig:
    """
    Read-only runtime settings resolved from environment variables.

    A `.env` file at the project root is loaded once; variables already present
    in the OS environment take precedence. Nothing here is request state.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(SystemConfig, cls).__new__(cls)
            cls._instance._load_env_file()
        return cls._instance

    def _load_env_file(self):
        """Manually load .env file into os.environ if not already set."""
        env_path = PROJECT_ROOT / ".env"
        if env_path.exists():
            try:
                with open(env_path, "r", encoding="utf-8") as f:
                    for line in f:
                        line = line.strip()
                        if not line or line.startswith("#"):
                            continue
                        if "=" in line:
                            key, value = line.split("=", 1)
                            key = key.strip()
                            value = value.strip().strip("'").strip('"')
                            # OS env var takes precedence
                            if key and key not in os.environ:
                                os.environ[key] = value
                logger.info("Loaded .env file for environment configuration.")
            except OSError as e:
                logger.warning(f"Failed to parse .env file: {e}")

    @property
    def output_dir(self) -> Path:
        return self._resolve_path("output", "output/generated_reports", env_key="OUTPUT_DIR")

    @property
    def run_log_dir(self) -> Path:
        return self._resolve_path("run_log", "run_log", env_key="RUN_LOG_DIR")

    @property
    def log_level(self) -> int:
        """Console level from LOG_LEVEL (name such as DEBUG, default INFO)."""
        name = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
        level = logging.getLevelName(name)
        return level if isinstance(level, int) else logging.INFO

    @property
    def max_template_bytes(self) -> int:
        """Upper bound for template uploads (MAX_TEMPLATE_SIZE_MB, default 10)."""
        return self._int_env("MAX_TEMPLATE_SIZE_MB", 10) * 1024 * 1024

    @property
    def max_data_bytes(self) -> int:
        """Upper bound for member/receipt data files (MAX_DATA_SIZE_MB, default 10)."""
        return self._int_env("MAX_DATA_SIZE_MB", 10) * 1024 * 1024

    @property
    def auto_multi_sheet_threshold(self) -> int:
        """FORM templates in auto mode get one sheet per record up to this many records."""
        return self._int_env("AUTO_MULTI_SHEET_THRESHOLD", 5)

    @property
    def bill_header_merge_range(self) -> str:
        return os.getenv("BILL_HEADER_MERGE_RANGE") or "A:J"

    @property
    def receipt_header_merge_range(self) -> str:
        return os.getenv("RECEIPT_HEADER_MERGE_RANGE") or "A:H"

    def _int_env(self, env_key: str, default: int) -> int:
        env_val = os.getenv(env_key)
        if not env_val:
            return default
        try:
            return int(env_val)
        except ValueError:
            logger.warning(f"Ignoring non-integer {env_key}={env_val!r}; using {default}")
            return default

    def _resolve_path(self, key: str, default_relative: str, env_key: str = None) -> Path:
        # 1. Environment variable
        check_env = env_key if env_key else key.upper()
        env_val = os.getenv(check_env)

        if env_val:
            path_obj = Path(env_val)
            if path_obj.is_absolute():
                return path_obj.resolve()
            return (PROJECT_ROOT / path_obj).resolve()

        # 2. Fallback default
        return (PROJECT_ROOT / default_relative).resolve()


# Singleton instance
sys_config = SystemConfig()
